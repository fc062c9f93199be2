"""Document service - Business logic for folders, uploads and versions"""

import logging
import os
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...config import STORAGE_PATH
from ...models import Document, Folder, User
from ...services.audit_service import AuditService
from ...shared.access import can_manage, require_access, require_manager, user_fraction_ids
from ...shared.uploads import check_upload, store_upload
from .repository import DocumentRepository
from .schemas import DocumentMetadata, DocumentUpdate, FolderCreate

logger = logging.getLogger(__name__)


def documents_dir(condominium_id: int) -> str:
    """Storage directory of a condominium's documents, relative to STORAGE_PATH"""
    return os.path.join("condominiums", str(condominium_id), "documents")


class DocumentService:
    """Service layer for document business logic"""

    def __init__(self, db: Session, storage_path: Optional[str] = None):
        self.db = db
        self.repo = DocumentRepository()
        self.audit = AuditService(db)
        self.storage_path = storage_path or STORAGE_PATH

    def _full_path(self, relative_path: str) -> str:
        return os.path.join(self.storage_path, relative_path)

    # ------------------------------------------------------------------
    # Folders
    # ------------------------------------------------------------------

    def list_folders(self, condominium_id: int, user: User) -> list[Folder]:
        require_access(self.db, user, condominium_id)
        return self.repo.list_folders(self.db, condominium_id)

    def create_folder(self, condominium_id: int, data: FolderCreate, user: User) -> Folder:
        require_manager(self.db, user, condominium_id)
        path = data.name
        if data.parent_folder_id is not None:
            parent = self.repo.get_folder(self.db, condominium_id, data.parent_folder_id)
            if not parent:
                raise HTTPException(status_code=404, detail="Parent folder not found")
            path = f"{parent.path}/{data.name}"
        if self.repo.get_folder_by_path(self.db, condominium_id, path):
            raise HTTPException(status_code=409, detail=f"Folder '{path}' already exists")

        folder = Folder(
            condominium_id=condominium_id,
            parent_folder_id=data.parent_folder_id,
            name=data.name,
            path=path,
            created_by=user.id,
        )
        self.db.add(folder)
        self.db.commit()
        self.db.refresh(folder)
        logger.info(f"📁 Folder '{path}' created in condominium {condominium_id}")
        return folder

    def delete_folder(self, condominium_id: int, folder_id: int, user: User) -> None:
        require_manager(self.db, user, condominium_id)
        folder = self.repo.get_folder(self.db, condominium_id, folder_id)
        if not folder:
            raise HTTPException(status_code=404, detail="Folder not found")
        if self.repo.list_subfolders(self.db, condominium_id, folder.path):
            raise HTTPException(status_code=400, detail="Folder has subfolders")
        if self.repo.count_in_folder(self.db, condominium_id, folder.path):
            raise HTTPException(status_code=400, detail="Folder is not empty")
        self.db.delete(folder)
        self.db.commit()

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    def _can_see(self, document: Document, manager: bool, fraction_ids: list[int]) -> bool:
        if manager:
            return True
        if document.visibility == "condominos":
            return True
        return document.visibility == "fraction" and document.fraction_id in fraction_ids

    def _viewer(self, condominium_id: int, user: User) -> tuple[bool, list[int]]:
        condominium = require_access(self.db, user, condominium_id)
        if can_manage(self.db, user, condominium):
            return True, []
        return False, user_fraction_ids(self.db, user.id, condominium_id)

    def list_documents(
        self,
        condominium_id: int,
        user: User,
        folder: Optional[str] = None,
        document_type: Optional[str] = None,
    ) -> list[Document]:
        manager, fraction_ids = self._viewer(condominium_id, user)
        documents = self.repo.list_documents(self.db, condominium_id, folder, document_type)
        return [d for d in documents if self._can_see(d, manager, fraction_ids)]

    def get_document(self, condominium_id: int, document_id: int, user: User) -> Document:
        manager, fraction_ids = self._viewer(condominium_id, user)
        document = self.repo.get_document(self.db, condominium_id, document_id)
        if not document or not self._can_see(document, manager, fraction_ids):
            raise HTTPException(status_code=404, detail="Document not found")
        return document

    def get_download(self, condominium_id: int, document_id: int, user: User) -> tuple[Document, str]:
        document = self.get_document(condominium_id, document_id, user)
        full_path = self._full_path(document.file_path)
        if not os.path.isfile(full_path):
            logger.error(f"❌ File missing for document {document.id}: {full_path}")
            raise HTTPException(status_code=404, detail="File not found")
        return document, full_path

    def upload_document(
        self,
        condominium_id: int,
        metadata: DocumentMetadata,
        file_name: Optional[str],
        content: bytes,
        mime_type: Optional[str],
        user: User,
    ) -> Document:
        require_manager(self.db, user, condominium_id)
        check_upload(file_name, content)

        folder = metadata.folder
        version = 1
        if metadata.parent_document_id is not None:
            parent = self.repo.get_document(self.db, condominium_id, metadata.parent_document_id)
            if not parent:
                raise HTTPException(status_code=404, detail="Previous version not found")
            version = parent.version + 1
            folder = folder if folder is not None else parent.folder
        if folder and not self.repo.get_folder_by_path(self.db, condominium_id, folder):
            raise HTTPException(status_code=404, detail=f"Folder '{folder}' not found")
        if metadata.visibility == "fraction" and metadata.fraction_id is None:
            raise HTTPException(status_code=400, detail="fraction_id is required for fraction documents")

        relative_path, full_path = store_upload(self.storage_path, documents_dir(condominium_id), file_name, content)

        try:
            document = Document(
                condominium_id=condominium_id,
                assembly_id=metadata.assembly_id,
                fraction_id=metadata.fraction_id,
                parent_document_id=metadata.parent_document_id,
                folder=folder,
                title=metadata.title,
                description=metadata.description,
                file_path=relative_path,
                file_name=file_name,
                file_size=len(content),
                mime_type=mime_type,
                document_type=metadata.document_type,
                visibility=metadata.visibility,
                version=version,
                uploaded_by=user.id,
            )
            self.db.add(document)
            self.db.flush()
            self.audit.log_document(
                condominium_id,
                "upload",
                document_id=document.id,
                document_type=document.document_type,
                file_path=relative_path,
                file_name=file_name,
                file_size=len(content),
                folder=folder,
                description=f"Uploaded '{document.title}' (v{version})",
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            os.remove(full_path)
            raise

        self.db.refresh(document)
        logger.info(f"📄 Document {document.id} uploaded to condominium {condominium_id} ({len(content)} bytes)")
        return document

    def update_document(
        self, condominium_id: int, document_id: int, data: DocumentUpdate, user: User
    ) -> Document:
        require_manager(self.db, user, condominium_id)
        document = self.repo.get_document(self.db, condominium_id, document_id)
        if not document:
            raise HTTPException(status_code=404, detail="Document not found")
        changes = data.model_dump(exclude_unset=True)
        if changes.get("folder") and not self.repo.get_folder_by_path(self.db, condominium_id, changes["folder"]):
            raise HTTPException(status_code=404, detail=f"Folder '{changes['folder']}' not found")
        for field, value in changes.items():
            setattr(document, field, value)
        self.db.commit()
        self.db.refresh(document)
        return document

    def list_versions(self, condominium_id: int, document_id: int, user: User) -> list[Document]:
        """Every version of a document, oldest first"""
        document = self.get_document(condominium_id, document_id, user)
        root = document
        seen = {root.id}
        while root.parent_document_id and root.parent_document_id not in seen:
            parent = self.repo.get_document(self.db, condominium_id, root.parent_document_id)
            if not parent:
                break
            seen.add(parent.id)
            root = parent

        versions = [root]
        frontier = [root]
        while frontier:
            current = frontier.pop()
            for child in self.repo.list_children(self.db, current.id):
                if child.id not in {v.id for v in versions}:
                    versions.append(child)
                    frontier.append(child)
        return sorted(versions, key=lambda d: (d.version, d.id))

    def delete_document(self, condominium_id: int, document_id: int, user: User) -> None:
        require_manager(self.db, user, condominium_id)
        document = self.repo.get_document(self.db, condominium_id, document_id)
        if not document:
            raise HTTPException(status_code=404, detail="Document not found")

        for child in self.repo.list_children(self.db, document.id):
            child.parent_document_id = document.parent_document_id

        file_path = document.file_path
        self.audit.log_document(
            condominium_id,
            "delete",
            document_id=document.id,
            document_type=document.document_type,
            file_path=file_path,
            file_name=document.file_name,
            file_size=document.file_size,
            folder=document.folder,
            description=f"Deleted '{document.title}'",
        )
        self.db.delete(document)
        self.db.commit()

        full_path = self._full_path(file_path)
        if os.path.isfile(full_path):
            os.remove(full_path)
        logger.info(f"🗑️ Document {document_id} deleted from condominium {condominium_id}")
