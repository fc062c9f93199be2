"""Document repository - Data access layer for folders and documents"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models import Document, Folder


class DocumentRepository:
    """Repository for folder and document data access"""

    @staticmethod
    def list_folders(db: Session, condominium_id: int) -> list[Folder]:
        return db.query(Folder).filter(Folder.condominium_id == condominium_id).order_by(Folder.path).all()

    @staticmethod
    def get_folder(db: Session, condominium_id: int, folder_id: int) -> Optional[Folder]:
        return db.query(Folder).filter(Folder.id == folder_id, Folder.condominium_id == condominium_id).first()

    @staticmethod
    def get_folder_by_path(db: Session, condominium_id: int, path: str) -> Optional[Folder]:
        return db.query(Folder).filter(Folder.condominium_id == condominium_id, Folder.path == path).first()

    @staticmethod
    def list_subfolders(db: Session, condominium_id: int, path: str) -> list[Folder]:
        return (
            db.query(Folder)
            .filter(Folder.condominium_id == condominium_id, Folder.path.like(f"{path}/%"))
            .all()
        )

    @staticmethod
    def list_documents(
        db: Session,
        condominium_id: int,
        folder: Optional[str] = None,
        document_type: Optional[str] = None,
        visibilities: Optional[list[str]] = None,
    ) -> list[Document]:
        query = db.query(Document).filter(Document.condominium_id == condominium_id)
        if folder is not None:
            query = query.filter(Document.folder == (folder or None))
        if document_type:
            query = query.filter(Document.document_type == document_type)
        if visibilities is not None:
            query = query.filter(Document.visibility.in_(visibilities))
        return query.order_by(Document.created_at.desc(), Document.id.desc()).all()

    @staticmethod
    def count_in_folder(db: Session, condominium_id: int, path: str) -> int:
        return (
            db.query(Document)
            .filter(
                Document.condominium_id == condominium_id,
                (Document.folder == path) | Document.folder.like(f"{path}/%"),
            )
            .count()
        )

    @staticmethod
    def get_document(db: Session, condominium_id: int, document_id: int) -> Optional[Document]:
        return (
            db.query(Document)
            .filter(Document.id == document_id, Document.condominium_id == condominium_id)
            .first()
        )

    @staticmethod
    def list_children(db: Session, document_id: int) -> list[Document]:
        return db.query(Document).filter(Document.parent_document_id == document_id).all()
