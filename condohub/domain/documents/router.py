"""Document router - FastAPI endpoints for folders and documents"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile
from fastapi.responses import FileResponse
from pydantic import ValidationError
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from .schemas import DocumentMetadata, DocumentResponse, DocumentUpdate, FolderCreate, FolderResponse
from .service import DocumentService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/condominiums/{condominium_id}", tags=["Documents"])


def get_document_service(db: Session = Depends(get_db)) -> DocumentService:
    """Dependency injection for DocumentService"""
    return DocumentService(db)


# ============================================================================
# FOLDERS
# ============================================================================


@router.get("/folders", response_model=list[FolderResponse])
async def list_folders(
    condominium_id: int,
    current_user: User = Depends(get_current_user),
    service: DocumentService = Depends(get_document_service),
):
    return service.list_folders(condominium_id, current_user)


@router.post("/folders", response_model=FolderResponse, status_code=201)
async def create_folder(
    condominium_id: int,
    data: FolderCreate,
    current_user: User = Depends(get_current_user),
    service: DocumentService = Depends(get_document_service),
):
    return service.create_folder(condominium_id, data, current_user)


@router.delete("/folders/{folder_id}", status_code=204)
async def delete_folder(
    condominium_id: int,
    folder_id: int,
    current_user: User = Depends(get_current_user),
    service: DocumentService = Depends(get_document_service),
):
    service.delete_folder(condominium_id, folder_id, current_user)


# ============================================================================
# DOCUMENTS
# ============================================================================


@router.get("/documents", response_model=list[DocumentResponse])
async def list_documents(
    condominium_id: int,
    folder: Optional[str] = Query(None, description="Folder path; empty string lists the root"),
    document_type: Optional[str] = Query(None),
    current_user: User = Depends(get_current_user),
    service: DocumentService = Depends(get_document_service),
):
    return service.list_documents(condominium_id, current_user, folder, document_type)


@router.post("/documents", response_model=DocumentResponse, status_code=201)
async def upload_document(
    condominium_id: int,
    file: UploadFile = File(...),
    title: str = Form(...),
    description: Optional[str] = Form(None),
    folder: Optional[str] = Form(None),
    document_type: str = Form("general"),
    visibility: str = Form("condominos"),
    fraction_id: Optional[int] = Form(None),
    assembly_id: Optional[int] = Form(None),
    parent_document_id: Optional[int] = Form(None),
    current_user: User = Depends(get_current_user),
    service: DocumentService = Depends(get_document_service),
):
    """Upload a document; pass parent_document_id to store a new version"""
    logger.info(f"📤 Uploading document '{file.filename}' to condominium {condominium_id}")
    try:
        metadata = DocumentMetadata(
            title=title,
            description=description,
            folder=folder,
            document_type=document_type,
            visibility=visibility,
            fraction_id=fraction_id,
            assembly_id=assembly_id,
            parent_document_id=parent_document_id,
        )
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=[err["msg"] for err in e.errors()])
    contents = await file.read()
    return service.upload_document(condominium_id, metadata, file.filename, contents, file.content_type, current_user)


@router.get("/documents/{document_id}", response_model=DocumentResponse)
async def get_document(
    condominium_id: int,
    document_id: int,
    current_user: User = Depends(get_current_user),
    service: DocumentService = Depends(get_document_service),
):
    return service.get_document(condominium_id, document_id, current_user)


@router.patch("/documents/{document_id}", response_model=DocumentResponse)
async def update_document(
    condominium_id: int,
    document_id: int,
    data: DocumentUpdate,
    current_user: User = Depends(get_current_user),
    service: DocumentService = Depends(get_document_service),
):
    return service.update_document(condominium_id, document_id, data, current_user)


@router.get("/documents/{document_id}/versions", response_model=list[DocumentResponse])
async def list_versions(
    condominium_id: int,
    document_id: int,
    current_user: User = Depends(get_current_user),
    service: DocumentService = Depends(get_document_service),
):
    return service.list_versions(condominium_id, document_id, current_user)


@router.get("/documents/{document_id}/download")
async def download_document(
    condominium_id: int,
    document_id: int,
    current_user: User = Depends(get_current_user),
    service: DocumentService = Depends(get_document_service),
):
    document, full_path = service.get_download(condominium_id, document_id, current_user)
    return FileResponse(
        full_path,
        media_type=document.mime_type or "application/octet-stream",
        filename=document.file_name,
    )


@router.delete("/documents/{document_id}", status_code=204)
async def delete_document(
    condominium_id: int,
    document_id: int,
    current_user: User = Depends(get_current_user),
    service: DocumentService = Depends(get_document_service),
):
    service.delete_document(condominium_id, document_id, current_user)
