"""Occurrence router - FastAPI endpoints for occurrences, comments and attachments"""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from .schemas import (
    AssignRequest,
    AttachmentResponse,
    CategoryCount,
    CommentCreate,
    CommentResponse,
    OccurrenceCreate,
    OccurrenceDetail,
    OccurrenceResponse,
    OccurrenceUpdate,
    StatusUpdate,
)
from .service import OccurrenceService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/condominiums/{condominium_id}/occurrences", tags=["Occurrences"])


def get_occurrence_service(db: Session = Depends(get_db)) -> OccurrenceService:
    """Dependency injection for OccurrenceService"""
    return OccurrenceService(db)


# ============================================================================
# OCCURRENCES
# ============================================================================


@router.get("", response_model=list[OccurrenceResponse])
async def list_occurrences(
    condominium_id: int,
    status: Optional[str] = Query(None),
    priority: Optional[str] = Query(None),
    category: Optional[str] = Query(None),
    fraction_id: Optional[int] = Query(None),
    assigned_to: Optional[int] = Query(None),
    supplier_id: Optional[int] = Query(None),
    reported_by: Optional[int] = Query(None),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    search: Optional[str] = Query(None, description="Matches title or description"),
    sort_by: str = Query("created_at", pattern="^(created_at|title|priority|status)$"),
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    current_user: User = Depends(get_current_user),
    service: OccurrenceService = Depends(get_occurrence_service),
):
    return service.list_occurrences(
        condominium_id,
        current_user,
        status=status,
        priority=priority,
        category=category,
        fraction_id=fraction_id,
        assigned_to=assigned_to,
        supplier_id=supplier_id,
        reported_by=reported_by,
        date_from=date_from,
        date_to=date_to,
        search=search,
        sort_by=sort_by,
        sort_order=sort_order,
    )


@router.post("", response_model=OccurrenceResponse, status_code=201)
async def report_occurrence(
    condominium_id: int,
    data: OccurrenceCreate,
    current_user: User = Depends(get_current_user),
    service: OccurrenceService = Depends(get_occurrence_service),
):
    return service.report(condominium_id, data, current_user)


@router.get("/categories", response_model=list[CategoryCount])
async def list_categories(
    condominium_id: int,
    current_user: User = Depends(get_current_user),
    service: OccurrenceService = Depends(get_occurrence_service),
):
    return service.categories(condominium_id, current_user)


@router.get("/{occurrence_id}", response_model=OccurrenceDetail)
async def get_occurrence(
    condominium_id: int,
    occurrence_id: int,
    current_user: User = Depends(get_current_user),
    service: OccurrenceService = Depends(get_occurrence_service),
):
    return service.get_detail(condominium_id, occurrence_id, current_user)


@router.patch("/{occurrence_id}", response_model=OccurrenceResponse)
async def update_occurrence(
    condominium_id: int,
    occurrence_id: int,
    data: OccurrenceUpdate,
    current_user: User = Depends(get_current_user),
    service: OccurrenceService = Depends(get_occurrence_service),
):
    return service.update(condominium_id, occurrence_id, data, current_user)


@router.post("/{occurrence_id}/status", response_model=OccurrenceResponse)
async def change_status(
    condominium_id: int,
    occurrence_id: int,
    data: StatusUpdate,
    current_user: User = Depends(get_current_user),
    service: OccurrenceService = Depends(get_occurrence_service),
):
    return service.change_status(condominium_id, occurrence_id, data, current_user)


@router.post("/{occurrence_id}/assign", response_model=OccurrenceResponse)
async def assign_occurrence(
    condominium_id: int,
    occurrence_id: int,
    data: AssignRequest,
    current_user: User = Depends(get_current_user),
    service: OccurrenceService = Depends(get_occurrence_service),
):
    return service.assign(condominium_id, occurrence_id, data, current_user)


# ============================================================================
# COMMENTS
# ============================================================================


@router.post("/{occurrence_id}/comments", response_model=CommentResponse, status_code=201)
async def add_comment(
    condominium_id: int,
    occurrence_id: int,
    data: CommentCreate,
    current_user: User = Depends(get_current_user),
    service: OccurrenceService = Depends(get_occurrence_service),
):
    return service.add_comment(condominium_id, occurrence_id, data, current_user)


@router.delete("/{occurrence_id}/comments/{comment_id}", status_code=204)
async def delete_comment(
    condominium_id: int,
    occurrence_id: int,
    comment_id: int,
    current_user: User = Depends(get_current_user),
    service: OccurrenceService = Depends(get_occurrence_service),
):
    service.delete_comment(condominium_id, occurrence_id, comment_id, current_user)


# ============================================================================
# ATTACHMENTS
# ============================================================================


@router.post("/{occurrence_id}/attachments", response_model=AttachmentResponse, status_code=201)
async def upload_attachment(
    condominium_id: int,
    occurrence_id: int,
    file: UploadFile = File(...),
    current_user: User = Depends(get_current_user),
    service: OccurrenceService = Depends(get_occurrence_service),
):
    logger.info(f"📤 Uploading '{file.filename}' to occurrence {occurrence_id}")
    contents = await file.read()
    return service.upload_attachment(
        condominium_id, occurrence_id, file.filename, contents, file.content_type, current_user
    )


@router.get("/{occurrence_id}/attachments/{attachment_id}/download")
async def download_attachment(
    condominium_id: int,
    occurrence_id: int,
    attachment_id: int,
    current_user: User = Depends(get_current_user),
    service: OccurrenceService = Depends(get_occurrence_service),
):
    attachment, full_path = service.get_attachment_download(condominium_id, occurrence_id, attachment_id, current_user)
    return FileResponse(
        full_path,
        media_type=attachment.mime_type or "application/octet-stream",
        filename=attachment.file_name,
    )


@router.delete("/{occurrence_id}/attachments/{attachment_id}", status_code=204)
async def delete_attachment(
    condominium_id: int,
    occurrence_id: int,
    attachment_id: int,
    current_user: User = Depends(get_current_user),
    service: OccurrenceService = Depends(get_occurrence_service),
):
    service.delete_attachment(condominium_id, occurrence_id, attachment_id, current_user)
