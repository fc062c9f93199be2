"""Backup router - FastAPI endpoints for condominium backups and restores"""

import logging
import os
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from fastapi.responses import FileResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ...auth import get_current_user, get_super_admin
from ...database import get_db
from ...models import User
from .service import BackupDomainService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Backups"])


class BackupFileResponse(BaseModel):
    name: str
    size_kb: int
    modified: datetime


class RestoreResponse(BaseModel):
    condominium_id: int
    message: str


def get_backup_service(db: Session = Depends(get_db)) -> BackupDomainService:
    """Dependency injection for BackupDomainService"""
    return BackupDomainService(db)


@router.post("/condominiums/{condominium_id}/backups", response_model=BackupFileResponse, status_code=201)
async def create_backup(
    condominium_id: int,
    current_user: User = Depends(get_current_user),
    service: BackupDomainService = Depends(get_backup_service),
):
    return service.create_backup(condominium_id, current_user)


@router.get("/condominiums/{condominium_id}/backups", response_model=list[BackupFileResponse])
async def list_condominium_backups(
    condominium_id: int,
    current_user: User = Depends(get_current_user),
    service: BackupDomainService = Depends(get_backup_service),
):
    return service.list_backups(condominium_id, current_user)


@router.get("/backups", response_model=list[BackupFileResponse])
async def list_all_backups(
    _: User = Depends(get_super_admin),
    service: BackupDomainService = Depends(get_backup_service),
):
    return service.list_all_backups()


@router.get("/backups/{name}")
async def download_backup(
    name: str,
    current_user: User = Depends(get_current_user),
    service: BackupDomainService = Depends(get_backup_service),
):
    path = service.get_backup_path(name, current_user)
    return FileResponse(path, media_type="application/zip", filename=os.path.basename(path))


@router.post("/backups/restore", response_model=RestoreResponse)
async def restore_backup(
    file: Optional[UploadFile] = File(None),
    name: Optional[str] = Form(None),
    target_admin_user_id: Optional[int] = Form(None),
    current_user: User = Depends(get_current_user),
    service: BackupDomainService = Depends(get_backup_service),
):
    """Restore from an uploaded .backup file or from a stored backup name"""
    if file is not None:
        contents = await file.read()
        condominium_id = service.restore_from_upload(file.filename, contents, current_user, target_admin_user_id)
    elif name:
        condominium_id = service.restore_from_name(name, current_user, target_admin_user_id)
    else:
        raise HTTPException(status_code=400, detail="Send a backup file or the name of a stored backup")

    return {"condominium_id": condominium_id, "message": "Backup restored successfully"}


@router.delete("/backups/{name}", status_code=204)
async def delete_backup(
    name: str,
    current_user: User = Depends(get_current_user),
    service: BackupDomainService = Depends(get_backup_service),
):
    service.delete_backup(name, current_user)
