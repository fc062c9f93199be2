"""Backup domain service - permission checks around condominium backup files"""

import logging
import os
import re
from datetime import datetime
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import Condominium, User
from ...services.backup_service import BACKUP_EXTENSION, CondominiumBackupService
from ...shared.access import can_manage, require_manager

logger = logging.getLogger(__name__)

BACKUP_NAME_PATTERN = re.compile(r"^backup_(\d+)_")


def backup_condominium_id(name: str) -> Optional[int]:
    """Condominium id encoded in a backup file name"""
    match = BACKUP_NAME_PATTERN.match(os.path.basename(name))
    return int(match.group(1)) if match else None


class BackupDomainService:
    """Service layer for backup endpoints"""

    def __init__(self, db: Session, storage_path: Optional[str] = None, backup_path: Optional[str] = None):
        self.db = db
        self.backups = CondominiumBackupService(db, storage_path, backup_path)

    def _check_file_access(self, name: str, user: User) -> None:
        """Managers of the backed-up condominium, or super admins"""
        if user.role == "super_admin":
            return
        condominium_id = backup_condominium_id(name)
        condominium = self.db.get(Condominium, condominium_id) if condominium_id else None
        if not condominium or not can_manage(self.db, user, condominium):
            raise HTTPException(status_code=403, detail="Access denied")

    def create_backup(self, condominium_id: int, user: User) -> dict:
        require_manager(self.db, user, condominium_id)
        path = self.backups.backup(condominium_id)
        logger.info(f"💾 User {user.id} created backup {os.path.basename(path)}")
        return self.backups.describe(path)

    def list_backups(self, condominium_id: int, user: User) -> list[dict]:
        require_manager(self.db, user, condominium_id)
        return self.backups.list_backups_for_condominium(condominium_id)

    def list_all_backups(self) -> list[dict]:
        return self.backups.list_backups()

    def get_backup_path(self, name: str, user: User) -> str:
        self._check_file_access(name, user)
        return self.backups.backup_file_path(name)

    def delete_backup(self, name: str, user: User) -> None:
        path = self.get_backup_path(name, user)
        self.backups.delete_backup(path)

    def restore_from_name(self, name: str, user: User, target_admin_user_id: Optional[int] = None) -> int:
        """
        Restore a stored backup.

        Permissions follow the condominium recorded inside the archive, not the
        file name. When that condominium still exists it is replaced in place,
        which requires managing it. Otherwise the backup becomes a new
        condominium owned by the caller, who must be the backed-up owner unless
        they are a super admin (who may also pick target_admin_user_id).
        """
        path = self.backups.backup_file_path(name)
        summary = self.backups.read_summary(path)
        condominium_id = summary["condominium_id"]
        if self.db.get(Condominium, condominium_id):
            require_manager(self.db, user, condominium_id)
            return self._restore(path, user, target_admin_user_id, None)
        if user.role not in ("admin", "super_admin"):
            raise HTTPException(status_code=403, detail="Only administrators can restore backups")
        if user.role != "super_admin" and summary["owner_email"] != (user.email or "").strip().lower():
            logger.warning(f"🚫 User {user.id} tried to restore {os.path.basename(path)} owned by someone else")
            raise HTTPException(status_code=403, detail="Only the owner of the backed-up condominium can restore it")
        return self._restore(path, user, target_admin_user_id, user.id)

    def restore_from_upload(
        self, file_name: Optional[str], content: bytes, user: User, target_admin_user_id: Optional[int] = None
    ) -> int:
        """Restore an uploaded backup file; super admins only"""
        if user.role != "super_admin":
            raise HTTPException(status_code=403, detail="Super admin access required")
        if not file_name or not file_name.endswith(BACKUP_EXTENSION):
            raise HTTPException(status_code=400, detail=f"Backup files must use the {BACKUP_EXTENSION} extension")
        if not content:
            raise HTTPException(status_code=400, detail="Backup file is empty")

        os.makedirs(self.backups.backup_path, exist_ok=True)
        stored_name = f"uploaded_{datetime.now().strftime('%Y-%m-%d_%H-%M-%S')}_{os.path.basename(file_name)}"
        path = os.path.join(self.backups.backup_path, stored_name)
        with open(path, "wb") as fh:
            fh.write(content)
        logger.info(f"📤 Backup uploaded as {stored_name}")
        return self._restore(path, user, target_admin_user_id, None)

    def _restore(
        self, path: str, user: User, target_admin_user_id: Optional[int], default_admin_id: Optional[int]
    ) -> int:
        """Without an explicit admin, None keeps the backed-up owner matched by email"""
        if target_admin_user_id is not None and user.role != "super_admin":
            raise HTTPException(status_code=403, detail="Only super admins can choose the restored admin")
        admin_id = target_admin_user_id if target_admin_user_id is not None else default_admin_id
        return self.backups.restore(path, target_admin_user_id=admin_id)
