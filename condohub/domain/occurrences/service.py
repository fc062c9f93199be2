"""Occurrence service - Reporting, triage and follow-up of maintenance occurrences"""

import logging
import os
from datetime import datetime
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...config import STORAGE_PATH
from ...models import Fraction, Occurrence, OccurrenceAttachment, OccurrenceComment, OccurrenceHistory, User
from ...services.notification_service import NotificationService
from ...shared.access import can_access, can_manage, require_access, require_manager, user_fraction_ids
from ...shared.uploads import check_upload, store_upload
from ..suppliers.repository import SupplierRepository
from .repository import OccurrenceRepository
from .schemas import AssignRequest, CommentCreate, OccurrenceCreate, OccurrenceUpdate, StatusUpdate

logger = logging.getLogger(__name__)


def occurrences_dir(condominium_id: int, occurrence_id: int) -> str:
    """Storage directory of an occurrence's attachments, relative to STORAGE_PATH"""
    return os.path.join("condominiums", str(condominium_id), "occurrences", str(occurrence_id))


class OccurrenceService:
    """Service layer for occurrence business logic"""

    def __init__(self, db: Session, storage_path: Optional[str] = None):
        self.db = db
        self.repo = OccurrenceRepository()
        self.notifications = NotificationService(db)
        self.storage_path = storage_path or STORAGE_PATH

    def _get(self, condominium_id: int, occurrence_id: int) -> Occurrence:
        occurrence = self.repo.get_occurrence(self.db, condominium_id, occurrence_id)
        if not occurrence:
            raise HTTPException(status_code=404, detail="Occurrence not found")
        return occurrence

    def _log(
        self,
        occurrence: Occurrence,
        user: User,
        action: str,
        field_name: Optional[str] = None,
        old_value=None,
        new_value=None,
        notes: Optional[str] = None,
    ) -> None:
        self.db.add(
            OccurrenceHistory(
                occurrence_id=occurrence.id,
                user_id=user.id,
                action=action,
                field_name=field_name,
                old_value=None if old_value is None else str(old_value),
                new_value=None if new_value is None else str(new_value),
                notes=notes,
            )
        )

    # ------------------------------------------------------------------
    # Occurrences
    # ------------------------------------------------------------------

    def report(self, condominium_id: int, data: OccurrenceCreate, user: User) -> Occurrence:
        condominium = require_access(self.db, user, condominium_id)
        if data.fraction_id is not None:
            fraction = (
                self.db.query(Fraction)
                .filter(Fraction.id == data.fraction_id, Fraction.condominium_id == condominium_id)
                .first()
            )
            if not fraction:
                raise HTTPException(status_code=404, detail="Fraction not found")
            if not can_manage(self.db, user, condominium) and fraction.id not in user_fraction_ids(
                self.db, user.id, condominium_id
            ):
                raise HTTPException(status_code=403, detail="You can only report occurrences for your own fraction")

        occurrence = Occurrence(condominium_id=condominium_id, reported_by=user.id, status="open", **data.model_dump())
        self.db.add(occurrence)
        self.db.flush()
        self._log(occurrence, user, "created", new_value="open")
        self.notifications.notify_occurrence_created(occurrence)
        self.db.commit()
        self.db.refresh(occurrence)
        logger.info(f"🛠️ Occurrence {occurrence.id} reported in condominium {condominium_id}")
        return occurrence

    def list_occurrences(self, condominium_id: int, user: User, **filters) -> list[Occurrence]:
        require_access(self.db, user, condominium_id)
        return self.repo.list_occurrences(self.db, condominium_id, **filters)

    def categories(self, condominium_id: int, user: User) -> list[dict]:
        require_access(self.db, user, condominium_id)
        return [
            {"category": category, "count": count}
            for category, count in self.repo.category_counts(self.db, condominium_id)
        ]

    def get_detail(self, condominium_id: int, occurrence_id: int, user: User) -> dict:
        """The occurrence with its comments, history and attachments; internal comments for managers only"""
        condominium = require_access(self.db, user, condominium_id)
        occurrence = self._get(condominium_id, occurrence_id)
        manager = can_manage(self.db, user, condominium)
        return {
            **{column.name: getattr(occurrence, column.name) for column in Occurrence.__table__.columns},
            "comments": self.repo.list_comments(self.db, occurrence.id, include_internal=manager),
            "history": self.repo.list_history(self.db, occurrence.id),
            "attachments": self.repo.list_attachments(self.db, occurrence.id),
        }

    def update(self, condominium_id: int, occurrence_id: int, data: OccurrenceUpdate, user: User) -> Occurrence:
        """Managers, or the reporter while the occurrence is still open"""
        condominium = require_access(self.db, user, condominium_id)
        occurrence = self._get(condominium_id, occurrence_id)
        if not can_manage(self.db, user, condominium):
            if occurrence.reported_by != user.id:
                raise HTTPException(status_code=403, detail="You can only edit occurrences you reported")
            if occurrence.status != "open":
                raise HTTPException(status_code=400, detail="Occurrence can no longer be edited")

        for field, value in data.model_dump(exclude_unset=True).items():
            old_value = getattr(occurrence, field)
            if old_value == value:
                continue
            setattr(occurrence, field, value)
            self._log(occurrence, user, "field_updated", field, old_value, value)
        self.db.commit()
        self.db.refresh(occurrence)
        return occurrence

    def change_status(self, condominium_id: int, occurrence_id: int, data: StatusUpdate, user: User) -> Occurrence:
        require_manager(self.db, user, condominium_id)
        occurrence = self._get(condominium_id, occurrence_id)
        if occurrence.status == data.status:
            raise HTTPException(status_code=400, detail=f"Occurrence is already {data.status}")

        old_status = occurrence.status
        occurrence.status = data.status
        if data.status == "completed":
            occurrence.completed_at = datetime.utcnow()
        else:
            occurrence.completed_at = None
        if data.status in ("completed", "canceled") and data.notes:
            occurrence.resolution_notes = data.notes
        self._log(occurrence, user, "status_changed", "status", old_status, data.status, data.notes)
        self.notifications.notify_occurrence_updated(occurrence, f"Occurrence {data.status}", user.id)
        self.db.commit()
        self.db.refresh(occurrence)
        logger.info(f"🔄 Occurrence {occurrence.id}: {old_status} -> {data.status}")
        return occurrence

    def assign(self, condominium_id: int, occurrence_id: int, data: AssignRequest, user: User) -> Occurrence:
        condominium = require_manager(self.db, user, condominium_id)
        occurrence = self._get(condominium_id, occurrence_id)
        if data.assigned_to is None and data.supplier_id is None:
            raise HTTPException(status_code=400, detail="Choose a user or a supplier to assign")

        if data.assigned_to is not None:
            assignee = self.db.get(User, data.assigned_to)
            if not assignee or not can_access(self.db, assignee, condominium):
                raise HTTPException(status_code=404, detail="User not found in this condominium")
        if data.supplier_id is not None:
            supplier = SupplierRepository.get_supplier(self.db, condominium_id, data.supplier_id)
            if not supplier or not supplier.is_active:
                raise HTTPException(status_code=404, detail="Supplier not found")

        for field in ("assigned_to", "supplier_id"):
            value = getattr(data, field)
            if value is None or value == getattr(occurrence, field):
                continue
            self._log(occurrence, user, "assigned", field, getattr(occurrence, field), value)
            setattr(occurrence, field, value)
        if occurrence.status != "assigned":
            self._log(occurrence, user, "status_changed", "status", occurrence.status, "assigned")
            occurrence.status = "assigned"
            occurrence.completed_at = None
        self.notifications.notify_occurrence_updated(occurrence, "Occurrence assigned", user.id)
        self.db.commit()
        self.db.refresh(occurrence)
        logger.info(
            f"👷 Occurrence {occurrence.id} assigned "
            f"(user={occurrence.assigned_to}, supplier={occurrence.supplier_id})"
        )
        return occurrence

    # ------------------------------------------------------------------
    # Comments
    # ------------------------------------------------------------------

    def add_comment(
        self, condominium_id: int, occurrence_id: int, data: CommentCreate, user: User
    ) -> OccurrenceComment:
        condominium = require_access(self.db, user, condominium_id)
        occurrence = self._get(condominium_id, occurrence_id)
        if data.is_internal and not can_manage(self.db, user, condominium):
            raise HTTPException(status_code=403, detail="Only administrators can write internal comments")

        comment = OccurrenceComment(
            occurrence_id=occurrence.id,
            user_id=user.id,
            comment=data.comment,
            is_internal=data.is_internal,
        )
        self.db.add(comment)
        if not data.is_internal:
            self._log(occurrence, user, "comment_added")
        self.notifications.notify_occurrence_updated(occurrence, "New comment", user.id, internal=data.is_internal)
        self.db.commit()
        self.db.refresh(comment)
        return comment

    def delete_comment(self, condominium_id: int, occurrence_id: int, comment_id: int, user: User) -> None:
        """The author or a manager"""
        condominium = require_access(self.db, user, condominium_id)
        occurrence = self._get(condominium_id, occurrence_id)
        comment = self.repo.get_comment(self.db, occurrence.id, comment_id)
        manager = can_manage(self.db, user, condominium)
        if not comment or (comment.is_internal and not manager):
            raise HTTPException(status_code=404, detail="Comment not found")
        if comment.user_id != user.id and not manager:
            raise HTTPException(status_code=403, detail="You can only delete your own comments")
        self.db.delete(comment)
        self.db.commit()

    # ------------------------------------------------------------------
    # Attachments
    # ------------------------------------------------------------------

    def upload_attachment(
        self,
        condominium_id: int,
        occurrence_id: int,
        file_name: Optional[str],
        content: bytes,
        mime_type: Optional[str],
        user: User,
    ) -> OccurrenceAttachment:
        """The reporter, the assignee or a manager"""
        condominium = require_access(self.db, user, condominium_id)
        occurrence = self._get(condominium_id, occurrence_id)
        if user.id not in (occurrence.reported_by, occurrence.assigned_to) and not can_manage(
            self.db, user, condominium
        ):
            raise HTTPException(status_code=403, detail="You cannot add files to this occurrence")
        check_upload(file_name, content)

        relative_path, full_path = store_upload(
            self.storage_path, occurrences_dir(condominium_id, occurrence.id), file_name, content
        )
        try:
            attachment = OccurrenceAttachment(
                occurrence_id=occurrence.id,
                condominium_id=condominium_id,
                file_name=file_name,
                file_path=relative_path,
                file_size=len(content),
                mime_type=mime_type,
                uploaded_by=user.id,
            )
            self.db.add(attachment)
            self.db.commit()
        except Exception:
            self.db.rollback()
            os.remove(full_path)
            raise

        self.db.refresh(attachment)
        logger.info(f"📎 Attachment {attachment.id} added to occurrence {occurrence.id} ({len(content)} bytes)")
        return attachment

    def get_attachment_download(
        self, condominium_id: int, occurrence_id: int, attachment_id: int, user: User
    ) -> tuple[OccurrenceAttachment, str]:
        require_access(self.db, user, condominium_id)
        occurrence = self._get(condominium_id, occurrence_id)
        attachment = self.repo.get_attachment(self.db, occurrence.id, attachment_id)
        if not attachment:
            raise HTTPException(status_code=404, detail="Attachment not found")
        full_path = os.path.join(self.storage_path, attachment.file_path)
        if not os.path.isfile(full_path):
            logger.error(f"❌ File missing for occurrence attachment {attachment.id}: {full_path}")
            raise HTTPException(status_code=404, detail="File not found")
        return attachment, full_path

    def delete_attachment(self, condominium_id: int, occurrence_id: int, attachment_id: int, user: User) -> None:
        condominium = require_access(self.db, user, condominium_id)
        occurrence = self._get(condominium_id, occurrence_id)
        attachment = self.repo.get_attachment(self.db, occurrence.id, attachment_id)
        if not attachment:
            raise HTTPException(status_code=404, detail="Attachment not found")
        if attachment.uploaded_by != user.id and not can_manage(self.db, user, condominium):
            raise HTTPException(status_code=403, detail="You can only delete your own files")
        file_path = attachment.file_path
        self.db.delete(attachment)
        self.db.commit()

        full_path = os.path.join(self.storage_path, file_path)
        if os.path.isfile(full_path):
            os.remove(full_path)
