"""Occurrence repository - Data access layer for occurrences and their timeline"""

from datetime import date, datetime, time, timedelta
from typing import Optional

from sqlalchemy import case, func, or_
from sqlalchemy.orm import Session

from ...models import Occurrence, OccurrenceAttachment, OccurrenceComment, OccurrenceHistory

PRIORITY_RANK = case(
    {"low": 1, "medium": 2, "high": 3, "urgent": 4},
    value=Occurrence.priority,
    else_=0,
)

SORT_COLUMNS = {
    "created_at": Occurrence.created_at,
    "title": Occurrence.title,
    "priority": PRIORITY_RANK,
    "status": Occurrence.status,
}


class OccurrenceRepository:
    """Repository for occurrence data access"""

    @staticmethod
    def get_occurrence(db: Session, condominium_id: int, occurrence_id: int) -> Optional[Occurrence]:
        return (
            db.query(Occurrence)
            .filter(Occurrence.id == occurrence_id, Occurrence.condominium_id == condominium_id)
            .first()
        )

    @staticmethod
    def list_occurrences(
        db: Session,
        condominium_id: int,
        status: Optional[str] = None,
        priority: Optional[str] = None,
        category: Optional[str] = None,
        fraction_id: Optional[int] = None,
        assigned_to: Optional[int] = None,
        supplier_id: Optional[int] = None,
        reported_by: Optional[int] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        search: Optional[str] = None,
        sort_by: str = "created_at",
        sort_order: str = "desc",
    ) -> list[Occurrence]:
        query = db.query(Occurrence).filter(Occurrence.condominium_id == condominium_id)
        if status:
            query = query.filter(Occurrence.status == status)
        if priority:
            query = query.filter(Occurrence.priority == priority)
        if category:
            query = query.filter(Occurrence.category == category)
        if fraction_id:
            query = query.filter(Occurrence.fraction_id == fraction_id)
        if assigned_to:
            query = query.filter(Occurrence.assigned_to == assigned_to)
        if supplier_id:
            query = query.filter(Occurrence.supplier_id == supplier_id)
        if reported_by:
            query = query.filter(Occurrence.reported_by == reported_by)
        if date_from:
            query = query.filter(Occurrence.created_at >= datetime.combine(date_from, time.min))
        if date_to:
            query = query.filter(Occurrence.created_at < datetime.combine(date_to + timedelta(days=1), time.min))
        if search:
            pattern = f"%{search.strip()}%"
            query = query.filter(or_(Occurrence.title.ilike(pattern), Occurrence.description.ilike(pattern)))

        column = SORT_COLUMNS.get(sort_by, Occurrence.created_at)
        if sort_order == "asc":
            return query.order_by(column.asc(), Occurrence.id.asc()).all()
        return query.order_by(column.desc(), Occurrence.id.desc()).all()

    @staticmethod
    def category_counts(db: Session, condominium_id: int) -> list[tuple[str, int]]:
        return (
            db.query(Occurrence.category, func.count(Occurrence.id))
            .filter(Occurrence.condominium_id == condominium_id, Occurrence.category.isnot(None))
            .group_by(Occurrence.category)
            .order_by(Occurrence.category.asc())
            .all()
        )

    @staticmethod
    def list_comments(db: Session, occurrence_id: int, include_internal: bool = False) -> list[OccurrenceComment]:
        query = db.query(OccurrenceComment).filter(OccurrenceComment.occurrence_id == occurrence_id)
        if not include_internal:
            query = query.filter(OccurrenceComment.is_internal.is_(False))
        return query.order_by(OccurrenceComment.created_at.asc(), OccurrenceComment.id.asc()).all()

    @staticmethod
    def get_comment(db: Session, occurrence_id: int, comment_id: int) -> Optional[OccurrenceComment]:
        return (
            db.query(OccurrenceComment)
            .filter(OccurrenceComment.id == comment_id, OccurrenceComment.occurrence_id == occurrence_id)
            .first()
        )

    @staticmethod
    def list_history(db: Session, occurrence_id: int) -> list[OccurrenceHistory]:
        return (
            db.query(OccurrenceHistory)
            .filter(OccurrenceHistory.occurrence_id == occurrence_id)
            .order_by(OccurrenceHistory.created_at.asc(), OccurrenceHistory.id.asc())
            .all()
        )

    @staticmethod
    def list_attachments(db: Session, occurrence_id: int) -> list[OccurrenceAttachment]:
        return (
            db.query(OccurrenceAttachment)
            .filter(OccurrenceAttachment.occurrence_id == occurrence_id)
            .order_by(OccurrenceAttachment.id.asc())
            .all()
        )

    @staticmethod
    def get_attachment(db: Session, occurrence_id: int, attachment_id: int) -> Optional[OccurrenceAttachment]:
        return (
            db.query(OccurrenceAttachment)
            .filter(OccurrenceAttachment.id == attachment_id, OccurrenceAttachment.occurrence_id == occurrence_id)
            .first()
        )
