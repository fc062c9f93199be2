"""Spaces repository - Data access layer for common spaces and reservations"""

from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ...models import Reservation, Space

ACTIVE_RESERVATION_STATUSES = ("pending", "approved")


class SpaceRepository:
    """Repository for space and reservation data access"""

    @staticmethod
    def get_space(db: Session, condominium_id: int, space_id: int) -> Optional[Space]:
        return db.query(Space).filter(Space.id == space_id, Space.condominium_id == condominium_id).first()

    @staticmethod
    def list_spaces(db: Session, condominium_id: int, include_inactive: bool = False) -> list[Space]:
        query = db.query(Space).filter(Space.condominium_id == condominium_id)
        if not include_inactive:
            query = query.filter(Space.is_active.is_(True))
        return query.order_by(Space.name.asc(), Space.id.asc()).all()

    @staticmethod
    def get_reservation(db: Session, condominium_id: int, reservation_id: int) -> Optional[Reservation]:
        return (
            db.query(Reservation)
            .filter(Reservation.id == reservation_id, Reservation.condominium_id == condominium_id)
            .first()
        )

    @staticmethod
    def list_reservations(
        db: Session,
        condominium_id: int,
        status: Optional[str] = None,
        space_id: Optional[int] = None,
        start_from: Optional[datetime] = None,
        end_to: Optional[datetime] = None,
    ) -> list[Reservation]:
        query = db.query(Reservation).filter(Reservation.condominium_id == condominium_id)
        if status:
            query = query.filter(Reservation.status == status)
        if space_id:
            query = query.filter(Reservation.space_id == space_id)
        if start_from:
            query = query.filter(Reservation.start_date >= start_from)
        if end_to:
            query = query.filter(Reservation.end_date <= end_to)
        return query.order_by(Reservation.start_date.asc(), Reservation.id.asc()).all()

    @staticmethod
    def find_overlapping(
        db: Session,
        space_id: int,
        start: datetime,
        end: datetime,
        statuses: tuple = ACTIVE_RESERVATION_STATUSES,
        exclude_id: Optional[int] = None,
    ) -> Optional[Reservation]:
        """First reservation of the space whose interval intersects [start, end)"""
        query = db.query(Reservation).filter(
            Reservation.space_id == space_id,
            Reservation.status.in_(statuses),
            Reservation.start_date < end,
            Reservation.end_date > start,
        )
        if exclude_id is not None:
            query = query.filter(Reservation.id != exclude_id)
        return query.order_by(Reservation.start_date.asc()).first()
