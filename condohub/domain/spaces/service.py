"""Space service - Common spaces and their reservation calendar"""

import logging
import math
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import Fraction, Reservation, Space, User
from ...services.notification_service import NotificationService
from ...shared.access import can_manage, require_access, require_manager, user_fraction_ids
from .repository import SpaceRepository
from .schemas import WEEKDAYS, ReservationCreate, ReservationDecision, SpaceCreate, SpaceUpdate

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


def reservation_price(space: Space, start: datetime, end: datetime) -> Decimal:
    """
    Hourly price below 24 hours when the space has one, otherwise whole days.

    A space with neither price set is free.
    """
    hours = Decimal(int((end - start).total_seconds())) / Decimal(3600)
    price_per_hour = Decimal(space.price_per_hour or 0)
    price_per_day = Decimal(space.price_per_day or 0)
    if hours < 24 and price_per_hour > 0:
        return (hours * price_per_hour).quantize(CENT, rounding=ROUND_HALF_UP)
    if price_per_day > 0:
        days = max(1, math.ceil(hours / 24))
        return (days * price_per_day).quantize(CENT, rounding=ROUND_HALF_UP)
    return Decimal("0.00")


def within_available_hours(space: Space, start: datetime, end: datetime) -> bool:
    """Spaces without configured hours are always open"""
    if not space.available_hours:
        return True
    if start.date() != end.date():
        return False
    window = space.available_hours.get(WEEKDAYS[start.weekday()])
    if not window:
        return False
    return window["start"] <= start.strftime("%H:%M") and end.strftime("%H:%M") <= window["end"]


class SpaceService:
    """Service layer for spaces and reservations"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = SpaceRepository()
        self.notifications = NotificationService(db)

    # ------------------------------------------------------------------
    # Spaces
    # ------------------------------------------------------------------

    def list_spaces(self, condominium_id: int, user: User, include_inactive: bool = False) -> list[Space]:
        condominium = require_access(self.db, user, condominium_id)
        include_inactive = include_inactive and can_manage(self.db, user, condominium)
        return self.repo.list_spaces(self.db, condominium_id, include_inactive)

    def get_space(self, condominium_id: int, space_id: int, user: User) -> Space:
        condominium = require_access(self.db, user, condominium_id)
        space = self.repo.get_space(self.db, condominium_id, space_id)
        if not space or (not space.is_active and not can_manage(self.db, user, condominium)):
            raise HTTPException(status_code=404, detail="Space not found")
        return space

    def create_space(self, condominium_id: int, data: SpaceCreate, user: User) -> Space:
        require_manager(self.db, user, condominium_id)
        space = Space(condominium_id=condominium_id, **data.model_dump())
        self.db.add(space)
        self.db.commit()
        self.db.refresh(space)
        logger.info(f"🏊 Space '{space.name}' created in condominium {condominium_id}")
        return space

    def update_space(self, condominium_id: int, space_id: int, data: SpaceUpdate, user: User) -> Space:
        require_manager(self.db, user, condominium_id)
        space = self.repo.get_space(self.db, condominium_id, space_id)
        if not space:
            raise HTTPException(status_code=404, detail="Space not found")
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(space, field, value)
        self.db.commit()
        self.db.refresh(space)
        return space

    def deactivate_space(self, condominium_id: int, space_id: int, user: User) -> None:
        """Spaces are kept for their reservation history; upcoming bookings block removal"""
        require_manager(self.db, user, condominium_id)
        space = self.repo.get_space(self.db, condominium_id, space_id)
        if not space:
            raise HTTPException(status_code=404, detail="Space not found")
        if self.repo.find_overlapping(self.db, space.id, datetime.utcnow(), datetime.max):
            raise HTTPException(status_code=400, detail="Space has upcoming reservations - cancel them first")
        space.is_active = False
        self.db.commit()
        logger.info(f"🗑️ Space {space_id} deactivated in condominium {condominium_id}")

    # ------------------------------------------------------------------
    # Reservations
    # ------------------------------------------------------------------

    def list_reservations(
        self,
        condominium_id: int,
        user: User,
        status: Optional[str] = None,
        space_id: Optional[int] = None,
        start_from: Optional[datetime] = None,
        end_to: Optional[datetime] = None,
    ) -> list[Reservation]:
        require_access(self.db, user, condominium_id)
        return self.repo.list_reservations(self.db, condominium_id, status, space_id, start_from, end_to)

    def create_reservation(self, condominium_id: int, data: ReservationCreate, user: User) -> Reservation:
        condominium = require_access(self.db, user, condominium_id)

        space = self.repo.get_space(self.db, condominium_id, data.space_id)
        if not space or not space.is_active:
            raise HTTPException(status_code=404, detail="Space not found")
        if space.is_blocked:
            raise HTTPException(status_code=400, detail="Space is blocked for reservations")

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
            raise HTTPException(status_code=403, detail="You can only make reservations for your own fraction")

        if data.end_date <= data.start_date:
            raise HTTPException(status_code=400, detail="End date must be after start date")
        if data.start_date < datetime.utcnow():
            raise HTTPException(status_code=400, detail="Reservations must start in the future")
        if not within_available_hours(space, data.start_date, data.end_date):
            raise HTTPException(status_code=400, detail="Reservation is outside the space's opening hours")
        if self.repo.find_overlapping(self.db, space.id, data.start_date, data.end_date):
            raise HTTPException(status_code=409, detail="Space is already reserved for this period")

        reservation = Reservation(
            condominium_id=condominium_id,
            space_id=space.id,
            fraction_id=fraction.id,
            user_id=user.id,
            start_date=data.start_date,
            end_date=data.end_date,
            price=reservation_price(space, data.start_date, data.end_date),
            deposit=Decimal(space.deposit_required or 0),
            notes=data.notes,
        )
        if space.requires_approval:
            reservation.status = "pending"
        else:
            reservation.status = "approved"
            reservation.approved_by = user.id
            reservation.approved_at = datetime.utcnow()
        self.db.add(reservation)
        self.db.flush()
        if reservation.status == "pending":
            self.notifications.notify_reservation_requested(reservation, space.name)
        self.db.commit()
        self.db.refresh(reservation)
        logger.info(
            f"📅 Reservation {reservation.id} ({reservation.status}) of space {space.id} "
            f"for fraction {fraction.identifier}"
        )
        return reservation

    def _get_reservation(self, condominium_id: int, reservation_id: int) -> Reservation:
        reservation = self.repo.get_reservation(self.db, condominium_id, reservation_id)
        if not reservation:
            raise HTTPException(status_code=404, detail="Reservation not found")
        return reservation

    def _space_name(self, reservation: Reservation) -> str:
        space = self.db.get(Space, reservation.space_id)
        return space.name if space else "space"

    def approve_reservation(self, condominium_id: int, reservation_id: int, user: User) -> Reservation:
        require_manager(self.db, user, condominium_id)
        reservation = self._get_reservation(condominium_id, reservation_id)
        if reservation.status != "pending":
            raise HTTPException(
                status_code=400, detail=f"Only pending reservations can be approved ({reservation.status})"
            )
        if self.repo.find_overlapping(
            self.db,
            reservation.space_id,
            reservation.start_date,
            reservation.end_date,
            statuses=("approved",),
            exclude_id=reservation.id,
        ):
            raise HTTPException(status_code=409, detail="Space is already reserved for this period")

        reservation.status = "approved"
        reservation.approved_by = user.id
        reservation.approved_at = datetime.utcnow()
        self.notifications.notify_reservation_decision(reservation, self._space_name(reservation))
        self.db.commit()
        self.db.refresh(reservation)
        logger.info(f"✅ Reservation {reservation.id} approved by user {user.id}")
        return reservation

    def reject_reservation(
        self, condominium_id: int, reservation_id: int, data: Optional[ReservationDecision], user: User
    ) -> Reservation:
        require_manager(self.db, user, condominium_id)
        reservation = self._get_reservation(condominium_id, reservation_id)
        if reservation.status not in ("pending", "approved"):
            raise HTTPException(status_code=400, detail=f"Reservation is already {reservation.status}")
        reservation.status = "rejected"
        notes = data.notes if data else None
        self.notifications.notify_reservation_decision(reservation, self._space_name(reservation), notes)
        self.db.commit()
        self.db.refresh(reservation)
        logger.info(f"❌ Reservation {reservation.id} rejected by user {user.id}")
        return reservation

    def cancel_reservation(self, condominium_id: int, reservation_id: int, user: User) -> Reservation:
        """The member who booked, or a manager"""
        condominium = require_access(self.db, user, condominium_id)
        reservation = self._get_reservation(condominium_id, reservation_id)
        if reservation.user_id != user.id and not can_manage(self.db, user, condominium):
            raise HTTPException(status_code=403, detail="You can only cancel your own reservations")
        if reservation.status not in ("pending", "approved"):
            raise HTTPException(status_code=400, detail=f"Reservation is already {reservation.status}")
        reservation.status = "canceled"
        self.db.commit()
        self.db.refresh(reservation)
        return reservation
