"""In-app notifications for condominium members"""

import logging
from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from ..config import FRONTEND_URL
from ..models import Condominium, CondominiumUser, Notification

logger = logging.getLogger(__name__)


class NotificationService:
    def __init__(self, db: Session):
        self.db = db

    def create_notification(
        self,
        user_id: int,
        condominium_id: Optional[int],
        type: str,
        title: str,
        message: Optional[str] = None,
        link: Optional[str] = None,
    ) -> Notification:
        notification = Notification(
            user_id=user_id,
            condominium_id=condominium_id,
            type=type,
            title=title,
            message=message,
            link=link,
        )
        self.db.add(notification)
        self.db.flush()
        return notification

    def member_user_ids(self, condominium_id: int, include_owner: bool = True) -> list[int]:
        """Distinct users of a condominium (members plus the owner)"""
        rows = (
            self.db.query(CondominiumUser.user_id)
            .filter(CondominiumUser.condominium_id == condominium_id, CondominiumUser.ended_at.is_(None))
            .distinct()
            .all()
        )
        user_ids = [row[0] for row in rows]
        if include_owner:
            condominium = self.db.get(Condominium, condominium_id)
            if condominium and condominium.user_id not in user_ids:
                user_ids.append(condominium.user_id)
        return user_ids

    def manager_user_ids(self, condominium_id: int) -> list[int]:
        """The owner plus members holding the admin role"""
        rows = (
            self.db.query(CondominiumUser.user_id)
            .filter(
                CondominiumUser.condominium_id == condominium_id,
                CondominiumUser.role == "admin",
                CondominiumUser.ended_at.is_(None),
            )
            .distinct()
            .all()
        )
        user_ids = [row[0] for row in rows]
        condominium = self.db.get(Condominium, condominium_id)
        if condominium and condominium.user_id not in user_ids:
            user_ids.insert(0, condominium.user_id)
        return user_ids

    def notify_users(
        self,
        user_ids: Iterable[int],
        condominium_id: int,
        type: str,
        title: str,
        message: Optional[str] = None,
        link: Optional[str] = None,
        exclude_user_id: Optional[int] = None,
    ) -> int:
        count = 0
        for user_id in dict.fromkeys(user_ids):
            if user_id == exclude_user_id:
                continue
            self.create_notification(user_id, condominium_id, type, title, message, link)
            count += 1
        return count

    def notify_new_message(self, message, recipients: Iterable[int]) -> int:
        return self.notify_users(
            recipients,
            message.condominium_id,
            "message",
            f"New message: {message.subject}",
            link=f"{FRONTEND_URL}/condominiums/{message.condominium_id}/messages/{message.id}",
            exclude_user_id=message.from_user_id,
        )

    def notify_assembly_convocation(self, assembly) -> int:
        count = self.notify_users(
            self.member_user_ids(assembly.condominium_id),
            assembly.condominium_id,
            "assembly",
            f"Assembly convened: {assembly.title}",
            message=f"Scheduled for {assembly.scheduled_date:%Y-%m-%d %H:%M}"
            + (f" at {assembly.location}" if assembly.location else ""),
            link=f"{FRONTEND_URL}/condominiums/{assembly.condominium_id}/assemblies/{assembly.id}",
            exclude_user_id=assembly.created_by,
        )
        logger.info(f"📣 Assembly {assembly.id} convocation sent to {count} user(s)")
        return count

    def notify_vote_opened(self, vote) -> int:
        return self.notify_users(
            self.member_user_ids(vote.condominium_id, include_owner=False),
            vote.condominium_id,
            "vote",
            f"Vote open: {vote.title}",
            link=f"{FRONTEND_URL}/condominiums/{vote.condominium_id}/votes/{vote.id}",
        )

    def notify_fees_generated(self, condominium_id: int, fraction_ids: Iterable[int], year: int) -> int:
        """One notification per member of the fractions that received fees"""
        fraction_ids = list(dict.fromkeys(fraction_ids))
        if not fraction_ids:
            return 0
        rows = (
            self.db.query(CondominiumUser.user_id)
            .filter(
                CondominiumUser.condominium_id == condominium_id,
                CondominiumUser.fraction_id.in_(fraction_ids),
                CondominiumUser.ended_at.is_(None),
            )
            .distinct()
            .all()
        )
        return self.notify_users(
            [row[0] for row in rows],
            condominium_id,
            "fee",
            f"New fees issued for {year}",
            link=f"{FRONTEND_URL}/condominiums/{condominium_id}/fees",
        )

    def notify_reservation_requested(self, reservation, space_name: str) -> int:
        return self.notify_users(
            self.manager_user_ids(reservation.condominium_id),
            reservation.condominium_id,
            "reservation",
            f"Reservation awaiting approval: {space_name}",
            message=f"{reservation.start_date:%Y-%m-%d %H:%M} - {reservation.end_date:%Y-%m-%d %H:%M}",
            link=f"{FRONTEND_URL}/condominiums/{reservation.condominium_id}/reservations",
            exclude_user_id=reservation.user_id,
        )

    def notify_reservation_decision(self, reservation, space_name: str, notes: Optional[str] = None) -> int:
        if not reservation.user_id:
            return 0
        return self.notify_users(
            [reservation.user_id],
            reservation.condominium_id,
            "reservation",
            f"Reservation {reservation.status}: {space_name}",
            message=notes,
            link=f"{FRONTEND_URL}/condominiums/{reservation.condominium_id}/reservations",
        )

    def notify_occurrence_created(self, occurrence) -> int:
        count = self.notify_users(
            self.manager_user_ids(occurrence.condominium_id),
            occurrence.condominium_id,
            "occurrence",
            f"New occurrence: {occurrence.title}",
            message=f"Priority: {occurrence.priority}",
            link=f"{FRONTEND_URL}/condominiums/{occurrence.condominium_id}/occurrences/{occurrence.id}",
            exclude_user_id=occurrence.reported_by,
        )
        logger.info(f"📣 Occurrence {occurrence.id} reported to {count} manager(s)")
        return count

    def notify_occurrence_updated(self, occurrence, title: str, actor_id: int, internal: bool = False) -> int:
        """Reporter and assignee hear about changes, internal ones reach managers only"""
        if internal:
            recipients = self.manager_user_ids(occurrence.condominium_id)
        else:
            recipients = [occurrence.reported_by, occurrence.assigned_to]
        return self.notify_users(
            [user_id for user_id in recipients if user_id],
            occurrence.condominium_id,
            "occurrence",
            f"{title}: {occurrence.title}",
            link=f"{FRONTEND_URL}/condominiums/{occurrence.condominium_id}/occurrences/{occurrence.id}",
            exclude_user_id=actor_id,
        )

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def list_for_user(self, user_id: int, unread_only: bool = False, limit: int = 50) -> list[Notification]:
        query = self.db.query(Notification).filter(Notification.user_id == user_id)
        if unread_only:
            query = query.filter(Notification.is_read.is_(False))
        return query.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit).all()

    def unread_count(self, user_id: int) -> int:
        return (
            self.db.query(Notification)
            .filter(Notification.user_id == user_id, Notification.is_read.is_(False))
            .count()
        )

    def mark_as_read(self, notification_id: int, user_id: int) -> Optional[Notification]:
        notification = (
            self.db.query(Notification)
            .filter(Notification.id == notification_id, Notification.user_id == user_id)
            .first()
        )
        if notification and not notification.is_read:
            notification.is_read = True
            notification.read_at = datetime.utcnow()
            self.db.flush()
        return notification

    def mark_all_as_read(self, user_id: int) -> int:
        updated = (
            self.db.query(Notification)
            .filter(Notification.user_id == user_id, Notification.is_read.is_(False))
            .update({Notification.is_read: True, Notification.read_at: datetime.utcnow()}, synchronize_session=False)
        )
        self.db.flush()
        return updated
