"""Condominium repository - Data access layer for condominiums and fractions"""

from decimal import Decimal
from typing import Optional

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from ...models import Condominium, CondominiumUser, Fraction, User


class CondominiumRepository:
    """Repository for condominium data access"""

    @staticmethod
    def list_for_user(db: Session, user: User) -> list[Condominium]:
        """Owned condominiums plus those the user is a member of"""
        query = db.query(Condominium)
        if user.role != "super_admin":
            member_ids = (
                select(CondominiumUser.condominium_id)
                .where(CondominiumUser.user_id == user.id, CondominiumUser.ended_at.is_(None))
            )
            query = query.filter(or_(Condominium.user_id == user.id, Condominium.id.in_(member_ids)))
        return query.order_by(Condominium.name).all()

    @staticmethod
    def create(db: Session, values: dict) -> Condominium:
        condominium = Condominium(**values)
        db.add(condominium)
        db.flush()
        return condominium

    @staticmethod
    def get_fraction(db: Session, condominium_id: int, fraction_id: int) -> Optional[Fraction]:
        return (
            db.query(Fraction)
            .filter(Fraction.id == fraction_id, Fraction.condominium_id == condominium_id)
            .first()
        )

    @staticmethod
    def get_fraction_by_identifier(db: Session, condominium_id: int, identifier: str) -> Optional[Fraction]:
        return (
            db.query(Fraction)
            .filter(Fraction.condominium_id == condominium_id, Fraction.identifier == identifier)
            .first()
        )

    @staticmethod
    def list_fractions(db: Session, condominium_id: int, include_archived: bool = False) -> list[Fraction]:
        query = db.query(Fraction).filter(Fraction.condominium_id == condominium_id)
        if not include_archived:
            query = query.filter(Fraction.archived_at.is_(None))
        return query.order_by(Fraction.identifier).all()

    @staticmethod
    def total_permillage(db: Session, condominium_id: int) -> Decimal:
        total = (
            db.query(func.coalesce(func.sum(Fraction.permillage), 0))
            .filter(Fraction.condominium_id == condominium_id, Fraction.is_active.is_(True))
            .scalar()
        )
        return Decimal(str(total or 0))

    @staticmethod
    def count_active_fractions(db: Session, condominium_id: int) -> int:
        return (
            db.query(Fraction)
            .filter(Fraction.condominium_id == condominium_id, Fraction.is_active.is_(True))
            .count()
        )

    @staticmethod
    def list_members(db: Session, condominium_id: int, fraction_id: Optional[int] = None) -> list[CondominiumUser]:
        query = db.query(CondominiumUser).filter(
            CondominiumUser.condominium_id == condominium_id, CondominiumUser.ended_at.is_(None)
        )
        if fraction_id is not None:
            query = query.filter(CondominiumUser.fraction_id == fraction_id)
        return query.order_by(CondominiumUser.is_primary.desc(), CondominiumUser.id).all()
