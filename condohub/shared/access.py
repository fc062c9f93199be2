"""Condominium access checks shared by the domain services"""

import logging
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ..models import Condominium, CondominiumUser, User

logger = logging.getLogger(__name__)


def get_membership(db: Session, user_id: int, condominium_id: int) -> Optional[CondominiumUser]:
    return (
        db.query(CondominiumUser)
        .filter(
            CondominiumUser.condominium_id == condominium_id,
            CondominiumUser.user_id == user_id,
            CondominiumUser.ended_at.is_(None),
        )
        .order_by(CondominiumUser.role.asc())  # "admin" sorts before "condomino"
        .first()
    )


def can_access(db: Session, user: User, condominium: Condominium) -> bool:
    if user.role == "super_admin" or condominium.user_id == user.id:
        return True
    return get_membership(db, user.id, condominium.id) is not None


def can_manage(db: Session, user: User, condominium: Condominium) -> bool:
    if user.role == "super_admin" or condominium.user_id == user.id:
        return True
    membership = get_membership(db, user.id, condominium.id)
    return membership is not None and membership.role == "admin"


def get_condominium_or_404(db: Session, condominium_id: int) -> Condominium:
    condominium = db.query(Condominium).filter(Condominium.id == condominium_id).first()
    if not condominium:
        raise HTTPException(status_code=404, detail="Condominium not found")
    return condominium


def require_access(db: Session, user: User, condominium_id: int) -> Condominium:
    """Condominium the user owns, belongs to, or any for a super admin"""
    condominium = get_condominium_or_404(db, condominium_id)
    if not can_access(db, user, condominium):
        logger.warning(f"⚠️ User {user.id} denied access to condominium {condominium_id}")
        raise HTTPException(status_code=403, detail="Access denied")
    return condominium


def require_manager(db: Session, user: User, condominium_id: int) -> Condominium:
    """Condominium the user may manage (owner, member admin or super admin)"""
    condominium = get_condominium_or_404(db, condominium_id)
    if not can_manage(db, user, condominium):
        logger.warning(f"⚠️ User {user.id} denied management of condominium {condominium_id}")
        raise HTTPException(status_code=403, detail="Only condominium administrators can do this")
    return condominium


def user_fraction_ids(db: Session, user_id: int, condominium_id: int) -> list[int]:
    """Fractions the user is linked to in a condominium"""
    rows = (
        db.query(CondominiumUser.fraction_id)
        .filter(
            CondominiumUser.condominium_id == condominium_id,
            CondominiumUser.user_id == user_id,
            CondominiumUser.fraction_id.isnot(None),
            CondominiumUser.ended_at.is_(None),
        )
        .all()
    )
    return [row[0] for row in rows]
