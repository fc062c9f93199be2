"""Condominium service - Business logic for condominiums, fractions and members"""

import logging
from datetime import datetime

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...config import STORAGE_PATH
from ...models import Condominium, Fraction, User
from ...services.deletion_service import CondominiumDeletionService
from ...shared.access import require_access, require_manager
from ..billing.license_service import LicenseService
from ..billing.repository import BillingRepository
from .repository import CondominiumRepository
from .schemas import CondominiumCreate, CondominiumUpdate, FractionCreate, FractionUpdate

logger = logging.getLogger(__name__)


class CondominiumService:
    """Service layer for condominium business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = CondominiumRepository()
        self.licenses = LicenseService(db)

    # ------------------------------------------------------------------
    # Condominiums
    # ------------------------------------------------------------------

    def list_condominiums(self, user: User) -> list[Condominium]:
        return self.repo.list_for_user(self.db, user)

    def get_condominium(self, condominium_id: int, user: User) -> Condominium:
        return require_access(self.db, user, condominium_id)

    def create_condominium(self, data: CondominiumCreate, user: User) -> Condominium:
        if user.role not in ("admin", "super_admin"):
            raise HTTPException(status_code=403, detail="Only administrators can create condominiums")

        logger.info(f"📥 Creating condominium for user_id: {user.id}")
        condominium = self.repo.create(self.db, {**data.model_dump(), "user_id": user.id})
        self.db.commit()
        self.db.refresh(condominium)
        logger.info(f"✅ Condominium created: {condominium.id}")
        return condominium

    def update_condominium(self, condominium_id: int, data: CondominiumUpdate, user: User) -> Condominium:
        condominium = require_manager(self.db, user, condominium_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(condominium, field, value)
        self.db.commit()
        self.db.refresh(condominium)
        return condominium

    def delete_condominium(self, condominium_id: int, user: User) -> None:
        """Delete the condominium with every dependent row and its stored files"""
        condominium = require_manager(self.db, user, condominium_id)
        if condominium.user_id != user.id and user.role != "super_admin":
            raise HTTPException(status_code=403, detail="Only the owner can delete a condominium")

        subscription_id = condominium.subscription_id
        CondominiumDeletionService(self.db, STORAGE_PATH).delete_condominium_data(condominium_id)
        if subscription_id:
            self.licenses.recalculate_and_update(subscription_id)
            self.db.commit()
        logger.info(f"🗑️ Condominium {condominium_id} deleted by user {user.id}")

    # ------------------------------------------------------------------
    # Fractions
    # ------------------------------------------------------------------

    def _sync_fraction_count(self, condominium: Condominium) -> None:
        self.db.flush()
        condominium.total_fractions = self.repo.count_active_fractions(self.db, condominium.id)

    def _ensure_license_for_activation(self, condominium: Condominium) -> None:
        attachment = BillingRepository.get_active_attachment_for_condominium(self.db, condominium.id)
        if attachment:
            self.licenses.ensure_available(attachment.subscription_id, 1)

    def _refresh_licenses(self, condominium: Condominium) -> None:
        attachment = BillingRepository.get_active_attachment_for_condominium(self.db, condominium.id)
        if attachment:
            self.licenses.recalculate_and_update(attachment.subscription_id)

    def list_fractions(self, condominium_id: int, user: User, include_archived: bool = False) -> dict:
        require_access(self.db, user, condominium_id)
        return {
            "fractions": self.repo.list_fractions(self.db, condominium_id, include_archived),
            "total_permillage": self.repo.total_permillage(self.db, condominium_id),
        }

    def get_fraction(self, condominium_id: int, fraction_id: int) -> Fraction:
        fraction = self.repo.get_fraction(self.db, condominium_id, fraction_id)
        if not fraction:
            raise HTTPException(status_code=404, detail="Fraction not found")
        return fraction

    def create_fraction(self, condominium_id: int, data: FractionCreate, user: User) -> Fraction:
        condominium = require_manager(self.db, user, condominium_id)
        if self.repo.get_fraction_by_identifier(self.db, condominium_id, data.identifier):
            raise HTTPException(status_code=409, detail=f"Fraction {data.identifier} already exists")
        if data.is_active:
            self._ensure_license_for_activation(condominium)

        fraction = Fraction(condominium_id=condominium_id, **data.model_dump())
        self.db.add(fraction)
        self._sync_fraction_count(condominium)
        self._refresh_licenses(condominium)
        self.db.commit()
        self.db.refresh(fraction)
        logger.info(f"🏠 Fraction {fraction.identifier} created in condominium {condominium_id}")
        return fraction

    def update_fraction(self, condominium_id: int, fraction_id: int, data: FractionUpdate, user: User) -> Fraction:
        condominium = require_manager(self.db, user, condominium_id)
        fraction = self.get_fraction(condominium_id, fraction_id)
        values = data.model_dump(exclude_unset=True)

        identifier = values.get("identifier")
        if identifier and identifier != fraction.identifier:
            if self.repo.get_fraction_by_identifier(self.db, condominium_id, identifier):
                raise HTTPException(status_code=409, detail=f"Fraction {identifier} already exists")

        if values.get("is_active") and not fraction.is_active:
            self._ensure_license_for_activation(condominium)

        for field, value in values.items():
            setattr(fraction, field, value)
        self._sync_fraction_count(condominium)
        self._refresh_licenses(condominium)
        self.db.commit()
        self.db.refresh(fraction)
        return fraction

    def archive_fraction(self, condominium_id: int, fraction_id: int, user: User) -> Fraction:
        """Deactivate a fraction and release its license; its history is kept"""
        condominium = require_manager(self.db, user, condominium_id)
        fraction = self.get_fraction(condominium_id, fraction_id)
        fraction.is_active = False
        fraction.archived_at = datetime.utcnow()
        self._sync_fraction_count(condominium)
        self._refresh_licenses(condominium)
        self.db.commit()
        self.db.refresh(fraction)
        logger.info(f"📦 Fraction {fraction_id} archived")
        return fraction

    # ------------------------------------------------------------------
    # Members
    # ------------------------------------------------------------------

    def list_members(self, condominium_id: int, user: User, fraction_id=None) -> list[dict]:
        require_access(self.db, user, condominium_id)
        if fraction_id is not None:
            self.get_fraction(condominium_id, fraction_id)
        return [
            {
                "id": m.id,
                "user_id": m.user_id,
                "fraction_id": m.fraction_id,
                "role": m.role,
                "is_primary": m.is_primary,
                "can_vote": m.can_vote,
                "name": m.user.name if m.user else None,
                "email": m.user.email if m.user else None,
            }
            for m in self.repo.list_members(self.db, condominium_id, fraction_id)
        ]
