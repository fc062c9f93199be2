"""Fee domain service - access checks and transactions around fee workflows"""

import logging
from decimal import Decimal
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import Fraction, User
from ...models_finance import Fee
from ...services.fee_payment_service import FeePaymentService
from ...services.fee_service import FeeService
from ...services.fraction_account_service import FractionAccountService, to_money
from ...services.liquidation_service import LiquidationService
from ...services.notification_service import NotificationService
from ...shared.access import can_manage, require_access, require_manager, user_fraction_ids
from .repository import FeeRepository
from .schemas import ExtraFeeRequest, FeeGenerateRequest, FeePaymentCreate

logger = logging.getLogger(__name__)


class FeeDomainService:
    """Service layer for fee business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = FeeRepository()
        self.fees = FeeService(db)
        self.payments = FeePaymentService(db)
        self.accounts = FractionAccountService(db)
        self.notifications = NotificationService(db)

    def _visible_fraction_ids(self, condominium_id: int, user: User) -> Optional[list[int]]:
        """None for managers (all fractions), otherwise the user's own fractions"""
        condominium = require_access(self.db, user, condominium_id)
        if can_manage(self.db, user, condominium):
            return None
        return user_fraction_ids(self.db, user.id, condominium_id)

    def list_fees(
        self, condominium_id: int, user: User, year: Optional[int] = None, status: Optional[str] = None
    ) -> list[Fee]:
        fraction_ids = self._visible_fraction_ids(condominium_id, user)
        return self.repo.list_fees(self.db, condominium_id, year, status, fraction_ids)

    def get_fee_detail(self, condominium_id: int, fee_id: int, user: User) -> dict:
        fraction_ids = self._visible_fraction_ids(condominium_id, user)
        fee = self.repo.get_fee(self.db, condominium_id, fee_id)
        if not fee or (fraction_ids is not None and fee.fraction_id not in fraction_ids):
            raise HTTPException(status_code=404, detail="Fee not found")
        paid = self.payments.total_paid(fee.id)
        return {
            **{c.name: getattr(fee, c.name) for c in Fee.__table__.columns},
            "paid_amount": paid,
            "remaining_amount": max(to_money(fee.amount) - paid, Decimal("0.00")),
            "payments": self.repo.list_payments(self.db, fee.id),
        }

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    def generate(self, condominium_id: int, data: FeeGenerateRequest, user: User) -> list[Fee]:
        require_manager(self.db, user, condominium_id)

        if data.mode == "monthly":
            generated = self.fees.generate_monthly_fees(condominium_id, data.year, data.months)
        elif data.mode == "budget":
            generated = self.fees.generate_annual_fees_from_budget(condominium_id, data.year, data.period_type)
        elif data.mode == "manual":
            if data.total_amount is None:
                raise HTTPException(status_code=400, detail="total_amount is required")
            generated = self.fees.generate_annual_fees_manual(
                condominium_id, data.year, data.total_amount, data.period_type
            )
        else:
            generated = self.fees.generate_annual_fees_per_fraction(
                condominium_id, data.year, data.fraction_amounts or {}, data.period_type
            )

        self.notifications.notify_fees_generated(condominium_id, [f.fraction_id for f in generated], data.year)
        self.db.commit()
        logger.info(f"✅ {len(generated)} fee(s) generated ({data.mode}) for condominium {condominium_id}")
        return generated

    def generate_extra(self, condominium_id: int, data: ExtraFeeRequest, user: User) -> list[Fee]:
        require_manager(self.db, user, condominium_id)

        if data.fraction_amounts:
            generated = self.fees.generate_extra_fees_manual(
                condominium_id, data.year, data.months, data.fraction_amounts, data.description
            )
        elif data.total_amount is not None:
            generated = self.fees.generate_extra_fees(
                condominium_id, data.year, data.months, data.total_amount, data.description, data.fraction_ids
            )
        else:
            raise HTTPException(status_code=400, detail="Provide total_amount or fraction_amounts")

        self.notifications.notify_fees_generated(condominium_id, [f.fraction_id for f in generated], data.year)
        self.db.commit()
        return generated

    def mark_overdue(self, condominium_id: int, user: User) -> int:
        require_manager(self.db, user, condominium_id)
        count = self.fees.mark_overdue(condominium_id)
        self.db.commit()
        return count

    # ------------------------------------------------------------------
    # Payments
    # ------------------------------------------------------------------

    def register_payment(self, condominium_id: int, fee_id: int, data: FeePaymentCreate, user: User) -> list:
        require_manager(self.db, user, condominium_id)
        payments = self.payments.register_payment(
            condominium_id,
            fee_id,
            data.amount,
            data.payment_method,
            payment_date=data.payment_date,
            reference=data.reference,
            notes=data.notes,
            user_id=user.id,
            bank_account_id=data.bank_account_id,
        )
        self.db.commit()
        return payments

    def delete_payment(self, condominium_id: int, fee_id: int, payment_id: int, user: User) -> Fee:
        require_manager(self.db, user, condominium_id)
        fee = self.payments.delete_payment(condominium_id, fee_id, payment_id, user_id=user.id)
        self.db.commit()
        self.db.refresh(fee)
        return fee

    # ------------------------------------------------------------------
    # Fraction accounts
    # ------------------------------------------------------------------

    def _check_fraction(self, condominium_id: int, fraction_id: int, user: User, manage: bool = False) -> None:
        if manage:
            require_manager(self.db, user, condominium_id)
            fraction_ids = None
        else:
            fraction_ids = self._visible_fraction_ids(condominium_id, user)
        fraction = self.db.get(Fraction, fraction_id)
        if not fraction or fraction.condominium_id != condominium_id:
            raise HTTPException(status_code=404, detail="Fraction not found")
        if fraction_ids is not None and fraction_id not in fraction_ids:
            raise HTTPException(status_code=403, detail="Access denied")

    def get_fraction_account(self, condominium_id: int, fraction_id: int, user: User) -> dict:
        self._check_fraction(condominium_id, fraction_id, user)
        account = self.accounts.get_by_fraction(fraction_id)
        if not account:
            return {"fraction_id": fraction_id, "balance": Decimal("0.00"), "movements": []}
        return {
            "fraction_id": fraction_id,
            "balance": to_money(account.balance),
            "movements": self.accounts.get_movements(account.id),
        }

    def liquidate(self, condominium_id: int, fraction_id: int, user: User) -> dict:
        """Apply the fraction's available credit to its open fees"""
        self._check_fraction(condominium_id, fraction_id, user, manage=True)
        result = LiquidationService(self.db).liquidate(fraction_id, created_by=user.id)
        self.db.commit()
        return result

    def list_receipts(self, condominium_id: int, user: User, fraction_id: Optional[int] = None) -> list:
        fraction_ids = self._visible_fraction_ids(condominium_id, user)
        receipts = self.repo.list_receipts(self.db, condominium_id, fraction_id)
        if fraction_ids is not None:
            receipts = [r for r in receipts if r.fraction_id in fraction_ids]
        return receipts
