"""Fraction account balance and movements"""

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from sqlalchemy.orm import Session

from ..exceptions import CondoHubError
from ..models import Fraction
from ..models_finance import FractionAccount, FractionAccountMovement

logger = logging.getLogger(__name__)


def to_money(value) -> Decimal:
    """Normalize a numeric input to a 2 decimal Decimal"""
    return Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


class FractionAccountService:
    """Credits and debits on a fraction's running balance; callers commit"""

    def __init__(self, db: Session):
        self.db = db

    def get_by_fraction(self, fraction_id: int) -> Optional[FractionAccount]:
        return self.db.query(FractionAccount).filter(FractionAccount.fraction_id == fraction_id).first()

    def get_or_create(self, fraction_id: int) -> FractionAccount:
        account = self.get_by_fraction(fraction_id)
        if account:
            return account

        fraction = self.db.get(Fraction, fraction_id)
        if not fraction:
            raise CondoHubError(f"Fraction {fraction_id} not found")

        account = FractionAccount(
            condominium_id=fraction.condominium_id, fraction_id=fraction_id, balance=Decimal("0.00")
        )
        self.db.add(account)
        self.db.flush()
        logger.info(f"🏦 Created account {account.id} for fraction {fraction_id}")
        return account

    def _add_movement(
        self,
        account: FractionAccount,
        movement_type: str,
        amount,
        source_type: str,
        source_reference_id: Optional[int],
        description: Optional[str],
        source_financial_transaction_id: Optional[int],
    ) -> FractionAccountMovement:
        amount = to_money(amount)
        if amount <= 0:
            raise CondoHubError("Movement amount must be greater than zero")

        movement = FractionAccountMovement(
            fraction_account_id=account.id,
            type=movement_type,
            amount=amount,
            source_type=source_type,
            source_reference_id=source_reference_id,
            source_financial_transaction_id=source_financial_transaction_id,
            description=description,
        )
        self.db.add(movement)

        balance = to_money(account.balance or 0)
        account.balance = balance + amount if movement_type == "credit" else balance - amount
        self.db.flush()
        return movement

    def add_credit(
        self,
        account: FractionAccount,
        amount,
        source_type: str = "quota_payment",
        source_reference_id: Optional[int] = None,
        description: Optional[str] = None,
        source_financial_transaction_id: Optional[int] = None,
    ) -> FractionAccountMovement:
        return self._add_movement(
            account, "credit", amount, source_type, source_reference_id, description,
            source_financial_transaction_id,
        )

    def add_debit(
        self,
        account: FractionAccount,
        amount,
        source_type: str = "quota_application",
        source_reference_id: Optional[int] = None,
        description: Optional[str] = None,
        source_financial_transaction_id: Optional[int] = None,
    ) -> FractionAccountMovement:
        return self._add_movement(
            account, "debit", amount, source_type, source_reference_id, description,
            source_financial_transaction_id,
        )

    def credits_for_transaction(self, transaction_id: int) -> list[FractionAccountMovement]:
        return (
            self.db.query(FractionAccountMovement)
            .filter(
                FractionAccountMovement.type == "credit",
                FractionAccountMovement.source_financial_transaction_id == transaction_id,
            )
            .all()
        )

    def remove_credit(self, movement: FractionAccountMovement) -> None:
        """Delete a credit movement and take its amount back out of the balance"""
        if movement.type != "credit":
            raise CondoHubError("Only credit movements can be removed")
        account = self.db.get(FractionAccount, movement.fraction_account_id)
        account.balance = to_money(account.balance) - to_money(movement.amount)
        self.db.delete(movement)
        self.db.flush()

    def update_credit(self, movement: FractionAccountMovement, new_amount) -> FractionAccountMovement:
        """Change a credit's amount and shift the balance by the difference"""
        if movement.type != "credit":
            raise CondoHubError("Only credit movements can be updated")
        new_amount = to_money(new_amount)
        if new_amount <= 0:
            raise CondoHubError("Movement amount must be greater than zero")
        account = self.db.get(FractionAccount, movement.fraction_account_id)
        delta = new_amount - to_money(movement.amount)
        account.balance = to_money(account.balance) + delta
        movement.amount = new_amount
        self.db.flush()
        return movement

    def get_movements(self, account_id: int) -> list[FractionAccountMovement]:
        return (
            self.db.query(FractionAccountMovement)
            .filter(FractionAccountMovement.fraction_account_id == account_id)
            .order_by(FractionAccountMovement.created_at.desc(), FractionAccountMovement.id.desc())
            .all()
        )
