"""
Liquidation - apply a fraction's account credit to its oldest open fees.

Fees are paid strictly oldest first (year, month/period, regular before
extra, id). Each application creates a fee payment and a matching
``quota_application`` debit on the fraction account; the last fee reached may
be left partially paid. Nothing is committed here, the caller owns the
transaction.
"""

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import case, func
from sqlalchemy.orm import Session

from ..models_finance import Fee, FeePayment
from .fraction_account_service import FractionAccountService, to_money
from .receipt_service import ReceiptService

logger = logging.getLogger(__name__)

LIQUIDATION_NOTE = "Automatic liquidation (fraction account)"


class LiquidationService:
    def __init__(self, db: Session):
        self.db = db
        self.accounts = FractionAccountService(db)
        self.receipts = ReceiptService(db)

    def total_paid(self, fee_id: int) -> Decimal:
        total = self.db.query(func.coalesce(func.sum(FeePayment.amount), 0)).filter(FeePayment.fee_id == fee_id).scalar()
        return to_money(total or 0)

    def pending_fees_ordered(self, fraction_id: int) -> list[Fee]:
        return (
            self.db.query(Fee)
            .filter(Fee.fraction_id == fraction_id, Fee.status.in_(["pending", "overdue"]))
            .order_by(
                Fee.period_year.asc(),
                func.coalesce(Fee.period_month, Fee.period_index, 0).asc(),
                case((Fee.fee_type == "regular", 0), else_=1).asc(),
                Fee.id.asc(),
            )
            .all()
        )

    def liquidate(
        self,
        fraction_id: int,
        created_by: Optional[int] = None,
        payment_date: Optional[date] = None,
        financial_transaction_id: Optional[int] = None,
    ) -> dict:
        """
        Apply the account balance to pending fees.

        Returns:
            dict with 'fully_paid' (fee ids), 'fully_paid_payments'
            ({fee_id: payment_id}), 'partially_paid' ({fee_id: amount still
            owed}) and 'credit_remaining'.
        """
        result = {"fully_paid": [], "fully_paid_payments": {}, "partially_paid": {}, "credit_remaining": Decimal("0.00")}
        pay_date = payment_date or date.today()

        account = self.accounts.get_by_fraction(fraction_id)
        balance = to_money(account.balance) if account else Decimal("0.00")
        if not account or balance <= 0:
            result["credit_remaining"] = balance
            return result

        for fee in self.pending_fees_ordered(fraction_id):
            if balance <= 0:
                break

            remaining = to_money(fee.amount) - self.total_paid(fee.id)
            if remaining <= 0:
                continue

            to_apply = min(balance, remaining)

            payment = FeePayment(
                fee_id=fee.id,
                financial_transaction_id=None,
                amount=to_apply,
                payment_method="transfer",
                reference=None,
                payment_date=pay_date,
                notes=LIQUIDATION_NOTE,
                created_by=created_by,
            )
            self.db.add(payment)
            self.db.flush()

            self.accounts.add_debit(
                account,
                to_apply,
                source_type="quota_application",
                source_reference_id=payment.id,
                description=f"Applied to fee {fee.reference or '#' + str(fee.id)}",
                source_financial_transaction_id=financial_transaction_id,
            )

            balance -= to_apply
            remaining -= to_apply

            if remaining <= 0:
                fee.status = "paid"
                fee.paid_at = datetime.utcnow()
                self.db.flush()
                self.receipts.issue_for_fee(fee, payment, generated_by=created_by)
                result["fully_paid"].append(fee.id)
                result["fully_paid_payments"][fee.id] = payment.id
            else:
                result["partially_paid"][fee.id] = remaining

        result["credit_remaining"] = balance
        logger.info(
            f"💶 Liquidation for fraction {fraction_id}: {len(result['fully_paid'])} paid, "
            f"{len(result['partially_paid'])} partial, credit left {balance}"
        )
        return result
