"""
Manual fee payments.

A payment registered against a fee is spread over every open fee of the same
fraction and period (regular first, then extras by creation), never beyond
what the period still owes. Each allocation becomes a ``fee_payments`` row
tied to one income transaction on the chosen bank account.
"""

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import case, func
from sqlalchemy.orm import Session

from ..exceptions import CondoHubError
from ..models_finance import Fee, FeePayment, FeePaymentHistory, FractionAccount, FractionAccountMovement, Receipt
from .audit_service import AuditService
from .fraction_account_service import to_money
from .receipt_service import ReceiptService
from .transaction_service import FinancialTransactionService

logger = logging.getLogger(__name__)

PAYMENT_METHODS = ("multibanco", "mbway", "transfer", "cash", "card", "sepa")


class FeePaymentService:
    def __init__(self, db: Session):
        self.db = db
        self.audit = AuditService(db)
        self.receipts = ReceiptService(db)
        self.transactions = FinancialTransactionService(db)

    def total_paid(self, fee_id: int) -> Decimal:
        total = self.db.query(func.coalesce(func.sum(FeePayment.amount), 0)).filter(FeePayment.fee_id == fee_id).scalar()
        return to_money(total or 0)

    def remaining(self, fee: Fee) -> Decimal:
        return to_money(fee.amount) - self.total_paid(fee.id)

    def get_fee(self, condominium_id: int, fee_id: int) -> Fee:
        fee = self.db.get(Fee, fee_id)
        if not fee or fee.condominium_id != condominium_id:
            raise CondoHubError("Fee not found")
        return fee

    def fees_in_period(self, fee: Fee) -> list[Fee]:
        """Open fees of the same fraction and month, regular first"""
        if not fee.period_month:
            return [fee]
        fees = (
            self.db.query(Fee)
            .filter(
                Fee.condominium_id == fee.condominium_id,
                Fee.fraction_id == fee.fraction_id,
                Fee.period_year == fee.period_year,
                Fee.period_month == fee.period_month,
                Fee.status != "canceled",
            )
            .order_by(case((Fee.fee_type == "regular", 0), else_=1), Fee.created_at, Fee.id)
            .all()
        )
        return fees or [fee]

    def _history(self, fee_id: int, payment_id: Optional[int], user_id: Optional[int], action: str, amount, description: str):
        self.db.add(
            FeePaymentHistory(
                fee_id=fee_id,
                fee_payment_id=payment_id,
                user_id=user_id,
                action=action,
                amount=amount,
                description=description,
            )
        )

    def register_payment(
        self,
        condominium_id: int,
        fee_id: int,
        amount,
        payment_method: str,
        payment_date: Optional[date] = None,
        reference: Optional[str] = None,
        notes: Optional[str] = None,
        user_id: Optional[int] = None,
        bank_account_id: Optional[int] = None,
    ) -> list[FeePayment]:
        fee = self.get_fee(condominium_id, fee_id)
        amount = to_money(amount)
        if amount <= 0 or not payment_method:
            raise CondoHubError("Amount and payment method are required")
        if payment_method not in PAYMENT_METHODS:
            raise CondoHubError(f"Invalid payment method: {payment_method}")

        open_fees = [(f, self.remaining(f)) for f in self.fees_in_period(fee)]
        open_fees = [(f, r) for f, r in open_fees if r > 0]
        period_remaining = sum((r for _, r in open_fees), Decimal("0.00"))
        if amount > period_remaining:
            raise CondoHubError(f"Payment exceeds the amount owed for the period ({period_remaining})")

        pay_date = payment_date or date.today()
        description = "Fee payment"
        if reference:
            description += f" - Ref: {reference}"
        if notes:
            description += f" - {notes}"

        transaction, _ = self.transactions.create(
            condominium_id,
            "income",
            amount,
            description,
            transaction_date=pay_date,
            bank_account_id=bank_account_id,
            category="Fees",
            reference=reference,
            related_type="fee_payment",
            created_by=user_id,
            liquidate=False,
        )

        payments = []
        amount_left = amount
        for target, owed in open_fees:
            if amount_left <= 0:
                break
            allocated = min(owed, amount_left)
            payment = FeePayment(
                fee_id=target.id,
                financial_transaction_id=transaction.id,
                amount=allocated,
                payment_method=payment_method,
                reference=reference,
                payment_date=pay_date,
                notes=notes,
                created_by=user_id,
            )
            self.db.add(payment)
            self.db.flush()
            payments.append(payment)
            amount_left -= allocated

            self._history(
                target.id, payment.id, user_id, "payment_added", allocated,
                f"Payment of {allocated} ({payment_method})",
            )

            old_status = target.status
            self.audit.log_financial(
                condominium_id,
                "fee_payment",
                payment.id,
                "fee_payment_created",
                amount=allocated,
                old_status=old_status,
                new_status="completed",
                description=f"Fee payment registered for fee #{target.id}",
            )

            if allocated >= owed:
                target.status = "paid"
                target.paid_at = datetime.utcnow()
                self.db.flush()
                self.receipts.issue_for_fee(target, payment, generated_by=user_id)
                self.audit.log_financial(
                    condominium_id,
                    "fee",
                    target.id,
                    "fee_marked_as_paid",
                    amount=target.amount,
                    old_status=old_status,
                    new_status="paid",
                    description=f"Fee #{target.id} fully paid",
                )

        transaction.related_id = payments[0].id if payments else None
        self.db.flush()
        logger.info(f"✅ Registered payment of {amount} for fee {fee_id} over {len(payments)} fee(s)")
        return payments

    def delete_payment(self, condominium_id: int, fee_id: int, payment_id: int, user_id: Optional[int] = None) -> Fee:
        fee = self.get_fee(condominium_id, fee_id)
        payment = self.db.get(FeePayment, payment_id)
        if not payment or payment.fee_id != fee_id:
            raise CondoHubError("Payment not found")

        amount = to_money(payment.amount)
        self._history(
            fee_id, None, user_id, "payment_deleted", amount,
            f"Payment deleted: {amount} ({payment.payment_method}) - Reference: {payment.reference or 'N/A'}",
        )
        old_status = fee.status
        self.audit.log_financial(
            condominium_id,
            "fee_payment",
            payment_id,
            "fee_payment_deleted",
            amount=amount,
            old_status="completed",
            new_status="deleted",
            description=f"Fee payment deleted. Fee #{fee_id}, payment #{payment_id}",
        )

        # Credit applied by liquidation goes back to the fraction account
        if not payment.financial_transaction_id:
            debits = (
                self.db.query(FractionAccountMovement)
                .filter(
                    FractionAccountMovement.source_reference_id == payment_id,
                    FractionAccountMovement.source_type == "quota_application",
                    FractionAccountMovement.type == "debit",
                )
                .all()
            )
            for debit in debits:
                account = self.db.get(FractionAccount, debit.fraction_account_id)
                account.balance = to_money(account.balance) + to_money(debit.amount)
                self.db.delete(debit)

        self.db.query(FeePaymentHistory).filter(FeePaymentHistory.fee_payment_id == payment_id).update(
            {FeePaymentHistory.fee_payment_id: None}, synchronize_session=False
        )
        self.db.query(Receipt).filter(Receipt.fee_id == fee_id).delete(synchronize_session=False)
        self.db.delete(payment)
        self.db.flush()

        if self.total_paid(fee_id) >= to_money(fee.amount):
            fee.status = "paid"
            self.receipts.issue_for_fee(fee, generated_by=user_id)
        else:
            fee.status = "pending"
            fee.paid_at = None
            if old_status == "paid":
                self.audit.log_financial(
                    condominium_id,
                    "fee",
                    fee_id,
                    "fee_status_changed",
                    amount=fee.amount,
                    old_status=old_status,
                    new_status="pending",
                    description=f"Fee #{fee_id} back to pending after a payment was deleted",
                )
        self.db.flush()
        logger.info(f"🗑️ Payment {payment_id} of fee {fee_id} deleted")
        return fee
