"""Bank account movements and fraction income"""

import logging
from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from ..exceptions import CondoHubError
from ..models import Fraction
from ..models_finance import (
    BankAccount,
    FeePayment,
    FeePaymentHistory,
    FinancialTransaction,
    FractionAccountMovement,
    Fee,
    Receipt,
)
from .audit_service import AuditService
from .fraction_account_service import FractionAccountService, to_money
from .liquidation_service import LiquidationService

logger = logging.getLogger(__name__)

TRANSACTION_TYPES = ("income", "expense", "transfer")


class FinancialTransactionService:
    """Creates and reverts bank transactions; callers commit"""

    def __init__(self, db: Session):
        self.db = db
        self.accounts = FractionAccountService(db)
        self.audit = AuditService(db)

    def get_cash_account(self, condominium_id: int) -> BankAccount:
        account = (
            self.db.query(BankAccount)
            .filter(
                BankAccount.condominium_id == condominium_id,
                BankAccount.account_type == "cash",
                BankAccount.is_active.is_(True),
            )
            .first()
        )
        if account:
            return account
        account = BankAccount(
            condominium_id=condominium_id,
            name="Cash",
            account_type="cash",
            initial_balance=Decimal("0.00"),
            current_balance=Decimal("0.00"),
        )
        self.db.add(account)
        self.db.flush()
        logger.info(f"💰 Created cash account for condominium {condominium_id}")
        return account

    def resolve_account(self, condominium_id: int, bank_account_id: Optional[int]) -> BankAccount:
        if not bank_account_id:
            return self.get_cash_account(condominium_id)
        account = self.db.get(BankAccount, bank_account_id)
        if not account or account.condominium_id != condominium_id:
            raise CondoHubError("Invalid bank account")
        return account

    @staticmethod
    def _apply_balance(account: BankAccount, transaction_type: str, amount: Decimal, sign: int = 1) -> None:
        delta = amount if transaction_type == "income" else -amount
        account.current_balance = to_money(account.current_balance or 0) + delta * sign

    def create(
        self,
        condominium_id: int,
        transaction_type: str,
        amount,
        description: str,
        transaction_date: Optional[date] = None,
        bank_account_id: Optional[int] = None,
        fraction_id: Optional[int] = None,
        transfer_account_id: Optional[int] = None,
        category: Optional[str] = None,
        reference: Optional[str] = None,
        income_entry_type: Optional[str] = None,
        related_type: Optional[str] = None,
        related_id: Optional[int] = None,
        created_by: Optional[int] = None,
        liquidate: bool = True,
    ) -> tuple[FinancialTransaction, Optional[dict]]:
        """
        Record a transaction and update the account balance.

        Income with a fraction credits the fraction account and runs
        liquidation against it. Returns the transaction and the liquidation
        result (None when no liquidation ran).
        """
        if transaction_type not in TRANSACTION_TYPES:
            raise CondoHubError(f"Invalid transaction type: {transaction_type}")
        amount = to_money(amount)
        if amount <= 0:
            raise CondoHubError("Amount must be greater than zero")

        account = self.resolve_account(condominium_id, bank_account_id)

        if fraction_id is not None:
            fraction = self.db.get(Fraction, fraction_id)
            if not fraction or fraction.condominium_id != condominium_id:
                raise CondoHubError(f"Fraction {fraction_id} not found in this condominium")

        transaction = FinancialTransaction(
            condominium_id=condominium_id,
            bank_account_id=account.id,
            fraction_id=fraction_id,
            transfer_account_id=transfer_account_id,
            transaction_type=transaction_type,
            amount=amount,
            transaction_date=transaction_date or date.today(),
            description=description,
            category=category,
            reference=reference,
            income_entry_type=income_entry_type,
            related_type=related_type,
            related_id=related_id,
            created_by=created_by,
        )
        self.db.add(transaction)

        if transaction_type == "transfer":
            target = self.resolve_account(condominium_id, transfer_account_id)
            account.current_balance = to_money(account.current_balance or 0) - amount
            target.current_balance = to_money(target.current_balance or 0) + amount
        else:
            self._apply_balance(account, transaction_type, amount)
        self.db.flush()

        self.audit.log_financial(
            condominium_id,
            "financial_transaction",
            transaction.id,
            "financial_transaction_created",
            amount=amount,
            description=f"{transaction_type.capitalize()} of {amount}: {description}",
        )

        result = None
        if transaction_type == "income" and fraction_id is not None and income_entry_type != "other":
            fraction_account = self.accounts.get_or_create(fraction_id)
            self.accounts.add_credit(
                fraction_account,
                amount,
                source_type="quota_payment",
                source_reference_id=transaction.id,
                description=description,
                source_financial_transaction_id=transaction.id,
            )
            if liquidate:
                result = LiquidationService(self.db).liquidate(
                    fraction_id,
                    created_by=created_by,
                    payment_date=transaction.transaction_date,
                    financial_transaction_id=transaction.id,
                )

        logger.info(f"💳 Transaction {transaction.id} ({transaction_type} {amount}) on account {account.id}")
        return transaction, result

    def _revert_fee_payment(self, payment: FeePayment) -> None:
        fee = self.db.get(Fee, payment.fee_id)
        self.db.query(FeePaymentHistory).filter(FeePaymentHistory.fee_payment_id == payment.id).update(
            {FeePaymentHistory.fee_payment_id: None}, synchronize_session=False
        )
        self.db.query(Receipt).filter(Receipt.fee_id == payment.fee_id).delete(synchronize_session=False)
        self.db.delete(payment)
        if fee and fee.status == "paid":
            fee.status = "pending"
            fee.paid_at = None

    def delete(self, transaction: FinancialTransaction) -> None:
        """Revert balances, fraction credits and the fee payments the transaction paid"""
        # Debits produced by liquidation of this transaction
        debits = (
            self.db.query(FractionAccountMovement)
            .filter(
                FractionAccountMovement.type == "debit",
                FractionAccountMovement.source_type == "quota_application",
                FractionAccountMovement.source_financial_transaction_id == transaction.id,
            )
            .all()
        )
        for debit in debits:
            account = debit.account
            account.balance = to_money(account.balance) + to_money(debit.amount)
            payment = self.db.get(FeePayment, debit.source_reference_id) if debit.source_reference_id else None
            self.db.delete(debit)
            if payment:
                self._revert_fee_payment(payment)
        self.db.flush()

        for credit in self.accounts.credits_for_transaction(transaction.id):
            self.accounts.remove_credit(credit)

        for payment in self.db.query(FeePayment).filter(FeePayment.financial_transaction_id == transaction.id).all():
            self._revert_fee_payment(payment)

        account = self.db.get(BankAccount, transaction.bank_account_id)
        amount = to_money(transaction.amount)
        if transaction.transaction_type == "transfer":
            target = self.db.get(BankAccount, transaction.transfer_account_id) if transaction.transfer_account_id else None
            account.current_balance = to_money(account.current_balance) + amount
            if target:
                target.current_balance = to_money(target.current_balance) - amount
        else:
            self._apply_balance(account, transaction.transaction_type, amount, sign=-1)

        self.audit.log_financial(
            transaction.condominium_id,
            "financial_transaction",
            transaction.id,
            "financial_transaction_deleted",
            amount=amount,
            description=f"Transaction #{transaction.id} deleted",
        )
        self.db.delete(transaction)
        self.db.flush()
        logger.info(f"🗑️ Transaction {transaction.id} deleted and balances reverted")
