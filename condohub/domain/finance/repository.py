"""Finance repository - Data access layer for accounts, transactions and budgets"""

from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from ...models_finance import BankAccount, Budget, Expense, FinancialTransaction, Revenue


class FinanceRepository:
    """Repository for finance data access"""

    @staticmethod
    def list_bank_accounts(db: Session, condominium_id: int) -> list[BankAccount]:
        return (
            db.query(BankAccount)
            .filter(BankAccount.condominium_id == condominium_id)
            .order_by(BankAccount.is_active.desc(), BankAccount.name)
            .all()
        )

    @staticmethod
    def get_bank_account(db: Session, condominium_id: int, account_id: int) -> Optional[BankAccount]:
        return (
            db.query(BankAccount)
            .filter(BankAccount.id == account_id, BankAccount.condominium_id == condominium_id)
            .first()
        )

    @staticmethod
    def list_transactions(
        db: Session,
        condominium_id: int,
        bank_account_id: Optional[int] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> list[FinancialTransaction]:
        query = db.query(FinancialTransaction).filter(FinancialTransaction.condominium_id == condominium_id)
        if bank_account_id:
            query = query.filter(FinancialTransaction.bank_account_id == bank_account_id)
        if start_date:
            query = query.filter(FinancialTransaction.transaction_date >= start_date)
        if end_date:
            query = query.filter(FinancialTransaction.transaction_date <= end_date)
        return query.order_by(FinancialTransaction.transaction_date.desc(), FinancialTransaction.id.desc()).all()

    @staticmethod
    def get_transaction(db: Session, condominium_id: int, transaction_id: int) -> Optional[FinancialTransaction]:
        return (
            db.query(FinancialTransaction)
            .filter(FinancialTransaction.id == transaction_id, FinancialTransaction.condominium_id == condominium_id)
            .first()
        )

    @staticmethod
    def list_budgets(db: Session, condominium_id: int) -> list[Budget]:
        return db.query(Budget).filter(Budget.condominium_id == condominium_id).order_by(Budget.year.desc()).all()

    @staticmethod
    def get_budget(db: Session, condominium_id: int, budget_id: int) -> Optional[Budget]:
        return db.query(Budget).filter(Budget.id == budget_id, Budget.condominium_id == condominium_id).first()

    @staticmethod
    def get_budget_by_year(db: Session, condominium_id: int, year: int) -> Optional[Budget]:
        return db.query(Budget).filter(Budget.condominium_id == condominium_id, Budget.year == year).first()

    @staticmethod
    def list_expenses(db: Session, condominium_id: int, year: Optional[int] = None) -> list[Expense]:
        query = db.query(Expense).filter(Expense.condominium_id == condominium_id)
        if year:
            query = query.filter(Expense.expense_date >= date(year, 1, 1), Expense.expense_date <= date(year, 12, 31))
        return query.order_by(Expense.expense_date.desc(), Expense.id.desc()).all()

    @staticmethod
    def list_revenues(db: Session, condominium_id: int, year: Optional[int] = None) -> list[Revenue]:
        query = db.query(Revenue).filter(Revenue.condominium_id == condominium_id)
        if year:
            query = query.filter(Revenue.revenue_date >= date(year, 1, 1), Revenue.revenue_date <= date(year, 12, 31))
        return query.order_by(Revenue.revenue_date.desc(), Revenue.id.desc()).all()
