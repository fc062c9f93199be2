"""Finance service - Business logic for bank accounts, transactions, budgets and ledgers"""

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import Fraction, User
from ...models_finance import BankAccount, Budget, BudgetItem, Expense, Revenue, Supplier
from ...services.audit_service import AuditService
from ...services.fraction_account_service import to_money
from ...services.transaction_service import FinancialTransactionService
from ...shared.access import require_manager
from .repository import FinanceRepository
from .schemas import (
    BankAccountCreate,
    BankAccountUpdate,
    BudgetCreate,
    BudgetItemCreate,
    ExpenseCreate,
    RevenueCreate,
    TransactionCreate,
)

logger = logging.getLogger(__name__)

BUDGET_TRANSITIONS = {
    "draft": {"approved"},
    "approved": {"active", "draft"},
    "active": {"closed"},
    "closed": set(),
}


class FinanceService:
    """Service layer for finance business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = FinanceRepository()
        self.transactions = FinancialTransactionService(db)
        self.audit = AuditService(db)

    # ------------------------------------------------------------------
    # Bank accounts
    # ------------------------------------------------------------------

    def list_bank_accounts(self, condominium_id: int, user: User) -> list[BankAccount]:
        require_manager(self.db, user, condominium_id)
        return self.repo.list_bank_accounts(self.db, condominium_id)

    def create_bank_account(self, condominium_id: int, data: BankAccountCreate, user: User) -> BankAccount:
        require_manager(self.db, user, condominium_id)
        initial = to_money(data.initial_balance)
        account = BankAccount(
            condominium_id=condominium_id,
            **data.model_dump(exclude={"initial_balance"}),
            initial_balance=initial,
            current_balance=initial,
        )
        self.db.add(account)
        self.db.commit()
        self.db.refresh(account)
        logger.info(f"🏦 Bank account {account.id} created for condominium {condominium_id}")
        return account

    def update_bank_account(
        self, condominium_id: int, account_id: int, data: BankAccountUpdate, user: User
    ) -> BankAccount:
        require_manager(self.db, user, condominium_id)
        account = self.repo.get_bank_account(self.db, condominium_id, account_id)
        if not account:
            raise HTTPException(status_code=404, detail="Bank account not found")
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(account, field, value)
        self.db.commit()
        self.db.refresh(account)
        return account

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    def list_transactions(
        self,
        condominium_id: int,
        user: User,
        bank_account_id: Optional[int] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> list:
        require_manager(self.db, user, condominium_id)
        return self.repo.list_transactions(self.db, condominium_id, bank_account_id, start_date, end_date)

    def create_transaction(self, condominium_id: int, data: TransactionCreate, user: User) -> dict:
        """Record a transaction; fraction income is credited and liquidated immediately"""
        require_manager(self.db, user, condominium_id)
        if data.transaction_type == "transfer" and not data.transfer_account_id:
            raise HTTPException(status_code=400, detail="transfer_account_id is required for transfers")

        transaction, liquidation = self.transactions.create(
            condominium_id,
            data.transaction_type,
            data.amount,
            data.description,
            transaction_date=data.transaction_date,
            bank_account_id=data.bank_account_id,
            fraction_id=data.fraction_id,
            transfer_account_id=data.transfer_account_id,
            category=data.category,
            reference=data.reference,
            income_entry_type=data.income_entry_type,
            created_by=user.id,
        )
        self.db.commit()
        self.db.refresh(transaction)
        return {"transaction": transaction, "liquidation": liquidation}

    def delete_transaction(self, condominium_id: int, transaction_id: int, user: User) -> None:
        require_manager(self.db, user, condominium_id)
        transaction = self.repo.get_transaction(self.db, condominium_id, transaction_id)
        if not transaction:
            raise HTTPException(status_code=404, detail="Transaction not found")
        self.transactions.delete(transaction)
        self.db.commit()

    # ------------------------------------------------------------------
    # Budgets
    # ------------------------------------------------------------------

    def _recalculate_budget(self, budget: Budget) -> None:
        self.db.flush()
        self.db.refresh(budget)
        budget.total_amount = sum(
            (to_money(item.amount) for item in budget.items if item.item_type == "expense"), Decimal("0.00")
        )

    def list_budgets(self, condominium_id: int, user: User) -> list[Budget]:
        require_manager(self.db, user, condominium_id)
        return self.repo.list_budgets(self.db, condominium_id)

    def get_budget(self, condominium_id: int, budget_id: int, user: User) -> Budget:
        require_manager(self.db, user, condominium_id)
        budget = self.repo.get_budget(self.db, condominium_id, budget_id)
        if not budget:
            raise HTTPException(status_code=404, detail="Budget not found")
        return budget

    def create_budget(self, condominium_id: int, data: BudgetCreate, user: User) -> Budget:
        require_manager(self.db, user, condominium_id)
        if self.repo.get_budget_by_year(self.db, condominium_id, data.year):
            raise HTTPException(status_code=409, detail=f"A budget for {data.year} already exists")

        budget = Budget(condominium_id=condominium_id, year=data.year, notes=data.notes, status="draft")
        self.db.add(budget)
        self.db.flush()
        for item in data.items:
            self.db.add(BudgetItem(budget_id=budget.id, **item.model_dump()))
        self._recalculate_budget(budget)
        self.db.commit()
        self.db.refresh(budget)
        logger.info(f"📊 Budget {data.year} created for condominium {condominium_id}")
        return budget

    def add_budget_item(self, condominium_id: int, budget_id: int, data: BudgetItemCreate, user: User) -> Budget:
        budget = self.get_budget(condominium_id, budget_id, user)
        if budget.status != "draft":
            raise HTTPException(status_code=400, detail="Only draft budgets can be changed")
        self.db.add(BudgetItem(budget_id=budget.id, **data.model_dump()))
        self._recalculate_budget(budget)
        self.db.commit()
        self.db.refresh(budget)
        return budget

    def change_budget_status(self, condominium_id: int, budget_id: int, status: str, user: User) -> Budget:
        budget = self.get_budget(condominium_id, budget_id, user)
        if status not in BUDGET_TRANSITIONS.get(budget.status, set()):
            raise HTTPException(status_code=400, detail=f"Cannot change budget from {budget.status} to {status}")

        old_status = budget.status
        budget.status = status
        if status == "approved":
            budget.approved_at = datetime.utcnow()
        elif status == "draft":
            budget.approved_at = None

        self.audit.log_financial(
            condominium_id,
            "budget",
            budget.id,
            f"budget_{status}",
            amount=budget.total_amount,
            old_status=old_status,
            new_status=status,
            description=f"Budget {budget.year} {old_status} -> {status}",
        )
        self.db.commit()
        self.db.refresh(budget)
        logger.info(f"📊 Budget {budget.id} is now {status}")
        return budget

    def approve_budget(self, condominium_id: int, budget_id: int, user: User) -> Budget:
        return self.change_budget_status(condominium_id, budget_id, "approved", user)

    # ------------------------------------------------------------------
    # Expenses and revenues
    # ------------------------------------------------------------------

    def _check_references(self, condominium_id: int, fraction_id=None, supplier_id=None) -> None:
        if fraction_id is not None:
            fraction = self.db.get(Fraction, fraction_id)
            if not fraction or fraction.condominium_id != condominium_id:
                raise HTTPException(status_code=404, detail="Fraction not found")
        if supplier_id is not None:
            supplier = self.db.get(Supplier, supplier_id)
            if not supplier or supplier.condominium_id != condominium_id:
                raise HTTPException(status_code=404, detail="Supplier not found")

    def list_expenses(self, condominium_id: int, user: User, year: Optional[int] = None) -> list[Expense]:
        require_manager(self.db, user, condominium_id)
        return self.repo.list_expenses(self.db, condominium_id, year)

    def create_expense(self, condominium_id: int, data: ExpenseCreate, user: User) -> Expense:
        require_manager(self.db, user, condominium_id)
        self._check_references(condominium_id, data.fraction_id, data.supplier_id)
        expense = Expense(condominium_id=condominium_id, **data.model_dump())
        self.db.add(expense)
        self.db.commit()
        self.db.refresh(expense)
        return expense

    def list_revenues(self, condominium_id: int, user: User, year: Optional[int] = None) -> list[Revenue]:
        require_manager(self.db, user, condominium_id)
        return self.repo.list_revenues(self.db, condominium_id, year)

    def create_revenue(self, condominium_id: int, data: RevenueCreate, user: User) -> Revenue:
        require_manager(self.db, user, condominium_id)
        self._check_references(condominium_id, data.fraction_id)
        revenue = Revenue(condominium_id=condominium_id, **data.model_dump())
        self.db.add(revenue)
        self.db.commit()
        self.db.refresh(revenue)
        return revenue
