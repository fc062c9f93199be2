"""Finance router - FastAPI endpoints for bank accounts, transactions, budgets and ledgers"""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from .schemas import (
    BankAccountCreate,
    BankAccountResponse,
    BankAccountUpdate,
    BudgetCreate,
    BudgetItemCreate,
    BudgetResponse,
    ExpenseCreate,
    ExpenseResponse,
    RevenueCreate,
    RevenueResponse,
    TransactionCreate,
    TransactionCreateResponse,
    TransactionResponse,
)
from .service import FinanceService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/condominiums/{condominium_id}", tags=["Finance"])


def get_finance_service(db: Session = Depends(get_db)) -> FinanceService:
    """Dependency injection for FinanceService"""
    return FinanceService(db)


# ============================================================================
# BANK ACCOUNTS
# ============================================================================


@router.get("/bank-accounts", response_model=list[BankAccountResponse])
async def list_bank_accounts(
    condominium_id: int,
    current_user: User = Depends(get_current_user),
    service: FinanceService = Depends(get_finance_service),
):
    return service.list_bank_accounts(condominium_id, current_user)


@router.post("/bank-accounts", response_model=BankAccountResponse, status_code=201)
async def create_bank_account(
    condominium_id: int,
    data: BankAccountCreate,
    current_user: User = Depends(get_current_user),
    service: FinanceService = Depends(get_finance_service),
):
    return service.create_bank_account(condominium_id, data, current_user)


@router.patch("/bank-accounts/{account_id}", response_model=BankAccountResponse)
async def update_bank_account(
    condominium_id: int,
    account_id: int,
    data: BankAccountUpdate,
    current_user: User = Depends(get_current_user),
    service: FinanceService = Depends(get_finance_service),
):
    return service.update_bank_account(condominium_id, account_id, data, current_user)


# ============================================================================
# TRANSACTIONS
# ============================================================================


@router.get("/transactions", response_model=list[TransactionResponse])
async def list_transactions(
    condominium_id: int,
    bank_account_id: Optional[int] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    current_user: User = Depends(get_current_user),
    service: FinanceService = Depends(get_finance_service),
):
    return service.list_transactions(condominium_id, current_user, bank_account_id, start_date, end_date)


@router.post("/transactions", response_model=TransactionCreateResponse, status_code=201)
async def create_transaction(
    condominium_id: int,
    data: TransactionCreate,
    current_user: User = Depends(get_current_user),
    service: FinanceService = Depends(get_finance_service),
):
    """Record a transaction; income tied to a fraction is applied to its open fees"""
    return service.create_transaction(condominium_id, data, current_user)


@router.delete("/transactions/{transaction_id}", status_code=204)
async def delete_transaction(
    condominium_id: int,
    transaction_id: int,
    current_user: User = Depends(get_current_user),
    service: FinanceService = Depends(get_finance_service),
):
    service.delete_transaction(condominium_id, transaction_id, current_user)


# ============================================================================
# BUDGETS
# ============================================================================


@router.get("/budgets", response_model=list[BudgetResponse])
async def list_budgets(
    condominium_id: int,
    current_user: User = Depends(get_current_user),
    service: FinanceService = Depends(get_finance_service),
):
    return service.list_budgets(condominium_id, current_user)


@router.post("/budgets", response_model=BudgetResponse, status_code=201)
async def create_budget(
    condominium_id: int,
    data: BudgetCreate,
    current_user: User = Depends(get_current_user),
    service: FinanceService = Depends(get_finance_service),
):
    return service.create_budget(condominium_id, data, current_user)


@router.get("/budgets/{budget_id}", response_model=BudgetResponse)
async def get_budget(
    condominium_id: int,
    budget_id: int,
    current_user: User = Depends(get_current_user),
    service: FinanceService = Depends(get_finance_service),
):
    return service.get_budget(condominium_id, budget_id, current_user)


@router.post("/budgets/{budget_id}/items", response_model=BudgetResponse)
async def add_budget_item(
    condominium_id: int,
    budget_id: int,
    data: BudgetItemCreate,
    current_user: User = Depends(get_current_user),
    service: FinanceService = Depends(get_finance_service),
):
    return service.add_budget_item(condominium_id, budget_id, data, current_user)


@router.post("/budgets/{budget_id}/approve", response_model=BudgetResponse)
async def approve_budget(
    condominium_id: int,
    budget_id: int,
    current_user: User = Depends(get_current_user),
    service: FinanceService = Depends(get_finance_service),
):
    return service.approve_budget(condominium_id, budget_id, current_user)


@router.post("/budgets/{budget_id}/status/{status}", response_model=BudgetResponse)
async def change_budget_status(
    condominium_id: int,
    budget_id: int,
    status: str,
    current_user: User = Depends(get_current_user),
    service: FinanceService = Depends(get_finance_service),
):
    return service.change_budget_status(condominium_id, budget_id, status, current_user)


# ============================================================================
# EXPENSES AND REVENUES
# ============================================================================


@router.get("/expenses", response_model=list[ExpenseResponse])
async def list_expenses(
    condominium_id: int,
    year: Optional[int] = Query(None),
    current_user: User = Depends(get_current_user),
    service: FinanceService = Depends(get_finance_service),
):
    return service.list_expenses(condominium_id, current_user, year)


@router.post("/expenses", response_model=ExpenseResponse, status_code=201)
async def create_expense(
    condominium_id: int,
    data: ExpenseCreate,
    current_user: User = Depends(get_current_user),
    service: FinanceService = Depends(get_finance_service),
):
    return service.create_expense(condominium_id, data, current_user)


@router.get("/revenues", response_model=list[RevenueResponse])
async def list_revenues(
    condominium_id: int,
    year: Optional[int] = Query(None),
    current_user: User = Depends(get_current_user),
    service: FinanceService = Depends(get_finance_service),
):
    return service.list_revenues(condominium_id, current_user, year)


@router.post("/revenues", response_model=RevenueResponse, status_code=201)
async def create_revenue(
    condominium_id: int,
    data: RevenueCreate,
    current_user: User = Depends(get_current_user),
    service: FinanceService = Depends(get_finance_service),
):
    return service.create_revenue(condominium_id, data, current_user)
