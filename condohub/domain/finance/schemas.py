"""Finance domain schemas - Pydantic models for validation"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from ...shared.validators import validate_iban


class BankAccountCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    account_type: str = "current"
    bank_name: Optional[str] = None
    iban: Optional[str] = None
    swift: Optional[str] = None
    initial_balance: Decimal = Decimal("0.00")

    @field_validator("account_type")
    @classmethod
    def validate_type(cls, v):
        if v not in {"current", "savings", "cash"}:
            raise ValueError("account_type must be current, savings or cash")
        return v

    @field_validator("iban")
    @classmethod
    def check_iban(cls, v):
        return validate_iban(v) if v else v


class BankAccountUpdate(BaseModel):
    name: Optional[str] = None
    bank_name: Optional[str] = None
    iban: Optional[str] = None
    swift: Optional[str] = None
    is_active: Optional[bool] = None

    @field_validator("iban")
    @classmethod
    def check_iban(cls, v):
        return validate_iban(v) if v else v


class BankAccountResponse(BaseModel):
    id: int
    name: str
    account_type: str
    bank_name: Optional[str] = None
    iban: Optional[str] = None
    swift: Optional[str] = None
    initial_balance: Decimal
    current_balance: Decimal
    is_active: bool

    class Config:
        from_attributes = True


class TransactionCreate(BaseModel):
    transaction_type: str  # income, expense, transfer
    amount: Decimal = Field(..., gt=0)
    description: str = Field(..., min_length=1, max_length=500)
    transaction_date: Optional[date] = None
    bank_account_id: Optional[int] = None
    transfer_account_id: Optional[int] = None
    fraction_id: Optional[int] = None
    category: Optional[str] = None
    reference: Optional[str] = None
    income_entry_type: Optional[str] = None  # quota, reservation, other

    @field_validator("transaction_type")
    @classmethod
    def validate_type(cls, v):
        if v not in {"income", "expense", "transfer"}:
            raise ValueError("transaction_type must be income, expense or transfer")
        return v


class TransactionResponse(BaseModel):
    id: int
    bank_account_id: int
    fraction_id: Optional[int] = None
    transfer_account_id: Optional[int] = None
    transaction_type: str
    amount: Decimal
    transaction_date: date
    description: str
    category: Optional[str] = None
    reference: Optional[str] = None
    income_entry_type: Optional[str] = None

    class Config:
        from_attributes = True


class TransactionCreateResponse(BaseModel):
    transaction: TransactionResponse
    liquidation: Optional[dict] = None


class BudgetItemCreate(BaseModel):
    item_type: str
    category: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    amount: Decimal = Field(..., ge=0)

    @field_validator("item_type")
    @classmethod
    def validate_type(cls, v):
        if v not in {"revenue", "expense"}:
            raise ValueError("item_type must be revenue or expense")
        return v


class BudgetCreate(BaseModel):
    year: int = Field(..., ge=2000, le=2100)
    notes: Optional[str] = None
    items: list[BudgetItemCreate] = []


class BudgetItemResponse(BaseModel):
    id: int
    item_type: str
    category: str
    description: Optional[str] = None
    amount: Decimal

    class Config:
        from_attributes = True


class BudgetResponse(BaseModel):
    id: int
    year: int
    status: str
    total_amount: Decimal
    notes: Optional[str] = None
    approved_at: Optional[datetime] = None
    annual_fees_generated: bool
    items: list[BudgetItemResponse] = []

    class Config:
        from_attributes = True


class ExpenseCreate(BaseModel):
    description: str = Field(..., min_length=1, max_length=500)
    amount: Decimal = Field(..., gt=0)
    expense_date: date
    category: Optional[str] = None
    fraction_id: Optional[int] = None
    supplier_id: Optional[int] = None
    payment_method: Optional[str] = None
    status: str = "pending"


class ExpenseResponse(ExpenseCreate):
    id: int

    class Config:
        from_attributes = True


class RevenueCreate(BaseModel):
    description: str = Field(..., min_length=1, max_length=500)
    amount: Decimal = Field(..., gt=0)
    revenue_date: date
    category: Optional[str] = None
    fraction_id: Optional[int] = None
    payment_method: Optional[str] = None
    reference: Optional[str] = None


class RevenueResponse(RevenueCreate):
    id: int

    class Config:
        from_attributes = True
