"""Fee domain schemas - Pydantic models for validation"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, field_validator

GENERATION_MODES = {"monthly", "budget", "manual", "per_fraction"}


class FeeGenerateRequest(BaseModel):
    """
    Regular fee generation.

    ``monthly`` uses the budget for the given months, ``budget`` generates the
    whole year from an approved budget, ``manual`` distributes ``total_amount``
    and ``per_fraction`` uses ``fraction_amounts``.
    """

    year: int = Field(..., ge=2000, le=2100)
    mode: str = "budget"
    period_type: str = "monthly"
    months: list[int] = Field(default_factory=lambda: list(range(1, 13)))
    total_amount: Optional[Decimal] = None
    fraction_amounts: Optional[dict[int, Decimal]] = None

    @field_validator("mode")
    @classmethod
    def validate_mode(cls, v: str) -> str:
        if v not in GENERATION_MODES:
            raise ValueError(f"mode must be one of {sorted(GENERATION_MODES)}")
        return v


class ExtraFeeRequest(BaseModel):
    year: int = Field(..., ge=2000, le=2100)
    months: list[int] = Field(..., min_length=1)
    description: str = ""
    # Either a total split by permillage among fraction_ids (all when empty)...
    total_amount: Optional[Decimal] = Field(None, gt=0)
    fraction_ids: list[int] = Field(default_factory=list)
    # ...or an explicit amount per fraction, divided over the months
    fraction_amounts: Optional[dict[int, Decimal]] = None


class FeeResponse(BaseModel):
    id: int
    condominium_id: int
    fraction_id: int
    period_type: str
    period_year: int
    period_month: Optional[int] = None
    period_index: Optional[int] = None
    fee_type: str
    amount: Decimal
    status: str
    due_date: date
    paid_at: Optional[datetime] = None
    reference: Optional[str] = None
    notes: Optional[str] = None

    class Config:
        from_attributes = True


class FeePaymentCreate(BaseModel):
    amount: Decimal = Field(..., gt=0)
    payment_method: str
    payment_date: Optional[date] = None
    reference: Optional[str] = None
    notes: Optional[str] = None
    bank_account_id: Optional[int] = None


class FeePaymentResponse(BaseModel):
    id: int
    fee_id: int
    financial_transaction_id: Optional[int] = None
    amount: Decimal
    payment_method: str
    reference: Optional[str] = None
    payment_date: date
    notes: Optional[str] = None

    class Config:
        from_attributes = True


class FeeDetailResponse(FeeResponse):
    paid_amount: Decimal
    remaining_amount: Decimal
    payments: list[FeePaymentResponse] = []


class ReceiptResponse(BaseModel):
    id: int
    fee_id: int
    fee_payment_id: Optional[int] = None
    fraction_id: int
    receipt_number: str
    receipt_type: str
    amount: Decimal
    generated_at: datetime

    class Config:
        from_attributes = True


class MovementResponse(BaseModel):
    id: int
    type: str
    amount: Decimal
    source_type: str
    source_reference_id: Optional[int] = None
    source_financial_transaction_id: Optional[int] = None
    description: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class FractionAccountResponse(BaseModel):
    fraction_id: int
    balance: Decimal
    movements: list[MovementResponse] = []


class LiquidationResponse(BaseModel):
    fully_paid: list[int]
    fully_paid_payments: dict[int, int]
    partially_paid: dict[int, Decimal]
    credit_remaining: Decimal
