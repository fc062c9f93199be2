"""Billing domain schemas - Pydantic models for validation"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, field_validator

from ...shared.validators import validate_mobile_phone


class PricingTierResponse(BaseModel):
    min_licenses: int
    max_licenses: Optional[int] = None
    price_per_license: Decimal

    class Config:
        from_attributes = True


class PlanResponse(BaseModel):
    id: int
    slug: str
    name: str
    description: Optional[str] = None
    plan_type: str
    price_monthly: Decimal
    annual_discount_percentage: Decimal
    license_min: int
    license_limit: Optional[int] = None
    allow_overage: bool
    pricing_mode: str
    trial_days: int
    tiers: list[PricingTierResponse] = []

    class Config:
        from_attributes = True


class StartTrialRequest(BaseModel):
    """Schema for starting a subscription trial"""

    plan_id: int
    billing_cycle: str = "monthly"
    promotion_code: Optional[str] = None

    @field_validator("billing_cycle")
    @classmethod
    def validate_cycle(cls, v: str) -> str:
        if v not in {"monthly", "yearly"}:
            raise ValueError("billing_cycle must be 'monthly' or 'yearly'")
        return v


class ChangePlanRequest(BaseModel):
    plan_id: int


class AttachCondominiumRequest(BaseModel):
    condominium_id: int


class CancelRequest(BaseModel):
    """Schema for canceling subscription"""

    cancel_at_period_end: bool = True


class CreatePaymentRequest(BaseModel):
    method: str  # "multibanco" | "mbway"
    phone: Optional[str] = None

    @field_validator("method")
    @classmethod
    def validate_method(cls, v: str) -> str:
        if v not in {"multibanco", "mbway"}:
            raise ValueError("method must be 'multibanco' or 'mbway'")
        return v

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v):
        return validate_mobile_phone(v) if v else v


class SubscriptionResponse(BaseModel):
    id: int
    plan_id: int
    status: str
    billing_cycle: str
    trial_ends_at: Optional[datetime] = None
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    used_licenses: int
    extra_licenses: int
    price_monthly: Decimal
    cancel_at_period_end: bool
    canceled_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AttachmentResponse(BaseModel):
    id: int
    subscription_id: int
    condominium_id: int
    status: str
    attached_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class InvoiceResponse(BaseModel):
    id: int
    invoice_number: str
    amount: Decimal
    status: str
    due_date: date
    period_start: Optional[datetime] = None
    period_end: Optional[datetime] = None
    paid_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PaymentResponse(BaseModel):
    id: int
    subscription_id: int
    invoice_id: Optional[int] = None
    amount: Decimal
    payment_method: str
    status: str
    entity: Optional[str] = None
    reference: Optional[str] = None
    external_payment_id: Optional[str] = None
    processed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
