"""Supplier schemas - Pydantic models for suppliers and service contracts"""

from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from ...shared.validators import validate_email, validate_nif, validate_pt_phone

AMOUNT_TYPES = {"monthly", "annual", "one_time"}
CONTRACT_STATUSES = {"active", "expired", "terminated"}


class SupplierCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    nif: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = Field(None, max_length=500)
    area: Optional[str] = Field(None, max_length=100)
    website: Optional[str] = Field(None, max_length=255)
    notes: Optional[str] = None

    @field_validator("nif")
    @classmethod
    def check_nif(cls, v):
        return validate_nif(v)

    @field_validator("email")
    @classmethod
    def check_email(cls, v):
        return validate_email(v)

    @field_validator("phone")
    @classmethod
    def check_phone(cls, v):
        return validate_pt_phone(v)


class SupplierUpdate(SupplierCreate):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    is_active: Optional[bool] = None


class SupplierResponse(BaseModel):
    id: int
    condominium_id: int
    name: str
    nif: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    area: Optional[str] = None
    website: Optional[str] = None
    notes: Optional[str] = None
    is_active: bool

    class Config:
        from_attributes = True


class ContractCreate(BaseModel):
    supplier_id: Optional[int] = None
    contract_number: Optional[str] = Field(None, max_length=100)
    description: str = Field(..., min_length=1)
    amount: Optional[Decimal] = Field(None, ge=0)
    amount_type: str = "monthly"
    start_date: date
    end_date: Optional[date] = None
    renewal_alert_days: int = Field(30, ge=0, le=365)
    auto_renew: bool = False
    notes: Optional[str] = None

    @field_validator("amount_type")
    @classmethod
    def validate_amount_type(cls, v):
        if v not in AMOUNT_TYPES:
            raise ValueError("amount_type must be monthly, annual or one_time")
        return v


class ContractUpdate(BaseModel):
    supplier_id: Optional[int] = None
    contract_number: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = Field(None, min_length=1)
    amount: Optional[Decimal] = Field(None, ge=0)
    amount_type: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    renewal_alert_days: Optional[int] = Field(None, ge=0, le=365)
    auto_renew: Optional[bool] = None
    status: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("amount_type")
    @classmethod
    def validate_amount_type(cls, v):
        if v is not None and v not in AMOUNT_TYPES:
            raise ValueError("amount_type must be monthly, annual or one_time")
        return v

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        if v is not None and v not in CONTRACT_STATUSES:
            raise ValueError("status must be active, expired or terminated")
        return v


class ContractResponse(BaseModel):
    id: int
    condominium_id: int
    supplier_id: Optional[int] = None
    contract_number: Optional[str] = None
    description: str
    amount: Optional[Decimal] = None
    amount_type: Optional[str] = None
    start_date: date
    end_date: Optional[date] = None
    renewal_alert_days: int
    auto_renew: bool
    status: str
    notes: Optional[str] = None

    class Config:
        from_attributes = True


class ExpiringContractResponse(ContractResponse):
    days_until_expiry: int
