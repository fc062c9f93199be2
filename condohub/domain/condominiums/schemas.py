"""Condominium domain schemas - Pydantic models for validation"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from ...shared.validators import validate_email, validate_iban, validate_nif, validate_pt_phone


class CondominiumCreate(BaseModel):
    """Schema for creating a new condominium"""

    name: str = Field(..., min_length=1, max_length=255)
    address: Optional[str] = None
    postal_code: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = "Portugal"
    nif: Optional[str] = None
    iban: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    type: Optional[str] = "habitacional"

    @field_validator("postal_code")
    @classmethod
    def validate_postal_code(cls, v):
        if v and not (len(v) == 8 and v[4] == "-" and (v[:4] + v[5:]).isdigit()):
            raise ValueError("Postal code must use the format 0000-000")
        return v

    @field_validator("nif")
    @classmethod
    def check_nif(cls, v):
        return validate_nif(v) if v else v

    @field_validator("iban")
    @classmethod
    def check_iban(cls, v):
        return validate_iban(v) if v else v

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v):
        return validate_pt_phone(v) if v else v

    @field_validator("email")
    @classmethod
    def check_email(cls, v):
        return validate_email(v) if v else v

    @field_validator("type")
    @classmethod
    def validate_type(cls, v):
        if v and v not in {"habitacional", "misto", "comercial"}:
            raise ValueError("type must be habitacional, misto or comercial")
        return v


class CondominiumUpdate(CondominiumCreate):
    """Schema for updating an existing condominium"""

    name: Optional[str] = None
    is_active: Optional[bool] = None


class CondominiumResponse(BaseModel):
    id: int
    user_id: int
    subscription_id: Optional[int] = None
    name: str
    address: Optional[str] = None
    postal_code: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    nif: Optional[str] = None
    iban: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    type: Optional[str] = None
    total_fractions: int
    is_active: bool
    is_demo: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class FractionCreate(BaseModel):
    identifier: str = Field(..., min_length=1, max_length=50)
    permillage: Decimal = Field(..., ge=0, le=1000)
    floor: Optional[str] = None
    typology: Optional[str] = None
    area: Optional[Decimal] = Field(None, ge=0)
    notes: Optional[str] = None
    is_active: bool = True


class FractionUpdate(BaseModel):
    identifier: Optional[str] = Field(None, min_length=1, max_length=50)
    permillage: Optional[Decimal] = Field(None, ge=0, le=1000)
    floor: Optional[str] = None
    typology: Optional[str] = None
    area: Optional[Decimal] = Field(None, ge=0)
    notes: Optional[str] = None
    is_active: Optional[bool] = None


class FractionResponse(BaseModel):
    id: int
    condominium_id: int
    identifier: str
    permillage: Decimal
    floor: Optional[str] = None
    typology: Optional[str] = None
    area: Optional[Decimal] = None
    notes: Optional[str] = None
    is_active: bool
    archived_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class FractionListResponse(BaseModel):
    fractions: list[FractionResponse]
    total_permillage: Decimal


class MemberResponse(BaseModel):
    id: int
    user_id: int
    fraction_id: Optional[int] = None
    role: str
    is_primary: bool
    can_vote: bool
    name: Optional[str] = None
    email: Optional[str] = None


class InvitationCreate(BaseModel):
    email: str
    name: Optional[str] = None
    fraction_id: Optional[int] = None
    role: str = "condomino"

    @field_validator("email")
    @classmethod
    def check_email(cls, v):
        return validate_email(v)


class InvitationResponse(BaseModel):
    id: int
    condominium_id: int
    fraction_id: Optional[int] = None
    email: Optional[str] = None
    name: Optional[str] = None
    role: str
    expires_at: Optional[datetime] = None
    accepted_at: Optional[datetime] = None

    class Config:
        from_attributes = True
