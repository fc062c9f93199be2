from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from .shared.validators import validate_email, validate_nif, validate_pt_phone


class UserCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: str
    password: str = Field(..., min_length=8)
    phone: Optional[str] = None
    nif: Optional[str] = None

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v):
        return validate_email(v)

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v):
        return validate_pt_phone(v) if v else v

    @field_validator("nif")
    @classmethod
    def check_nif(cls, v):
        return validate_nif(v) if v else v


class UserUpdate(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    nif: Optional[str] = None

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v):
        return validate_pt_phone(v) if v else v

    @field_validator("nif")
    @classmethod
    def check_nif(cls, v):
        return validate_nif(v) if v else v


class UserResponse(BaseModel):
    id: int
    name: str
    email: str
    role: str
    phone: Optional[str] = None
    nif: Optional[str] = None
    is_active: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class LoginRequest(BaseModel):
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v):
        return v.strip().lower()


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse


class AcceptInvitationRequest(BaseModel):
    token: str
    # Required when the invited email has no account yet
    name: Optional[str] = None
    password: Optional[str] = Field(None, min_length=8)


class MessageResponse(BaseModel):
    message: str
