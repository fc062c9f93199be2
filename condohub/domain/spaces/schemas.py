"""Spaces schemas - Pydantic models for common spaces and reservations"""

import re
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, field_validator

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")
TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def validate_available_hours(value: Optional[dict]) -> Optional[dict]:
    """{"monday": {"start": "09:00", "end": "22:00"}, ...}; days without a window are closed"""
    if not value:
        return None
    hours = {}
    for day, window in value.items():
        day = day.strip().lower()
        if day not in WEEKDAYS:
            raise ValueError(f"Unknown weekday '{day}'")
        start, end = window.get("start"), window.get("end")
        if not start or not end or not TIME_PATTERN.match(start) or not TIME_PATTERN.match(end):
            raise ValueError(f"Hours for {day} must use HH:MM")
        if start >= end:
            raise ValueError(f"Opening time for {day} must be before closing time")
        hours[day] = {"start": start, "end": end}
    return hours


class SpaceCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    type: Optional[str] = Field(None, max_length=50)
    capacity: Optional[int] = Field(None, ge=1)
    price_per_hour: Decimal = Field(Decimal("0"), ge=0)
    price_per_day: Decimal = Field(Decimal("0"), ge=0)
    deposit_required: Decimal = Field(Decimal("0"), ge=0)
    requires_approval: bool = True
    rules: Optional[str] = None
    available_hours: Optional[dict[str, dict[str, str]]] = None

    @field_validator("available_hours")
    @classmethod
    def check_hours(cls, v):
        return validate_available_hours(v)


class SpaceUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    type: Optional[str] = Field(None, max_length=50)
    capacity: Optional[int] = Field(None, ge=1)
    price_per_hour: Optional[Decimal] = Field(None, ge=0)
    price_per_day: Optional[Decimal] = Field(None, ge=0)
    deposit_required: Optional[Decimal] = Field(None, ge=0)
    requires_approval: Optional[bool] = None
    rules: Optional[str] = None
    available_hours: Optional[dict[str, dict[str, str]]] = None
    is_active: Optional[bool] = None
    is_blocked: Optional[bool] = None

    @field_validator("available_hours")
    @classmethod
    def check_hours(cls, v):
        return validate_available_hours(v)


class SpaceResponse(BaseModel):
    id: int
    condominium_id: int
    name: str
    description: Optional[str] = None
    type: Optional[str] = None
    capacity: Optional[int] = None
    price_per_hour: Decimal
    price_per_day: Decimal
    deposit_required: Decimal
    requires_approval: bool
    rules: Optional[str] = None
    available_hours: Optional[dict] = None
    is_active: bool
    is_blocked: bool

    class Config:
        from_attributes = True


class ReservationCreate(BaseModel):
    space_id: int
    fraction_id: int
    start_date: datetime
    end_date: datetime
    notes: Optional[str] = None

    @field_validator("start_date", "end_date")
    @classmethod
    def to_naive_utc(cls, v):
        return v.astimezone(timezone.utc).replace(tzinfo=None) if v.tzinfo else v


class ReservationDecision(BaseModel):
    notes: Optional[str] = None


class ReservationResponse(BaseModel):
    id: int
    condominium_id: int
    space_id: int
    fraction_id: int
    user_id: Optional[int] = None
    start_date: datetime
    end_date: datetime
    status: str
    price: Decimal
    deposit: Decimal
    notes: Optional[str] = None
    approved_by: Optional[int] = None
    approved_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
