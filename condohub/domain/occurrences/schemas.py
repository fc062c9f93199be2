"""Occurrence schemas - Pydantic models for maintenance occurrences"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

PRIORITIES = ("low", "medium", "high", "urgent")
STATUSES = ("open", "in_analysis", "assigned", "completed", "canceled")


def _check_priority(v):
    if v is not None and v not in PRIORITIES:
        raise ValueError("priority must be low, medium, high or urgent")
    return v


class OccurrenceCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    category: Optional[str] = Field(None, max_length=100)
    priority: str = "medium"
    location: Optional[str] = Field(None, max_length=255)
    fraction_id: Optional[int] = None

    @field_validator("priority")
    @classmethod
    def validate_priority(cls, v):
        return _check_priority(v)


class OccurrenceUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    category: Optional[str] = Field(None, max_length=100)
    priority: Optional[str] = None
    location: Optional[str] = Field(None, max_length=255)

    @field_validator("priority")
    @classmethod
    def validate_priority(cls, v):
        return _check_priority(v)


class StatusUpdate(BaseModel):
    status: str
    notes: Optional[str] = None

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        if v not in STATUSES:
            raise ValueError(f"status must be one of: {', '.join(STATUSES)}")
        return v


class AssignRequest(BaseModel):
    assigned_to: Optional[int] = None
    supplier_id: Optional[int] = None


class CommentCreate(BaseModel):
    comment: str
    is_internal: bool = False

    @field_validator("comment")
    @classmethod
    def not_blank(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Comment cannot be empty")
        return v


class OccurrenceResponse(BaseModel):
    id: int
    condominium_id: int
    fraction_id: Optional[int] = None
    reported_by: Optional[int] = None
    assigned_to: Optional[int] = None
    supplier_id: Optional[int] = None
    title: str
    description: Optional[str] = None
    category: Optional[str] = None
    priority: str
    status: str
    location: Optional[str] = None
    resolution_notes: Optional[str] = None
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CommentResponse(BaseModel):
    id: int
    occurrence_id: int
    user_id: Optional[int] = None
    comment: str
    is_internal: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class HistoryResponse(BaseModel):
    id: int
    user_id: Optional[int] = None
    action: str
    field_name: Optional[str] = None
    old_value: Optional[str] = None
    new_value: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AttachmentResponse(BaseModel):
    id: int
    occurrence_id: int
    file_name: str
    file_size: int
    mime_type: Optional[str] = None
    uploaded_by: Optional[int] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class OccurrenceDetail(OccurrenceResponse):
    comments: list[CommentResponse] = []
    history: list[HistoryResponse] = []
    attachments: list[AttachmentResponse] = []


class CategoryCount(BaseModel):
    category: str
    count: int
