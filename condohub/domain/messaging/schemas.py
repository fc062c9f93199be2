"""Messaging schemas - Pydantic models for messages and notifications"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class MessageCreate(BaseModel):
    to_user_id: Optional[int] = None  # None broadcasts to the whole condominium
    subject: str = Field(..., min_length=1, max_length=255)
    message: str = Field(..., min_length=1)
    thread_id: Optional[int] = None


class MessageResponse(BaseModel):
    id: int
    condominium_id: int
    from_user_id: int
    to_user_id: Optional[int] = None
    thread_id: Optional[int] = None
    subject: str
    message: str
    is_read: bool
    read_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class NotificationResponse(BaseModel):
    id: int
    condominium_id: Optional[int] = None
    type: str
    title: str
    message: Optional[str] = None
    link: Optional[str] = None
    is_read: bool
    read_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class UnreadCountResponse(BaseModel):
    unread: int
