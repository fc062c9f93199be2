"""Messaging router - FastAPI endpoints for messages and notifications"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from ...services.notification_service import NotificationService
from .schemas import MessageCreate, MessageResponse, NotificationResponse, UnreadCountResponse
from .service import MessagingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/condominiums/{condominium_id}/messages", tags=["Messages"])
notifications_router = APIRouter(prefix="/notifications", tags=["Notifications"])


def get_messaging_service(db: Session = Depends(get_db)) -> MessagingService:
    """Dependency injection for MessagingService"""
    return MessagingService(db)


# ============================================================================
# MESSAGES
# ============================================================================


@router.post("", response_model=MessageResponse, status_code=201)
async def send_message(
    condominium_id: int,
    data: MessageCreate,
    current_user: User = Depends(get_current_user),
    service: MessagingService = Depends(get_messaging_service),
):
    """Send a message; leave to_user_id empty to broadcast to the condominium"""
    return service.send_message(condominium_id, data, current_user)


@router.get("/inbox", response_model=list[MessageResponse])
async def inbox(
    condominium_id: int,
    unread_only: bool = Query(False),
    current_user: User = Depends(get_current_user),
    service: MessagingService = Depends(get_messaging_service),
):
    return service.inbox(condominium_id, current_user, unread_only)


@router.get("/sent", response_model=list[MessageResponse])
async def sent(
    condominium_id: int,
    current_user: User = Depends(get_current_user),
    service: MessagingService = Depends(get_messaging_service),
):
    return service.sent(condominium_id, current_user)


@router.get("/{message_id}", response_model=MessageResponse)
async def get_message(
    condominium_id: int,
    message_id: int,
    current_user: User = Depends(get_current_user),
    service: MessagingService = Depends(get_messaging_service),
):
    return service.get_message(condominium_id, message_id, current_user)


@router.get("/{message_id}/thread", response_model=list[MessageResponse])
async def get_thread(
    condominium_id: int,
    message_id: int,
    current_user: User = Depends(get_current_user),
    service: MessagingService = Depends(get_messaging_service),
):
    return service.get_thread(condominium_id, message_id, current_user)


@router.post("/{message_id}/read", response_model=MessageResponse)
async def mark_read(
    condominium_id: int,
    message_id: int,
    current_user: User = Depends(get_current_user),
    service: MessagingService = Depends(get_messaging_service),
):
    return service.mark_read(condominium_id, message_id, current_user)


# ============================================================================
# NOTIFICATIONS
# ============================================================================


@notifications_router.get("", response_model=list[NotificationResponse])
async def list_notifications(
    unread_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=200),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return NotificationService(db).list_for_user(current_user.id, unread_only, limit)


@notifications_router.get("/unread-count", response_model=UnreadCountResponse)
async def unread_count(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return {"unread": NotificationService(db).unread_count(current_user.id)}


@notifications_router.post("/read-all")
async def mark_all_read(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    updated = NotificationService(db).mark_all_as_read(current_user.id)
    db.commit()
    return {"updated": updated}


@notifications_router.post("/{notification_id}/read", response_model=NotificationResponse)
async def mark_notification_read(
    notification_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    notification = NotificationService(db).mark_as_read(notification_id, current_user.id)
    if not notification:
        raise HTTPException(status_code=404, detail="Notification not found")
    db.commit()
    db.refresh(notification)
    return notification
