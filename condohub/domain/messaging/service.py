"""Messaging service - Business logic for condominium messages"""

import logging
from datetime import datetime

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import Message, User
from ...services.notification_service import NotificationService
from ...shared.access import can_access, require_access
from .repository import MessageRepository
from .schemas import MessageCreate

logger = logging.getLogger(__name__)


class MessagingService:
    """Service layer for messaging business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = MessageRepository()
        self.notifications = NotificationService(db)

    def _get_message(self, condominium_id: int, message_id: int, user: User) -> Message:
        message = self.repo.get_message(self.db, condominium_id, message_id)
        visible = message is not None and (
            message.to_user_id is None or user.id in (message.from_user_id, message.to_user_id)
        )
        if not visible:
            raise HTTPException(status_code=404, detail="Message not found")
        return message

    def send_message(self, condominium_id: int, data: MessageCreate, user: User) -> Message:
        condominium = require_access(self.db, user, condominium_id)

        if data.to_user_id is not None:
            if data.to_user_id == user.id:
                raise HTTPException(status_code=400, detail="You cannot send a message to yourself")
            recipient = self.db.get(User, data.to_user_id)
            if not recipient or not can_access(self.db, recipient, condominium):
                raise HTTPException(status_code=404, detail="Recipient not found in this condominium")

        thread_id = None
        if data.thread_id is not None:
            parent = self._get_message(condominium_id, data.thread_id, user)
            thread_id = parent.thread_id or parent.id

        message = Message(
            condominium_id=condominium_id,
            from_user_id=user.id,
            to_user_id=data.to_user_id,
            thread_id=thread_id,
            subject=data.subject,
            message=data.message,
        )
        self.db.add(message)
        self.db.flush()

        if data.to_user_id is not None:
            recipients = [data.to_user_id]
        else:
            recipients = self.notifications.member_user_ids(condominium_id)
        notified = self.notifications.notify_new_message(message, recipients)
        self.db.commit()
        self.db.refresh(message)
        logger.info(f"✉️ Message {message.id} sent in condominium {condominium_id} ({notified} notified)")
        return message

    def inbox(self, condominium_id: int, user: User, unread_only: bool = False) -> list[Message]:
        require_access(self.db, user, condominium_id)
        return self.repo.list_inbox(self.db, condominium_id, user.id, unread_only)

    def sent(self, condominium_id: int, user: User) -> list[Message]:
        require_access(self.db, user, condominium_id)
        return self.repo.list_sent(self.db, condominium_id, user.id)

    def get_message(self, condominium_id: int, message_id: int, user: User) -> Message:
        require_access(self.db, user, condominium_id)
        return self._get_message(condominium_id, message_id, user)

    def get_thread(self, condominium_id: int, message_id: int, user: User) -> list[Message]:
        message = self.get_message(condominium_id, message_id, user)
        root_id = message.thread_id or message.id
        return [
            m
            for m in self.repo.list_thread(self.db, condominium_id, root_id)
            if m.to_user_id is None or user.id in (m.from_user_id, m.to_user_id)
        ]

    def mark_read(self, condominium_id: int, message_id: int, user: User) -> Message:
        message = self.get_message(condominium_id, message_id, user)
        if message.from_user_id == user.id:
            raise HTTPException(status_code=400, detail="Only recipients can mark a message as read")
        if not message.is_read:
            message.is_read = True
            message.read_at = datetime.utcnow()
            self.db.commit()
            self.db.refresh(message)
        return message
