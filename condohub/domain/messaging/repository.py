"""Messaging repository - Data access layer for condominium messages"""

from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ...models import Message


class MessageRepository:
    """Repository for message data access"""

    @staticmethod
    def get_message(db: Session, condominium_id: int, message_id: int) -> Optional[Message]:
        return (
            db.query(Message)
            .filter(Message.id == message_id, Message.condominium_id == condominium_id)
            .first()
        )

    @staticmethod
    def list_inbox(db: Session, condominium_id: int, user_id: int, unread_only: bool = False) -> list[Message]:
        """Messages addressed to the user plus broadcasts from other members"""
        query = db.query(Message).filter(
            Message.condominium_id == condominium_id,
            or_(
                Message.to_user_id == user_id,
                (Message.to_user_id.is_(None)) & (Message.from_user_id != user_id),
            ),
        )
        if unread_only:
            query = query.filter(Message.is_read.is_(False))
        return query.order_by(Message.created_at.desc(), Message.id.desc()).all()

    @staticmethod
    def list_sent(db: Session, condominium_id: int, user_id: int) -> list[Message]:
        return (
            db.query(Message)
            .filter(Message.condominium_id == condominium_id, Message.from_user_id == user_id)
            .order_by(Message.created_at.desc(), Message.id.desc())
            .all()
        )

    @staticmethod
    def list_thread(db: Session, condominium_id: int, root_id: int) -> list[Message]:
        return (
            db.query(Message)
            .filter(
                Message.condominium_id == condominium_id,
                or_(Message.id == root_id, Message.thread_id == root_id),
            )
            .order_by(Message.created_at, Message.id)
            .all()
        )
