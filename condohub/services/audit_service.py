"""Explicit audit events written next to the automatic row capture"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import insert
from sqlalchemy.orm import Session

from ..audit_manager import json_safe
from ..models_audit import AuditDocument, AuditFinancial, AuditLog, AuditPayment, AuditSubscription
from ..request_context import get_request_context

logger = logging.getLogger(__name__)


def _safe_dict(data: Optional[dict]) -> Optional[dict]:
    if data is None:
        return None
    return {k: json_safe(v) for k, v in data.items()}


class AuditService:
    """
    Domain level audit events.

    Each method writes a single row into its specialized audit table, stamped
    with the actor, IP address and user agent of the current request. Audit
    failures are logged and never interrupt the business operation.
    """

    def __init__(self, db: Session):
        self.db = db

    def _write(self, model, values: dict) -> None:
        context = get_request_context()
        row = {
            "user_id": context["user_id"],
            "ip_address": context["ip_address"],
            "user_agent": context["user_agent"],
            **{k: v for k, v in values.items() if v is not None},
        }
        try:
            self.db.execute(insert(model.__table__), [row])
        except Exception as e:
            logger.error(f"❌ Failed to write audit entry to {model.__tablename__}: {e}")

    def log_payment(
        self,
        action: str,
        payment_id: Optional[int] = None,
        subscription_id: Optional[int] = None,
        invoice_id: Optional[int] = None,
        payment_method: Optional[str] = None,
        amount: Optional[Decimal] = None,
        status: Optional[str] = None,
        external_payment_id: Optional[str] = None,
        old_status: Optional[str] = None,
        new_status: Optional[str] = None,
        description: Optional[str] = None,
        metadata: Optional[dict] = None,
        user_id: Optional[int] = None,
    ) -> None:
        self._write(
            AuditPayment,
            {
                "action": action,
                "model": "payment",
                "model_id": payment_id,
                "table_name": "payments",
                "payment_id": payment_id,
                "subscription_id": subscription_id,
                "invoice_id": invoice_id,
                "payment_method": payment_method,
                "amount": amount,
                "status": status,
                "external_payment_id": external_payment_id,
                "old_status": old_status,
                "new_status": new_status,
                "description": description,
                "extra_data": _safe_dict(metadata),
                "user_id": user_id,
            },
        )

    def log_financial(
        self,
        condominium_id: int,
        entity_type: str,
        entity_id: int,
        action: str,
        amount: Optional[Decimal] = None,
        old_amount: Optional[Decimal] = None,
        old_status: Optional[str] = None,
        new_status: Optional[str] = None,
        description: Optional[str] = None,
        changes: Optional[dict] = None,
    ) -> None:
        self._write(
            AuditFinancial,
            {
                "action": action,
                "model": entity_type,
                "model_id": entity_id,
                "table_name": entity_type,
                "condominium_id": condominium_id,
                "entity_type": entity_type,
                "entity_id": entity_id,
                "amount": amount,
                "old_amount": old_amount,
                "old_status": old_status,
                "new_status": new_status,
                "description": description,
                "changes": _safe_dict(changes),
            },
        )

    def log_subscription(
        self,
        subscription_id: int,
        action: str,
        user_id: Optional[int] = None,
        old_plan_id: Optional[int] = None,
        new_plan_id: Optional[int] = None,
        old_status: Optional[str] = None,
        new_status: Optional[str] = None,
        old_period_start: Optional[datetime] = None,
        new_period_start: Optional[datetime] = None,
        old_period_end: Optional[datetime] = None,
        new_period_end: Optional[datetime] = None,
        description: Optional[str] = None,
        metadata: Optional[dict] = None,
    ) -> None:
        self._write(
            AuditSubscription,
            {
                "action": action,
                "model": "subscription",
                "model_id": subscription_id,
                "table_name": "subscriptions",
                "subscription_id": subscription_id,
                "old_plan_id": old_plan_id,
                "new_plan_id": new_plan_id,
                "old_status": old_status,
                "new_status": new_status,
                "old_period_start": old_period_start,
                "new_period_start": new_period_start,
                "old_period_end": old_period_end,
                "new_period_end": new_period_end,
                "performed_by": get_request_context()["user_id"] or user_id,
                "description": description,
                "extra_data": _safe_dict(metadata),
                "user_id": user_id,
            },
        )

    def log_document(
        self,
        condominium_id: int,
        action: str,
        document_id: Optional[int] = None,
        document_type: Optional[str] = None,
        file_path: Optional[str] = None,
        file_name: Optional[str] = None,
        file_size: Optional[int] = None,
        folder: Optional[str] = None,
        description: Optional[str] = None,
        metadata: Optional[dict] = None,
    ) -> None:
        self._write(
            AuditDocument,
            {
                "action": action,
                "model": "document",
                "model_id": document_id,
                "table_name": "documents",
                "condominium_id": condominium_id,
                "document_id": document_id,
                "document_type": document_type,
                "file_path": file_path,
                "file_name": file_name,
                "file_size": file_size,
                "folder": folder,
                "description": description,
                "extra_data": _safe_dict(metadata),
            },
        )

    def log(
        self,
        action: str,
        model: Optional[str] = None,
        model_id: Optional[int] = None,
        description: Optional[str] = None,
        old_data: Optional[dict[str, Any]] = None,
        new_data: Optional[dict[str, Any]] = None,
    ) -> None:
        """Generic entry in audit_logs"""
        self._write(
            AuditLog,
            {
                "action": action,
                "model": model,
                "model_id": model_id,
                "table_name": model,
                "description": description,
                "old_data": _safe_dict(old_data),
                "new_data": _safe_dict(new_data),
            },
        )
