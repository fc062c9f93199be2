"""
Automatic row-level audit trail.

Every ORM flush touching an audited table writes one audit row per inserted,
updated or deleted record. The rows are written on the flushing connection so
they commit or roll back together with the change itself.
"""

import logging
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import Date, DateTime, event, insert, inspect
from sqlalchemy.orm import Session

from .database import Base
from .request_context import get_request_context

logger = logging.getLogger(__name__)

AUDITED_TABLES = {
    "users",
    "condominiums",
    "fractions",
    "fees",
    "fee_payments",
    "revenues",
    "budgets",
    "budget_items",
    "financial_transactions",
    "occurrences",
    "assemblies",
    "reservations",
    "documents",
    "folders",
    "contracts",
    "suppliers",
    "bank_accounts",
    "spaces",
    "messages",
    "assembly_attendees",
    "occurrence_comments",
    "occurrence_attachments",
    "message_attachments",
    "receipts",
    "subscriptions",
    "subscription_condominiums",
    "plans",
    "plan_pricing_tiers",
    "promotions",
    "invoices",
    "payments",
    "condominium_users",
    "fraction_accounts",
    "fraction_account_movements",
    "vote_options",
    "standalone_votes",
    "standalone_vote_responses",
}

SENSITIVE_FIELDS = {
    "users": {"password_hash", "two_factor_secret"},
    "invitations": {"token"},
}

REDACTED = "[REDACTED]"

# Substring of the audited table name -> specialized audit table
AUDIT_TABLE_ROUTES = (
    ("payments", "audit_payments"),
    ("financial", "audit_financial"),
    ("subscriptions", "audit_subscriptions"),
    ("documents", "audit_documents"),
)

# Fields quoted in the human readable description
DESCRIPTION_FIELDS = {
    "users": ("email", "name", "role"),
    "condominiums": ("name",),
    "fractions": ("identifier",),
    "fees": ("reference", "amount"),
    "fee_payments": ("amount", "payment_method"),
    "financial_transactions": ("transaction_type", "amount", "description"),
    "documents": ("title", "file_name"),
    "folders": ("name", "path"),
    "subscriptions": ("status",),
    "payments": ("amount", "status"),
    "invoices": ("invoice_number", "amount"),
}

COMMON_AUDIT_COLUMNS = {
    "id",
    "user_id",
    "action",
    "model",
    "model_id",
    "description",
    "ip_address",
    "user_agent",
    "old_data",
    "new_data",
    "table_name",
    "operation",
    "created_at",
}

_audit_suspended: ContextVar[bool] = ContextVar("audit_suspended", default=False)


def json_safe(value: Any) -> Any:
    """Convert column values to something the JSON columns accept"""
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, bytes):
        return None
    return value


def redact(table_name: str, data: Optional[dict]) -> Optional[dict]:
    if not data:
        return data
    sensitive = SENSITIVE_FIELDS.get(table_name, set())
    return {k: (REDACTED if k in sensitive and v is not None else v) for k, v in data.items()}


class AuditManager:
    """Audit capture, routing and manual entries"""

    @staticmethod
    def is_enabled() -> bool:
        return not _audit_suspended.get()

    @staticmethod
    @contextmanager
    def suspended():
        """Skip automatic capture inside the block (current context only)"""
        token = _audit_suspended.set(True)
        try:
            yield
        finally:
            _audit_suspended.reset(token)

    @staticmethod
    def is_audited(table_name: str) -> bool:
        return table_name in AUDITED_TABLES

    @staticmethod
    def resolve_audit_table(table_name: str) -> str:
        for marker, target in AUDIT_TABLE_ROUTES:
            if marker in table_name:
                return target
        dedicated = f"audit_{table_name}"
        if dedicated in Base.metadata.tables:
            return dedicated
        return "audit_logs"

    @staticmethod
    def build_description(model: str, table_name: str, record_id, verb: str, data: Optional[dict]) -> str:
        description = f"{model} #{record_id} {verb}"
        if data:
            parts = []
            for field in DESCRIPTION_FIELDS.get(table_name, ()):
                value = data.get(field)
                if value not in (None, "") and value != REDACTED:
                    parts.append(f"{field}: {value}")
            if parts:
                description += " (" + ", ".join(parts[:3]) + ")"
        return description

    @staticmethod
    def build_row(
        table_name: str,
        action: str,
        record_id,
        old_data: Optional[dict],
        new_data: Optional[dict],
        model: Optional[str] = None,
        description: Optional[str] = None,
        user_id: Optional[int] = None,
    ) -> tuple[str, dict]:
        """Compose an audit row and pick its destination table"""
        context = get_request_context()
        old_data = redact(table_name, old_data)
        new_data = redact(table_name, new_data)
        operation = {"create": "INSERT", "update": "UPDATE", "delete": "DELETE"}.get(action)
        verb = {"create": "created", "update": "updated", "delete": "deleted"}.get(action, action)
        model = model or table_name

        target = AuditManager.resolve_audit_table(table_name)
        row = {
            "user_id": user_id if user_id is not None else context["user_id"],
            "action": action,
            "model": model,
            "model_id": record_id,
            "description": description
            or AuditManager.build_description(model, table_name, record_id, verb, new_data or old_data),
            "ip_address": context["ip_address"],
            "user_agent": context["user_agent"],
            "old_data": old_data,
            "new_data": new_data,
            "table_name": table_name,
            "operation": operation,
        }

        # Specialized audit tables mirror some columns of the audited row
        audit_table = Base.metadata.tables[target]
        source = {**(old_data or {}), **(new_data or {})}
        for column in audit_table.columns:
            name = column.name
            if name in COMMON_AUDIT_COLUMNS or name in row:
                continue
            if name == "entity_type":
                row[name] = table_name
            elif name == "entity_id":
                row[name] = record_id
            elif name == "document_id" and table_name == "documents":
                row[name] = record_id
            elif name == "payment_id" and table_name in ("payments", "fee_payments"):
                row[name] = record_id
            elif name == "subscription_id" and table_name == "subscriptions":
                row[name] = record_id
            elif name in source:
                value = source[name]
                if isinstance(column.type, (DateTime, Date)) and isinstance(value, str):
                    try:
                        value = datetime.fromisoformat(value)
                    except ValueError:
                        value = None
                row[name] = value
        return target, row

    @staticmethod
    def log_audit(
        db: Session,
        table_name: str,
        action: str,
        record_id=None,
        old_data: Optional[dict] = None,
        new_data: Optional[dict] = None,
        description: Optional[str] = None,
        user_id: Optional[int] = None,
    ) -> None:
        """Write a manual audit entry (bulk operations, restores...)"""
        target, row = AuditManager.build_row(
            table_name,
            action,
            record_id,
            old_data,
            new_data,
            description=description,
            user_id=user_id,
        )
        db.execute(insert(Base.metadata.tables[target]), [row])

    @staticmethod
    def capture(session: Session, _flush_context) -> None:
        """after_flush listener: record inserts, updates and deletes of audited tables"""
        if not AuditManager.is_enabled():
            return

        entries: list[tuple[str, dict]] = []

        for obj in session.new:
            table_name = getattr(obj, "__tablename__", None)
            if not table_name or not AuditManager.is_audited(table_name):
                continue
            data = _snapshot(obj)
            entries.append(
                AuditManager.build_row(table_name, "create", data.get("id"), None, data, type(obj).__name__)
            )

        for obj in session.dirty:
            table_name = getattr(obj, "__tablename__", None)
            if not table_name or not AuditManager.is_audited(table_name):
                continue
            if not session.is_modified(obj, include_collections=False):
                continue
            old_values, new_values = _changes(obj)
            if not new_values:
                continue
            entries.append(
                AuditManager.build_row(
                    table_name,
                    "update",
                    _record_id(obj),
                    old_values,
                    new_values,
                    type(obj).__name__,
                )
            )

        for obj in session.deleted:
            table_name = getattr(obj, "__tablename__", None)
            if not table_name or not AuditManager.is_audited(table_name):
                continue
            data = _snapshot(obj)
            entries.append(
                AuditManager.build_row(table_name, "delete", _record_id(obj), data, None, type(obj).__name__)
            )

        if not entries:
            return

        grouped: dict[str, list[dict]] = {}
        for target, row in entries:
            grouped.setdefault(target, []).append(row)

        connection = session.connection()
        for target, rows in grouped.items():
            # Rows differ in specialized columns, insert one by one
            for row in rows:
                connection.execute(insert(Base.metadata.tables[target]), [row])
        logger.debug(f"📝 Audited {len(entries)} change(s)")


def _snapshot(obj) -> dict:
    state = inspect(obj)
    data = {}
    for attr in state.mapper.column_attrs:
        if attr.key in state.unloaded:
            continue
        data[attr.key] = json_safe(getattr(obj, attr.key))
    return data


def _record_id(obj):
    state = inspect(obj)
    return state.identity[0] if state.identity else None


def _changes(obj) -> tuple[dict, dict]:
    state = inspect(obj)
    old_values: dict = {}
    new_values: dict = {}
    for attr in state.mapper.column_attrs:
        history = state.attrs[attr.key].history
        if not history.has_changes():
            continue
        old = history.deleted[0] if history.deleted else None
        new = history.added[0] if history.added else None
        if old == new:
            continue
        old_values[attr.key] = json_safe(old)
        new_values[attr.key] = json_safe(new)
    return old_values, new_values


event.listen(Session, "after_flush", AuditManager.capture)
