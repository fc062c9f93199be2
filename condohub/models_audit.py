from sqlalchemy import JSON, Column, DateTime, Integer, Numeric, String, Text
from sqlalchemy.sql import func

from .database import Base


class AuditColumns:
    """Columns shared by every audit table"""

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=True, index=True)  # Actor; no FK so audit rows survive user deletion
    action = Column(String(100), nullable=False, index=True)
    model = Column(String(100), nullable=True)
    model_id = Column(Integer, nullable=True)
    description = Column(Text, nullable=True)
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(Text, nullable=True)
    old_data = Column(JSON, nullable=True)
    new_data = Column(JSON, nullable=True)
    table_name = Column(String(100), nullable=True, index=True)
    operation = Column(String(10), nullable=True)  # INSERT, UPDATE, DELETE
    created_at = Column(DateTime, server_default=func.now(), index=True)


class AuditLog(AuditColumns, Base):
    __tablename__ = "audit_logs"


class AuditPayment(AuditColumns, Base):
    __tablename__ = "audit_payments"

    payment_id = Column(Integer, nullable=True, index=True)
    subscription_id = Column(Integer, nullable=True, index=True)
    invoice_id = Column(Integer, nullable=True)
    payment_method = Column(String(50), nullable=True)
    amount = Column(Numeric(12, 2), nullable=True)
    status = Column(String(50), nullable=True)
    external_payment_id = Column(String(255), nullable=True)
    old_status = Column(String(50), nullable=True)
    new_status = Column(String(50), nullable=True)
    extra_data = Column(JSON, nullable=True)


class AuditFinancial(AuditColumns, Base):
    __tablename__ = "audit_financial"

    condominium_id = Column(Integer, nullable=True, index=True)
    entity_type = Column(String(50), nullable=True)
    entity_id = Column(Integer, nullable=True)
    amount = Column(Numeric(12, 2), nullable=True)
    old_amount = Column(Numeric(12, 2), nullable=True)
    old_status = Column(String(50), nullable=True)
    new_status = Column(String(50), nullable=True)
    changes = Column(JSON, nullable=True)


class AuditSubscription(AuditColumns, Base):
    __tablename__ = "audit_subscriptions"

    subscription_id = Column(Integer, nullable=True, index=True)
    old_plan_id = Column(Integer, nullable=True)
    new_plan_id = Column(Integer, nullable=True)
    old_status = Column(String(50), nullable=True)
    new_status = Column(String(50), nullable=True)
    old_period_start = Column(DateTime, nullable=True)
    new_period_start = Column(DateTime, nullable=True)
    old_period_end = Column(DateTime, nullable=True)
    new_period_end = Column(DateTime, nullable=True)
    performed_by = Column(Integer, nullable=True)
    extra_data = Column(JSON, nullable=True)


class AuditDocument(AuditColumns, Base):
    __tablename__ = "audit_documents"

    condominium_id = Column(Integer, nullable=True, index=True)
    document_id = Column(Integer, nullable=True)
    document_type = Column(String(50), nullable=True)
    file_path = Column(String(500), nullable=True)
    file_name = Column(String(255), nullable=True)
    file_size = Column(Integer, nullable=True)
    folder = Column(String(1000), nullable=True)
    extra_data = Column(JSON, nullable=True)


# Tables with a dedicated audit table of their own
class AuditUser(AuditColumns, Base):
    __tablename__ = "audit_users"


class AuditFee(AuditColumns, Base):
    __tablename__ = "audit_fees"
