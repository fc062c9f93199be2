from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(50), default="admin", nullable=False)  # super_admin, admin, condomino
    phone = Column(String(50), nullable=True)
    nif = Column(String(20), nullable=True)
    two_factor_secret = Column(String(100), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    is_demo = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    condominiums = relationship("Condominium", back_populates="owner")


class Condominium(Base):
    __tablename__ = "condominiums"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)  # Owner / main admin
    subscription_id = Column(Integer, ForeignKey("subscriptions.id"), nullable=True)
    name = Column(String(255), nullable=False)
    address = Column(String(500), nullable=True)
    postal_code = Column(String(20), nullable=True)
    city = Column(String(100), nullable=True)
    country = Column(String(100), default="Portugal", nullable=True)
    nif = Column(String(20), nullable=True)
    iban = Column(String(50), nullable=True)
    phone = Column(String(50), nullable=True)
    email = Column(String(255), nullable=True)
    type = Column(String(50), default="habitacional", nullable=True)  # habitacional, misto, comercial
    total_fractions = Column(Integer, default=0, nullable=False)
    document_template = Column(String(50), nullable=True)
    logo_path = Column(String(500), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    is_demo = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    owner = relationship("User", back_populates="condominiums")
    fractions = relationship("Fraction", back_populates="condominium", order_by="Fraction.identifier")


class Fraction(Base):
    __tablename__ = "fractions"
    __table_args__ = (
        UniqueConstraint("condominium_id", "identifier", name="uq_fraction_identifier"),
        {"sqlite_autoincrement": True},
    )

    id = Column(Integer, primary_key=True, index=True)
    condominium_id = Column(Integer, ForeignKey("condominiums.id"), nullable=False, index=True)
    identifier = Column(String(50), nullable=False)  # e.g. "A", "1Esq", "R/C Dto"
    permillage = Column(Numeric(10, 4), default=0, nullable=False)
    floor = Column(String(20), nullable=True)
    typology = Column(String(20), nullable=True)  # T0, T1, loja...
    area = Column(Numeric(10, 2), nullable=True)
    notes = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)  # Active fractions consume a license
    archived_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    condominium = relationship("Condominium", back_populates="fractions")


class CondominiumUser(Base):
    __tablename__ = "condominium_users"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = Column(Integer, primary_key=True, index=True)
    condominium_id = Column(Integer, ForeignKey("condominiums.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    fraction_id = Column(Integer, ForeignKey("fractions.id"), nullable=True)
    role = Column(String(50), default="condomino", nullable=False)  # admin, condomino
    is_primary = Column(Boolean, default=False, nullable=False)  # Primary owner of the fraction
    can_vote = Column(Boolean, default=True, nullable=False)
    contact_phone = Column(String(50), nullable=True)
    contact_email = Column(String(255), nullable=True)
    started_at = Column(Date, nullable=True)
    ended_at = Column(Date, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    user = relationship("User")
    fraction = relationship("Fraction")


class Invitation(Base):
    __tablename__ = "invitations"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = Column(Integer, primary_key=True, index=True)
    condominium_id = Column(Integer, ForeignKey("condominiums.id"), nullable=False, index=True)
    fraction_id = Column(Integer, ForeignKey("fractions.id"), nullable=True)
    email = Column(String(255), nullable=True)
    name = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    role = Column(String(50), default="condomino", nullable=False)
    token = Column(String(500), nullable=True, index=True)
    expires_at = Column(DateTime, nullable=True)
    accepted_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())


class AdminTransferPending(Base):
    """Administration handover waiting for the receiving user to accept"""

    __tablename__ = "admin_transfer_pending"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = Column(Integer, primary_key=True, index=True)
    condominium_id = Column(Integer, ForeignKey("condominiums.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)  # Receiving admin
    from_user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    message = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now())


class Notification(Base):
    __tablename__ = "notifications"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    condominium_id = Column(Integer, ForeignKey("condominiums.id"), nullable=True, index=True)
    type = Column(String(50), nullable=False)  # message, assembly, fee, occurrence, system
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=True)
    link = Column(String(500), nullable=True)
    is_read = Column(Boolean, default=False, nullable=False)
    read_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())


class Message(Base):
    __tablename__ = "messages"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = Column(Integer, primary_key=True, index=True)
    condominium_id = Column(Integer, ForeignKey("condominiums.id"), nullable=False, index=True)
    from_user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    to_user_id = Column(Integer, ForeignKey("users.id"), nullable=True)  # NULL = broadcast to condominium
    thread_id = Column(Integer, ForeignKey("messages.id"), nullable=True)
    subject = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    is_read = Column(Boolean, default=False, nullable=False)
    read_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())


class MessageAttachment(Base):
    __tablename__ = "message_attachments"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = Column(Integer, primary_key=True, index=True)
    message_id = Column(Integer, ForeignKey("messages.id"), nullable=False, index=True)
    condominium_id = Column(Integer, ForeignKey("condominiums.id"), nullable=False, index=True)
    file_name = Column(String(255), nullable=False)
    file_path = Column(String(500), nullable=False)
    file_size = Column(Integer, default=0, nullable=False)
    mime_type = Column(String(100), nullable=True)
    uploaded_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, server_default=func.now())


class Space(Base):
    __tablename__ = "spaces"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = Column(Integer, primary_key=True, index=True)
    condominium_id = Column(Integer, ForeignKey("condominiums.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    type = Column(String(50), nullable=True)  # party_room, gym, parking...
    capacity = Column(Integer, nullable=True)
    price_per_hour = Column(Numeric(12, 2), default=0, nullable=False)
    price_per_day = Column(Numeric(12, 2), default=0, nullable=False)
    deposit_required = Column(Numeric(12, 2), default=0, nullable=False)
    requires_approval = Column(Boolean, default=True, nullable=False)
    rules = Column(Text, nullable=True)
    available_hours = Column(JSON, nullable=True)  # {"monday": {"start": "09:00", "end": "22:00"}}
    is_active = Column(Boolean, default=True, nullable=False)
    is_blocked = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class Reservation(Base):
    __tablename__ = "reservations"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = Column(Integer, primary_key=True, index=True)
    condominium_id = Column(Integer, ForeignKey("condominiums.id"), nullable=False, index=True)
    space_id = Column(Integer, ForeignKey("spaces.id"), nullable=False)
    fraction_id = Column(Integer, ForeignKey("fractions.id"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=False)
    status = Column(String(50), default="pending", nullable=False)  # pending, approved, rejected, canceled
    price = Column(Numeric(12, 2), default=0, nullable=False)
    deposit = Column(Numeric(12, 2), default=0, nullable=False)
    notes = Column(Text, nullable=True)
    approved_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    approved_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class Occurrence(Base):
    __tablename__ = "occurrences"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = Column(Integer, primary_key=True, index=True)
    condominium_id = Column(Integer, ForeignKey("condominiums.id"), nullable=False, index=True)
    fraction_id = Column(Integer, ForeignKey("fractions.id"), nullable=True)
    reported_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    assigned_to = Column(Integer, ForeignKey("users.id"), nullable=True)
    supplier_id = Column(Integer, ForeignKey("suppliers.id"), nullable=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String(100), nullable=True)
    priority = Column(String(20), default="medium", nullable=False)  # low, medium, high, urgent
    status = Column(String(50), default="open", nullable=False)  # open, in_analysis, assigned, completed, canceled
    location = Column(String(255), nullable=True)
    resolution_notes = Column(Text, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class OccurrenceComment(Base):
    __tablename__ = "occurrence_comments"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = Column(Integer, primary_key=True, index=True)
    occurrence_id = Column(Integer, ForeignKey("occurrences.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    comment = Column(Text, nullable=False)
    is_internal = Column(Boolean, default=False, nullable=False)  # managers only
    created_at = Column(DateTime, server_default=func.now())


class OccurrenceHistory(Base):
    __tablename__ = "occurrence_history"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = Column(Integer, primary_key=True, index=True)
    occurrence_id = Column(Integer, ForeignKey("occurrences.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    action = Column(String(50), nullable=False)  # created, status_changed, assigned, field_updated, comment_added
    field_name = Column(String(100), nullable=True)
    old_value = Column(Text, nullable=True)
    new_value = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now())


class OccurrenceAttachment(Base):
    __tablename__ = "occurrence_attachments"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = Column(Integer, primary_key=True, index=True)
    occurrence_id = Column(Integer, ForeignKey("occurrences.id"), nullable=False, index=True)
    condominium_id = Column(Integer, ForeignKey("condominiums.id"), nullable=False, index=True)
    file_name = Column(String(255), nullable=False)
    file_path = Column(String(500), nullable=False)
    file_size = Column(Integer, default=0, nullable=False)
    mime_type = Column(String(100), nullable=True)
    uploaded_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, server_default=func.now())


class Folder(Base):
    __tablename__ = "folders"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = Column(Integer, primary_key=True, index=True)
    condominium_id = Column(Integer, ForeignKey("condominiums.id"), nullable=False, index=True)
    parent_folder_id = Column(Integer, ForeignKey("folders.id"), nullable=True)
    name = Column(String(255), nullable=False)
    path = Column(String(1000), nullable=False)  # Materialized path, e.g. "Atas/2024"
    created_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime, server_default=func.now())


class Document(Base):
    __tablename__ = "documents"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = Column(Integer, primary_key=True, index=True)
    condominium_id = Column(Integer, ForeignKey("condominiums.id"), nullable=False, index=True)
    assembly_id = Column(Integer, ForeignKey("assemblies.id"), nullable=True)
    fraction_id = Column(Integer, ForeignKey("fractions.id"), nullable=True)
    parent_document_id = Column(Integer, ForeignKey("documents.id"), nullable=True)  # Previous version
    folder = Column(String(1000), nullable=True)  # Folder path, matches Folder.path
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    file_path = Column(String(500), nullable=False)  # Relative to STORAGE_PATH
    file_name = Column(String(255), nullable=False)
    file_size = Column(Integer, default=0, nullable=False)
    mime_type = Column(String(100), nullable=True)
    document_type = Column(String(50), default="general", nullable=False)  # general, minutes, contract, regulation
    visibility = Column(String(20), default="condominos", nullable=False)  # condominos, admin, fraction
    version = Column(Integer, default=1, nullable=False)
    status = Column(String(30), nullable=True)  # Minutes review: draft, in_review, approved
    uploaded_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class AssemblyAccountApproval(Base):
    """Yearly accounts approved in an assembly"""

    __tablename__ = "assembly_account_approvals"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = Column(Integer, primary_key=True, index=True)
    condominium_id = Column(Integer, ForeignKey("condominiums.id"), nullable=False, index=True)
    assembly_id = Column(Integer, ForeignKey("assemblies.id"), nullable=True)
    fiscal_year = Column(Integer, nullable=False)
    approved_at = Column(DateTime, nullable=True)
    notes = Column(Text, nullable=True)
    extra_data = Column(JSON, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
