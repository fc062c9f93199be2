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
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


class Plan(Base):
    __tablename__ = "plans"

    id = Column(Integer, primary_key=True, index=True)
    slug = Column(String(50), unique=True, nullable=False)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    plan_type = Column(String(20), default="condominio", nullable=False)  # condominio, professional, enterprise
    price_monthly = Column(Numeric(10, 2), default=0, nullable=False)  # Base price when no tiers apply
    annual_discount_percentage = Column(Numeric(5, 2), default=0, nullable=False)
    license_min = Column(Integer, default=0, nullable=False)  # Licenses charged even when fewer are used
    license_limit = Column(Integer, nullable=True)  # NULL = unlimited
    allow_overage = Column(Boolean, default=False, nullable=False)
    pricing_mode = Column(String(20), default="flat", nullable=False)  # flat, progressive
    charge_minimum = Column(Boolean, default=True, nullable=False)
    trial_days = Column(Integer, default=14, nullable=False)
    sort_order = Column(Integer, default=0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    tiers = relationship("PlanPricingTier", back_populates="plan", order_by="PlanPricingTier.min_licenses")


class PlanPricingTier(Base):
    __tablename__ = "plan_pricing_tiers"

    id = Column(Integer, primary_key=True, index=True)
    plan_id = Column(Integer, ForeignKey("plans.id"), nullable=False, index=True)
    min_licenses = Column(Integer, nullable=False)
    max_licenses = Column(Integer, nullable=True)  # NULL = open ended
    price_per_license = Column(Numeric(10, 4), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    plan = relationship("Plan", back_populates="tiers")


class Promotion(Base):
    __tablename__ = "promotions"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(50), unique=True, nullable=False)
    name = Column(String(255), nullable=False)
    plan_id = Column(Integer, ForeignKey("plans.id"), nullable=True)  # NULL = any plan
    discount_type = Column(String(20), nullable=False)  # percentage, fixed
    discount_value = Column(Numeric(10, 2), nullable=False)
    duration_months = Column(Integer, nullable=True)
    valid_from = Column(DateTime, nullable=True)
    valid_until = Column(DateTime, nullable=True)
    max_uses = Column(Integer, nullable=True)
    used_count = Column(Integer, default=0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())


class Subscription(Base):
    __tablename__ = "subscriptions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    plan_id = Column(Integer, ForeignKey("plans.id"), nullable=False)
    status = Column(String(20), default="trial", nullable=False)  # trial, pending, active, canceled, expired, suspended
    billing_cycle = Column(String(20), default="monthly", nullable=False)  # monthly, yearly
    trial_ends_at = Column(DateTime, nullable=True)
    current_period_start = Column(DateTime, nullable=True)
    current_period_end = Column(DateTime, nullable=True)
    used_licenses = Column(Integer, default=0, nullable=False)
    license_limit = Column(Integer, nullable=True)  # Overrides the plan limit when set
    extra_licenses = Column(Integer, default=0, nullable=False)
    allow_overage = Column(Boolean, nullable=True)  # Overrides the plan flag when set
    charge_minimum = Column(Boolean, default=True, nullable=False)
    price_monthly = Column(Numeric(10, 2), default=0, nullable=False)  # Last calculated monthly price
    promotion_id = Column(Integer, ForeignKey("promotions.id"), nullable=True)
    promotion_ends_at = Column(DateTime, nullable=True)
    cancel_at_period_end = Column(Boolean, default=False, nullable=False)
    canceled_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    plan = relationship("Plan")
    promotion = relationship("Promotion")


class SubscriptionCondominium(Base):
    __tablename__ = "subscription_condominiums"

    id = Column(Integer, primary_key=True, index=True)
    subscription_id = Column(Integer, ForeignKey("subscriptions.id"), nullable=False, index=True)
    condominium_id = Column(Integer, ForeignKey("condominiums.id"), nullable=False, index=True)
    status = Column(String(20), default="active", nullable=False)  # active, detached
    attached_at = Column(DateTime, server_default=func.now())
    detached_at = Column(DateTime, nullable=True)


class Invoice(Base):
    __tablename__ = "invoices"

    id = Column(Integer, primary_key=True, index=True)
    subscription_id = Column(Integer, ForeignKey("subscriptions.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    invoice_number = Column(String(50), unique=True, nullable=False)
    amount = Column(Numeric(10, 2), nullable=False)
    status = Column(String(20), default="pending", nullable=False)  # pending, paid, canceled
    due_date = Column(Date, nullable=False)
    period_start = Column(DateTime, nullable=True)
    period_end = Column(DateTime, nullable=True)
    paid_at = Column(DateTime, nullable=True)
    extra_data = Column(JSON, nullable=True)  # Pricing breakdown
    created_at = Column(DateTime, server_default=func.now())


class Payment(Base):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    subscription_id = Column(Integer, ForeignKey("subscriptions.id"), nullable=False, index=True)
    invoice_id = Column(Integer, ForeignKey("invoices.id"), nullable=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    amount = Column(Numeric(10, 2), nullable=False)
    payment_method = Column(String(20), nullable=False)  # multibanco, mbway, card, transfer, direct_debit
    status = Column(String(20), default="pending", nullable=False)  # pending, completed, failed, canceled
    external_payment_id = Column(String(255), nullable=True, index=True)  # Gateway request id
    entity = Column(String(10), nullable=True)  # Multibanco entity
    reference = Column(String(50), nullable=True)  # Multibanco reference
    gateway_response = Column(JSON, nullable=True)
    processed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
