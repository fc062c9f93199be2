"""Billing repository - Database operations for plans, subscriptions and payments"""

from datetime import datetime
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ...models import Condominium, Fraction
from ...models_billing import (
    Invoice,
    Payment,
    Plan,
    PlanPricingTier,
    Promotion,
    Subscription,
    SubscriptionCondominium,
)

OPEN_STATUSES = ("trial", "pending", "active")


class BillingRepository:
    """Repository for billing database operations"""

    @staticmethod
    def get_plan(db: Session, plan_id: int) -> Optional[Plan]:
        return db.query(Plan).filter(Plan.id == plan_id).first()

    @staticmethod
    def get_plan_by_slug(db: Session, slug: str) -> Optional[Plan]:
        return db.query(Plan).filter(Plan.slug == slug).first()

    @staticmethod
    def list_active_plans(db: Session) -> list[Plan]:
        return db.query(Plan).filter(Plan.is_active.is_(True)).order_by(Plan.sort_order, Plan.id).all()

    @staticmethod
    def get_active_tiers(db: Session, plan_id: int) -> list[PlanPricingTier]:
        return (
            db.query(PlanPricingTier)
            .filter(PlanPricingTier.plan_id == plan_id, PlanPricingTier.is_active.is_(True))
            .order_by(PlanPricingTier.min_licenses)
            .all()
        )

    @staticmethod
    def get_promotion_by_code(db: Session, code: str) -> Optional[Promotion]:
        return db.query(Promotion).filter(func.upper(Promotion.code) == code.strip().upper()).first()

    @staticmethod
    def get_subscription(db: Session, subscription_id: int) -> Optional[Subscription]:
        return db.query(Subscription).filter(Subscription.id == subscription_id).first()

    @staticmethod
    def get_open_subscription_for_user(db: Session, user_id: int) -> Optional[Subscription]:
        """Latest trial, pending or active subscription of a user"""
        return (
            db.query(Subscription)
            .filter(Subscription.user_id == user_id, Subscription.status.in_(OPEN_STATUSES))
            .order_by(Subscription.id.desc())
            .first()
        )

    @staticmethod
    def get_latest_subscription_for_user(db: Session, user_id: int) -> Optional[Subscription]:
        return (
            db.query(Subscription)
            .filter(Subscription.user_id == user_id)
            .order_by(Subscription.id.desc())
            .first()
        )

    @staticmethod
    def get_attachment(db: Session, subscription_id: int, condominium_id: int) -> Optional[SubscriptionCondominium]:
        return (
            db.query(SubscriptionCondominium)
            .filter(
                SubscriptionCondominium.subscription_id == subscription_id,
                SubscriptionCondominium.condominium_id == condominium_id,
                SubscriptionCondominium.status == "active",
            )
            .first()
        )

    @staticmethod
    def get_active_attachment_for_condominium(db: Session, condominium_id: int) -> Optional[SubscriptionCondominium]:
        return (
            db.query(SubscriptionCondominium)
            .filter(
                SubscriptionCondominium.condominium_id == condominium_id,
                SubscriptionCondominium.status == "active",
            )
            .first()
        )

    @staticmethod
    def count_active_attachments(db: Session, subscription_id: int) -> int:
        return (
            db.query(SubscriptionCondominium)
            .filter(
                SubscriptionCondominium.subscription_id == subscription_id,
                SubscriptionCondominium.status == "active",
            )
            .count()
        )

    @staticmethod
    def list_attached_condominiums(db: Session, subscription_id: int) -> list[Condominium]:
        return (
            db.query(Condominium)
            .join(SubscriptionCondominium, SubscriptionCondominium.condominium_id == Condominium.id)
            .filter(
                SubscriptionCondominium.subscription_id == subscription_id,
                SubscriptionCondominium.status == "active",
            )
            .order_by(Condominium.name)
            .all()
        )

    @staticmethod
    def count_active_fractions_in_condominium(db: Session, condominium_id: int) -> int:
        return (
            db.query(Fraction)
            .filter(Fraction.condominium_id == condominium_id, Fraction.is_active.is_(True))
            .count()
        )

    @staticmethod
    def count_active_fractions_for_subscription(db: Session, subscription_id: int) -> int:
        """Licenses in use: active fractions of every attached condominium"""
        return (
            db.query(Fraction)
            .join(SubscriptionCondominium, SubscriptionCondominium.condominium_id == Fraction.condominium_id)
            .filter(
                SubscriptionCondominium.subscription_id == subscription_id,
                SubscriptionCondominium.status == "active",
                Fraction.is_active.is_(True),
            )
            .count()
        )

    @staticmethod
    def get_pending_invoice(db: Session, subscription_id: int) -> Optional[Invoice]:
        return (
            db.query(Invoice)
            .filter(Invoice.subscription_id == subscription_id, Invoice.status == "pending")
            .order_by(Invoice.id.desc())
            .first()
        )

    @staticmethod
    def count_invoices_for_year(db: Session, year: int) -> int:
        return db.query(Invoice).filter(Invoice.invoice_number.like(f"INV-{year}-%")).count()

    @staticmethod
    def list_invoices(db: Session, subscription_id: int) -> list[Invoice]:
        return (
            db.query(Invoice)
            .filter(Invoice.subscription_id == subscription_id)
            .order_by(Invoice.id.desc())
            .all()
        )

    @staticmethod
    def get_payment(db: Session, payment_id: int) -> Optional[Payment]:
        return db.query(Payment).filter(Payment.id == payment_id).first()

    @staticmethod
    def get_payment_by_external_id(db: Session, external_payment_id: str) -> Optional[Payment]:
        return db.query(Payment).filter(Payment.external_payment_id == external_payment_id).first()

    @staticmethod
    def list_payments(db: Session, user_id: int, limit: int = 20) -> list[Payment]:
        return (
            db.query(Payment)
            .filter(Payment.user_id == user_id)
            .order_by(Payment.id.desc())
            .limit(limit)
            .all()
        )

    @staticmethod
    def list_subscriptions_past_end(db: Session, now: datetime) -> list[Subscription]:
        """Open subscriptions whose trial or paid period is over"""
        trial_over = (Subscription.status == "trial") & (Subscription.trial_ends_at < now)
        period_over = Subscription.status.in_(("active", "pending")) & (Subscription.current_period_end < now)
        return db.query(Subscription).filter(trial_over | period_over).order_by(Subscription.id).all()
