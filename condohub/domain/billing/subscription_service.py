"""Subscription service - Business logic for subscription management"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from dateutil.relativedelta import relativedelta
from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import Condominium, User
from ...models_billing import Invoice, Payment, Subscription, SubscriptionCondominium
from ...services.audit_service import AuditService
from .ifthenpay_service import IfthenPayService, ifthenpay_service
from .license_service import LicenseService
from .pricing_service import PricingService, money
from .repository import BillingRepository

logger = logging.getLogger(__name__)

BILLING_CYCLE_MONTHS = {"monthly": 1, "yearly": 12}
GATEWAY_METHODS = ("multibanco", "mbway")
INVOICE_DUE_DAYS = 7


class SubscriptionService:
    """Service for subscription management"""

    def __init__(self, db: Session, gateway: Optional[IfthenPayService] = None):
        self.db = db
        self.repo = BillingRepository()
        self.licenses = LicenseService(db)
        self.pricing = PricingService(db)
        self.audit = AuditService(db)
        self.gateway = gateway or ifthenpay_service

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def list_plans(self) -> list:
        return self.repo.list_active_plans(self.db)

    def get_plan(self, plan_id: int):
        plan = self.repo.get_plan(self.db, plan_id)
        if not plan or not plan.is_active:
            raise HTTPException(status_code=404, detail="Plan not found")
        return plan

    def get_current_subscription(self, user: User) -> Optional[Subscription]:
        return self.repo.get_open_subscription_for_user(self.db, user.id)

    def require_subscription(self, user: User) -> Subscription:
        subscription = self.get_current_subscription(user)
        if not subscription:
            raise HTTPException(status_code=400, detail="No active subscription found")
        return subscription

    def get_overview(self, user: User) -> dict:
        """Current subscription with license usage and pricing"""
        subscription = self.get_current_subscription(user)
        if not subscription:
            return {"subscription": None, "has_access": False}

        pricing = self.pricing.subscription_monthly_price(subscription)
        plan = subscription.plan
        return {
            "subscription": subscription,
            "has_access": self.has_access(user.id),
            "plan": plan,
            "condominiums": self.repo.list_attached_condominiums(self.db, subscription.id),
            "used_licenses": subscription.used_licenses or 0,
            "license_limit": self.licenses.effective_limit(subscription, plan),
            "pricing": pricing,
        }

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _refresh_price(self, subscription: Subscription) -> None:
        self.licenses.recalculate_and_update(subscription.id)
        subscription.price_monthly = self.pricing.subscription_monthly_price(subscription)["price_monthly"]
        self.db.flush()

    def start_trial(
        self,
        user: User,
        plan_id: int,
        billing_cycle: str = "monthly",
        promotion_code: Optional[str] = None,
    ) -> Subscription:
        """Create a trial subscription for a user without an open one"""
        if self.get_current_subscription(user):
            raise HTTPException(status_code=409, detail="User already has an active subscription")
        if billing_cycle not in BILLING_CYCLE_MONTHS:
            raise HTTPException(status_code=400, detail=f"Invalid billing cycle: {billing_cycle}")

        plan = self.get_plan(plan_id)

        promotion = None
        if promotion_code:
            promotion = self.repo.get_promotion_by_code(self.db, promotion_code)
            if not promotion or not promotion.is_active:
                raise HTTPException(status_code=400, detail="Invalid promotion code")
            if promotion.plan_id and promotion.plan_id != plan.id:
                raise HTTPException(status_code=400, detail="Promotion not valid for this plan")
            if promotion.max_uses is not None and (promotion.used_count or 0) >= promotion.max_uses:
                raise HTTPException(status_code=400, detail="Promotion no longer available")

        now = datetime.utcnow()
        trial_ends_at = now + timedelta(days=plan.trial_days or 0)

        subscription = Subscription(
            user_id=user.id,
            plan_id=plan.id,
            status="trial",
            billing_cycle=billing_cycle,
            trial_ends_at=trial_ends_at,
            current_period_start=now,
            current_period_end=trial_ends_at,
            used_licenses=0,
            extra_licenses=0,
            charge_minimum=plan.charge_minimum,
            promotion_id=promotion.id if promotion else None,
        )
        if promotion:
            promotion.used_count = (promotion.used_count or 0) + 1
            if promotion.duration_months:
                subscription.promotion_ends_at = now + relativedelta(months=promotion.duration_months)

        self.db.add(subscription)
        self.db.flush()
        self._refresh_price(subscription)

        self.audit.log_subscription(
            subscription.id,
            "subscription_created",
            user_id=user.id,
            new_plan_id=plan.id,
            new_status="trial",
            new_period_start=now,
            new_period_end=trial_ends_at,
            description=f"Trial of plan {plan.name} started, ends {trial_ends_at:%Y-%m-%d}",
        )
        self.db.commit()
        self.db.refresh(subscription)

        logger.info(f"✅ Started trial subscription {subscription.id} for user {user.id} (plan {plan.slug})")
        return subscription

    def change_plan(self, subscription: Subscription, new_plan_id: int, user: User) -> Subscription:
        plan = self.get_plan(new_plan_id)
        if plan.id == subscription.plan_id:
            raise HTTPException(status_code=400, detail="Subscription is already on this plan")

        old_plan_id = subscription.plan_id
        subscription.plan_id = plan.id
        subscription.plan = plan
        subscription.charge_minimum = plan.charge_minimum
        self._refresh_price(subscription)

        limit = self.licenses.effective_limit(subscription, plan)
        if (
            limit is not None
            and self.licenses.count_active_licenses(subscription.id) > limit
            and not self.licenses.allows_overage(subscription, plan)
        ):
            self.db.rollback()
            raise HTTPException(status_code=400, detail=f"Plan {plan.name} allows at most {limit} licenses")

        self.audit.log_subscription(
            subscription.id,
            "plan_changed",
            user_id=user.id,
            old_plan_id=old_plan_id,
            new_plan_id=plan.id,
            description=f"Plan changed to {plan.name}",
        )
        self.db.commit()
        self.db.refresh(subscription)
        logger.info(f"🔁 Subscription {subscription.id} moved from plan {old_plan_id} to {plan.id}")
        return subscription

    def attach_condominium(self, subscription: Subscription, condominium_id: int, user: User) -> SubscriptionCondominium:
        """Attach a condominium; its active fractions must fit in the license limit"""
        condominium = self.db.query(Condominium).filter(Condominium.id == condominium_id).first()
        if not condominium:
            raise HTTPException(status_code=404, detail="Condominium not found")
        if condominium.user_id != user.id and user.role != "super_admin":
            raise HTTPException(status_code=403, detail="Access denied")

        existing = self.repo.get_active_attachment_for_condominium(self.db, condominium_id)
        if existing:
            raise HTTPException(status_code=409, detail="Condominium is already attached to a subscription")

        additional = self.licenses.count_active_licenses_by_condominium(condominium_id)
        self.licenses.ensure_available(subscription.id, additional, is_adding_extras=True)

        attachment = SubscriptionCondominium(
            subscription_id=subscription.id,
            condominium_id=condominium_id,
            status="active",
            attached_at=datetime.utcnow(),
        )
        self.db.add(attachment)
        condominium.subscription_id = subscription.id
        self.db.flush()
        self._refresh_price(subscription)

        self.audit.log_subscription(
            subscription.id,
            "condominium_attached",
            user_id=user.id,
            description=f"Condominium #{condominium_id} attached ({additional} licenses)",
            metadata={"condominium_id": condominium_id, "licenses": additional},
        )
        self.db.commit()
        self.db.refresh(attachment)

        logger.info(f"🏢 Attached condominium {condominium_id} to subscription {subscription.id}")
        return attachment

    def detach_condominium(self, subscription: Subscription, condominium_id: int, user: User) -> None:
        attachment = self.repo.get_attachment(self.db, subscription.id, condominium_id)
        if not attachment:
            raise HTTPException(status_code=404, detail="Condominium is not attached to this subscription")

        plan = subscription.plan
        if plan and plan.plan_type == "condominio":
            raise HTTPException(status_code=400, detail="The base plan cannot detach its condominium")
        if self.repo.count_active_attachments(self.db, subscription.id) <= 1:
            raise HTTPException(status_code=400, detail="Cannot detach the last condominium of a subscription")

        attachment.status = "detached"
        attachment.detached_at = datetime.utcnow()
        condominium = self.db.query(Condominium).filter(Condominium.id == condominium_id).first()
        if condominium and condominium.subscription_id == subscription.id:
            condominium.subscription_id = None
        self.db.flush()
        self._refresh_price(subscription)

        self.audit.log_subscription(
            subscription.id,
            "condominium_detached",
            user_id=user.id,
            description=f"Condominium #{condominium_id} detached",
            metadata={"condominium_id": condominium_id},
        )
        self.db.commit()
        logger.info(f"🏢 Detached condominium {condominium_id} from subscription {subscription.id}")

    def can_activate_fraction(self, condominium_id: int) -> dict:
        """Whether one more active fraction fits in the condominium's subscription"""
        attachment = self.repo.get_active_attachment_for_condominium(self.db, condominium_id)
        if not attachment:
            return {"can": False, "reason": "Condominium has no active subscription"}
        result = self.licenses.validate_license_availability(attachment.subscription_id, 1)
        return {"can": result["available"], "reason": result["reason"]}

    def cancel(self, subscription: Subscription, user: User, at_period_end: bool = True) -> Subscription:
        old_status = subscription.status
        if at_period_end and subscription.status == "active":
            subscription.cancel_at_period_end = True
            message = "Subscription will be canceled at the end of the billing period"
        else:
            subscription.status = "canceled"
            subscription.canceled_at = datetime.utcnow()
            subscription.cancel_at_period_end = False
            message = "Subscription canceled"

        self.audit.log_subscription(
            subscription.id,
            "subscription_canceled",
            user_id=user.id,
            old_status=old_status,
            new_status=subscription.status,
            description=message,
            metadata={"at_period_end": subscription.cancel_at_period_end},
        )
        self.db.commit()
        self.db.refresh(subscription)
        logger.info(f"✅ {message} (subscription {subscription.id})")
        return subscription

    def expire_overdue(self, now: Optional[datetime] = None) -> int:
        """Close subscriptions whose trial or paid period ended; returns how many changed"""
        now = now or datetime.utcnow()
        changed = 0
        for subscription in self.repo.list_subscriptions_past_end(self.db, now):
            old_status = subscription.status
            if subscription.cancel_at_period_end:
                subscription.status = "canceled"
                subscription.canceled_at = now
                action = "subscription_canceled"
            else:
                subscription.status = "expired"
                action = "subscription_expired"
            self.audit.log_subscription(
                subscription.id,
                action,
                user_id=subscription.user_id,
                old_status=old_status,
                new_status=subscription.status,
                old_period_end=subscription.current_period_end,
                description=f"Subscription {subscription.status} at end of period",
            )
            changed += 1

        if changed:
            self.db.commit()
            logger.info(f"⏰ Closed {changed} subscription(s) past their period end")
        return changed

    def has_access(self, user_id: int, now: Optional[datetime] = None) -> bool:
        now = now or datetime.utcnow()
        subscription = self.repo.get_open_subscription_for_user(self.db, user_id)
        if not subscription:
            return False
        if subscription.status == "trial":
            return subscription.trial_ends_at is None or subscription.trial_ends_at >= now
        if subscription.status == "active":
            return subscription.current_period_end is None or subscription.current_period_end >= now
        return False

    # ------------------------------------------------------------------
    # Invoices and payments
    # ------------------------------------------------------------------

    def _pricing_snapshot(self, subscription: Subscription) -> dict:
        pricing = self.pricing.subscription_monthly_price(subscription)
        return {
            "mode": pricing["mode"],
            "used_licenses": pricing["used_licenses"],
            "charged_licenses": pricing["charged_licenses"],
            "price_monthly": str(pricing["price_monthly"]),
            "billing_cycle": subscription.billing_cycle,
        }

    def create_invoice(self, subscription: Subscription) -> Invoice:
        """Invoice for the next billing cycle; an unpaid invoice is reused"""
        pending = self.repo.get_pending_invoice(self.db, subscription.id)
        if pending:
            return pending

        self._refresh_price(subscription)
        amount = self.pricing.subscription_period_price(subscription)
        if amount <= 0:
            raise HTTPException(status_code=400, detail="Nothing to invoice for this subscription")

        now = datetime.utcnow()
        period_start = max(now, subscription.current_period_end or now) if subscription.status == "active" else now
        period_end = period_start + relativedelta(months=BILLING_CYCLE_MONTHS.get(subscription.billing_cycle, 1))
        sequence = self.repo.count_invoices_for_year(self.db, now.year) + 1

        invoice = Invoice(
            subscription_id=subscription.id,
            user_id=subscription.user_id,
            invoice_number=f"INV-{now.year}-{sequence:05d}",
            amount=amount,
            status="pending",
            due_date=(now + timedelta(days=INVOICE_DUE_DAYS)).date(),
            period_start=period_start,
            period_end=period_end,
            extra_data=self._pricing_snapshot(subscription),
        )
        self.db.add(invoice)
        self.db.flush()
        logger.info(f"🧾 Created invoice {invoice.invoice_number} ({amount}) for subscription {subscription.id}")
        return invoice

    async def create_payment(
        self,
        subscription: Subscription,
        user: User,
        method: str,
        phone: Optional[str] = None,
    ) -> Payment:
        """Create the invoice of the next cycle and request its payment from the gateway"""
        if method not in GATEWAY_METHODS:
            raise HTTPException(status_code=400, detail=f"Invalid payment method: {method}")
        if method == "mbway" and not phone:
            raise HTTPException(status_code=400, detail="Phone number is required for MB WAY")
        if not self.gateway.is_available(method):
            raise HTTPException(status_code=503, detail="Payment service temporarily unavailable")

        invoice = self.create_invoice(subscription)
        order_id = invoice.invoice_number

        if method == "multibanco":
            response = await self.gateway.create_multibanco_payment(invoice.amount, order_id, user.email)
        else:
            response = await self.gateway.create_mbway_payment(invoice.amount, phone, order_id, user.email)

        payment = Payment(
            subscription_id=subscription.id,
            invoice_id=invoice.id,
            user_id=user.id,
            amount=invoice.amount,
            payment_method=method,
            status="pending",
            external_payment_id=response["external_payment_id"],
            entity=response.get("entity"),
            reference=response.get("reference"),
            gateway_response={k: v for k, v in response.items() if k != "raw"},
        )
        self.db.add(payment)
        # Trials stay usable until they end
        if subscription.status not in ("trial", "active"):
            subscription.status = "pending"
        self.db.flush()

        self.audit.log_payment(
            "payment_created",
            payment_id=payment.id,
            subscription_id=subscription.id,
            invoice_id=invoice.id,
            payment_method=method,
            amount=payment.amount,
            status="pending",
            external_payment_id=payment.external_payment_id,
            description=f"{method} payment requested for invoice {invoice.invoice_number}",
            user_id=user.id,
        )
        self.db.commit()
        self.db.refresh(payment)

        logger.info(f"💳 Payment {payment.id} ({method}) created for subscription {subscription.id}")
        return payment

    def confirm_payment(self, payment: Payment, gateway_data: Optional[dict] = None) -> Payment:
        """
        Mark a payment completed, pay its invoice and activate the subscription.

        The new period starts at the end of the current paid period when it is
        still running, otherwise now, and lasts one billing cycle. Confirming an
        already completed payment does nothing.
        """
        if payment.status == "completed":
            logger.info(f"ℹ️ Payment {payment.id} already completed")
            return payment

        now = datetime.utcnow()
        subscription = self.repo.get_subscription(self.db, payment.subscription_id)
        if not subscription:
            raise HTTPException(status_code=404, detail="Subscription not found")

        old_payment_status = payment.status
        payment.status = "completed"
        payment.processed_at = now
        if gateway_data:
            payment.gateway_response = {**(payment.gateway_response or {}), "callback": gateway_data}

        invoice = None
        if payment.invoice_id:
            invoice = self.db.query(Invoice).filter(Invoice.id == payment.invoice_id).first()
            if invoice:
                invoice.status = "paid"
                invoice.paid_at = now

        old_status = subscription.status
        old_start = subscription.current_period_start
        old_end = subscription.current_period_end

        if subscription.status == "active" and old_end and old_end > now:
            period_start = old_end
        else:
            period_start = now
        period_end = period_start + relativedelta(months=BILLING_CYCLE_MONTHS.get(subscription.billing_cycle, 1))

        subscription.status = "active"
        subscription.current_period_start = period_start
        subscription.current_period_end = period_end
        subscription.cancel_at_period_end = False
        if subscription.promotion_ends_at and subscription.promotion_ends_at <= now:
            subscription.promotion_id = None
            subscription.promotion_ends_at = None
        self.db.flush()

        self.audit.log_payment(
            "payment_completed",
            payment_id=payment.id,
            subscription_id=subscription.id,
            invoice_id=payment.invoice_id,
            payment_method=payment.payment_method,
            amount=payment.amount,
            status="completed",
            external_payment_id=payment.external_payment_id,
            old_status=old_payment_status,
            new_status="completed",
            description=f"Payment of {money(payment.amount)} confirmed",
            user_id=payment.user_id,
        )
        self.audit.log_subscription(
            subscription.id,
            "subscription_renewed" if old_status == "active" else "subscription_activated",
            user_id=subscription.user_id,
            old_status=old_status,
            new_status="active",
            old_period_start=old_start,
            new_period_start=period_start,
            old_period_end=old_end,
            new_period_end=period_end,
            description=f"Paid period {period_start:%Y-%m-%d} to {period_end:%Y-%m-%d}",
            metadata={"invoice": invoice.invoice_number if invoice else None},
        )
        self.db.commit()
        self.db.refresh(payment)

        logger.info(f"✅ Payment {payment.id} confirmed, subscription {subscription.id} active until {period_end}")
        return payment

    def process_callback(self, data: dict) -> Payment:
        """Handle a gateway callback: validate, match the payment and confirm it"""
        callback = self.gateway.parse_callback(data)

        payment = self.repo.get_payment_by_external_id(self.db, callback["request_id"])
        if not payment:
            payment = self.repo.get_payment_by_external_id(self.db, callback["order_id"])
        if not payment:
            logger.warning(f"⚠️ Callback for unknown payment {callback['request_id']}")
            raise HTTPException(status_code=404, detail="Payment not found")

        if money(callback["amount"]) != money(payment.amount):
            self.audit.log_payment(
                "payment_amount_mismatch",
                payment_id=payment.id,
                subscription_id=payment.subscription_id,
                amount=callback["amount"],
                status=payment.status,
                external_payment_id=payment.external_payment_id,
                description=f"Callback amount {callback['amount']} differs from {payment.amount}",
            )
            self.db.commit()
            raise HTTPException(status_code=400, detail="Payment amount mismatch")

        return self.confirm_payment(payment, {k: str(v) for k, v in callback.items() if v is not None})
