"""Billing router - FastAPI endpoints for plans, subscriptions and payments"""

import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from .repository import BillingRepository
from .schemas import (
    AttachCondominiumRequest,
    AttachmentResponse,
    CancelRequest,
    ChangePlanRequest,
    CreatePaymentRequest,
    InvoiceResponse,
    PaymentResponse,
    PlanResponse,
    StartTrialRequest,
    SubscriptionResponse,
)
from .subscription_service import SubscriptionService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/billing", tags=["Billing"])


def get_subscription_service(db: Session = Depends(get_db)) -> SubscriptionService:
    """Dependency injection for SubscriptionService"""
    return SubscriptionService(db)


# ============================================================================
# PLANS
# ============================================================================


@router.get("/plans", response_model=list[PlanResponse])
async def list_plans(service: SubscriptionService = Depends(get_subscription_service)):
    """Active plans with their pricing tiers"""
    return service.list_plans()


# ============================================================================
# SUBSCRIPTION MANAGEMENT
# ============================================================================


@router.get("/subscription")
async def get_subscription(
    user: User = Depends(get_current_user),
    service: SubscriptionService = Depends(get_subscription_service),
):
    """Current subscription with license usage and monthly price breakdown"""
    overview = service.get_overview(user)
    if overview["subscription"] is None:
        return overview
    return {
        "subscription": SubscriptionResponse.model_validate(overview["subscription"]),
        "has_access": overview["has_access"],
        "plan": PlanResponse.model_validate(overview["plan"]),
        "condominiums": [{"id": c.id, "name": c.name} for c in overview["condominiums"]],
        "used_licenses": overview["used_licenses"],
        "license_limit": overview["license_limit"],
        "pricing": overview["pricing"],
    }


@router.post("/subscription/trial", response_model=SubscriptionResponse)
async def start_trial(
    body: StartTrialRequest,
    user: User = Depends(get_current_user),
    service: SubscriptionService = Depends(get_subscription_service),
):
    return service.start_trial(user, body.plan_id, body.billing_cycle, body.promotion_code)


@router.post("/subscription/change-plan", response_model=SubscriptionResponse)
async def change_plan(
    body: ChangePlanRequest,
    user: User = Depends(get_current_user),
    service: SubscriptionService = Depends(get_subscription_service),
):
    subscription = service.require_subscription(user)
    return service.change_plan(subscription, body.plan_id, user)


@router.post("/subscription/condominiums", response_model=AttachmentResponse)
async def attach_condominium(
    body: AttachCondominiumRequest,
    user: User = Depends(get_current_user),
    service: SubscriptionService = Depends(get_subscription_service),
):
    """Attach a condominium; its active fractions become licenses"""
    subscription = service.require_subscription(user)
    return service.attach_condominium(subscription, body.condominium_id, user)


@router.delete("/subscription/condominiums/{condominium_id}")
async def detach_condominium(
    condominium_id: int,
    user: User = Depends(get_current_user),
    service: SubscriptionService = Depends(get_subscription_service),
):
    subscription = service.require_subscription(user)
    service.detach_condominium(subscription, condominium_id, user)
    return {"message": "Condominium detached"}


@router.get("/condominiums/{condominium_id}/can-activate-fraction")
async def can_activate_fraction(
    condominium_id: int,
    user: User = Depends(get_current_user),
    service: SubscriptionService = Depends(get_subscription_service),
):
    return service.can_activate_fraction(condominium_id)


@router.post("/subscription/cancel", response_model=SubscriptionResponse)
async def cancel_subscription(
    body: CancelRequest,
    user: User = Depends(get_current_user),
    service: SubscriptionService = Depends(get_subscription_service),
):
    """Cancel subscription"""
    subscription = service.require_subscription(user)
    return service.cancel(subscription, user, at_period_end=body.cancel_at_period_end)


# ============================================================================
# INVOICES AND PAYMENTS
# ============================================================================


@router.get("/invoices", response_model=list[InvoiceResponse])
async def list_invoices(
    user: User = Depends(get_current_user),
    service: SubscriptionService = Depends(get_subscription_service),
):
    subscription = service.get_current_subscription(user)
    if not subscription:
        return []
    return BillingRepository.list_invoices(service.db, subscription.id)


@router.get("/payments", response_model=list[PaymentResponse])
async def list_payments(
    user: User = Depends(get_current_user),
    service: SubscriptionService = Depends(get_subscription_service),
):
    return BillingRepository.list_payments(service.db, user.id)


@router.post("/payments", response_model=PaymentResponse)
async def create_payment(
    body: CreatePaymentRequest,
    user: User = Depends(get_current_user),
    service: SubscriptionService = Depends(get_subscription_service),
):
    """Invoice the next billing cycle and request a Multibanco reference or MB WAY payment"""
    subscription = service.require_subscription(user)
    return await service.create_payment(subscription, user, body.method, body.phone)


# ============================================================================
# GATEWAY CALLBACKS
# ============================================================================


@router.api_route("/webhooks/ifthenpay", methods=["GET", "POST"])
async def ifthenpay_callback(
    request: Request,
    service: SubscriptionService = Depends(get_subscription_service),
):
    """IfthenPay payment confirmation; parameters come in the query string or the body"""
    data = dict(request.query_params)
    if request.method == "POST":
        content_type = request.headers.get("content-type", "")
        if "application/json" in content_type:
            body = await request.json()
            if isinstance(body, dict):
                data.update(body)
        else:
            form = await request.form()
            data.update({k: v for k, v in form.items() if isinstance(v, str)})

    payment = service.process_callback(data)
    return {"status": "ok", "payment_id": payment.id, "payment_status": payment.status}
