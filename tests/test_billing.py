import asyncio
import json
from datetime import datetime, timedelta
from decimal import Decimal

import httpx
import pytest
from dateutil.relativedelta import relativedelta
from fastapi import HTTPException

from condohub.domain.billing.ifthenpay_service import IfthenPayService, format_amount
from condohub.domain.billing.license_service import LicenseService
from condohub.domain.billing.pricing_service import PricingService, find_tier_for_count
from condohub.domain.billing.subscription_service import SubscriptionService
from condohub.exceptions import LicenseError, PaymentGatewayError
from condohub.models_audit import AuditPayment, AuditSubscription
from condohub.models_billing import Invoice, Plan, PlanPricingTier, Promotion, Subscription

from conftest import make_condominium, make_fraction, make_user


def make_plan(db, slug="pro", tiers=((1, 10, "2.00"), (11, 50, "1.50"), (51, None, "1.00")), **values):
    plan = Plan(
        slug=slug,
        name=slug.title(),
        plan_type=values.pop("plan_type", "professional"),
        price_monthly=Decimal(values.pop("price_monthly", "0")),
        trial_days=values.pop("trial_days", 14),
        **values,
    )
    db.add(plan)
    db.flush()
    for minimum, maximum, price in tiers:
        db.add(
            PlanPricingTier(plan_id=plan.id, min_licenses=minimum, max_licenses=maximum, price_per_license=Decimal(price))
        )
    db.commit()
    return plan


def make_gateway(handler, **values) -> IfthenPayService:
    gateway = IfthenPayService(
        base_url="https://gateway.test",
        mb_key=values.get("mb_key", "MB-KEY"),
        mbway_key=values.get("mbway_key", "MBW-KEY"),
        anti_phishing_key=values.get("anti_phishing_key", "phish"),
        environment=values.get("environment", "sandbox"),
        transport=httpx.MockTransport(handler),
    )
    gateway.retry_backoff = 0
    return gateway


def multibanco_handler(request: httpx.Request) -> httpx.Response:
    body = json.loads(request.content)
    return httpx.Response(200, json={"entidade": "12345", "referencia": "999888777", "idpedido": body["idpedido"]})


# ============================================================================
# PRICING
# ============================================================================


def test_find_tier_uses_nearest_end_outside_ranges(db):
    plan = make_plan(db, tiers=((5, 10, "2"), (11, 20, "1")))
    tiers = sorted(plan.tiers, key=lambda t: t.min_licenses)
    assert find_tier_for_count(tiers, 2).min_licenses == 5
    assert find_tier_for_count(tiers, 15).min_licenses == 11
    assert find_tier_for_count(tiers, 99).min_licenses == 11
    assert find_tier_for_count([], 3) is None


def test_flat_pricing_charges_every_license_at_tier_price(db):
    plan = make_plan(db)
    breakdown = PricingService(db).get_price_breakdown(plan, 20, "flat")
    assert breakdown["total"] == Decimal("30.00")
    assert breakdown["breakdown"][0]["tier"] == "11-50"


def test_progressive_pricing_charges_each_range(db):
    plan = make_plan(db)
    breakdown = PricingService(db).get_price_breakdown(plan, 20, "progressive")
    assert breakdown["total"] == Decimal("35.00")
    assert [row["licenses"] for row in breakdown["breakdown"]] == [10, 10]


def test_progressive_pricing_open_ended_tier(db):
    plan = make_plan(db)
    assert PricingService(db).calculate_tiered_price(plan, 60, "progressive") == Decimal("90.00")


def test_plan_without_tiers_uses_base_price(db):
    plan = make_plan(db, slug="basic", tiers=(), price_monthly="9.90")
    breakdown = PricingService(db).get_price_breakdown(plan, 4)
    assert breakdown["mode"] == "base"
    assert breakdown["total"] == Decimal("9.90")


def test_annual_price_discount():
    assert PricingService.calculate_annual_price("10", "10") == Decimal("108.00")


def test_promotions():
    now = datetime(2024, 6, 1)
    percentage = Promotion(code="P20", name="20%", discount_type="percentage", discount_value=Decimal("20"), is_active=True)
    fixed = Promotion(code="F60", name="60 off", discount_type="fixed", discount_value=Decimal("60"), is_active=True)
    expired = Promotion(
        code="OLD", name="old", discount_type="percentage", discount_value=Decimal("50"),
        is_active=True, valid_until=datetime(2024, 1, 1),
    )
    assert PricingService.apply_promotion("50", percentage, now) == Decimal("40.00")
    assert PricingService.apply_promotion("50", fixed, now) == Decimal("0.00")
    assert PricingService.apply_promotion("50", expired, now) == Decimal("50.00")
    assert PricingService.apply_promotion("50", None, now) == Decimal("50.00")


# ============================================================================
# LICENSES
# ============================================================================


def test_effective_limit_precedence():
    plan = Plan(license_min=5, license_limit=20)
    assert LicenseService.effective_limit(Subscription(license_limit=None, extra_licenses=0), plan) == 20
    assert LicenseService.effective_limit(Subscription(license_limit=8, extra_licenses=2), plan) == 10
    assert LicenseService.effective_limit(Subscription(license_limit=None, extra_licenses=0), Plan(license_min=5)) == 5
    assert LicenseService.effective_limit(Subscription(license_limit=None, extra_licenses=0), Plan(license_min=0)) is None


def test_minimum_charge():
    assert LicenseService.apply_minimum_charge(Subscription(charge_minimum=True), 3, 10) == 10
    assert LicenseService.apply_minimum_charge(Subscription(charge_minimum=False), 3, 10) == 3


def test_license_availability(db, admin):
    plan = make_plan(db, license_min=5, license_limit=10)
    subscription = Subscription(user_id=admin.id, plan_id=plan.id, status="active", used_licenses=4, extra_licenses=0)
    db.add(subscription)
    db.commit()
    licenses = LicenseService(db)

    below_minimum = licenses.validate_license_availability(subscription.id, 0)
    assert below_minimum["available"] is False
    assert licenses.validate_license_availability(subscription.id, 0, is_adding_extras=True)["available"] is True
    assert licenses.validate_license_availability(subscription.id, 6)["available"] is True
    assert licenses.validate_license_availability(subscription.id, 7)["available"] is False

    with pytest.raises(LicenseError):
        licenses.ensure_available(subscription.id, 7)

    subscription.allow_overage = True
    db.commit()
    result = licenses.validate_license_availability(subscription.id, 7)
    assert result["available"] is True
    assert result["would_exceed"] is True


def test_base_plan_stores_count_with_minimum(db, admin, condominium, fractions):
    plan = make_plan(db, slug="condo", plan_type="condominio", license_min=10, license_limit=50)
    service = SubscriptionService(db)
    subscription = service.start_trial(admin, plan.id)
    service.attach_condominium(subscription, condominium.id, admin)

    assert subscription.used_licenses == 10
    assert LicenseService(db).count_active_licenses(subscription.id) == 3


# ============================================================================
# SUBSCRIPTIONS
# ============================================================================


def test_start_trial(db, admin):
    plan = make_plan(db, trial_days=30)
    subscription = SubscriptionService(db).start_trial(admin, plan.id)

    assert subscription.status == "trial"
    assert subscription.trial_ends_at - subscription.current_period_start == timedelta(days=30)
    audit = db.query(AuditSubscription).filter(AuditSubscription.action == "subscription_created").one()
    assert audit.subscription_id == subscription.id
    assert audit.new_plan_id == plan.id


def test_only_one_open_subscription(db, admin):
    plan = make_plan(db)
    service = SubscriptionService(db)
    service.start_trial(admin, plan.id)
    with pytest.raises(HTTPException) as exc:
        service.start_trial(admin, plan.id)
    assert exc.value.status_code == 409


def test_trial_with_promotion_code(db, admin):
    plan = make_plan(db)
    db.add(Promotion(code="WELCOME", name="Welcome", discount_type="percentage", discount_value=Decimal("50"),
                     duration_months=3, max_uses=1, is_active=True))
    db.commit()

    subscription = SubscriptionService(db).start_trial(admin, plan.id, promotion_code="welcome")

    assert subscription.promotion.code == "WELCOME"
    assert subscription.promotion.used_count == 1
    assert subscription.promotion_ends_at is not None


def test_exhausted_promotion_is_refused(db, admin):
    plan = make_plan(db)
    db.add(Promotion(code="ONCE", name="Once", discount_type="fixed", discount_value=Decimal("5"),
                     max_uses=1, used_count=1, is_active=True))
    db.commit()
    with pytest.raises(HTTPException) as exc:
        SubscriptionService(db).start_trial(admin, plan.id, promotion_code="ONCE")
    assert exc.value.status_code == 400


def test_attach_condominium_counts_licenses(db, admin, condominium, fractions):
    plan = make_plan(db)
    service = SubscriptionService(db)
    subscription = service.start_trial(admin, plan.id)

    service.attach_condominium(subscription, condominium.id, admin)

    db.refresh(subscription)
    assert subscription.used_licenses == 3
    assert subscription.price_monthly == Decimal("6.00")
    assert condominium.subscription_id == subscription.id

    with pytest.raises(HTTPException) as exc:
        service.attach_condominium(subscription, condominium.id, admin)
    assert exc.value.status_code == 409


def test_attach_over_limit_is_refused(db, admin, condominium, fractions):
    plan = make_plan(db, license_limit=2)
    service = SubscriptionService(db)
    subscription = service.start_trial(admin, plan.id)
    with pytest.raises(LicenseError):
        service.attach_condominium(subscription, condominium.id, admin)


def test_attach_someone_elses_condominium(db, admin, condominium):
    other = make_user(db, email="other@example.com")
    plan = make_plan(db)
    service = SubscriptionService(db)
    subscription = service.start_trial(other, plan.id)
    with pytest.raises(HTTPException) as exc:
        service.attach_condominium(subscription, condominium.id, other)
    assert exc.value.status_code == 403


def test_detach_rules(db, admin, condominium, fractions):
    second = make_condominium(db, admin, "Second")
    make_fraction(db, second, "A", "1000")
    plan = make_plan(db)
    service = SubscriptionService(db)
    subscription = service.start_trial(admin, plan.id)
    service.attach_condominium(subscription, condominium.id, admin)
    service.attach_condominium(subscription, second.id, admin)
    assert subscription.used_licenses == 4

    service.detach_condominium(subscription, second.id, admin)
    db.refresh(subscription)
    assert subscription.used_licenses == 3

    with pytest.raises(HTTPException) as exc:
        service.detach_condominium(subscription, condominium.id, admin)
    assert exc.value.status_code == 400


def test_can_activate_fraction(db, admin, condominium, fractions):
    service = SubscriptionService(db)
    assert service.can_activate_fraction(condominium.id)["can"] is False

    plan = make_plan(db, license_limit=4)
    subscription = service.start_trial(admin, plan.id)
    service.attach_condominium(subscription, condominium.id, admin)
    assert service.can_activate_fraction(condominium.id)["can"] is True

    make_fraction(db, condominium, "D", "0")
    service.licenses.recalculate_and_update(subscription.id)
    assert service.can_activate_fraction(condominium.id)["can"] is False


def test_cancel_active_at_period_end(db, admin):
    plan = make_plan(db)
    service = SubscriptionService(db)
    subscription = service.start_trial(admin, plan.id)
    subscription.status = "active"
    db.commit()

    service.cancel(subscription, admin)
    assert subscription.status == "active"
    assert subscription.cancel_at_period_end is True

    service.cancel(subscription, admin, at_period_end=False)
    assert subscription.status == "canceled"
    assert subscription.canceled_at is not None


def test_expire_overdue_and_access(db, admin):
    plan = make_plan(db, trial_days=1)
    service = SubscriptionService(db)
    subscription = service.start_trial(admin, plan.id)
    assert service.has_access(admin.id) is True

    later = datetime.utcnow() + timedelta(days=2)
    assert service.has_access(admin.id, now=later) is False
    assert service.expire_overdue(now=later) == 1
    db.refresh(subscription)
    assert subscription.status == "expired"


# ============================================================================
# PAYMENTS
# ============================================================================


def _attached_subscription(db, admin, condominium, gateway):
    plan = make_plan(db)
    service = SubscriptionService(db, gateway=gateway)
    subscription = service.start_trial(admin, plan.id)
    service.attach_condominium(subscription, condominium.id, admin)
    return service, subscription


def test_multibanco_payment_and_callback(db, admin, condominium, fractions):
    gateway = make_gateway(multibanco_handler)
    service, subscription = _attached_subscription(db, admin, condominium, gateway)

    payment = asyncio.run(service.create_payment(subscription, admin, "multibanco"))

    assert payment.status == "pending"
    assert payment.entity == "12345"
    assert payment.reference == "999888777"
    assert payment.amount == Decimal("6.00")
    invoice = db.get(Invoice, payment.invoice_id)
    assert payment.external_payment_id == invoice.invoice_number

    confirmed = service.process_callback(
        {
            "key": "phish",
            "orderId": invoice.invoice_number,
            "amount": "6,00",
            "requestId": payment.external_payment_id,
            "entity": "12345",
            "reference": "999888777",
        }
    )

    assert confirmed.status == "completed"
    db.refresh(subscription)
    db.refresh(invoice)
    assert subscription.status == "active"
    assert invoice.status == "paid"
    assert subscription.current_period_end == subscription.current_period_start + relativedelta(months=1)
    assert db.query(AuditPayment).filter(AuditPayment.action == "payment_completed").count() == 1

    # Repeated callbacks are ignored
    again = service.process_callback(
        {"key": "phish", "orderId": invoice.invoice_number, "amount": "6.00", "requestId": payment.external_payment_id,
         "entity": "12345", "reference": "999888777"}
    )
    assert again.id == confirmed.id
    assert db.query(AuditPayment).filter(AuditPayment.action == "payment_completed").count() == 1


def test_callback_amount_mismatch(db, admin, condominium, fractions):
    service, subscription = _attached_subscription(db, admin, condominium, make_gateway(multibanco_handler))
    payment = asyncio.run(service.create_payment(subscription, admin, "multibanco"))

    with pytest.raises(HTTPException) as exc:
        service.process_callback(
            {"key": "phish", "orderId": "x", "amount": "1.00", "requestId": payment.external_payment_id,
             "entity": "12345", "reference": "999888777"}
        )
    assert exc.value.status_code == 400
    assert db.query(AuditPayment).filter(AuditPayment.action == "payment_amount_mismatch").count() == 1


def test_callback_for_unknown_payment(db):
    service = SubscriptionService(db, gateway=make_gateway(multibanco_handler))
    with pytest.raises(HTTPException) as exc:
        service.process_callback({"key": "phish", "orderId": "nope", "amount": "1", "requestId": "nope"})
    assert exc.value.status_code == 404


def test_mbway_requires_phone(db, admin, condominium, fractions):
    service, subscription = _attached_subscription(db, admin, condominium, make_gateway(multibanco_handler))
    with pytest.raises(HTTPException) as exc:
        asyncio.run(service.create_payment(subscription, admin, "mbway"))
    assert exc.value.status_code == 400


def test_unconfigured_gateway_is_unavailable(db, admin, condominium, fractions):
    gateway = make_gateway(multibanco_handler, mb_key="")
    service, subscription = _attached_subscription(db, admin, condominium, gateway)
    with pytest.raises(HTTPException) as exc:
        asyncio.run(service.create_payment(subscription, admin, "multibanco"))
    assert exc.value.status_code == 503


# ============================================================================
# GATEWAY CLIENT
# ============================================================================


def test_format_amount():
    assert format_amount(Decimal("6")) == "6.00"
    assert format_amount("12.5") == "12.50"


def test_gateway_retries_server_errors():
    calls = []

    def handler(request):
        calls.append(request)
        if len(calls) < 3:
            return httpx.Response(503)
        return httpx.Response(200, json={"idpedido": "REQ-1"})

    result = asyncio.run(make_gateway(handler).create_mbway_payment("10", "912345678", "INV-1"))

    assert len(calls) == 3
    assert result["external_payment_id"] == "REQ-1"
    sent = json.loads(calls[-1].content)
    assert sent["telemovel"] == "912345678"
    assert sent["valor"] == "10.00"


def test_gateway_gives_up_after_retries():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(PaymentGatewayError):
        asyncio.run(make_gateway(handler).create_multibanco_payment("10", "INV-1"))


def test_gateway_does_not_retry_client_errors():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(400, text="bad key")

    with pytest.raises(PaymentGatewayError):
        asyncio.run(make_gateway(handler).create_multibanco_payment("10", "INV-1"))
    assert len(calls) == 1


def test_gateway_invalid_response():
    def handler(request):
        return httpx.Response(200, json={"unexpected": True})

    with pytest.raises(PaymentGatewayError):
        asyncio.run(make_gateway(handler).create_multibanco_payment("10", "INV-1"))


def test_status_check_returns_none_on_failure():
    def handler(request):
        return httpx.Response(404)

    assert asyncio.run(make_gateway(handler).check_payment_status("REQ-1")) is None


def test_callback_validation():
    gateway = make_gateway(multibanco_handler)
    with pytest.raises(PaymentGatewayError):
        gateway.parse_callback({"key": "wrong", "orderId": "1", "amount": "1", "requestId": "1"})
    with pytest.raises(PaymentGatewayError):
        gateway.parse_callback({"key": "phish", "orderId": "1", "amount": "1", "requestId": "1", "entity": "123"})

    parsed = gateway.parse_callback({"key": "phish", "orderId": "INV-1", "amount": "2,50", "requestId": "R"})
    assert parsed["method"] == "mbway"
    assert parsed["amount"] == Decimal("2.50")


def test_callbacks_without_key_only_outside_production():
    sandbox = make_gateway(multibanco_handler, anti_phishing_key="", environment="sandbox")
    production = make_gateway(multibanco_handler, anti_phishing_key="", environment="production")
    assert sandbox.validate_callback({}) is True
    assert production.validate_callback({}) is False


def test_invoice_period_clamps_to_month_end(db, admin, condominium, fractions):
    service, subscription = _attached_subscription(db, admin, condominium, make_gateway(multibanco_handler))
    subscription.status = "active"
    subscription.current_period_end = datetime(2099, 1, 31, 12, 0)
    db.flush()

    invoice = service.create_invoice(subscription)

    assert invoice.period_start == datetime(2099, 1, 31, 12, 0)
    assert invoice.period_end == datetime(2099, 2, 28, 12, 0)
