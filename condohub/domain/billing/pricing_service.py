"""Subscription pricing: license tiers, annual discount and promotions"""

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from sqlalchemy.orm import Session

from ...models_billing import Plan, PlanPricingTier, Promotion, Subscription
from .license_service import LicenseService
from .repository import BillingRepository

PRICING_MODES = ("flat", "progressive")

CENT = Decimal("0.01")


def money(value) -> Decimal:
    return Decimal(str(value or 0)).quantize(CENT, rounding=ROUND_HALF_UP)


def tier_range(tier: PlanPricingTier) -> str:
    if tier.max_licenses is None:
        return f"{tier.min_licenses}+"
    return f"{tier.min_licenses}-{tier.max_licenses}"


def find_tier_for_count(tiers: list[PlanPricingTier], license_count: int) -> Optional[PlanPricingTier]:
    """Tier whose range contains the count; counts outside every range use the nearest end"""
    if not tiers:
        return None
    for tier in tiers:
        if license_count >= tier.min_licenses and (tier.max_licenses is None or license_count <= tier.max_licenses):
            return tier
    if license_count < tiers[0].min_licenses:
        return tiers[0]
    return tiers[-1]


class PricingService:
    def __init__(self, db: Session):
        self.db = db
        self.repo = BillingRepository()

    def get_price_breakdown(self, plan: Plan, license_count: int, mode: Optional[str] = None) -> dict:
        """
        Monthly price of ``license_count`` licenses on a plan.

        flat: every license at the price of the tier the count falls into.
        progressive: each tier range is charged at its own price.
        Plans without tiers cost their base monthly price.
        """
        tiers = self.repo.get_active_tiers(self.db, plan.id)

        if not tiers:
            base_price = money(plan.price_monthly)
            return {
                "total": base_price,
                "mode": "base",
                "license_count": license_count,
                "breakdown": [
                    {
                        "tier": "base",
                        "licenses": license_count,
                        "price_per_license": (base_price / max(1, license_count)).quantize(CENT),
                        "subtotal": base_price,
                    }
                ],
            }

        if mode not in PRICING_MODES:
            mode = plan.pricing_mode if plan.pricing_mode in PRICING_MODES else "flat"

        breakdown = []
        total = Decimal("0")

        if mode == "flat":
            tier = find_tier_for_count(tiers, license_count)
            price = Decimal(str(tier.price_per_license))
            subtotal = price * license_count
            total = subtotal
            breakdown.append(
                {
                    "tier": tier_range(tier),
                    "licenses": license_count,
                    "price_per_license": price,
                    "subtotal": money(subtotal),
                }
            )
        else:
            remaining = license_count
            for tier in tiers:
                if remaining <= 0 or license_count < tier.min_licenses:
                    break
                upper = license_count if tier.max_licenses is None else min(license_count, tier.max_licenses)
                in_tier = min(remaining, upper - tier.min_licenses + 1)
                if in_tier <= 0:
                    continue
                price = Decimal(str(tier.price_per_license))
                subtotal = price * in_tier
                total += subtotal
                remaining -= in_tier
                breakdown.append(
                    {
                        "tier": tier_range(tier),
                        "licenses": in_tier,
                        "price_per_license": price,
                        "subtotal": money(subtotal),
                    }
                )

        return {
            "total": money(total),
            "mode": mode,
            "license_count": license_count,
            "breakdown": breakdown,
        }

    def calculate_tiered_price(self, plan: Plan, license_count: int, mode: Optional[str] = None) -> Decimal:
        return self.get_price_breakdown(plan, license_count, mode)["total"]

    @staticmethod
    def calculate_annual_price(monthly_price, discount_percentage) -> Decimal:
        annual = Decimal(str(monthly_price or 0)) * 12
        discount = annual * Decimal(str(discount_percentage or 0)) / 100
        return money(annual - discount)

    @staticmethod
    def apply_promotion(base_price, promotion: Optional[Promotion], now: Optional[datetime] = None) -> Decimal:
        """Discounted price, never below zero; inactive or out of window promotions are ignored"""
        base_price = Decimal(str(base_price or 0))
        if not promotion or not promotion.is_active:
            return money(base_price)

        now = now or datetime.utcnow()
        if promotion.valid_from and promotion.valid_from > now:
            return money(base_price)
        if promotion.valid_until and promotion.valid_until < now:
            return money(base_price)

        value = Decimal(str(promotion.discount_value or 0))
        if promotion.discount_type == "percentage":
            discounted = base_price - base_price * value / 100
        else:
            discounted = base_price - value
        return money(max(Decimal("0"), discounted))

    def subscription_monthly_price(self, subscription: Subscription, now: Optional[datetime] = None) -> dict:
        """Monthly price of a subscription at its current license count"""
        plan = subscription.plan or self.repo.get_plan(self.db, subscription.plan_id)
        charged = LicenseService.apply_minimum_charge(
            subscription, subscription.used_licenses or 0, plan.license_min or 0
        )
        breakdown = self.get_price_breakdown(plan, charged)
        price = breakdown["total"]

        now = now or datetime.utcnow()
        promotion = subscription.promotion
        if promotion and (subscription.promotion_ends_at is None or subscription.promotion_ends_at > now):
            price = self.apply_promotion(price, promotion, now)

        return {
            **breakdown,
            "charged_licenses": charged,
            "used_licenses": subscription.used_licenses or 0,
            "price_monthly": price,
        }

    def subscription_period_price(self, subscription: Subscription, now: Optional[datetime] = None) -> Decimal:
        """Price of one billing cycle (monthly, or yearly with the plan discount)"""
        monthly = self.subscription_monthly_price(subscription, now)["price_monthly"]
        if subscription.billing_cycle == "yearly":
            plan = subscription.plan or self.repo.get_plan(self.db, subscription.plan_id)
            return self.calculate_annual_price(monthly, plan.annual_discount_percentage)
        return monthly
