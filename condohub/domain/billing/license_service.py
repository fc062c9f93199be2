"""
License accounting.

A license is an active fraction of a condominium attached to a subscription.
Plans carry a minimum (charged even when fewer licenses are used) and an
optional limit, which subscriptions may override or exceed when overage is
allowed.
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ...exceptions import LicenseError
from ...models_billing import Plan, Subscription
from .repository import BillingRepository

logger = logging.getLogger(__name__)


class LicenseService:
    def __init__(self, db: Session):
        self.db = db
        self.repo = BillingRepository()

    def count_active_licenses(self, subscription_id: int) -> int:
        return self.repo.count_active_fractions_for_subscription(self.db, subscription_id)

    def count_active_licenses_by_condominium(self, condominium_id: int) -> int:
        return self.repo.count_active_fractions_in_condominium(self.db, condominium_id)

    @staticmethod
    def effective_limit(subscription: Subscription, plan: Plan) -> Optional[int]:
        """Subscription override, then plan limit, then plan minimum; plus purchased extras"""
        license_min = plan.license_min or 0
        if subscription.license_limit is not None:
            limit = subscription.license_limit
        elif plan.license_limit is not None:
            limit = plan.license_limit
        elif license_min > 0:
            limit = license_min
        else:
            return None
        return limit + (subscription.extra_licenses or 0)

    @staticmethod
    def allows_overage(subscription: Subscription, plan: Plan) -> bool:
        if subscription.allow_overage is not None:
            return bool(subscription.allow_overage)
        return bool(plan.allow_overage)

    def validate_license_availability(
        self, subscription_id: int, additional_licenses: int, is_adding_extras: bool = False
    ) -> dict:
        """
        Check whether ``additional_licenses`` more licenses fit in a subscription.

        The plan minimum is only enforced when ``is_adding_extras`` is False;
        extras added to a running subscription may take it anywhere up to the
        limit.
        """
        subscription = self.repo.get_subscription(self.db, subscription_id)
        if not subscription:
            return {"available": False, "reason": "Subscription not found"}

        plan = self.repo.get_plan(self.db, subscription.plan_id)
        if not plan:
            return {"available": False, "reason": "Plan not found"}

        current = subscription.used_licenses or 0
        license_min = plan.license_min or 0
        limit = self.effective_limit(subscription, plan)
        projected = current + additional_licenses

        if not is_adding_extras and license_min > 0 and projected < license_min:
            return {
                "available": False,
                "reason": f"A minimum of {license_min} licenses is required. Projected: {projected}",
                "current": current,
                "projected": projected,
                "minimum": license_min,
                "limit": limit,
            }

        if limit is not None and projected > limit and not self.allows_overage(subscription, plan):
            return {
                "available": False,
                "reason": f"Would exceed the limit of {limit} licenses. Projected: {projected}",
                "current": current,
                "projected": projected,
                "minimum": license_min,
                "limit": limit,
            }

        return {
            "available": True,
            "reason": "",
            "current": current,
            "projected": projected,
            "minimum": license_min,
            "limit": limit,
            "would_exceed": limit is not None and projected > limit,
        }

    def ensure_available(self, subscription_id: int, additional_licenses: int, is_adding_extras: bool = False) -> dict:
        result = self.validate_license_availability(subscription_id, additional_licenses, is_adding_extras)
        if not result["available"]:
            logger.warning(f"⚠️ License check failed for subscription {subscription_id}: {result['reason']}")
            raise LicenseError(result["reason"])
        return result

    @staticmethod
    def apply_minimum_charge(subscription: Subscription, used_licenses: int, minimum: int) -> int:
        """Licenses to charge: the minimum when the subscription is charged for it"""
        charge_minimum = True if subscription.charge_minimum is None else subscription.charge_minimum
        if charge_minimum and used_licenses < minimum:
            return minimum
        return used_licenses

    def recalculate_and_update(self, subscription_id: int) -> int:
        """
        Store the license count of a subscription.

        Base (``condominio``) plans store the count with the minimum applied;
        other plans store the real count and apply the minimum when pricing.
        """
        subscription = self.repo.get_subscription(self.db, subscription_id)
        if not subscription:
            return 0

        count = self.count_active_licenses(subscription_id)
        plan = self.repo.get_plan(self.db, subscription.plan_id)
        if plan and plan.plan_type == "condominio":
            count = self.apply_minimum_charge(subscription, count, plan.license_min or 0)

        subscription.used_licenses = count
        self.db.flush()
        return count
