"""
Fee generation.

Regular fees split a fraction's annual share (budget revenue or a manual
total, weighted by permillage) over the periods of a year. The first N-1
periods are floored to the cent and the last one takes the remainder, so the
periods of a fraction always add up to its annual amount. Extra fees are one
off charges per selected month and carry a ``-E`` reference suffix.
"""

import logging
from datetime import date
from decimal import ROUND_FLOOR, ROUND_HALF_UP, Decimal
from typing import Iterable, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from ..exceptions import FeeGenerationError
from ..models import Fraction
from ..models_finance import Budget, BudgetItem, CondominiumFeePeriod, Fee

logger = logging.getLogger(__name__)

PERIOD_CONFIG = {
    "monthly": {"count": 12, "last_months": [1, 2, 3, 4, 5, 6, 7, 8, 9, 10, 11, 12]},
    "bimonthly": {"count": 6, "last_months": [2, 4, 6, 8, 10, 12]},
    "quarterly": {"count": 4, "last_months": [3, 6, 9, 12]},
    "semiannual": {"count": 2, "last_months": [6, 12]},
    "annual": {"count": 1, "last_months": [12]},
}

DUE_DAY = 10
CENT = Decimal("0.01")


def round_money(value: Decimal) -> Decimal:
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def normalize_period_type(period_type: Optional[str]) -> str:
    value = (period_type or "monthly").strip().lower()
    if value == "yearly":
        return "annual"
    return value if value in PERIOD_CONFIG else "monthly"


def split_amount_by_period(annual_amount, period_count: int) -> list[Decimal]:
    """Floor the first N-1 periods to the cent; the last one absorbs the remainder"""
    annual_amount = Decimal(str(annual_amount))
    if period_count <= 1:
        return [round_money(annual_amount)]
    base = (annual_amount * 100 / period_count).to_integral_value(rounding=ROUND_FLOOR) / 100
    base = base.quantize(CENT)
    last = round_money(annual_amount - base * (period_count - 1))
    return [base] * (period_count - 1) + [last]


def fee_reference(condominium_id: int, fraction_id: int, year: int, month_or_index: int, extra: bool = False) -> str:
    reference = f"Q{condominium_id:03d}-{fraction_id:02d}-{year:04d}{month_or_index:02d}"
    return f"{reference}-E" if extra else reference


def due_date_for_period(year: int, period_type: str, period_index: int) -> date:
    config = PERIOD_CONFIG.get(period_type, PERIOD_CONFIG["monthly"])
    months = config["last_months"]
    last_month = months[period_index - 1] if 0 < period_index <= len(months) else 12
    return date(year, last_month, DUE_DAY)


def calculate_fee_amount(total_amount, fraction_permillage, total_permillage) -> Decimal:
    total_permillage = Decimal(str(total_permillage))
    if total_permillage == 0:
        return Decimal("0")
    return Decimal(str(total_amount)) * Decimal(str(fraction_permillage)) / total_permillage


def _normalize_months(months) -> list[int]:
    if isinstance(months, int):
        months = [months]
    result = []
    for month in months:
        month = int(month)
        if 1 <= month <= 12 and month not in result:
            result.append(month)
    return result


class FeeService:
    """Generates regular and extra fees; callers commit"""

    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def active_fractions(self, condominium_id: int) -> list[Fraction]:
        return (
            self.db.query(Fraction)
            .filter(Fraction.condominium_id == condominium_id, Fraction.is_active.is_(True))
            .order_by(Fraction.id)
            .all()
        )

    def total_permillage(self, condominium_id: int) -> Decimal:
        total = (
            self.db.query(func.coalesce(func.sum(Fraction.permillage), 0))
            .filter(Fraction.condominium_id == condominium_id, Fraction.is_active.is_(True))
            .scalar()
        )
        return Decimal(str(total or 0))

    def get_budget(self, condominium_id: int, year: int) -> Optional[Budget]:
        return (
            self.db.query(Budget)
            .filter(Budget.condominium_id == condominium_id, Budget.year == year)
            .first()
        )

    def budget_revenue(self, budget: Budget) -> Decimal:
        total = (
            self.db.query(func.coalesce(func.sum(BudgetItem.amount), 0))
            .filter(BudgetItem.budget_id == budget.id, BudgetItem.item_type == "revenue")
            .scalar()
        )
        return Decimal(str(total or 0))

    def _regular_fee_exists(
        self, condominium_id: int, fraction_id: int, year: int, period_index: int, month: int
    ) -> bool:
        return (
            self.db.query(Fee.id)
            .filter(
                Fee.condominium_id == condominium_id,
                Fee.fraction_id == fraction_id,
                Fee.period_year == year,
                Fee.fee_type == "regular",
                or_(
                    Fee.period_index == period_index,
                    (Fee.period_index.is_(None)) & (Fee.period_month == month),
                ),
            )
            .first()
            is not None
        )

    def _fractions_with_permillage(self, condominium_id: int) -> tuple[list[Fraction], Decimal]:
        fractions = self.active_fractions(condominium_id)
        if not fractions:
            raise FeeGenerationError("No fractions found in the condominium")
        total = self.total_permillage(condominium_id)
        if total == 0:
            raise FeeGenerationError("Total permillage cannot be zero; check the fractions")
        return fractions, total

    def _validate_fraction_amounts(self, condominium_id: int, fraction_amounts: dict) -> dict[int, Decimal]:
        if not fraction_amounts:
            raise FeeGenerationError("Provide an amount for at least one fraction")
        validated = {}
        for fraction_id, amount in fraction_amounts.items():
            fraction = self.db.get(Fraction, int(fraction_id))
            if not fraction or fraction.condominium_id != condominium_id:
                raise FeeGenerationError(f"Fraction {fraction_id} not found in this condominium")
            amount = Decimal(str(amount))
            if amount <= 0:
                raise FeeGenerationError(f"Annual amount for fraction {fraction_id} must be greater than zero")
            validated[int(fraction_id)] = amount
        return validated

    def _set_period_type(self, condominium_id: int, year: int, period_type: str) -> None:
        record = (
            self.db.query(CondominiumFeePeriod)
            .filter(CondominiumFeePeriod.condominium_id == condominium_id, CondominiumFeePeriod.year == year)
            .first()
        )
        if record:
            record.period_type = period_type
        else:
            self.db.add(CondominiumFeePeriod(condominium_id=condominium_id, year=year, period_type=period_type))
        self.db.flush()

    def get_period_type(self, condominium_id: int, year: int) -> str:
        record = (
            self.db.query(CondominiumFeePeriod)
            .filter(CondominiumFeePeriod.condominium_id == condominium_id, CondominiumFeePeriod.year == year)
            .first()
        )
        return record.period_type if record else "monthly"

    def _create_fee(self, **values) -> Fee:
        fee = Fee(status="pending", **values)
        self.db.add(fee)
        self.db.flush()
        return fee

    # ------------------------------------------------------------------
    # Regular fees
    # ------------------------------------------------------------------

    def generate_monthly_fees(self, condominium_id: int, year: int, months) -> list[Fee]:
        """Monthly fees from the year's budget revenue for the given months"""
        budget = self.get_budget(condominium_id, year)
        if not budget:
            raise FeeGenerationError(f"No budget found for {year}; create a budget first")
        if budget.status not in ("draft", "approved", "active"):
            raise FeeGenerationError(f"Budget is not available for fee generation (status: {budget.status})")

        fractions, total_permillage = self._fractions_with_permillage(condominium_id)

        total_revenue = self.budget_revenue(budget)
        if total_revenue <= 0:
            raise FeeGenerationError("The budget has no revenue items")

        months = _normalize_months(months)
        full_year = sorted(months) == list(range(1, 13))

        generated = []
        for month in months:
            due_date = date(year, month, DUE_DAY)
            for fraction in fractions:
                if full_year:
                    annual = calculate_fee_amount(total_revenue, fraction.permillage, total_permillage)
                    amount = split_amount_by_period(annual, 12)[month - 1]
                else:
                    amount = round_money(
                        calculate_fee_amount(total_revenue / 12, fraction.permillage, total_permillage)
                    )

                if self._regular_fee_exists(condominium_id, fraction.id, year, month, month):
                    continue

                generated.append(
                    self._create_fee(
                        condominium_id=condominium_id,
                        fraction_id=fraction.id,
                        period_type="monthly",
                        fee_type="regular",
                        period_year=year,
                        period_month=month,
                        period_index=month,
                        amount=amount,
                        base_amount=amount,
                        due_date=due_date,
                        reference=fee_reference(condominium_id, fraction.id, year, month),
                    )
                )

        logger.info(f"🧮 Generated {len(generated)} monthly fee(s) for condominium {condominium_id}/{year}")
        return generated

    def _generate_regular_fees_by_period(
        self, condominium_id: int, year: int, fraction_amounts: dict, period_type: str
    ) -> list[Fee]:
        period_type = normalize_period_type(period_type)
        config = PERIOD_CONFIG[period_type]
        period_count = config["count"]
        generated = []

        for fraction_id, annual_amount in fraction_amounts.items():
            annual_amount = Decimal(str(annual_amount))
            if annual_amount <= 0:
                continue
            amounts = split_amount_by_period(annual_amount, period_count)

            for period_index in range(1, period_count + 1):
                last_month = config["last_months"][period_index - 1]
                if self._regular_fee_exists(condominium_id, fraction_id, year, period_index, last_month):
                    continue

                generated.append(
                    self._create_fee(
                        condominium_id=condominium_id,
                        fraction_id=fraction_id,
                        period_type=period_type,
                        fee_type="regular",
                        period_year=year,
                        period_month=period_index if period_type == "monthly" else None,
                        period_index=period_index,
                        amount=amounts[period_index - 1],
                        base_amount=amounts[period_index - 1],
                        due_date=due_date_for_period(year, period_type, period_index),
                        reference=fee_reference(condominium_id, fraction_id, year, period_index),
                    )
                )
        return generated

    def generate_annual_fees_from_budget(self, condominium_id: int, year: int, period_type: str = "monthly") -> list[Fee]:
        """All periods of the year from an approved budget; allowed once per budget"""
        period_type = normalize_period_type(period_type)

        budget = self.get_budget(condominium_id, year)
        if not budget:
            raise FeeGenerationError(f"No budget found for {year}; create a budget first")
        if budget.status not in ("approved", "active"):
            raise FeeGenerationError(f"The budget must be approved to generate fees (status: {budget.status})")
        if budget.annual_fees_generated:
            raise FeeGenerationError("Annual fees were already generated for this year")

        total_revenue = self.budget_revenue(budget)
        if total_revenue <= 0:
            raise FeeGenerationError("The budget has no revenue items")

        fractions, total_permillage = self._fractions_with_permillage(condominium_id)
        fraction_amounts = {
            f.id: calculate_fee_amount(total_revenue, f.permillage, total_permillage) for f in fractions
        }

        generated = self._generate_regular_fees_by_period(condominium_id, year, fraction_amounts, period_type)
        if generated:
            budget.annual_fees_generated = True
            self._set_period_type(condominium_id, year, period_type)
        logger.info(f"🧮 Generated {len(generated)} {period_type} fee(s) from budget {budget.id}")
        return generated

    def generate_annual_fees_manual(
        self, condominium_id: int, year: int, total_annual_amount, period_type: str = "monthly"
    ) -> list[Fee]:
        """Distribute a manual annual total by permillage"""
        period_type = normalize_period_type(period_type)
        total_annual_amount = Decimal(str(total_annual_amount))
        if total_annual_amount <= 0:
            raise FeeGenerationError("The annual total must be greater than zero")

        fractions, total_permillage = self._fractions_with_permillage(condominium_id)
        fraction_amounts = {
            f.id: calculate_fee_amount(total_annual_amount, f.permillage, total_permillage) for f in fractions
        }
        generated = self._generate_regular_fees_by_period(condominium_id, year, fraction_amounts, period_type)
        if generated:
            self._set_period_type(condominium_id, year, period_type)
        return generated

    def generate_annual_fees_per_fraction(
        self, condominium_id: int, year: int, fraction_amounts: dict, period_type: str = "monthly"
    ) -> list[Fee]:
        """Explicit annual amount per fraction"""
        amounts = self._validate_fraction_amounts(condominium_id, fraction_amounts)
        period_type = normalize_period_type(period_type)
        generated = self._generate_regular_fees_by_period(condominium_id, year, amounts, period_type)
        if generated:
            self._set_period_type(condominium_id, year, period_type)
        return generated

    # ------------------------------------------------------------------
    # Extra fees
    # ------------------------------------------------------------------

    def generate_extra_fees(
        self,
        condominium_id: int,
        year: int,
        months,
        total_amount,
        description: str = "",
        fraction_ids: Optional[Iterable[int]] = None,
    ) -> list[Fee]:
        """One extra fee per month and fraction, the total split by permillage of the selection"""
        fraction_ids = list(fraction_ids or [])
        if not fraction_ids:
            fractions = self.active_fractions(condominium_id)
        else:
            fractions = []
            for fraction_id in fraction_ids:
                fraction = self.db.get(Fraction, int(fraction_id))
                if fraction and fraction.condominium_id == condominium_id:
                    fractions.append(fraction)

        if not fractions:
            raise FeeGenerationError("No fractions selected or found")

        total_permillage = sum((Decimal(str(f.permillage or 0)) for f in fractions), Decimal("0"))
        if total_permillage == 0:
            raise FeeGenerationError("Total permillage cannot be zero; check the fractions")

        generated = []
        for month in _normalize_months(months):
            for fraction in fractions:
                amount = round_money(calculate_fee_amount(total_amount, fraction.permillage, total_permillage))
                generated.append(
                    self._create_fee(
                        condominium_id=condominium_id,
                        fraction_id=fraction.id,
                        period_type="monthly",
                        fee_type="extra",
                        period_year=year,
                        period_month=month,
                        amount=amount,
                        base_amount=amount,
                        due_date=date(year, month, DUE_DAY),
                        reference=fee_reference(condominium_id, fraction.id, year, month, extra=True),
                        notes=description or None,
                    )
                )
        logger.info(f"🧮 Generated {len(generated)} extra fee(s) for condominium {condominium_id}")
        return generated

    def generate_extra_fees_manual(
        self, condominium_id: int, year: int, months, fraction_amounts: dict, description: str = ""
    ) -> list[Fee]:
        """Each fraction's amount is divided evenly over the selected months"""
        months = _normalize_months(months or [])
        if not months:
            raise FeeGenerationError("Select at least one month")
        amounts = self._validate_fraction_amounts(condominium_id, fraction_amounts)

        generated = []
        for month in months:
            for fraction_id, annual_amount in amounts.items():
                amount = round_money(annual_amount / len(months))
                generated.append(
                    self._create_fee(
                        condominium_id=condominium_id,
                        fraction_id=fraction_id,
                        period_type="monthly",
                        fee_type="extra",
                        period_year=year,
                        period_month=month,
                        amount=amount,
                        base_amount=amount,
                        due_date=date(year, month, DUE_DAY),
                        reference=fee_reference(condominium_id, fraction_id, year, month, extra=True),
                        notes=description or None,
                    )
                )
        return generated

    # ------------------------------------------------------------------
    # Status maintenance
    # ------------------------------------------------------------------

    def mark_overdue(self, condominium_id: int, today: Optional[date] = None) -> int:
        """Pending fees past their due date become overdue"""
        today = today or date.today()
        fees = (
            self.db.query(Fee)
            .filter(Fee.condominium_id == condominium_id, Fee.status == "pending", Fee.due_date < today)
            .all()
        )
        for fee in fees:
            fee.status = "overdue"
        self.db.flush()
        if fees:
            logger.info(f"⏰ Marked {len(fees)} fee(s) overdue in condominium {condominium_id}")
        return len(fees)
