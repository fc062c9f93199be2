from datetime import date
from decimal import Decimal

import pytest

from condohub.exceptions import FeeGenerationError
from condohub.models_finance import CondominiumFeePeriod, Fee
from condohub.services.fee_service import (
    FeeService,
    due_date_for_period,
    fee_reference,
    normalize_period_type,
    split_amount_by_period,
)

from conftest import make_budget, make_condominium, make_fraction


def test_split_amount_floors_all_but_last_period():
    parts = split_amount_by_period(Decimal("100"), 3)
    assert parts == [Decimal("33.33"), Decimal("33.33"), Decimal("33.34")]
    assert sum(parts) == Decimal("100.00")


def test_split_amount_single_period():
    assert split_amount_by_period("99.999", 1) == [Decimal("100.00")]


def test_fee_reference_format():
    assert fee_reference(7, 3, 2024, 5) == "Q007-03-202405"
    assert fee_reference(7, 3, 2024, 5, extra=True) == "Q007-03-202405-E"


def test_normalize_period_type():
    assert normalize_period_type("Yearly") == "annual"
    assert normalize_period_type("quarterly") == "quarterly"
    assert normalize_period_type("weekly") == "monthly"
    assert normalize_period_type(None) == "monthly"


def test_due_date_uses_last_month_of_period():
    assert due_date_for_period(2024, "quarterly", 2) == date(2024, 6, 10)
    assert due_date_for_period(2024, "annual", 1) == date(2024, 12, 10)


def test_monthly_fees_require_a_budget(db, condominium, fractions):
    with pytest.raises(FeeGenerationError):
        FeeService(db).generate_monthly_fees(condominium.id, 2024, [1])


def test_monthly_fees_refused_for_closed_budget(db, condominium, fractions):
    make_budget(db, condominium, status="closed")
    with pytest.raises(FeeGenerationError):
        FeeService(db).generate_monthly_fees(condominium.id, 2024, [1])


def test_monthly_fees_split_by_permillage(db, condominium, fractions):
    make_budget(db, condominium, revenue="12000", status="draft")
    fees = FeeService(db).generate_monthly_fees(condominium.id, 2024, [1, 2])

    assert len(fees) == 6
    january = {f.fraction_id: f for f in fees if f.period_month == 1}
    assert january[fractions[0].id].amount == Decimal("500.00")
    assert january[fractions[1].id].amount == Decimal("300.00")
    assert january[fractions[2].id].amount == Decimal("200.00")
    assert january[fractions[0].id].due_date == date(2024, 1, 10)
    assert january[fractions[0].id].reference == fee_reference(condominium.id, fractions[0].id, 2024, 1)


def test_monthly_fees_are_not_duplicated(db, condominium, fractions):
    make_budget(db, condominium)
    service = FeeService(db)
    service.generate_monthly_fees(condominium.id, 2024, [3])
    again = service.generate_monthly_fees(condominium.id, 2024, [3])
    assert again == []
    assert db.query(Fee).count() == 3


def test_inactive_fractions_get_no_fees(db, condominium, fractions):
    fractions[2].is_active = False
    db.commit()
    make_budget(db, condominium)
    fees = FeeService(db).generate_monthly_fees(condominium.id, 2024, [1])
    assert {f.fraction_id for f in fees} == {fractions[0].id, fractions[1].id}


def test_annual_fees_need_an_approved_budget(db, condominium, fractions):
    make_budget(db, condominium, status="draft")
    with pytest.raises(FeeGenerationError):
        FeeService(db).generate_annual_fees_from_budget(condominium.id, 2024, "quarterly")


def test_annual_fees_from_budget_run_once(db, condominium, fractions):
    budget = make_budget(db, condominium, revenue="1000", status="approved")
    service = FeeService(db)

    fees = service.generate_annual_fees_from_budget(condominium.id, 2024, "quarterly")

    assert len(fees) == 12
    assert budget.annual_fees_generated is True
    fraction_a = sorted((f for f in fees if f.fraction_id == fractions[0].id), key=lambda f: f.period_index)
    assert [f.amount for f in fraction_a] == [Decimal("125.00")] * 4
    assert fraction_a[0].period_month is None
    assert fraction_a[-1].due_date == date(2024, 12, 10)
    assert service.get_period_type(condominium.id, 2024) == "quarterly"
    assert db.query(CondominiumFeePeriod).filter_by(condominium_id=condominium.id, year=2024).count() == 1

    with pytest.raises(FeeGenerationError):
        service.generate_annual_fees_from_budget(condominium.id, 2024, "quarterly")


def test_annual_manual_total(db, condominium, fractions):
    fees = FeeService(db).generate_annual_fees_manual(condominium.id, 2025, "600", "semiannual")
    fraction_c = [f for f in fees if f.fraction_id == fractions[2].id]
    assert len(fees) == 6
    assert sum(f.amount for f in fraction_c) == Decimal("120.00")


def test_annual_manual_total_must_be_positive(db, condominium, fractions):
    with pytest.raises(FeeGenerationError):
        FeeService(db).generate_annual_fees_manual(condominium.id, 2025, "0")


def test_annual_per_fraction_amounts(db, condominium, fractions):
    fees = FeeService(db).generate_annual_fees_per_fraction(
        condominium.id, 2025, {fractions[0].id: "100"}, "monthly"
    )
    assert len(fees) == 12
    assert fees[-1].amount == Decimal("8.37")
    assert sum(f.amount for f in fees) == Decimal("100.00")


def test_per_fraction_amounts_reject_foreign_fraction(db, admin, condominium, fractions):
    other = make_condominium(db, admin, "Other")
    stranger = make_fraction(db, other, "Z", "1000")
    with pytest.raises(FeeGenerationError):
        FeeService(db).generate_annual_fees_per_fraction(condominium.id, 2025, {stranger.id: "100"})


def test_extra_fees_for_selected_fractions(db, condominium, fractions):
    fees = FeeService(db).generate_extra_fees(
        condominium.id, 2024, [6], "800", "Roof repair", fraction_ids=[fractions[0].id, fractions[1].id]
    )
    amounts = {f.fraction_id: f.amount for f in fees}
    assert amounts == {fractions[0].id: Decimal("500.00"), fractions[1].id: Decimal("300.00")}
    assert all(f.fee_type == "extra" and f.reference.endswith("-E") for f in fees)
    assert fees[0].notes == "Roof repair"


def test_extra_fees_manual_divides_over_months(db, condominium, fractions):
    fees = FeeService(db).generate_extra_fees_manual(
        condominium.id, 2024, [1, 2, 3], {fractions[1].id: "90"}, "Painting"
    )
    assert [f.amount for f in fees] == [Decimal("30.00")] * 3


def test_extra_fees_manual_needs_months(db, condominium, fractions):
    with pytest.raises(FeeGenerationError):
        FeeService(db).generate_extra_fees_manual(condominium.id, 2024, [], {fractions[0].id: "10"})


def test_mark_overdue(db, condominium, fractions):
    make_budget(db, condominium)
    service = FeeService(db)
    service.generate_monthly_fees(condominium.id, 2024, [1, 12])

    changed = service.mark_overdue(condominium.id, today=date(2024, 6, 1))

    assert changed == 3
    statuses = {(f.period_month, f.status) for f in db.query(Fee).all()}
    assert statuses == {(1, "overdue"), (12, "pending")}
