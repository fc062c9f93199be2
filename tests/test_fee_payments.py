from datetime import date
from decimal import Decimal

import pytest

from condohub.exceptions import CondoHubError
from condohub.models_audit import AuditFinancial
from condohub.models_finance import BankAccount, Fee, FeePayment, FeePaymentHistory, FinancialTransaction, Receipt
from condohub.services.fee_payment_service import FeePaymentService
from condohub.services.fraction_account_service import FractionAccountService, to_money
from condohub.services.liquidation_service import LiquidationService


def _fee(db, fraction, month=1, amount="40", fee_type="regular"):
    fee = Fee(
        condominium_id=fraction.condominium_id,
        fraction_id=fraction.id,
        period_type="monthly",
        period_year=2024,
        period_month=month,
        period_index=month if fee_type == "regular" else None,
        fee_type=fee_type,
        amount=Decimal(amount),
        base_amount=Decimal(amount),
        status="pending",
        due_date=date(2024, month, 10),
    )
    db.add(fee)
    db.commit()
    return fee


def test_full_payment_marks_fee_paid_with_receipt(db, condominium, fractions):
    fee = _fee(db, fractions[0])
    payments = FeePaymentService(db).register_payment(
        condominium.id, fee.id, "40", "mbway", payment_date=date(2024, 1, 5), reference="MB123"
    )
    db.commit()

    assert len(payments) == 1
    assert fee.status == "paid"
    assert fee.paid_at is not None
    assert db.query(Receipt).filter(Receipt.fee_id == fee.id).count() == 1

    transaction = db.get(FinancialTransaction, payments[0].financial_transaction_id)
    assert transaction.transaction_type == "income"
    assert transaction.related_type == "fee_payment"
    assert transaction.related_id == payments[0].id

    cash = db.get(BankAccount, transaction.bank_account_id)
    assert cash.account_type == "cash"
    assert to_money(cash.current_balance) == Decimal("40.00")


def test_payment_spreads_over_regular_then_extra(db, condominium, fractions):
    regular = _fee(db, fractions[0], 2, "40")
    extra = _fee(db, fractions[0], 2, "20", fee_type="extra")

    payments = FeePaymentService(db).register_payment(condominium.id, extra.id, "50", "transfer")
    db.commit()

    allocations = {p.fee_id: to_money(p.amount) for p in payments}
    assert allocations == {regular.id: Decimal("40.00"), extra.id: Decimal("10.00")}
    assert regular.status == "paid"
    assert extra.status == "pending"
    assert len({p.financial_transaction_id for p in payments}) == 1


def test_payment_cannot_exceed_what_the_period_owes(db, condominium, fractions):
    fee = _fee(db, fractions[0])
    with pytest.raises(CondoHubError):
        FeePaymentService(db).register_payment(condominium.id, fee.id, "40.01", "cash")


def test_invalid_payment_method(db, condominium, fractions):
    fee = _fee(db, fractions[0])
    with pytest.raises(CondoHubError):
        FeePaymentService(db).register_payment(condominium.id, fee.id, "10", "cheque")


def test_fee_of_another_condominium_is_not_found(db, condominium, fractions):
    fee = _fee(db, fractions[0])
    with pytest.raises(CondoHubError):
        FeePaymentService(db).register_payment(condominium.id + 1, fee.id, "10", "cash")


def test_payment_is_audited_and_logged_in_history(db, condominium, fractions):
    fee = _fee(db, fractions[0])
    payments = FeePaymentService(db).register_payment(condominium.id, fee.id, "40", "cash")
    db.commit()

    actions = {row.action for row in db.query(AuditFinancial).filter(AuditFinancial.condominium_id == condominium.id)}
    assert {"fee_payment_created", "fee_marked_as_paid", "financial_transaction_created"} <= actions

    history = db.query(FeePaymentHistory).filter(FeePaymentHistory.fee_id == fee.id).one()
    assert history.action == "payment_added"
    assert history.fee_payment_id == payments[0].id


def test_deleting_payment_reopens_fee(db, condominium, fractions):
    fee = _fee(db, fractions[0])
    service = FeePaymentService(db)
    payment = service.register_payment(condominium.id, fee.id, "40", "cash")[0]
    db.commit()

    service.delete_payment(condominium.id, fee.id, payment.id)
    db.commit()

    assert fee.status == "pending"
    assert fee.paid_at is None
    assert db.query(FeePayment).filter(FeePayment.fee_id == fee.id).count() == 0
    assert db.query(Receipt).filter(Receipt.fee_id == fee.id).count() == 0
    assert db.query(FeePaymentHistory).filter(FeePaymentHistory.action == "payment_deleted").count() == 1


def test_deleting_liquidated_payment_restores_credit(db, condominium, fractions):
    fraction = fractions[0]
    fee = _fee(db, fraction)
    accounts = FractionAccountService(db)
    account = accounts.get_or_create(fraction.id)
    accounts.add_credit(account, "40")
    result = LiquidationService(db).liquidate(fraction.id)
    db.commit()
    assert to_money(account.balance) == Decimal("0.00")

    FeePaymentService(db).delete_payment(condominium.id, fee.id, result["fully_paid_payments"][fee.id])
    db.commit()

    db.refresh(account)
    assert to_money(account.balance) == Decimal("40.00")
    assert fee.status == "pending"


def test_unknown_payment(db, condominium, fractions):
    fee = _fee(db, fractions[0])
    with pytest.raises(CondoHubError):
        FeePaymentService(db).delete_payment(condominium.id, fee.id, 12345)
