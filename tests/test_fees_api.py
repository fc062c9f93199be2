from decimal import Decimal

import pytest

from condohub.models import Notification
from condohub.models_finance import Fee
from condohub.services.fraction_account_service import FractionAccountService

from conftest import add_member, auth_headers, make_budget, make_user


@pytest.fixture
def resident(db, condominium, fractions):
    user = make_user(db, email="resident@example.com", role="condomino", name="Resident")
    add_member(db, condominium, user, fractions[1])
    return user


def _generate_january(client, admin, condominium):
    response = client.post(
        f"/condominiums/{condominium.id}/fees/generate",
        json={"year": 2024, "mode": "monthly", "months": [1]},
        headers=auth_headers(admin),
    )
    assert response.status_code == 200
    return response.json()


def test_generate_monthly_fees_notifies_members(client, db, admin, condominium, fractions, resident):
    make_budget(db, condominium)

    fees = _generate_january(client, admin, condominium)

    assert len(fees) == 3
    assert {Decimal(f["amount"]) for f in fees} == {Decimal("500.00"), Decimal("300.00"), Decimal("200.00")}
    notifications = db.query(Notification).filter(Notification.user_id == resident.id).all()
    assert [n.type for n in notifications] == ["fee"]
    assert db.query(Notification).filter(Notification.user_id == admin.id).count() == 0


def test_generation_errors_are_reported(client, admin, condominium, fractions):
    url = f"/condominiums/{condominium.id}/fees/generate"
    headers = auth_headers(admin)

    no_budget = client.post(url, json={"year": 2024, "mode": "monthly", "months": [1]}, headers=headers)
    assert no_budget.status_code == 400
    assert "budget" in no_budget.json()["detail"].lower()

    assert client.post(url, json={"year": 2024, "mode": "manual"}, headers=headers).status_code == 400
    assert client.post(url, json={"year": 2024, "mode": "weekly"}, headers=headers).status_code == 422
    assert client.post(url, json={"year": 1999}, headers=headers).status_code == 422


def test_generate_per_fraction_amounts(client, admin, condominium, fractions):
    response = client.post(
        f"/condominiums/{condominium.id}/fees/generate",
        json={
            "year": 2025,
            "mode": "per_fraction",
            "period_type": "semiannual",
            "fraction_amounts": {str(fractions[0].id): "300"},
        },
        headers=auth_headers(admin),
    )
    assert response.status_code == 200
    assert [Decimal(f["amount"]) for f in response.json()] == [Decimal("150.00")] * 2


def test_extra_fees_need_an_amount(client, admin, condominium, fractions):
    url = f"/condominiums/{condominium.id}/fees/extra"
    headers = auth_headers(admin)
    assert client.post(url, json={"year": 2024, "months": [5]}, headers=headers).status_code == 400

    response = client.post(
        url, json={"year": 2024, "months": [5], "total_amount": "100", "description": "Elevator"}, headers=headers
    )
    assert response.status_code == 200
    assert all(f["fee_type"] == "extra" for f in response.json())


def test_residents_only_see_their_fees(client, db, admin, condominium, fractions, resident):
    make_budget(db, condominium)
    _generate_january(client, admin, condominium)

    own = client.get(f"/condominiums/{condominium.id}/fees", headers=auth_headers(resident)).json()
    assert [f["fraction_id"] for f in own] == [fractions[1].id]

    other_fee = db.query(Fee).filter(Fee.fraction_id == fractions[0].id).one()
    response = client.get(f"/condominiums/{condominium.id}/fees/{other_fee.id}", headers=auth_headers(resident))
    assert response.status_code == 404

    everything = client.get(
        f"/condominiums/{condominium.id}/fees", params={"year": 2024}, headers=auth_headers(admin)
    ).json()
    assert len(everything) == 3


def test_payment_flow(client, db, admin, condominium, fractions, resident):
    make_budget(db, condominium)
    _generate_january(client, admin, condominium)
    fee = db.query(Fee).filter(Fee.fraction_id == fractions[1].id).one()
    fee_url = f"/condominiums/{condominium.id}/fees/{fee.id}"

    partial = client.post(
        f"{fee_url}/payments", json={"amount": "100", "payment_method": "transfer"}, headers=auth_headers(admin)
    )
    assert partial.status_code == 200
    detail = client.get(fee_url, headers=auth_headers(admin)).json()
    assert Decimal(detail["paid_amount"]) == Decimal("100.00")
    assert Decimal(detail["remaining_amount"]) == Decimal("200.00")
    assert detail["status"] == "pending"

    too_much = client.post(
        f"{fee_url}/payments", json={"amount": "250", "payment_method": "transfer"}, headers=auth_headers(admin)
    )
    assert too_much.status_code == 400

    rest = client.post(
        f"{fee_url}/payments", json={"amount": "200", "payment_method": "mbway"}, headers=auth_headers(admin)
    )
    assert rest.status_code == 200
    assert client.get(fee_url, headers=auth_headers(resident)).json()["status"] == "paid"

    receipts = client.get(f"/condominiums/{condominium.id}/receipts", headers=auth_headers(resident)).json()
    assert len(receipts) == 1
    assert receipts[0]["receipt_number"].startswith(f"REC-{condominium.id}-")

    payment_id = rest.json()[0]["id"]
    reopened = client.delete(f"{fee_url}/payments/{payment_id}", headers=auth_headers(admin))
    assert reopened.status_code == 200
    assert reopened.json()["status"] == "pending"
    assert client.get(f"/condominiums/{condominium.id}/receipts", headers=auth_headers(admin)).json() == []


def test_residents_cannot_register_payments(client, db, admin, condominium, fractions, resident):
    make_budget(db, condominium)
    _generate_january(client, admin, condominium)
    fee = db.query(Fee).filter(Fee.fraction_id == fractions[1].id).one()
    response = client.post(
        f"/condominiums/{condominium.id}/fees/{fee.id}/payments",
        json={"amount": "10", "payment_method": "cash"},
        headers=auth_headers(resident),
    )
    assert response.status_code == 403


def test_fraction_account_and_liquidation(client, db, admin, condominium, fractions, resident):
    make_budget(db, condominium)
    _generate_january(client, admin, condominium)
    accounts = FractionAccountService(db)
    accounts.add_credit(accounts.get_or_create(fractions[1].id), "350")
    db.commit()

    url = f"/condominiums/{condominium.id}/fractions/{fractions[1].id}"
    result = client.post(f"{url}/liquidate", headers=auth_headers(admin)).json()
    assert len(result["fully_paid"]) == 1
    assert Decimal(result["credit_remaining"]) == Decimal("50.00")

    account = client.get(f"{url}/account", headers=auth_headers(resident)).json()
    assert Decimal(account["balance"]) == Decimal("50.00")
    assert [m["type"] for m in account["movements"]] == ["debit", "credit"]

    forbidden = client.get(
        f"/condominiums/{condominium.id}/fractions/{fractions[0].id}/account", headers=auth_headers(resident)
    )
    assert forbidden.status_code == 403
    assert client.post(f"{url}/liquidate", headers=auth_headers(resident)).status_code == 403


def test_mark_overdue_endpoint(client, db, admin, condominium, fractions):
    make_budget(db, condominium)
    _generate_january(client, admin, condominium)
    response = client.post(f"/condominiums/{condominium.id}/fees/mark-overdue", headers=auth_headers(admin))
    assert response.json() == {"updated": 3}
