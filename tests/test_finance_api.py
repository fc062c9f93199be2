from decimal import Decimal

import pytest

from condohub.models_audit import AuditFinancial
from condohub.models_finance import Fee

from conftest import add_member, auth_headers, make_budget, make_condominium, make_fraction, make_user


@pytest.fixture
def headers(admin):
    return auth_headers(admin)


def _account(client, condominium, headers, name="Main", balance="1000"):
    response = client.post(
        f"/condominiums/{condominium.id}/bank-accounts",
        json={"name": name, "initial_balance": balance, "iban": "GB82WEST12345698765432"},
        headers=headers,
    )
    assert response.status_code == 201
    return response.json()


# ============================================================================
# BANK ACCOUNTS
# ============================================================================


def test_bank_accounts(client, condominium, headers):
    account = _account(client, condominium, headers)
    assert Decimal(account["current_balance"]) == Decimal("1000.00")

    invalid = client.post(
        f"/condominiums/{condominium.id}/bank-accounts", json={"name": "X", "account_type": "crypto"}, headers=headers
    )
    assert invalid.status_code == 422

    updated = client.patch(
        f"/condominiums/{condominium.id}/bank-accounts/{account['id']}", json={"is_active": False}, headers=headers
    )
    assert updated.json()["is_active"] is False

    listed = client.get(f"/condominiums/{condominium.id}/bank-accounts", headers=headers).json()
    assert [a["name"] for a in listed] == ["Main"]


def test_finance_is_manager_only(client, db, condominium):
    resident = make_user(db, email="resident@example.com", role="condomino")
    add_member(db, condominium, resident)
    resident_headers = auth_headers(resident)
    assert client.get(f"/condominiums/{condominium.id}/bank-accounts", headers=resident_headers).status_code == 403
    assert client.get(f"/condominiums/{condominium.id}/budgets", headers=resident_headers).status_code == 403
    assert client.get(f"/condominiums/{condominium.id}/transactions", headers=resident_headers).status_code == 403


# ============================================================================
# TRANSACTIONS
# ============================================================================


def test_expense_and_delete(client, condominium, headers):
    account = _account(client, condominium, headers)
    url = f"/condominiums/{condominium.id}/transactions"

    created = client.post(
        url,
        json={
            "transaction_type": "expense",
            "amount": "99.90",
            "description": "Cleaning",
            "bank_account_id": account["id"],
            "transaction_date": "2024-03-01",
        },
        headers=headers,
    )
    assert created.status_code == 201
    assert created.json()["liquidation"] is None
    transaction_id = created.json()["transaction"]["id"]

    march = client.get(url, params={"start_date": "2024-03-01", "end_date": "2024-03-31"}, headers=headers).json()
    assert [t["id"] for t in march] == [transaction_id]
    assert client.get(url, params={"start_date": "2024-04-01"}, headers=headers).json() == []

    balance = client.get(f"/condominiums/{condominium.id}/bank-accounts", headers=headers).json()[0]
    assert Decimal(balance["current_balance"]) == Decimal("900.10")

    assert client.delete(f"{url}/{transaction_id}", headers=headers).status_code == 204
    balance = client.get(f"/condominiums/{condominium.id}/bank-accounts", headers=headers).json()[0]
    assert Decimal(balance["current_balance"]) == Decimal("1000.00")
    assert client.delete(f"{url}/{transaction_id}", headers=headers).status_code == 404


def test_transfer_requires_target_account(client, condominium, headers):
    account = _account(client, condominium, headers)
    response = client.post(
        f"/condominiums/{condominium.id}/transactions",
        json={"transaction_type": "transfer", "amount": "10", "description": "Move", "bank_account_id": account["id"]},
        headers=headers,
    )
    assert response.status_code == 400


def test_foreign_bank_account_is_rejected(client, db, admin, condominium, headers):
    other = make_condominium(db, admin, "Other")
    foreign = _account(client, other, headers)
    response = client.post(
        f"/condominiums/{condominium.id}/transactions",
        json={"transaction_type": "income", "amount": "10", "description": "x", "bank_account_id": foreign["id"]},
        headers=headers,
    )
    assert response.status_code == 400
    assert response.json() == {"detail": "Invalid bank account"}


def test_fraction_income_is_liquidated(client, db, condominium, fractions, headers):
    make_budget(db, condominium)
    client.post(
        f"/condominiums/{condominium.id}/fees/generate",
        json={"year": 2024, "mode": "monthly", "months": [1, 2]},
        headers=headers,
    )
    fraction = fractions[2]

    response = client.post(
        f"/condominiums/{condominium.id}/transactions",
        json={
            "transaction_type": "income",
            "amount": "500",
            "description": "Owner transfer",
            "fraction_id": fraction.id,
            "income_entry_type": "quota",
        },
        headers=headers,
    )

    assert response.status_code == 201
    liquidation = response.json()["liquidation"]
    assert len(liquidation["fully_paid"]) == 2
    assert Decimal(str(liquidation["credit_remaining"])) == Decimal("100.00")
    statuses = {f.period_month: f.status for f in db.query(Fee).filter(Fee.fraction_id == fraction.id)}
    assert statuses == {1: "paid", 2: "paid"}


# ============================================================================
# BUDGETS
# ============================================================================


def test_budget_lifecycle(client, db, condominium, headers):
    url = f"/condominiums/{condominium.id}/budgets"
    created = client.post(
        url,
        json={
            "year": 2025,
            "items": [
                {"item_type": "revenue", "category": "Quotas", "amount": "12000"},
                {"item_type": "expense", "category": "Cleaning", "amount": "4000"},
            ],
        },
        headers=headers,
    )
    assert created.status_code == 201
    budget = created.json()
    assert budget["status"] == "draft"
    assert Decimal(budget["total_amount"]) == Decimal("4000.00")

    assert client.post(url, json={"year": 2025}, headers=headers).status_code == 409

    with_item = client.post(
        f"{url}/{budget['id']}/items",
        json={"item_type": "expense", "category": "Insurance", "amount": "1500"},
        headers=headers,
    ).json()
    assert Decimal(with_item["total_amount"]) == Decimal("5500.00")
    assert len(with_item["items"]) == 3

    approved = client.post(f"{url}/{budget['id']}/approve", headers=headers).json()
    assert approved["status"] == "approved"
    assert approved["approved_at"] is not None

    locked = client.post(
        f"{url}/{budget['id']}/items", json={"item_type": "expense", "category": "Late", "amount": "1"}, headers=headers
    )
    assert locked.status_code == 400

    assert client.post(f"{url}/{budget['id']}/status/closed", headers=headers).status_code == 400
    assert client.post(f"{url}/{budget['id']}/status/active", headers=headers).json()["status"] == "active"
    assert client.post(f"{url}/{budget['id']}/status/closed", headers=headers).json()["status"] == "closed"
    assert client.post(f"{url}/{budget['id']}/status/draft", headers=headers).status_code == 400

    actions = [
        row.action
        for row in db.query(AuditFinancial).filter(AuditFinancial.entity_type == "budget").order_by(AuditFinancial.id)
    ]
    assert actions == ["budget_approved", "budget_active", "budget_closed"]


def test_approved_budget_can_go_back_to_draft(client, condominium, headers):
    url = f"/condominiums/{condominium.id}/budgets"
    budget = client.post(url, json={"year": 2026}, headers=headers).json()
    client.post(f"{url}/{budget['id']}/approve", headers=headers)

    draft = client.post(f"{url}/{budget['id']}/status/draft", headers=headers).json()
    assert draft["status"] == "draft"
    assert draft["approved_at"] is None


# ============================================================================
# EXPENSES AND REVENUES
# ============================================================================


def test_expenses_and_revenues(client, db, admin, condominium, fractions, headers):
    base = f"/condominiums/{condominium.id}"
    expense = client.post(
        f"{base}/expenses",
        json={"description": "Light bulbs", "amount": "12.40", "expense_date": "2024-02-10"},
        headers=headers,
    )
    assert expense.status_code == 201
    client.post(
        f"{base}/expenses", json={"description": "Paint", "amount": "80", "expense_date": "2023-12-01"}, headers=headers
    )
    assert [e["description"] for e in client.get(f"{base}/expenses", params={"year": 2024}, headers=headers).json()] == [
        "Light bulbs"
    ]

    revenue = client.post(
        f"{base}/revenues",
        json={"description": "Garage rent", "amount": "50", "revenue_date": "2024-05-01", "fraction_id": fractions[0].id},
        headers=headers,
    )
    assert revenue.status_code == 201
    assert len(client.get(f"{base}/revenues", headers=headers).json()) == 1

    other = make_condominium(db, admin, "Other")
    foreign = make_fraction(db, other, "Z")
    response = client.post(
        f"{base}/revenues",
        json={"description": "x", "amount": "1", "revenue_date": "2024-05-01", "fraction_id": foreign.id},
        headers=headers,
    )
    assert response.status_code == 404
