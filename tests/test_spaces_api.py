from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from condohub.domain.spaces.schemas import WEEKDAYS
from condohub.domain.spaces.service import reservation_price
from condohub.models import Notification, Reservation, Space

from conftest import add_member, auth_headers, make_user

START = datetime(2099, 6, 1, 10, 0)


@pytest.fixture
def resident(db, condominium, fractions):
    user = make_user(db, email="resident@example.com", role="condomino", name="Resident")
    add_member(db, condominium, user, fractions[1])
    return user


@pytest.fixture
def neighbour(db, condominium, fractions):
    user = make_user(db, email="neighbour@example.com", role="condomino", name="Neighbour")
    add_member(db, condominium, user, fractions[2])
    return user


def _space(client, condominium, user, **payload):
    body = {"name": "Party room", "price_per_hour": "10", "price_per_day": "50", "deposit_required": "25"}
    body.update(payload)
    return client.post(f"/condominiums/{condominium.id}/spaces", json=body, headers=auth_headers(user))


def _reserve(client, condominium, user, space_id, fraction, start=START, hours=2, **payload):
    body = {
        "space_id": space_id,
        "fraction_id": fraction.id,
        "start_date": start.isoformat(),
        "end_date": (start + timedelta(hours=hours)).isoformat(),
    }
    body.update(payload)
    return client.post(f"/condominiums/{condominium.id}/reservations", json=body, headers=auth_headers(user))


# ============================================================================
# SPACES
# ============================================================================


def test_space_management(client, admin, condominium, resident):
    url = f"/condominiums/{condominium.id}/spaces"

    assert _space(client, condominium, resident).status_code == 403
    gym = _space(client, condominium, admin, name="Gym", requires_approval=False).json()
    room = _space(client, condominium, admin).json()
    assert room["requires_approval"] is True
    assert Decimal(room["deposit_required"]) == Decimal("25")

    names = [s["name"] for s in client.get(url, headers=auth_headers(resident)).json()]
    assert names == ["Gym", "Party room"]

    updated = client.patch(f"{url}/{gym['id']}", json={"capacity": 12}, headers=auth_headers(admin))
    assert updated.json()["capacity"] == 12
    assert client.patch(f"{url}/{gym['id']}", json={"capacity": 1}, headers=auth_headers(resident)).status_code == 403

    assert client.delete(f"{url}/{gym['id']}", headers=auth_headers(admin)).status_code == 204
    assert [s["name"] for s in client.get(url, headers=auth_headers(resident)).json()] == ["Party room"]
    assert client.get(f"{url}/{gym['id']}", headers=auth_headers(resident)).status_code == 404
    everything = client.get(url, params={"include_inactive": True}, headers=auth_headers(admin)).json()
    assert len(everything) == 2
    hidden = client.get(url, params={"include_inactive": True}, headers=auth_headers(resident)).json()
    assert len(hidden) == 1


def test_available_hours_are_validated(client, admin, condominium):
    bad_day = _space(client, condominium, admin, available_hours={"someday": {"start": "09:00", "end": "10:00"}})
    assert bad_day.status_code == 422
    reversed_hours = _space(client, condominium, admin, available_hours={"monday": {"start": "22:00", "end": "09:00"}})
    assert reversed_hours.status_code == 422

    ok = _space(client, condominium, admin, available_hours={"Monday": {"start": "09:00", "end": "22:00"}})
    assert ok.json()["available_hours"] == {"monday": {"start": "09:00", "end": "22:00"}}


def test_reservation_price():
    space = Space(price_per_hour=Decimal("10"), price_per_day=Decimal("50"))
    assert reservation_price(space, START, START + timedelta(hours=3)) == Decimal("30.00")
    assert reservation_price(space, START, START + timedelta(minutes=90)) == Decimal("15.00")
    assert reservation_price(space, START, START + timedelta(hours=30)) == Decimal("100.00")

    daily = Space(price_per_hour=Decimal("0"), price_per_day=Decimal("40"))
    assert reservation_price(daily, START, START + timedelta(hours=2)) == Decimal("40.00")
    assert reservation_price(Space(price_per_hour=0, price_per_day=0), START, START + timedelta(hours=5)) == 0


# ============================================================================
# RESERVATIONS
# ============================================================================


def test_resident_reservation_goes_through_approval(client, db, admin, condominium, fractions, resident):
    space = _space(client, condominium, admin).json()

    assert _reserve(client, condominium, resident, space["id"], fractions[0]).status_code == 403

    response = _reserve(client, condominium, resident, space["id"], fractions[1], hours=3, notes="Birthday")
    assert response.status_code == 201
    reservation = response.json()
    assert reservation["status"] == "pending"
    assert reservation["user_id"] == resident.id
    assert Decimal(reservation["price"]) == Decimal("30.00")
    assert Decimal(reservation["deposit"]) == Decimal("25.00")
    requested = db.query(Notification).filter(Notification.user_id == admin.id, Notification.type == "reservation")
    assert requested.count() == 1

    url = f"/condominiums/{condominium.id}/reservations/{reservation['id']}"
    assert client.post(f"{url}/approve", headers=auth_headers(resident)).status_code == 403
    approved = client.post(f"{url}/approve", headers=auth_headers(admin))
    assert approved.status_code == 200
    assert approved.json()["status"] == "approved"
    assert approved.json()["approved_by"] == admin.id
    assert client.post(f"{url}/approve", headers=auth_headers(admin)).status_code == 400

    notification = (
        db.query(Notification).filter(Notification.user_id == resident.id, Notification.type == "reservation").one()
    )
    assert notification.title == "Reservation approved: Party room"


def test_space_without_approval_confirms_immediately(client, admin, condominium, fractions, resident):
    space = _space(client, condominium, admin, requires_approval=False).json()
    reservation = _reserve(client, condominium, resident, space["id"], fractions[1]).json()
    assert reservation["status"] == "approved"
    assert reservation["approved_by"] == resident.id
    assert reservation["approved_at"] is not None


def test_overlapping_reservations_conflict(client, admin, condominium, fractions, resident, neighbour):
    space = _space(client, condominium, admin).json()
    assert _reserve(client, condominium, resident, space["id"], fractions[1], hours=2).status_code == 201

    clash = _reserve(client, condominium, neighbour, space["id"], fractions[2], start=START + timedelta(hours=1))
    assert clash.status_code == 409
    # Back to back is fine
    after = _reserve(client, condominium, neighbour, space["id"], fractions[2], start=START + timedelta(hours=2))
    assert after.status_code == 201

    other = _space(client, condominium, admin, name="Gym").json()
    assert _reserve(client, condominium, neighbour, other["id"], fractions[2]).status_code == 201


def test_reservation_validation(client, db, admin, condominium, fractions, resident):
    space = _space(client, condominium, admin).json()
    space_id = space["id"]

    assert _reserve(client, condominium, resident, space_id, fractions[1], hours=0).status_code == 400
    past = _reserve(client, condominium, resident, space_id, fractions[1], start=datetime(2020, 1, 1, 10))
    assert past.status_code == 400
    assert _reserve(client, condominium, resident, 999, fractions[1]).status_code == 404

    body = {
        "space_id": space_id,
        "fraction_id": 999,
        "start_date": START.isoformat(),
        "end_date": (START + timedelta(hours=1)).isoformat(),
    }
    url = f"/condominiums/{condominium.id}/reservations"
    assert client.post(url, json=body, headers=auth_headers(resident)).status_code == 404

    db.get(Space, space_id).is_blocked = True
    db.commit()
    assert _reserve(client, condominium, resident, space_id, fractions[1]).status_code == 400


def test_reservations_respect_opening_hours(client, admin, condominium, fractions, resident):
    day = WEEKDAYS[START.weekday()]
    space = _space(client, condominium, admin, available_hours={day: {"start": "09:00", "end": "12:00"}}).json()

    assert _reserve(client, condominium, resident, space["id"], fractions[1], hours=2).status_code == 201
    late = _reserve(client, condominium, resident, space["id"], fractions[1], start=START + timedelta(hours=1), hours=2)
    assert late.status_code == 400
    next_day = _reserve(client, condominium, resident, space["id"], fractions[1], start=START + timedelta(days=1))
    assert next_day.status_code == 400
    overnight = _reserve(client, condominium, resident, space["id"], fractions[1], hours=24)
    assert overnight.status_code == 400


def test_reject_and_cancel(client, db, admin, condominium, fractions, resident, neighbour):
    space = _space(client, condominium, admin).json()
    first = _reserve(client, condominium, resident, space["id"], fractions[1]).json()
    url = f"/condominiums/{condominium.id}/reservations"

    reason = {"notes": "Room under repair"}
    rejected = client.post(f"{url}/{first['id']}/reject", json=reason, headers=auth_headers(admin))
    assert rejected.json()["status"] == "rejected"
    message = db.query(Notification).filter(Notification.user_id == resident.id).one().message
    assert message == "Room under repair"
    assert client.post(f"{url}/{first['id']}/cancel", headers=auth_headers(resident)).status_code == 400

    # A rejected booking frees the slot
    second = _reserve(client, condominium, resident, space["id"], fractions[1]).json()
    assert client.post(f"{url}/{second['id']}/cancel", headers=auth_headers(neighbour)).status_code == 403
    canceled = client.post(f"{url}/{second['id']}/cancel", headers=auth_headers(resident))
    assert canceled.json()["status"] == "canceled"

    third = _reserve(client, condominium, neighbour, space["id"], fractions[2]).json()
    assert client.post(f"{url}/{third['id']}/reject", headers=auth_headers(admin)).status_code == 200

    listed = client.get(url, params={"status": "canceled"}, headers=auth_headers(neighbour)).json()
    assert [r["id"] for r in listed] == [second["id"]]
    assert len(client.get(url, params={"space_id": space["id"]}, headers=auth_headers(admin)).json()) == 3
    assert client.get(url, params={"start_from": "2100-01-01T00:00:00"}, headers=auth_headers(admin)).json() == []


def test_space_with_upcoming_reservations_cannot_be_removed(client, db, admin, condominium, fractions, resident):
    space = _space(client, condominium, admin).json()
    reservation = _reserve(client, condominium, resident, space["id"], fractions[1]).json()
    url = f"/condominiums/{condominium.id}/spaces/{space['id']}"

    assert client.delete(url, headers=auth_headers(admin)).status_code == 400
    db.get(Reservation, reservation["id"]).status = "canceled"
    db.commit()
    assert client.delete(url, headers=auth_headers(admin)).status_code == 204
