import warnings
from datetime import datetime, timedelta
from decimal import Decimal

import pytest
from fastapi import HTTPException
from sqlalchemy.exc import SAWarning

from condohub.domain.condominiums.repository import CondominiumRepository
from condohub.models import Condominium, CondominiumUser, Invitation, User
from condohub.services.invitation_service import InvitationService

from conftest import add_member, auth_headers, make_condominium, make_fraction, make_user


# ============================================================================
# CONDOMINIUMS
# ============================================================================


def test_create_and_list_condominiums(client, admin):
    response = client.post(
        "/condominiums",
        json={"name": "Edificio Mar", "postal_code": "1000-100", "nif": "123456789", "iban": "GB82WEST12345698765432"},
        headers=auth_headers(admin),
    )
    assert response.status_code == 200
    assert response.json()["user_id"] == admin.id
    assert response.json()["total_fractions"] == 0

    listed = client.get("/condominiums", headers=auth_headers(admin)).json()
    assert [c["name"] for c in listed] == ["Edificio Mar"]


def test_create_condominium_validation(client, admin):
    response = client.post(
        "/condominiums", json={"name": "X", "postal_code": "1000100"}, headers=auth_headers(admin)
    )
    assert response.status_code == 422
    response = client.post("/condominiums", json={"name": "X", "type": "industrial"}, headers=auth_headers(admin))
    assert response.status_code == 422


def test_residents_cannot_create_condominiums(client, db):
    resident = make_user(db, email="resident@example.com", role="condomino")
    response = client.post("/condominiums", json={"name": "Mine"}, headers=auth_headers(resident))
    assert response.status_code == 403


def test_listing_includes_memberships_without_sql_warnings(db, admin, condominium):
    resident = make_user(db, email="resident@example.com", role="condomino")
    add_member(db, condominium, resident)
    owned = make_condominium(db, resident, "Own Building")

    with warnings.catch_warnings():
        warnings.simplefilter("error", SAWarning)
        listed = CondominiumRepository.list_for_user(db, resident)

    assert [c.id for c in listed] == [condominium.id, owned.id]


def test_members_see_condominium_but_cannot_manage(client, db, condominium):
    resident = make_user(db, email="resident@example.com", role="condomino")
    add_member(db, condominium, resident)
    stranger = make_user(db, email="stranger@example.com")

    assert client.get(f"/condominiums/{condominium.id}", headers=auth_headers(resident)).status_code == 200
    assert [c["id"] for c in client.get("/condominiums", headers=auth_headers(resident)).json()] == [condominium.id]
    assert client.get(f"/condominiums/{condominium.id}", headers=auth_headers(stranger)).status_code == 403

    response = client.put(f"/condominiums/{condominium.id}", json={"city": "Porto"}, headers=auth_headers(resident))
    assert response.status_code == 403
    assert response.json()["detail"] == "Only condominium administrators can do this"


def test_member_admin_can_manage(client, db, condominium):
    co_admin = make_user(db, email="co-admin@example.com")
    add_member(db, condominium, co_admin, role="admin")

    response = client.put(f"/condominiums/{condominium.id}", json={"city": "Porto"}, headers=auth_headers(co_admin))
    assert response.status_code == 200
    assert response.json()["city"] == "Porto"

    delete = client.delete(f"/condominiums/{condominium.id}", headers=auth_headers(co_admin))
    assert delete.status_code == 403


def test_super_admin_sees_everything(client, db, condominium):
    root = make_user(db, email="root@example.com", role="super_admin")
    make_condominium(db, root, "Torre")
    names = [c["name"] for c in client.get("/condominiums", headers=auth_headers(root)).json()]
    assert names == ["Edificio Sol", "Torre"]


def test_owner_deletes_condominium(client, db, admin, condominium, fractions):
    condominium_id = condominium.id
    response = client.delete(f"/condominiums/{condominium_id}", headers=auth_headers(admin))
    assert response.status_code == 200
    assert db.query(Condominium).filter(Condominium.id == condominium_id).count() == 0


# ============================================================================
# FRACTIONS
# ============================================================================


def test_fraction_lifecycle(client, db, admin, condominium):
    headers = auth_headers(admin)
    url = f"/condominiums/{condominium.id}/fractions"

    created = client.post(url, json={"identifier": "1Esq", "permillage": "250.5"}, headers=headers)
    assert created.status_code == 200
    fraction_id = created.json()["id"]
    client.post(url, json={"identifier": "1Dto", "permillage": "100"}, headers=headers)

    duplicate = client.post(url, json={"identifier": "1Esq", "permillage": "1"}, headers=headers)
    assert duplicate.status_code == 409

    listing = client.get(url, headers=headers).json()
    assert [f["identifier"] for f in listing["fractions"]] == ["1Dto", "1Esq"]
    assert Decimal(listing["total_permillage"]) == Decimal("350.5")

    updated = client.put(f"{url}/{fraction_id}", json={"floor": "1"}, headers=headers)
    assert updated.json()["floor"] == "1"

    archived = client.post(f"{url}/{fraction_id}/archive", headers=headers)
    assert archived.json()["is_active"] is False
    assert archived.json()["archived_at"] is not None

    listing = client.get(url, headers=headers).json()
    assert [f["identifier"] for f in listing["fractions"]] == ["1Dto"]
    with_archived = client.get(url, params={"include_archived": True}, headers=headers).json()
    assert len(with_archived["fractions"]) == 2

    db.refresh(condominium)
    assert condominium.total_fractions == 1


def test_fraction_permillage_bounds(client, admin, condominium):
    response = client.post(
        f"/condominiums/{condominium.id}/fractions",
        json={"identifier": "X", "permillage": "1001"},
        headers=auth_headers(admin),
    )
    assert response.status_code == 422


def test_fraction_of_another_condominium(client, db, admin, condominium):
    other = make_condominium(db, admin, "Other")
    foreign = make_fraction(db, other, "Z")
    response = client.put(
        f"/condominiums/{condominium.id}/fractions/{foreign.id}", json={"floor": "2"}, headers=auth_headers(admin)
    )
    assert response.status_code == 404


def test_members_listing(client, db, admin, condominium, fractions):
    resident = make_user(db, email="resident@example.com", role="condomino", name="Resident")
    add_member(db, condominium, resident, fractions[0])

    members = client.get(f"/condominiums/{condominium.id}/members", headers=auth_headers(admin)).json()
    assert [(m["email"], m["fraction_id"]) for m in members] == [("resident@example.com", fractions[0].id)]

    by_fraction = client.get(
        f"/condominiums/{condominium.id}/fractions/{fractions[1].id}/members", headers=auth_headers(admin)
    ).json()
    assert by_fraction == []


# ============================================================================
# INVITATIONS
# ============================================================================


def test_inviting_existing_user_links_immediately(db, condominium, fractions):
    resident = make_user(db, email="resident@example.com", role="condomino")

    result = InvitationService(db).invite(condominium.id, " Resident@Example.com ", fraction_id=fractions[0].id)

    assert result == {"linked": True, "user_id": resident.id}
    membership = db.query(CondominiumUser).filter(CondominiumUser.user_id == resident.id).one()
    assert membership.fraction_id == fractions[0].id
    assert membership.is_primary is True
    assert db.query(Invitation).count() == 0


def test_second_member_of_a_fraction_is_not_primary(db, condominium, fractions):
    service = InvitationService(db)
    first = make_user(db, email="first@example.com", role="condomino")
    second = make_user(db, email="second@example.com", role="condomino")
    service.invite(condominium.id, first.email, fraction_id=fractions[0].id)
    service.invite(condominium.id, second.email, fraction_id=fractions[0].id)

    primaries = {
        m.user_id: m.is_primary for m in db.query(CondominiumUser).filter(CondominiumUser.fraction_id == fractions[0].id)
    }
    assert primaries == {first.id: True, second.id: False}


def test_invitation_accept_creates_account(db, condominium, fractions):
    service = InvitationService(db)
    result = service.invite(condominium.id, "new@example.com", name="Newcomer", fraction_id=fractions[1].id)
    assert result["linked"] is False
    assert result["invitation"].expires_at > datetime.utcnow() + timedelta(days=6)

    user = service.accept(result["token"], password="Secret123!")

    assert user.email == "new@example.com"
    assert user.name == "Newcomer"
    assert user.role == "condomino"
    membership = db.query(CondominiumUser).filter(CondominiumUser.user_id == user.id).one()
    assert membership.fraction_id == fractions[1].id
    assert service.list_pending(condominium.id) == []

    with pytest.raises(HTTPException) as exc:
        service.accept(result["token"], password="Secret123!")
    assert exc.value.detail == "Invitation already used"


def test_invitation_needs_password_for_new_account(db, condominium):
    service = InvitationService(db)
    token = service.invite(condominium.id, "new@example.com")["token"]
    with pytest.raises(HTTPException) as exc:
        service.accept(token)
    assert exc.value.status_code == 400


def test_invitation_token_checks(db, condominium):
    service = InvitationService(db)
    result = service.invite(condominium.id, "new@example.com")

    with pytest.raises(HTTPException):
        service.accept(result["token"][:-2] + "xx", password="Secret123!")

    result["invitation"].expires_at = datetime.utcnow() - timedelta(minutes=1)
    db.commit()
    with pytest.raises(HTTPException) as exc:
        service.accept(result["token"], password="Secret123!")
    assert exc.value.detail == "Invalid or expired invitation"
    assert db.query(User).filter(User.email == "new@example.com").count() == 0


def test_invitation_input_checks(db, admin, condominium):
    service = InvitationService(db)
    with pytest.raises(HTTPException) as exc:
        service.invite(condominium.id, "x@example.com", role="super_admin")
    assert exc.value.status_code == 400

    other = make_condominium(db, admin, "Other")
    foreign = make_fraction(db, other, "Z")
    with pytest.raises(HTTPException) as exc:
        service.invite(condominium.id, "x@example.com", fraction_id=foreign.id)
    assert exc.value.status_code == 404


def test_invitation_revoke(db, condominium):
    service = InvitationService(db)
    invitation = service.invite(condominium.id, "new@example.com")["invitation"]
    service.revoke(condominium.id, invitation.id)
    assert service.list_pending(condominium.id) == []
    with pytest.raises(HTTPException):
        service.revoke(condominium.id, invitation.id)


def test_invitation_flow_over_http(client, db, admin, condominium, fractions):
    created = client.post(
        f"/condominiums/{condominium.id}/invitations",
        json={"email": "guest@example.com", "fraction_id": fractions[2].id},
        headers=auth_headers(admin),
    )
    assert created.status_code == 200
    body = created.json()
    assert body["linked"] is False
    assert body["invitation"]["email"] == "guest@example.com"

    pending = client.get(f"/condominiums/{condominium.id}/invitations", headers=auth_headers(admin)).json()
    assert [i["email"] for i in pending] == ["guest@example.com"]

    accepted = client.post(
        "/auth/invitations/accept", json={"token": body["token"], "name": "Guest", "password": "Secret123!"}
    )
    assert accepted.status_code == 200
    assert accepted.json()["user"]["role"] == "condomino"

    login = client.post("/auth/login", json={"email": "guest@example.com", "password": "Secret123!"})
    assert login.status_code == 200
    guest_token = login.json()["access_token"]
    fractions_view = client.get(
        f"/condominiums/{condominium.id}/fractions", headers={"Authorization": f"Bearer {guest_token}"}
    )
    assert fractions_view.status_code == 200


def test_residents_cannot_invite(client, db, condominium):
    resident = make_user(db, email="resident@example.com", role="condomino")
    add_member(db, condominium, resident)
    response = client.post(
        f"/condominiums/{condominium.id}/invitations", json={"email": "x@example.com"}, headers=auth_headers(resident)
    )
    assert response.status_code == 403
