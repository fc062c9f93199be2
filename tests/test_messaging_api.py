import pytest

from condohub.models import Notification

from conftest import add_member, auth_headers, make_user


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


def _send(client, condominium, user, **payload):
    body = {"subject": "Water cut", "message": "Tomorrow from 9 to 12"}
    body.update(payload)
    return client.post(f"/condominiums/{condominium.id}/messages", json=body, headers=auth_headers(user))


# ============================================================================
# MESSAGES
# ============================================================================


def test_direct_message(client, db, admin, condominium, resident, neighbour):
    response = _send(client, condominium, admin, to_user_id=resident.id)
    assert response.status_code == 201
    message = response.json()
    assert message["from_user_id"] == admin.id
    assert message["is_read"] is False

    inbox = client.get(f"/condominiums/{condominium.id}/messages/inbox", headers=auth_headers(resident)).json()
    assert [m["id"] for m in inbox] == [message["id"]]
    sent = client.get(f"/condominiums/{condominium.id}/messages/sent", headers=auth_headers(admin)).json()
    assert [m["id"] for m in sent] == [message["id"]]

    notifications = db.query(Notification).filter(Notification.type == "message").all()
    assert [n.user_id for n in notifications] == [resident.id]

    url = f"/condominiums/{condominium.id}/messages/{message['id']}"
    assert client.get(url, headers=auth_headers(neighbour)).status_code == 404
    assert client.post(f"{url}/read", headers=auth_headers(admin)).status_code == 400

    read = client.post(f"{url}/read", headers=auth_headers(resident)).json()
    assert read["is_read"] is True
    assert read["read_at"] is not None
    unread = client.get(
        f"/condominiums/{condominium.id}/messages/inbox", params={"unread_only": True}, headers=auth_headers(resident)
    ).json()
    assert unread == []


def test_broadcast_reaches_all_members(client, db, admin, condominium, resident, neighbour):
    message = _send(client, condominium, resident).json()
    assert message["to_user_id"] is None

    notified = {n.user_id for n in db.query(Notification).filter(Notification.type == "message")}
    assert notified == {admin.id, neighbour.id}

    for user in (admin, neighbour):
        inbox = client.get(f"/condominiums/{condominium.id}/messages/inbox", headers=auth_headers(user)).json()
        assert [m["id"] for m in inbox] == [message["id"]]
    own_inbox = client.get(f"/condominiums/{condominium.id}/messages/inbox", headers=auth_headers(resident)).json()
    assert own_inbox == []


def test_message_checks(client, db, admin, condominium, resident):
    assert _send(client, condominium, admin, to_user_id=admin.id).status_code == 400
    stranger = make_user(db, email="stranger@example.com", role="condomino")
    assert _send(client, condominium, admin, to_user_id=stranger.id).status_code == 404
    assert _send(client, condominium, admin, to_user_id=999).status_code == 404
    assert _send(client, condominium, admin, subject="").status_code == 422
    assert _send(client, condominium, stranger).status_code == 403


def test_threads(client, admin, condominium, resident, neighbour):
    root = _send(client, condominium, admin, to_user_id=resident.id, subject="Parking").json()
    reply = _send(client, condominium, resident, to_user_id=admin.id, subject="Re: Parking", thread_id=root["id"]).json()
    assert reply["thread_id"] == root["id"]
    nested = _send(client, condominium, admin, to_user_id=resident.id, subject="Re: Re", thread_id=reply["id"]).json()
    assert nested["thread_id"] == root["id"]

    thread = client.get(
        f"/condominiums/{condominium.id}/messages/{nested['id']}/thread", headers=auth_headers(resident)
    ).json()
    assert [m["id"] for m in thread] == [root["id"], reply["id"], nested["id"]]

    hidden = _send(client, condominium, neighbour, thread_id=root["id"])
    assert hidden.status_code == 404


# ============================================================================
# NOTIFICATIONS
# ============================================================================


def test_notifications(client, admin, condominium, resident):
    _send(client, condominium, admin, to_user_id=resident.id, subject="First")
    _send(client, condominium, admin, to_user_id=resident.id, subject="Second")
    headers = auth_headers(resident)

    assert client.get("/notifications/unread-count", headers=headers).json() == {"unread": 2}
    notifications = client.get("/notifications", headers=headers).json()
    assert [n["title"] for n in notifications] == ["New message: Second", "New message: First"]

    first_id = notifications[1]["id"]
    read = client.post(f"/notifications/{first_id}/read", headers=headers).json()
    assert read["is_read"] is True
    assert [n["id"] for n in client.get("/notifications", params={"unread_only": True}, headers=headers).json()] == [
        notifications[0]["id"]
    ]

    assert client.post(f"/notifications/{first_id}/read", headers=auth_headers(admin)).status_code == 404
    assert client.post("/notifications/read-all", headers=headers).json() == {"updated": 1}
    assert client.get("/notifications/unread-count", headers=headers).json() == {"unread": 0}
