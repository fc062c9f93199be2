import os

import pytest

from condohub.domain.occurrences.router import get_occurrence_service
from condohub.domain.occurrences.service import OccurrenceService
from condohub.main import app
from condohub.models import Notification, OccurrenceHistory
from condohub.models_finance import Supplier

from conftest import add_member, auth_headers, make_condominium, make_user


@pytest.fixture
def occurrences(client, db, storage):
    app.dependency_overrides[get_occurrence_service] = lambda: OccurrenceService(db, storage)
    return client


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


@pytest.fixture
def supplier(db, condominium):
    supplier = Supplier(condominium_id=condominium.id, name="Elevadores Lda", area="elevators")
    db.add(supplier)
    db.commit()
    return supplier


def _report(client, condominium, user, **payload):
    body = {"title": "Elevator stuck", "description": "Stopped between floors 2 and 3", "category": "elevator"}
    body.update(payload)
    return client.post(f"/condominiums/{condominium.id}/occurrences", json=body, headers=auth_headers(user))


def _actions(db, occurrence_id):
    rows = (
        db.query(OccurrenceHistory)
        .filter(OccurrenceHistory.occurrence_id == occurrence_id)
        .order_by(OccurrenceHistory.id)
        .all()
    )
    return [(h.action, h.field_name, h.new_value) for h in rows]


# ============================================================================
# OCCURRENCES
# ============================================================================


def test_resident_reports_occurrence(occurrences, db, admin, condominium, fractions, resident):
    response = _report(occurrences, condominium, resident, fraction_id=fractions[1].id, priority="high")
    assert response.status_code == 201
    occurrence = response.json()
    assert occurrence["status"] == "open"
    assert occurrence["priority"] == "high"
    assert occurrence["reported_by"] == resident.id

    assert _actions(db, occurrence["id"]) == [("created", None, "open")]
    notification = db.query(Notification).filter(Notification.user_id == admin.id).one()
    assert notification.type == "occurrence"
    assert notification.title == "New occurrence: Elevator stuck"

    assert _report(occurrences, condominium, resident, fraction_id=fractions[0].id).status_code == 403
    assert _report(occurrences, condominium, resident, fraction_id=999).status_code == 404
    assert _report(occurrences, condominium, resident, priority="whenever").status_code == 422
    assert _report(occurrences, condominium, resident).json()["priority"] == "medium"


def test_outsider_cannot_report(occurrences, db, condominium):
    outsider = make_user(db, email="out@example.com", role="admin", name="Outsider")
    make_condominium(db, outsider, name="Other")
    assert _report(occurrences, condominium, outsider).status_code == 403


def test_listing_filters_search_and_sorting(occurrences, admin, condominium, resident):
    _report(occurrences, condominium, resident, title="Leak in garage", category="plumbing", priority="urgent")
    _report(occurrences, condominium, resident, title="Broken lamp", category="electrical", priority="low")
    _report(occurrences, condominium, admin, title="Garage door noisy", category="doors", description="Squeaks")
    url = f"/condominiums/{condominium.id}/occurrences"
    headers = auth_headers(resident)

    titles = [o["title"] for o in occurrences.get(url, headers=headers).json()]
    assert titles == ["Garage door noisy", "Broken lamp", "Leak in garage"]

    search = occurrences.get(url, params={"search": "garage"}, headers=headers).json()
    assert sorted(o["title"] for o in search) == ["Garage door noisy", "Leak in garage"]
    by_priority = occurrences.get(url, params={"sort_by": "priority", "sort_order": "desc"}, headers=headers).json()
    assert [o["priority"] for o in by_priority] == ["urgent", "medium", "low"]
    by_title = occurrences.get(url, params={"sort_by": "title", "sort_order": "asc"}, headers=headers).json()
    assert by_title[0]["title"] == "Broken lamp"
    assert len(occurrences.get(url, params={"category": "plumbing"}, headers=headers).json()) == 1
    assert len(occurrences.get(url, params={"reported_by": admin.id}, headers=headers).json()) == 1
    assert occurrences.get(url, params={"sort_by": "password"}, headers=headers).status_code == 422

    categories = occurrences.get(f"{url}/categories", headers=headers).json()
    assert categories == [
        {"category": "doors", "count": 1},
        {"category": "electrical", "count": 1},
        {"category": "plumbing", "count": 1},
    ]


def test_reporter_edits_while_open(occurrences, db, admin, condominium, resident, neighbour):
    occurrence = _report(occurrences, condominium, resident).json()
    url = f"/condominiums/{condominium.id}/occurrences/{occurrence['id']}"

    assert occurrences.patch(url, json={"location": "Lift 2"}, headers=auth_headers(neighbour)).status_code == 403
    changes = {"location": "Lift 2", "title": "Elevator stuck"}
    edited = occurrences.patch(url, json=changes, headers=auth_headers(resident))
    assert edited.json()["location"] == "Lift 2"
    assert _actions(db, occurrence["id"])[-1] == ("field_updated", "location", "Lift 2")

    occurrences.post(f"{url}/status", json={"status": "in_analysis"}, headers=auth_headers(admin))
    assert occurrences.patch(url, json={"location": "Lift 1"}, headers=auth_headers(resident)).status_code == 400
    by_admin = occurrences.patch(url, json={"priority": "urgent"}, headers=auth_headers(admin))
    assert by_admin.json()["priority"] == "urgent"


def test_status_workflow(occurrences, db, admin, condominium, resident):
    occurrence = _report(occurrences, condominium, resident).json()
    url = f"/condominiums/{condominium.id}/occurrences/{occurrence['id']}/status"

    assert occurrences.post(url, json={"status": "completed"}, headers=auth_headers(resident)).status_code == 403
    assert occurrences.post(url, json={"status": "fixed"}, headers=auth_headers(admin)).status_code == 422
    assert occurrences.post(url, json={"status": "open"}, headers=auth_headers(admin)).status_code == 400

    done = occurrences.post(url, json={"status": "completed", "notes": "Cable replaced"}, headers=auth_headers(admin))
    assert done.status_code == 200
    assert done.json()["completed_at"] is not None
    assert done.json()["resolution_notes"] == "Cable replaced"
    assert _actions(db, occurrence["id"])[-1] == ("status_changed", "status", "completed")
    titles = [n.title for n in db.query(Notification).filter(Notification.user_id == resident.id)]
    assert titles == ["Occurrence completed: Elevator stuck"]

    reopened = occurrences.post(url, json={"status": "open"}, headers=auth_headers(admin)).json()
    assert reopened["completed_at"] is None


def test_assign_to_user_and_supplier(occurrences, db, admin, condominium, resident, neighbour, supplier):
    occurrence = _report(occurrences, condominium, resident).json()
    url = f"/condominiums/{condominium.id}/occurrences/{occurrence['id']}/assign"

    assert occurrences.post(url, json={}, headers=auth_headers(admin)).status_code == 400
    assert occurrences.post(url, json={"supplier_id": 999}, headers=auth_headers(admin)).status_code == 404
    outsider = make_user(db, email="out@example.com", role="condomino", name="Outsider")
    assert occurrences.post(url, json={"assigned_to": outsider.id}, headers=auth_headers(admin)).status_code == 404
    assert occurrences.post(url, json={"assigned_to": neighbour.id}, headers=auth_headers(resident)).status_code == 403

    response = occurrences.post(
        url, json={"assigned_to": neighbour.id, "supplier_id": supplier.id}, headers=auth_headers(admin)
    )
    assigned = response.json()
    assert assigned["status"] == "assigned"
    assert assigned["assigned_to"] == neighbour.id
    assert assigned["supplier_id"] == supplier.id
    assert _actions(db, occurrence["id"])[1:] == [
        ("assigned", "assigned_to", str(neighbour.id)),
        ("assigned", "supplier_id", str(supplier.id)),
        ("status_changed", "status", "assigned"),
    ]
    assert db.query(Notification).filter(Notification.user_id == neighbour.id).count() == 1

    listing = occurrences.get(
        f"/condominiums/{condominium.id}/occurrences",
        params={"supplier_id": supplier.id},
        headers=auth_headers(admin),
    ).json()
    assert [o["id"] for o in listing] == [occurrence["id"]]


# ============================================================================
# COMMENTS
# ============================================================================


def test_internal_comments_are_for_managers(occurrences, db, admin, condominium, resident):
    occurrence = _report(occurrences, condominium, resident).json()
    url = f"/condominiums/{condominium.id}/occurrences/{occurrence['id']}"

    blank = occurrences.post(f"{url}/comments", json={"comment": "   "}, headers=auth_headers(resident))
    assert blank.status_code == 422
    internal = {"comment": "Budget needed", "is_internal": True}
    assert occurrences.post(f"{url}/comments", json=internal, headers=auth_headers(resident)).status_code == 403

    public = occurrences.post(f"{url}/comments", json={"comment": "Technician on Monday"}, headers=auth_headers(admin))
    assert public.status_code == 201
    assert occurrences.post(f"{url}/comments", json=internal, headers=auth_headers(admin)).status_code == 201

    seen_by_resident = occurrences.get(url, headers=auth_headers(resident)).json()
    assert [c["comment"] for c in seen_by_resident["comments"]] == ["Technician on Monday"]
    assert [h["action"] for h in seen_by_resident["history"]] == ["created", "comment_added"]
    seen_by_admin = occurrences.get(url, headers=auth_headers(admin)).json()
    assert len(seen_by_admin["comments"]) == 2

    resident_titles = [n.title for n in db.query(Notification).filter(Notification.user_id == resident.id)]
    assert resident_titles == ["New comment: Elevator stuck"]


def test_comment_deletion(occurrences, admin, condominium, resident, neighbour):
    occurrence = _report(occurrences, condominium, resident).json()
    url = f"/condominiums/{condominium.id}/occurrences/{occurrence['id']}/comments"
    mine = occurrences.post(url, json={"comment": "Still broken"}, headers=auth_headers(resident)).json()
    theirs = occurrences.post(url, json={"comment": "Same here"}, headers=auth_headers(neighbour)).json()

    assert occurrences.delete(f"{url}/{theirs['id']}", headers=auth_headers(resident)).status_code == 403
    assert occurrences.delete(f"{url}/{mine['id']}", headers=auth_headers(resident)).status_code == 204
    assert occurrences.delete(f"{url}/{theirs['id']}", headers=auth_headers(admin)).status_code == 204
    assert occurrences.delete(f"{url}/{theirs['id']}", headers=auth_headers(admin)).status_code == 404


# ============================================================================
# ATTACHMENTS
# ============================================================================


def test_attachments(occurrences, db, admin, condominium, resident, neighbour, storage):
    occurrence = _report(occurrences, condominium, resident).json()
    url = f"/condominiums/{condominium.id}/occurrences/{occurrence['id']}/attachments"
    photo = {"file": ("lift.jpg", b"\xff\xd8\xff photo", "image/jpeg")}

    assert occurrences.post(url, files=photo, headers=auth_headers(neighbour)).status_code == 403
    bad_name = {"file": ("../lift.jpg", b"data", "image/jpeg")}
    assert occurrences.post(url, files=bad_name, headers=auth_headers(resident)).status_code == 400

    response = occurrences.post(url, files=photo, headers=auth_headers(resident))
    assert response.status_code == 201
    attachment = response.json()
    assert attachment["file_size"] == len(b"\xff\xd8\xff photo")

    path = os.path.join(storage, f"condominiums/{condominium.id}/occurrences/{occurrence['id']}")
    assert len(os.listdir(path)) == 1

    download = occurrences.get(f"{url}/{attachment['id']}/download", headers=auth_headers(neighbour))
    assert download.status_code == 200
    assert download.content == b"\xff\xd8\xff photo"

    other = _report(occurrences, condominium, resident, title="Other").json()
    wrong_parent = f"/condominiums/{condominium.id}/occurrences/{other['id']}/attachments/{attachment['id']}/download"
    assert occurrences.get(wrong_parent, headers=auth_headers(admin)).status_code == 404

    detail = occurrences.get(url.rsplit("/", 1)[0], headers=auth_headers(admin))
    assert [a["file_name"] for a in detail.json()["attachments"]] == ["lift.jpg"]

    assert occurrences.delete(f"{url}/{attachment['id']}", headers=auth_headers(neighbour)).status_code == 403
    assert occurrences.delete(f"{url}/{attachment['id']}", headers=auth_headers(admin)).status_code == 204
    assert os.listdir(path) == []
