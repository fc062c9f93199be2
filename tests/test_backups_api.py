import os

import pytest

from condohub.domain.backups.router import get_backup_service
from condohub.domain.backups.service import BackupDomainService, backup_condominium_id
from condohub.main import app
from condohub.models import Condominium, Fraction

from conftest import add_member, auth_headers, make_fraction, make_user


@pytest.fixture
def backup_dir(tmp_path):
    return str(tmp_path / "backups")


@pytest.fixture
def api(client, db, storage, backup_dir):
    app.dependency_overrides[get_backup_service] = lambda: BackupDomainService(db, storage, backup_dir)
    return client


@pytest.fixture
def root(db):
    return make_user(db, email="root@example.com", role="super_admin", name="Root")


def _create_backup(api, condominium, user):
    response = api.post(f"/condominiums/{condominium.id}/backups", headers=auth_headers(user))
    assert response.status_code == 201
    return response.json()["name"]


def test_backup_condominium_id():
    assert backup_condominium_id("backup_12_Edificio_Sol_2024-01-01_10-00-00.backup") == 12
    assert backup_condominium_id("/tmp/backup_7_x.backup") == 7
    assert backup_condominium_id("uploaded_backup_7_x.backup") is None


def test_create_and_list_backups(api, admin, condominium, fractions, root):
    name = _create_backup(api, condominium, admin)
    assert name.startswith(f"backup_{condominium.id}_Edificio_Sol_")
    assert name.endswith(".backup")

    listed = api.get(f"/condominiums/{condominium.id}/backups", headers=auth_headers(admin)).json()
    assert [b["name"] for b in listed] == [name]
    assert listed[0]["size_kb"] >= 1

    assert api.get("/backups", headers=auth_headers(admin)).status_code == 403
    assert [b["name"] for b in api.get("/backups", headers=auth_headers(root)).json()] == [name]


def test_residents_cannot_back_up(api, db, condominium):
    resident = make_user(db, email="resident@example.com", role="condomino")
    add_member(db, condominium, resident)
    assert api.post(f"/condominiums/{condominium.id}/backups", headers=auth_headers(resident)).status_code == 403
    assert api.get(f"/condominiums/{condominium.id}/backups", headers=auth_headers(resident)).status_code == 403


def test_download_permissions(api, db, admin, condominium, root, backup_dir):
    name = _create_backup(api, condominium, admin)
    with open(os.path.join(backup_dir, name), "rb") as fh:
        expected = fh.read()

    download = api.get(f"/backups/{name}", headers=auth_headers(admin))
    assert download.status_code == 200
    assert download.content == expected
    assert download.headers["cache-control"] == "private, no-store"
    assert download.headers["x-content-type-options"] == "nosniff"
    assert api.get(f"/backups/{name}", headers=auth_headers(root)).status_code == 200

    other_admin = make_user(db, email="other@example.com")
    assert api.get(f"/backups/{name}", headers=auth_headers(other_admin)).status_code == 403
    assert api.get("/backups/uploaded_x.backup", headers=auth_headers(admin)).status_code == 403
    assert api.get("/backups/backup_1_missing.backup", headers=auth_headers(root)).status_code == 400


def test_delete_backup(api, admin, condominium, backup_dir):
    name = _create_backup(api, condominium, admin)
    assert api.delete(f"/backups/{name}", headers=auth_headers(admin)).status_code == 204
    assert not os.path.exists(os.path.join(backup_dir, name))
    assert api.get(f"/backups/{name}", headers=auth_headers(admin)).status_code == 400


# ============================================================================
# RESTORE
# ============================================================================


def test_restore_in_place(api, db, admin, condominium, fractions):
    condominium_id = condominium.id
    name = _create_backup(api, condominium, admin)
    make_fraction(db, condominium, "D", "50")

    response = api.post("/backups/restore", data={"name": name}, headers=auth_headers(admin))

    assert response.status_code == 200
    assert response.json() == {"condominium_id": condominium_id, "message": "Backup restored successfully"}
    identifiers = sorted(f.identifier for f in db.query(Fraction).filter(Fraction.condominium_id == condominium_id))
    assert identifiers == ["A", "B", "C"]


def test_restore_after_deletion_creates_new_condominium(api, db, admin, condominium, fractions):
    old_id = condominium.id
    name = _create_backup(api, condominium, admin)
    assert api.delete(f"/condominiums/{old_id}", headers=auth_headers(admin)).status_code == 200

    response = api.post("/backups/restore", data={"name": name}, headers=auth_headers(admin))

    assert response.status_code == 200
    new_id = response.json()["condominium_id"]
    assert new_id != old_id
    restored = db.get(Condominium, new_id)
    assert restored.user_id == admin.id
    assert db.query(Fraction).filter(Fraction.condominium_id == new_id).count() == 3


def test_restore_permissions(api, db, admin, condominium, fractions, root):
    name = _create_backup(api, condominium, admin)
    resident = make_user(db, email="resident@example.com", role="condomino")
    add_member(db, condominium, resident)

    in_place = api.post("/backups/restore", data={"name": name}, headers=auth_headers(resident))
    assert in_place.status_code == 403

    chosen = api.post(
        "/backups/restore", data={"name": name, "target_admin_user_id": str(root.id)}, headers=auth_headers(admin)
    )
    assert chosen.status_code == 403
    assert chosen.json()["detail"] == "Only super admins can choose the restored admin"

    api.delete(f"/condominiums/{condominium.id}", headers=auth_headers(admin))
    as_new = api.post("/backups/restore", data={"name": name}, headers=auth_headers(resident))
    assert as_new.status_code == 403
    assert as_new.json()["detail"] == "Only administrators can restore backups"


def test_restore_needs_file_or_name(api, admin):
    assert api.post("/backups/restore", headers=auth_headers(admin)).status_code == 400


def test_restore_from_upload(api, db, admin, condominium, fractions, root, backup_dir):
    name = _create_backup(api, condominium, admin)
    with open(os.path.join(backup_dir, name), "rb") as fh:
        content = fh.read()
    url = "/backups/restore"

    not_root = api.post(url, files={"file": (name, content, "application/zip")}, headers=auth_headers(admin))
    assert not_root.status_code == 403

    wrong_extension = api.post(url, files={"file": ("data.zip", content, "application/zip")}, headers=auth_headers(root))
    assert wrong_extension.status_code == 400

    response = api.post(
        url,
        files={"file": (name, content, "application/zip")},
        data={"target_admin_user_id": str(root.id)},
        headers=auth_headers(root),
    )
    assert response.status_code == 200
    restored = db.get(Condominium, response.json()["condominium_id"])
    assert restored.user_id == root.id
    assert any(f.startswith("uploaded_") for f in os.listdir(backup_dir))


def test_restore_by_name_uses_archive_condominium(api, db, admin, condominium, fractions, root, backup_dir):
    condominium_id = condominium.id
    name = _create_backup(api, condominium, admin)
    with open(os.path.join(backup_dir, name), "rb") as fh:
        content = fh.read()
    uploaded = api.post(
        "/backups/restore", files={"file": (name, content, "application/zip")}, headers=auth_headers(root)
    )
    assert uploaded.json()["condominium_id"] == condominium_id
    stored = next(f for f in os.listdir(backup_dir) if f.startswith("uploaded_"))

    outsider = make_user(db, email="outsider@example.com")
    response = api.post("/backups/restore", data={"name": stored}, headers=auth_headers(outsider))

    assert response.status_code == 403
    db.expire_all()
    assert db.get(Condominium, condominium_id).user_id == admin.id
    assert db.query(Fraction).filter(Fraction.condominium_id == condominium_id).count() == 3


def test_only_the_owner_restores_a_deleted_condominium(api, db, admin, condominium, fractions):
    name = _create_backup(api, condominium, admin)
    assert api.delete(f"/condominiums/{condominium.id}", headers=auth_headers(admin)).status_code == 200
    outsider = make_user(db, email="outsider@example.com")

    response = api.post("/backups/restore", data={"name": name}, headers=auth_headers(outsider))

    assert response.status_code == 403
    assert response.json()["detail"] == "Only the owner of the backed-up condominium can restore it"
    assert db.query(Condominium).count() == 0
