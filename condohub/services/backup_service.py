"""
Condominium backup and restore.

A backup is a zip (``.backup``) holding ``data.json`` with every row scoped to
the condominium, ``files/`` with a copy of ``STORAGE_PATH/condominiums/{id}``
and ``documents_storage/`` with documents stored anywhere else.

Restore runs in a single transaction. When the backed-up condominium still
exists it is wiped and re-created under the same ID; otherwise a new one is
created. Every other row gets a fresh ID and every foreign key is rewritten
through per-table old-ID to new-ID maps, following RESTORE_PLAN.
"""

import json
import logging
import math
import os
import re
import shutil
import tempfile
import zipfile
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, Optional

from sqlalchemy import Boolean, Date, DateTime, Integer, Numeric, func, insert, select
from sqlalchemy.orm import Session

from ..audit_manager import AuditManager
from ..config import BACKUP_PATH, STORAGE_PATH
from ..exceptions import BackupError
from ..models import User
from ..security_utils import random_password_hash
from .condominium_scope import get_table, scope_clause
from .deletion_service import CondominiumDeletionService

logger = logging.getLogger(__name__)

BACKUP_VERSION = 1
BACKUP_EXTENSION = ".backup"

# Condominium columns never carried over
CONDOMINIUM_EXCLUDED = ("id", "user_id", "subscription_id", "created_at", "updated_at")


def _int(value) -> Optional[int]:
    if value in (None, ""):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def parse_backup_data(raw: bytes) -> dict:
    try:
        data = json.loads(raw)
    except ValueError as e:
        raise BackupError("Corrupt backup") from e
    if not data or not isinstance(data, dict):
        raise BackupError("Corrupt backup")
    return data


def backed_up_condominium(data: dict) -> dict:
    """Check the backup version and return the condominium row it holds"""
    version = _int(data.get("version"))
    if version is None or version < 1:
        raise BackupError("Invalid backup: missing version")
    if version > BACKUP_VERSION:
        raise BackupError(f"Unsupported backup version: {version}")

    tables = data.get("tables")
    if not isinstance(tables, dict):
        raise BackupError("Invalid backup: condominium not found")
    condominium = (tables.get("condominiums") or [None])[0]
    if not isinstance(condominium, dict) or _int(condominium.get("id")) is None:
        raise BackupError("Invalid backup: condominium not found")
    return condominium


def by_path_depth(rows: list[dict]) -> list[dict]:
    return sorted(rows, key=lambda r: ((r.get("path") or "").count("/"), _int(r.get("id")) or 0))


def by_generation_time(rows: list[dict]) -> list[dict]:
    return sorted(rows, key=lambda r: (str(r.get("generated_at") or ""), _int(r.get("id")) or 0))


def parents_first(column: str) -> Callable[[list[dict]], list[dict]]:
    """Order self-referencing rows so a parent is always inserted before its children"""

    def sort(rows: list[dict]) -> list[dict]:
        known = {_int(r.get("id")) for r in rows}
        pending = sorted(rows, key=lambda r: _int(r.get("id")) or 0)
        placed: set = set()
        ordered = []
        while pending:
            remaining = []
            for row in pending:
                parent = _int(row.get(column))
                if parent is None or parent not in known or parent in placed:
                    ordered.append(row)
                    placed.add(_int(row.get("id")))
                else:
                    remaining.append(row)
            if len(remaining) == len(pending):
                # Cycle in the data, keep the rest in id order
                ordered.extend(remaining)
                break
            pending = remaining
        return ordered

    return sort


@dataclass(frozen=True)
class RestoreStep:
    """
    How one table is restored.

    required: column -> map; the row is skipped when the parent is not mapped.
    optional: column -> map; NULL when the parent is not mapped.
    users: user columns, NULL when the user is not mapped.
    admin_fallback: user columns that fall back to the restoring admin.
    files: stored file path columns rewritten to the new condominium folder.
    """

    table: str
    required: dict = field(default_factory=dict)
    optional: dict = field(default_factory=dict)
    users: tuple = ()
    admin_fallback: tuple = ()
    files: tuple = ()
    scoped: bool = True
    sort: Optional[Callable[[list[dict]], list[dict]]] = None


# Dependency order: every map a step reads is filled by an earlier step
RESTORE_PLAN = (
    RestoreStep("fractions"),
    RestoreStep("spaces"),
    RestoreStep("bank_accounts"),
    RestoreStep(
        "folders",
        optional={"parent_folder_id": "folders"},
        admin_fallback=("created_by",),
        sort=by_path_depth,
    ),
    RestoreStep("budgets"),
    RestoreStep("budget_items", scoped=False, required={"budget_id": "budgets"}),
    RestoreStep("suppliers"),
    RestoreStep("contracts", optional={"supplier_id": "suppliers"}),
    RestoreStep("fees", required={"fraction_id": "fractions"}),
    RestoreStep("condominium_fee_periods"),
    RestoreStep("fraction_accounts", required={"fraction_id": "fractions"}),
    RestoreStep("condominium_users", required={"user_id": "users"}, optional={"fraction_id": "fractions"}),
    RestoreStep(
        "reservations",
        required={"space_id": "spaces", "fraction_id": "fractions"},
        users=("user_id", "approved_by"),
    ),
    RestoreStep("assemblies", users=("created_by",)),
    RestoreStep("assembly_vote_topics", scoped=False, required={"assembly_id": "assemblies"}),
    RestoreStep(
        "assembly_agenda_points",
        scoped=False,
        required={"assembly_id": "assemblies"},
        optional={"vote_topic_id": "assembly_vote_topics"},
    ),
    RestoreStep(
        "assembly_agenda_point_vote_topics",
        scoped=False,
        required={"agenda_point_id": "assembly_agenda_points", "vote_topic_id": "assembly_vote_topics"},
    ),
    RestoreStep(
        "assembly_attendees",
        scoped=False,
        required={"assembly_id": "assemblies", "fraction_id": "fractions"},
        users=("user_id",),
    ),
    RestoreStep(
        "assembly_votes",
        scoped=False,
        required={"assembly_id": "assemblies", "topic_id": "assembly_vote_topics", "fraction_id": "fractions"},
        users=("user_id",),
    ),
    RestoreStep("vote_options"),
    RestoreStep("standalone_votes", users=("created_by",)),
    RestoreStep(
        "standalone_vote_responses",
        scoped=False,
        required={
            "standalone_vote_id": "standalone_votes",
            "fraction_id": "fractions",
            "vote_option_id": "vote_options",
        },
        users=("user_id",),
    ),
    RestoreStep(
        "financial_transactions",
        required={"bank_account_id": "bank_accounts"},
        optional={"fraction_id": "fractions", "transfer_account_id": "bank_accounts"},
        users=("created_by",),
    ),
    RestoreStep(
        "fee_payments",
        scoped=False,
        required={"fee_id": "fees"},
        optional={"financial_transaction_id": "financial_transactions"},
        users=("created_by",),
    ),
    RestoreStep(
        "fee_payment_history",
        scoped=False,
        required={"fee_id": "fees"},
        optional={"fee_payment_id": "fee_payments"},
        users=("user_id",),
    ),
    RestoreStep(
        "fraction_account_movements",
        scoped=False,
        required={"fraction_account_id": "fraction_accounts"},
        optional={"source_financial_transaction_id": "financial_transactions"},
    ),
    RestoreStep("revenues", optional={"fraction_id": "fractions"}),
    RestoreStep("expenses", optional={"fraction_id": "fractions", "supplier_id": "suppliers"}),
    RestoreStep(
        "receipts",
        required={"fee_id": "fees", "fraction_id": "fractions"},
        optional={"fee_payment_id": "fee_payments"},
        users=("generated_by",),
        files=("file_path",),
        sort=by_generation_time,
    ),
    RestoreStep(
        "documents",
        optional={"assembly_id": "assemblies", "fraction_id": "fractions", "parent_document_id": "documents"},
        users=("uploaded_by",),
        files=("file_path",),
        sort=parents_first("parent_document_id"),
    ),
    RestoreStep(
        "minutes_revisions",
        scoped=False,
        required={"assembly_id": "assemblies", "document_id": "documents", "fraction_id": "fractions"},
        users=("user_id",),
    ),
    RestoreStep(
        "messages",
        optional={"thread_id": "messages"},
        users=("to_user_id",),
        admin_fallback=("from_user_id",),
        sort=parents_first("thread_id"),
    ),
    RestoreStep(
        "message_attachments",
        required={"message_id": "messages"},
        users=("uploaded_by",),
        files=("file_path",),
    ),
    RestoreStep(
        "occurrences",
        optional={"fraction_id": "fractions", "supplier_id": "suppliers"},
        users=("reported_by", "assigned_to"),
    ),
    RestoreStep("occurrence_comments", scoped=False, required={"occurrence_id": "occurrences"}, users=("user_id",)),
    RestoreStep("occurrence_history", scoped=False, required={"occurrence_id": "occurrences"}, users=("user_id",)),
    RestoreStep(
        "occurrence_attachments",
        required={"occurrence_id": "occurrences"},
        users=("uploaded_by",),
        files=("file_path",),
    ),
    RestoreStep("notifications", required={"user_id": "users"}),
    RestoreStep("invitations", optional={"fraction_id": "fractions"}),
    RestoreStep("assembly_account_approvals", optional={"assembly_id": "assemblies"}),
    RestoreStep("admin_transfer_pending", required={"user_id": "users"}, users=("from_user_id",)),
)

EXPORT_TABLES = tuple(step.table for step in RESTORE_PLAN)

# fraction_account_movements.source_reference_id points at a different table per source type
MOVEMENT_SOURCE_MAPS = {
    "quota_application": "fee_payments",
    "quota_payment": "financial_transactions",
    "space_reservation": "reservations",
}


def serialize_value(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, bytes):
        return None
    return value


def serialize_row(row) -> dict:
    return {key: serialize_value(value) for key, value in dict(row).items()}


def coerce_value(column, value: Any) -> Any:
    """Turn a JSON value back into what the column type expects"""
    if value is None:
        return None
    column_type = column.type
    if isinstance(column_type, DateTime):
        if isinstance(value, str):
            return datetime.fromisoformat(value) if value else None
        return value
    if isinstance(column_type, Date):
        if isinstance(value, str):
            return date.fromisoformat(value[:10]) if value else None
        return value
    if isinstance(column_type, Boolean):
        if isinstance(value, str):
            return value.strip().lower() in ("1", "true", "t", "yes")
        return bool(value)
    if isinstance(column_type, Numeric):
        return Decimal(str(value)) if value != "" else None
    if isinstance(column_type, Integer):
        return _int(value)
    return value


def remap_file_path(file_path: Optional[str], old_condominium_id: int, new_condominium_id: int) -> Optional[str]:
    if not file_path:
        return file_path
    return file_path.replace(f"condominiums/{old_condominium_id}/", f"condominiums/{new_condominium_id}/")


class CondominiumBackupService:
    """Backup, restore, listing and deletion of condominium backups"""

    def __init__(self, db: Session, storage_path: Optional[str] = None, backup_path: Optional[str] = None):
        self.db = db
        self.storage_path = storage_path or STORAGE_PATH
        self.backup_path = backup_path or (
            os.path.join(storage_path, "backups") if storage_path else BACKUP_PATH
        )

    # ------------------------------------------------------------------
    # Backup
    # ------------------------------------------------------------------

    def _export_table(self, table_name: str, condominium_id: int) -> list[dict]:
        table = get_table(table_name)
        rows = self.db.execute(
            select(table).where(scope_clause(table_name, condominium_id)).order_by(table.c.id)
        ).mappings()
        return [serialize_row(row) for row in rows]

    def _export_users(self, condominium_id: int, owner_id: int) -> list[dict]:
        members = get_table("condominium_users")
        user_ids = {owner_id}
        user_ids.update(
            self.db.execute(
                select(members.c.user_id).where(members.c.condominium_id == condominium_id)
            ).scalars()
        )
        users = get_table("users")
        rows = self.db.execute(
            select(users.c.id, users.c.name, users.c.email, users.c.role)
            .where(users.c.id.in_(user_ids))
            .order_by(users.c.id)
        ).mappings()
        return [serialize_row(row) for row in rows]

    def _copy_external_documents(self, condominium_id: int, target_dir: str) -> None:
        """Documents stored outside the condominium folder, kept under their relative path"""
        documents = get_table("documents")
        paths = self.db.execute(
            select(documents.c.file_path).where(documents.c.condominium_id == condominium_id)
        ).scalars()
        prefix = f"condominiums/{condominium_id}/"
        for relative in paths:
            if not relative or relative.startswith(prefix):
                continue
            source = os.path.join(self.storage_path, relative)
            if not os.path.isfile(source):
                continue
            destination = os.path.join(target_dir, relative)
            os.makedirs(os.path.dirname(destination), exist_ok=True)
            shutil.copy2(source, destination)

    @staticmethod
    def _create_zip(source_dir: str, zip_path: str) -> None:
        with zipfile.ZipFile(zip_path, "w", zipfile.ZIP_DEFLATED) as archive:
            for root, _dirs, files in os.walk(source_dir):
                for name in files:
                    full_path = os.path.join(root, name)
                    archive.write(full_path, os.path.relpath(full_path, source_dir).replace(os.sep, "/"))

    def backup(self, condominium_id: int) -> str:
        """Create a full backup of a condominium; returns the path of the .backup file"""
        condominiums = get_table("condominiums")
        condominium = self.db.execute(
            select(condominiums).where(condominiums.c.id == condominium_id)
        ).mappings().first()
        if not condominium:
            raise BackupError("Condominium not found")

        os.makedirs(self.backup_path, exist_ok=True)
        temp_dir = tempfile.mkdtemp(prefix="temp_", dir=self.backup_path)

        try:
            condominium_row = serialize_row(condominium)
            data = {
                "version": BACKUP_VERSION,
                "created_at": datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
                "condominium_id": condominium_id,
                "condominium": condominium_row,
                "tables": {
                    "users_snapshot": self._export_users(condominium_id, condominium["user_id"]),
                    "condominiums": [condominium_row],
                },
            }
            for table_name in EXPORT_TABLES:
                data["tables"][table_name] = self._export_table(table_name, condominium_id)

            with open(os.path.join(temp_dir, "data.json"), "w", encoding="utf-8") as fh:
                json.dump(data, fh, indent=2, ensure_ascii=False)

            condominium_storage = os.path.join(self.storage_path, "condominiums", str(condominium_id))
            if os.path.isdir(condominium_storage):
                shutil.copytree(condominium_storage, os.path.join(temp_dir, "files"))

            self._copy_external_documents(condominium_id, os.path.join(temp_dir, "documents_storage"))

            safe_name = re.sub(r"[^a-zA-Z0-9_-]", "_", condominium["name"] or "")
            filename = (
                f"backup_{condominium_id}_{safe_name}_{datetime.now().strftime('%Y-%m-%d_%H-%M-%S')}"
                f"{BACKUP_EXTENSION}"
            )
            zip_path = os.path.join(self.backup_path, filename)
            self._create_zip(temp_dir, zip_path)

            counts = {name: len(rows) for name, rows in data["tables"].items() if rows}
            logger.info(f"💾 Backup of condominium {condominium_id} written to {filename} ({counts})")
            return zip_path
        finally:
            shutil.rmtree(temp_dir, ignore_errors=True)

    # ------------------------------------------------------------------
    # Restore
    # ------------------------------------------------------------------

    @staticmethod
    def _load_backup(backup_path: str, temp_dir: str) -> tuple[dict, str]:
        try:
            with zipfile.ZipFile(backup_path) as archive:
                archive.extractall(temp_dir)
        except (zipfile.BadZipFile, OSError) as e:
            raise BackupError("Could not open the backup file") from e

        data_path = os.path.join(temp_dir, "data.json")
        if not os.path.isfile(data_path):
            data_path = None
            for root, _dirs, files in os.walk(temp_dir):
                if "data.json" in files:
                    data_path = os.path.join(root, "data.json")
                    break
        if not data_path:
            raise BackupError("Invalid backup: data.json not found")

        try:
            with open(data_path, "rb") as fh:
                raw = fh.read()
        except OSError as e:
            raise BackupError("Corrupt backup") from e
        return parse_backup_data(raw), os.path.dirname(data_path)

    def read_summary(self, backup_path: str) -> dict:
        """Condominium id and owner email stored in a backup, read without extracting it"""
        try:
            with zipfile.ZipFile(backup_path) as archive:
                names = [n for n in archive.namelist() if os.path.basename(n) == "data.json"]
                if not names:
                    raise BackupError("Invalid backup: data.json not found")
                raw = archive.read(min(names, key=lambda n: n.count("/")))
        except (zipfile.BadZipFile, OSError) as e:
            raise BackupError("Could not open the backup file") from e

        data = parse_backup_data(raw)
        condominium = backed_up_condominium(data)
        owner_id = _int(condominium.get("user_id"))
        owner_email = None
        for snapshot in data["tables"].get("users_snapshot") or []:
            if isinstance(snapshot, dict) and _int(snapshot.get("id")) == owner_id:
                owner_email = (snapshot.get("email") or "").strip().lower() or None
                break
        return {"condominium_id": int(condominium["id"]), "owner_email": owner_email}

    def _insert(self, table_name: str, values: dict) -> int:
        table = get_table(table_name)
        row = {
            key: coerce_value(table.c[key], value)
            for key, value in values.items()
            if key in table.c
        }
        result = self.db.execute(insert(table).values(**row))
        return result.inserted_primary_key[0]

    def _map_user(self, snapshot: dict) -> Optional[int]:
        email = (snapshot.get("email") or "").strip().lower()
        if not email:
            return None
        user = self.db.query(User).filter(func.lower(User.email) == email).first()
        if user:
            return user.id
        user = User(
            name=snapshot.get("name") or "Restored user",
            email=email,
            password_hash=random_password_hash(),
            role="admin",
        )
        self.db.add(user)
        self.db.flush()
        logger.info(f"👤 Created user {user.id} ({email}) for restore")
        return user.id

    def _restore_rows(
        self,
        tables: dict,
        condominium: dict,
        target_admin_user_id: Optional[int],
        in_place: bool,
    ) -> int:
        maps: dict[str, dict[int, int]] = defaultdict(dict)

        for snapshot in tables.get("users_snapshot") or []:
            old_id = _int(snapshot.get("id"))
            new_id = self._map_user(snapshot)
            if old_id is not None and new_id is not None:
                maps["users"][old_id] = new_id

        admin_user_id = target_admin_user_id or maps["users"].get(_int(condominium.get("user_id")))
        if not admin_user_id or not self.db.get(User, admin_user_id):
            raise BackupError("Admin user not found. Make sure the email exists or choose an admin.")

        old_condominium_id = int(condominium["id"])
        values = {k: v for k, v in condominium.items() if k not in CONDOMINIUM_EXCLUDED}
        values["user_id"] = admin_user_id
        if in_place:
            values["id"] = old_condominium_id
        new_condominium_id = self._insert("condominiums", values)
        if in_place:
            new_condominium_id = old_condominium_id

        def lookup(map_name: str, old_value) -> Optional[int]:
            old_id = _int(old_value)
            return maps[map_name].get(old_id) if old_id is not None else None

        receipt_sequences: dict[str, int] = defaultdict(int)
        restored: dict[str, int] = {}

        for step in RESTORE_PLAN:
            rows = tables.get(step.table) or []
            if step.sort:
                rows = step.sort(rows)

            count = 0
            for row in rows:
                values = dict(row)
                old_id = _int(values.pop("id", None))
                if step.scoped:
                    values["condominium_id"] = new_condominium_id

                skip = False
                for column, map_name in step.required.items():
                    values[column] = lookup(map_name, row.get(column))
                    if values[column] is None:
                        skip = True
                if skip:
                    continue

                for column, map_name in step.optional.items():
                    values[column] = lookup(map_name, row.get(column))
                for column in step.users:
                    values[column] = lookup("users", row.get(column))
                for column in step.admin_fallback:
                    values[column] = lookup("users", row.get(column)) or admin_user_id
                for column in step.files:
                    values[column] = remap_file_path(values.get(column), old_condominium_id, new_condominium_id)

                if step.table == "fraction_account_movements":
                    source_map = MOVEMENT_SOURCE_MAPS.get(row.get("source_type"))
                    values["source_reference_id"] = (
                        lookup(source_map, row.get("source_reference_id")) if source_map else None
                    )
                elif step.table == "standalone_votes" and isinstance(row.get("allowed_options"), list):
                    values["allowed_options"] = [
                        new for new in (lookup("vote_options", o) for o in row["allowed_options"]) if new
                    ]
                elif step.table == "receipts" and not in_place:
                    generated_at = str(row.get("generated_at") or "")
                    year = generated_at[:4] if generated_at[:4].isdigit() else str(datetime.now().year)
                    receipt_sequences[year] += 1
                    values["receipt_number"] = f"REC-{new_condominium_id}-{year}-{receipt_sequences[year]:03d}"

                new_id = self._insert(step.table, values)
                if old_id is not None:
                    maps[step.table][old_id] = new_id
                count += 1

            if count:
                restored[step.table] = count

        logger.info(f"📦 Restored rows for condominium {new_condominium_id}: {restored}")
        return new_condominium_id

    def _restore_files(self, data_dir: str, condominium_id: int, in_place: bool) -> None:
        target_dir = os.path.join(self.storage_path, "condominiums", str(condominium_id))
        if in_place and os.path.isdir(target_dir):
            shutil.rmtree(target_dir, ignore_errors=True)

        files_dir = os.path.join(data_dir, "files")
        if os.path.isdir(files_dir):
            shutil.copytree(files_dir, target_dir, dirs_exist_ok=True)

        documents_dir = os.path.join(data_dir, "documents_storage")
        if os.path.isdir(documents_dir):
            shutil.copytree(documents_dir, self.storage_path, dirs_exist_ok=True)

    def restore(self, backup_path: str, target_admin_user_id: Optional[int] = None) -> int:
        """
        Restore a condominium from a .backup file.

        Args:
            backup_path: Path to the .backup file
            target_admin_user_id: Admin of the restored condominium; defaults to
                the backed-up owner matched by email

        Returns:
            The restored condominium ID
        """
        if not os.path.isfile(backup_path):
            raise BackupError("Backup file not found")

        os.makedirs(self.backup_path, exist_ok=True)
        temp_dir = tempfile.mkdtemp(prefix="restore_", dir=self.backup_path)

        try:
            data, data_dir = self._load_backup(backup_path, temp_dir)
            condominium = backed_up_condominium(data)
            tables = data["tables"]

            old_condominium_id = int(condominium["id"])
            condominiums = get_table("condominiums")
            in_place = (
                self.db.execute(
                    select(condominiums.c.id).where(condominiums.c.id == old_condominium_id)
                ).first()
                is not None
            )

            try:
                if in_place:
                    CondominiumDeletionService(self.db, self.storage_path).delete_condominium_data(
                        old_condominium_id, commit=False
                    )
                new_condominium_id = self._restore_rows(tables, condominium, target_admin_user_id, in_place)
                AuditManager.log_audit(
                    self.db,
                    "condominiums",
                    "restore",
                    new_condominium_id,
                    new_data={"backup": os.path.basename(backup_path), "in_place": in_place},
                    description=f"Condominium #{new_condominium_id} restored from {os.path.basename(backup_path)}",
                )
                self.db.commit()
            except Exception as e:
                self.db.rollback()
                logger.error(f"❌ Restore of {os.path.basename(backup_path)} failed: {e}")
                raise

            self._restore_files(data_dir, new_condominium_id, in_place)
            logger.info(
                f"✅ Restored condominium {new_condominium_id} from {os.path.basename(backup_path)}"
                f" ({'in place' if in_place else 'as new'})"
            )
            return new_condominium_id
        finally:
            shutil.rmtree(temp_dir, ignore_errors=True)

    # ------------------------------------------------------------------
    # Backup files
    # ------------------------------------------------------------------

    def describe(self, path: str) -> dict:
        stat = os.stat(path)
        return {
            "path": path,
            "name": os.path.basename(path),
            "size_kb": math.ceil(stat.st_size / 1024),
            "modified": datetime.fromtimestamp(stat.st_mtime),
        }

    def list_backups(self) -> list[dict]:
        if not os.path.isdir(self.backup_path):
            return []
        files = [
            self.describe(os.path.join(self.backup_path, name))
            for name in os.listdir(self.backup_path)
            if name.endswith(BACKUP_EXTENSION) and os.path.isfile(os.path.join(self.backup_path, name))
        ]
        return sorted(files, key=lambda f: f["modified"], reverse=True)

    def list_backups_for_condominium(self, condominium_id: int) -> list[dict]:
        prefix = f"backup_{condominium_id}_"
        return [f for f in self.list_backups() if f["name"].startswith(prefix)]

    def backup_file_path(self, name: str) -> str:
        """Resolve a backup file name inside the backups directory"""
        path = os.path.join(self.backup_path, os.path.basename(name))
        self._validate_backup_path(path)
        return path

    def _validate_backup_path(self, path: str) -> str:
        real_path = os.path.realpath(path)
        real_backup_path = os.path.realpath(self.backup_path)
        if not os.path.isdir(real_backup_path):
            raise BackupError("Invalid path")
        if os.path.commonpath([real_path, real_backup_path]) != real_backup_path:
            raise BackupError("Backup not found")
        if not os.path.isfile(real_path) or not real_path.endswith(BACKUP_EXTENSION):
            raise BackupError("Invalid backup file")
        return real_path

    def delete_backup(self, path: str) -> None:
        real_path = self._validate_backup_path(path)
        try:
            os.remove(real_path)
        except OSError as e:
            raise BackupError("Could not delete the backup") from e
        logger.info(f"🗑️ Deleted backup {os.path.basename(real_path)}")
