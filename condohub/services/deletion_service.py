import logging
import os
import shutil
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from ..audit_manager import AuditManager
from ..config import STORAGE_PATH
from ..exceptions import CondoHubError
from .condominium_scope import get_table, scope_clause

logger = logging.getLogger(__name__)

# Children before parents
DELETION_ORDER = (
    "minutes_revisions",
    "assembly_votes",
    "assembly_agenda_point_vote_topics",
    "assembly_agenda_points",
    "assembly_vote_topics",
    "assembly_attendees",
    "assembly_account_approvals",
    "documents",
    "assemblies",
    "standalone_vote_responses",
    "standalone_votes",
    "vote_options",
    "receipts",
    "fee_payment_history",
    "fraction_account_movements",
    "fraction_accounts",
    "fee_payments",
    "fees",
    "condominium_fee_periods",
    "financial_transactions",
    "bank_accounts",
    "reservations",
    "spaces",
    "occurrence_comments",
    "occurrence_history",
    "occurrence_attachments",
    "occurrences",
    "budget_items",
    "budgets",
    "contracts",
    "expenses",
    "revenues",
    "suppliers",
    "message_attachments",
    "messages",
    "folders",
    "notifications",
    "invitations",
    "admin_transfer_pending",
    "subscription_condominiums",
    "condominium_users",
    "fractions",
)

# Tables whose rows point at stored files
FILE_TABLES = ("documents", "receipts", "message_attachments", "occurrence_attachments")


class CondominiumDeletionService:
    """Removes a condominium with every dependent row and its stored files"""

    def __init__(self, db: Session, storage_path: Optional[str] = None):
        self.db = db
        self.storage_path = storage_path or STORAGE_PATH

    def condominium_folder(self, condominium_id: int) -> str:
        return os.path.join(self.storage_path, "condominiums", str(condominium_id))

    def stored_files(self, condominium_id: int) -> list[str]:
        paths = []
        for table_name in FILE_TABLES:
            table = get_table(table_name)
            rows = self.db.execute(
                select(table.c.file_path).where(scope_clause(table_name, condominium_id))
            ).scalars()
            paths.extend(p for p in rows if p)
        return paths

    def remove_files(self, condominium_id: int, file_paths: list[str]) -> None:
        for relative in file_paths:
            full_path = os.path.join(self.storage_path, relative)
            if os.path.isfile(full_path):
                try:
                    os.remove(full_path)
                except OSError as e:
                    logger.warning(f"⚠️ Could not remove {full_path}: {e}")
        folder = self.condominium_folder(condominium_id)
        if os.path.isdir(folder):
            shutil.rmtree(folder, ignore_errors=True)

    def delete_condominium_data(self, condominium_id: int, is_demo: bool = False, commit: bool = True) -> bool:
        """
        Delete all data of a condominium.

        With ``commit=False`` the rows are deleted inside the caller's
        transaction and stored files are left alone; the caller decides what
        happens to them once its transaction commits.
        """
        condominiums = get_table("condominiums")
        row = self.db.execute(
            select(condominiums.c.id, condominiums.c.is_demo).where(condominiums.c.id == condominium_id)
        ).first()

        if is_demo and (not row or not row.is_demo):
            raise CondoHubError(
                f"Refusing to delete non-demo condominium {condominium_id} through the demo cleanup"
            )

        file_paths = self.stored_files(condominium_id)

        try:
            for table_name in DELETION_ORDER:
                table = get_table(table_name)
                self.db.execute(delete(table).where(scope_clause(table_name, condominium_id)))
            self.db.execute(delete(condominiums).where(condominiums.c.id == condominium_id))

            AuditManager.log_audit(
                self.db,
                "condominiums",
                "delete",
                condominium_id,
                description=f"Condominium #{condominium_id} and all its data deleted",
            )

            if commit:
                self.db.commit()
        except Exception as e:
            if commit:
                self.db.rollback()
            logger.error(f"❌ Error deleting condominium {condominium_id}: {e}")
            raise

        if commit:
            self.remove_files(condominium_id, file_paths)
        logger.info(f"🗑️ Deleted condominium {condominium_id} ({len(file_paths)} stored file(s))")
        return True
