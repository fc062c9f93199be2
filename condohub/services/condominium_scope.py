"""Which rows belong to a condominium, for tables without a condominium_id column"""

from sqlalchemy import Table, select

from .. import models, models_assembly, models_billing, models_finance  # noqa: F401
from ..database import Base

# table -> chain of (fk column, parent table) leading to a condominium scoped table
SCOPE_PATHS = {
    "budget_items": (("budget_id", "budgets"),),
    "fee_payments": (("fee_id", "fees"),),
    "fee_payment_history": (("fee_id", "fees"),),
    "fraction_account_movements": (("fraction_account_id", "fraction_accounts"),),
    "assembly_vote_topics": (("assembly_id", "assemblies"),),
    "assembly_agenda_points": (("assembly_id", "assemblies"),),
    "assembly_attendees": (("assembly_id", "assemblies"),),
    "assembly_votes": (("topic_id", "assembly_vote_topics"), ("assembly_id", "assemblies")),
    "assembly_agenda_point_vote_topics": (
        ("agenda_point_id", "assembly_agenda_points"),
        ("assembly_id", "assemblies"),
    ),
    "minutes_revisions": (("assembly_id", "assemblies"),),
    "standalone_vote_responses": (("standalone_vote_id", "standalone_votes"),),
    "occurrence_comments": (("occurrence_id", "occurrences"),),
    "occurrence_history": (("occurrence_id", "occurrences"),),
}


def get_table(name: str) -> Table:
    return Base.metadata.tables[name]


def scope_clause(table_name: str, condominium_id: int, path=None):
    """WHERE clause selecting the rows of ``table_name`` owned by the condominium"""
    table = get_table(table_name)
    if table_name == "condominiums":
        return table.c.id == condominium_id
    if path is None:
        path = SCOPE_PATHS.get(table_name, ())
    if not path:
        return table.c.condominium_id == condominium_id

    column, parent_name = path[0]
    parent = get_table(parent_name)
    return table.c[column].in_(
        select(parent.c.id).where(scope_clause(parent_name, condominium_id, path[1:]))
    )
