from datetime import date
from decimal import Decimal

from condohub.audit_manager import REDACTED, AuditManager, json_safe, redact
from condohub.models import Fraction, Notification, User
from condohub.models_audit import AuditDocument, AuditFee, AuditFinancial, AuditLog, AuditPayment, AuditUser
from condohub.models_finance import Fee
from condohub.request_context import set_request_context
from condohub.services.audit_service import AuditService

from conftest import make_fraction, make_user


def test_audit_table_routing():
    assert AuditManager.resolve_audit_table("fee_payments") == "audit_payments"
    assert AuditManager.resolve_audit_table("payments") == "audit_payments"
    assert AuditManager.resolve_audit_table("financial_transactions") == "audit_financial"
    assert AuditManager.resolve_audit_table("subscriptions") == "audit_subscriptions"
    assert AuditManager.resolve_audit_table("documents") == "audit_documents"
    assert AuditManager.resolve_audit_table("users") == "audit_users"
    assert AuditManager.resolve_audit_table("fees") == "audit_fees"
    assert AuditManager.resolve_audit_table("fractions") == "audit_logs"


def test_redact_hides_sensitive_values():
    data = redact("users", {"email": "a@b.pt", "password_hash": "secret", "two_factor_secret": None})
    assert data == {"email": "a@b.pt", "password_hash": REDACTED, "two_factor_secret": None}
    assert redact("fractions", {"identifier": "A"}) == {"identifier": "A"}


def test_json_safe_values():
    assert json_safe(Decimal("1.50")) == 1.5
    assert json_safe(b"raw") is None


def test_description_quotes_key_fields():
    description = AuditManager.build_description("Fraction", "fractions", 4, "created", {"identifier": "1Esq"})
    assert description == "Fraction #4 created (identifier: 1Esq)"


def test_insert_is_captured_with_redacted_password(db):
    user = make_user(db, email="audited@example.com")

    row = db.query(AuditUser).filter(AuditUser.model_id == user.id, AuditUser.action == "create").one()
    assert row.operation == "INSERT"
    assert row.table_name == "users"
    assert row.new_data["email"] == "audited@example.com"
    assert row.new_data["password_hash"] == REDACTED


def test_update_records_only_changed_columns(db, condominium):
    fraction = make_fraction(db, condominium, "A", "100")
    assert fraction.identifier == "A"
    fraction.identifier = "A1"
    db.commit()

    row = (
        db.query(AuditLog)
        .filter(AuditLog.table_name == "fractions", AuditLog.action == "update", AuditLog.model_id == fraction.id)
        .one()
    )
    assert row.old_data == {"identifier": "A"}
    assert row.new_data == {"identifier": "A1"}


def test_delete_is_captured(db, condominium):
    fraction = make_fraction(db, condominium, "B", "100")
    fraction_id = fraction.id
    db.delete(fraction)
    db.commit()

    row = db.query(AuditLog).filter(AuditLog.action == "delete", AuditLog.model_id == fraction_id).one()
    assert row.operation == "DELETE"
    assert row.new_data is None


def test_request_context_stamps_actor(db, condominium):
    set_request_context(42, "10.0.0.1", "pytest-agent")
    make_fraction(db, condominium, "C", "100")

    row = db.query(AuditLog).filter(AuditLog.table_name == "fractions", AuditLog.action == "create").one()
    assert row.user_id == 42
    assert row.ip_address == "10.0.0.1"
    assert row.user_agent == "pytest-agent"


def test_audit_rows_roll_back_with_the_change(db, condominium):
    db.add(Fraction(condominium_id=condominium.id, identifier="R", permillage=Decimal("10")))
    db.flush()
    assert db.query(AuditLog).filter(AuditLog.table_name == "fractions").count() == 1

    db.rollback()
    assert db.query(AuditLog).filter(AuditLog.table_name == "fractions").count() == 0


def test_suspended_block_skips_capture(db):
    with AuditManager.suspended():
        make_user(db, email="quiet@example.com")
    assert AuditManager.is_enabled()
    assert db.query(User).filter(User.email == "quiet@example.com").count() == 1
    assert db.query(AuditUser).filter(AuditUser.new_data.isnot(None)).count() == 0


def test_unaudited_tables_are_ignored(db, condominium):
    db.add(Notification(user_id=condominium.user_id, type="system", title="Hello"))
    db.commit()
    assert db.query(AuditLog).filter(AuditLog.table_name == "notifications").count() == 0


def test_manual_entry(db):
    AuditManager.log_audit(db, "condominiums", "restore", 7, new_data={"in_place": True}, description="Restored")
    db.commit()

    row = db.query(AuditLog).filter(AuditLog.action == "restore").one()
    assert row.model_id == 7
    assert row.description == "Restored"
    assert row.new_data == {"in_place": True}


def test_service_financial_event(db, condominium):
    AuditService(db).log_financial(
        condominium.id, "budget", 3, "budget_status_changed", amount=Decimal("100"), old_status="draft", new_status="approved"
    )
    db.commit()

    row = db.query(AuditFinancial).filter(AuditFinancial.action == "budget_status_changed").one()
    assert row.condominium_id == condominium.id
    assert row.entity_type == "budget"
    assert row.entity_id == 3
    assert row.new_status == "approved"


def test_service_payment_and_document_events(db, condominium):
    service = AuditService(db)
    service.log_payment("payment_completed", payment_id=9, amount=Decimal("25"), metadata={"gateway": "mbway"})
    service.log_document(condominium.id, "upload", document_id=5, file_name="minutes.pdf", file_size=120)
    db.commit()

    payment = db.query(AuditPayment).filter(AuditPayment.action == "payment_completed").one()
    assert payment.payment_id == 9
    assert payment.extra_data == {"gateway": "mbway"}

    document = db.query(AuditDocument).filter(AuditDocument.action == "upload").one()
    assert document.document_id == 5
    assert document.condominium_id == condominium.id


def test_fee_changes_go_to_fee_audit_table(db, condominium, fractions):
    fee = Fee(
        condominium_id=condominium.id,
        fraction_id=fractions[0].id,
        period_year=2024,
        period_month=1,
        amount=Decimal("10"),
        base_amount=Decimal("10"),
        due_date=date(2024, 1, 10),
        reference="Q001-01-202401",
    )
    db.add(fee)
    db.commit()

    row = db.query(AuditFee).filter(AuditFee.model_id == fee.id).one()
    assert "Q001-01-202401" in row.description
