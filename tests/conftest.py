import os
import tempfile

# Configuration is read at import time
_storage = tempfile.mkdtemp(prefix="condohub_test_")
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["STORAGE_PATH"] = _storage
os.environ["BACKUP_PATH"] = os.path.join(_storage, "backups")
os.environ["SECURITY_HEADERS_ENABLED"] = "true"
os.environ["DB_LOG_SLOW_QUERIES"] = "false"
os.environ.pop("REDIS_URL", None)

from datetime import date  # noqa: E402
from decimal import Decimal  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from condohub.database import Base, get_db  # noqa: E402
from condohub.main import app  # noqa: E402
from condohub.models import Condominium, CondominiumUser, Fraction, User  # noqa: E402
from condohub.models_finance import Budget, BudgetItem  # noqa: E402
from condohub.rate_limiter import reset_rate_limits  # noqa: E402
from condohub.request_context import set_request_context  # noqa: E402
from condohub.security_utils import create_access_token, hash_password  # noqa: E402


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()
    set_request_context(None, None, None)
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(db):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def clear_rate_limits():
    reset_rate_limits()
    yield
    reset_rate_limits()


@pytest.fixture
def storage(tmp_path):
    path = tmp_path / "storage"
    path.mkdir()
    return str(path)


# ============================================================================
# FACTORIES
# ============================================================================


def make_user(db, email="admin@example.com", role="admin", name="Admin", password="Secret123!"):
    user = User(name=name, email=email, password_hash=hash_password(password), role=role)
    db.add(user)
    db.commit()
    return user


def make_condominium(db, owner, name="Edificio Sol"):
    condominium = Condominium(user_id=owner.id, name=name, city="Lisboa")
    db.add(condominium)
    db.commit()
    return condominium


def make_fraction(db, condominium, identifier="A", permillage="100"):
    fraction = Fraction(condominium_id=condominium.id, identifier=identifier, permillage=Decimal(permillage))
    db.add(fraction)
    db.commit()
    return fraction


def add_member(db, condominium, user, fraction=None, role="condomino"):
    membership = CondominiumUser(
        condominium_id=condominium.id,
        user_id=user.id,
        fraction_id=fraction.id if fraction else None,
        role=role,
        started_at=date.today(),
    )
    db.add(membership)
    db.commit()
    return membership


def make_budget(db, condominium, year=2024, revenue="12000", status="approved"):
    budget = Budget(condominium_id=condominium.id, year=year, status=status, total_amount=Decimal(revenue))
    db.add(budget)
    db.flush()
    db.add(BudgetItem(budget_id=budget.id, item_type="revenue", category="Quotas", amount=Decimal(revenue)))
    db.commit()
    return budget


def auth_headers(user) -> dict:
    return {"Authorization": f"Bearer {create_access_token({'sub': str(user.id)})}"}


@pytest.fixture
def admin(db):
    return make_user(db)


@pytest.fixture
def condominium(db, admin):
    return make_condominium(db, admin)


@pytest.fixture
def fractions(db, condominium):
    """Three fractions totalling 1000 permillage"""
    return [
        make_fraction(db, condominium, "A", "500"),
        make_fraction(db, condominium, "B", "300"),
        make_fraction(db, condominium, "C", "200"),
    ]
