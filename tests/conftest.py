"""Pytest configuration and fixtures."""

import os
from decimal import Decimal
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from opname.database import Base, enable_sqlite_savepoints, get_db
from opname.main import app
from opname.models.enums import UserRole, UserStatus
from opname.models.stock_unit import StockUnit
from opname.services.actor import Actor
from opname.services.auth import create_access_token, create_user


class AuthHeaders(dict):
    """Dict subclass that also stores the user id."""

    def __init__(self, *args, user_id: int | None = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.user_id = user_id


# Use test database - PostgreSQL in Docker, SQLite locally
if os.getenv("DATABASE_URL"):
    # Running in Docker - use PostgreSQL test database
    SQLALCHEMY_DATABASE_URL = os.getenv("DATABASE_URL").replace(
        "/stock_opname", "/stock_opname_test"
    )
else:
    # Running locally - use SQLite
    SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"

connect_args = {"check_same_thread": False} if "sqlite" in SQLALCHEMY_DATABASE_URL else {}
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args=connect_args)
if "sqlite" in SQLALCHEMY_DATABASE_URL:
    enable_sqlite_savepoints(engine)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def imei(n: int) -> str:
    """Deterministic 15-digit IMEI for test unit ``n``."""
    return f"35{n:013d}"


@pytest.fixture(scope="session", autouse=True)
def setup_test_database():
    """Create test database schema once at the start of the test session."""
    if "postgresql" in SQLALCHEMY_DATABASE_URL:
        from sqlalchemy_utils import create_database, database_exists

        if not database_exists(SQLALCHEMY_DATABASE_URL):
            create_database(SQLALCHEMY_DATABASE_URL)

    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture(scope="function", autouse=True)
def db():
    """Create a fresh database session for each test with cleanup."""
    session = TestingSessionLocal()

    yield session

    # Clean up all data after test (Core deletes bypass the locked-session guard)
    session.rollback()
    for table in reversed(Base.metadata.sorted_tables):
        session.execute(table.delete())
    session.commit()
    session.close()


@pytest.fixture
def session_factory():
    """Session factory bound to the test database."""
    return TestingSessionLocal


@pytest.fixture(autouse=True)
def mock_publish():
    """Keep API tests off Redis; yields the mock for assertions."""
    with patch("opname.api.opname.publish_session_event") as mock:
        yield mock


@pytest.fixture(autouse=True)
def mock_counter_audit():
    """Keep API tests off the Celery broker; yields the mock ``delay``."""
    with patch("opname.tasks.opname.audit_session_counters.delay") as mock:
        yield mock


@pytest.fixture(scope="function")
def client(db):
    """Create a test client with database override."""

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def admin_user(db):
    return create_user(
        db, "admin@example.com", "testpass123", "Store Admin", status=UserStatus.ACTIVE
    )


@pytest.fixture
def super_admin_user(db):
    return create_user(
        db,
        "owner@example.com",
        "testpass123",
        "Store Owner",
        role=UserRole.SUPER_ADMIN,
        status=UserStatus.ACTIVE,
    )


@pytest.fixture
def admin(admin_user):
    """Actor for an ordinary admin."""
    return Actor.from_user(admin_user)


@pytest.fixture
def approver(super_admin_user):
    """Actor allowed to lock sessions."""
    return Actor.from_user(super_admin_user)


@pytest.fixture
def auth_headers(admin_user):
    """Bearer headers for the admin user."""
    token = create_access_token(admin_user.id, admin_user.role)
    return AuthHeaders({"Authorization": f"Bearer {token}"}, user_id=admin_user.id)


@pytest.fixture
def approver_headers(super_admin_user):
    """Bearer headers for the super admin user."""
    token = create_access_token(super_admin_user.id, super_admin_user.role)
    return AuthHeaders({"Authorization": f"Bearer {token}"}, user_id=super_admin_user.id)


@pytest.fixture
def make_units(db):
    """Factory adding stock units; returns their IMEIs in creation order."""
    counter = {"next": 1}

    def _make(count: int, stock_status: str = "available") -> list[str]:
        imeis = []
        for _ in range(count):
            n = counter["next"]
            counter["next"] += 1
            unit = StockUnit(
                imei=imei(n),
                product_label=f"iPhone 13 128GB - Unit {n}",
                selling_price=Decimal("8999000.00"),
                cost_price=Decimal("7800000.00"),
                stock_status=stock_status,
            )
            db.add(unit)
            imeis.append(unit.imei)
        db.commit()
        return imeis

    return _make
