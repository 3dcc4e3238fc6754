import os
from datetime import date
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Set test environment variables before importing app
# Force dev mode for default test app; production validation tests override settings
os.environ["APP_ENV"] = "dev"
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("CALENDAR_ENABLED", "false")
os.environ.setdefault("FEATURE_NOTIFICATIONS_ENABLED", "true")
os.environ.pop("ADMIN_API_KEY", None)

from app.api.dependencies import get_calendar
from app.db.base import Base
from app.db.deps import get_db
# Import all models so Base.metadata includes every table
import app.db.models as _models  # noqa: F401
from app.db.models import Lead
from app.main import app
from app.services.actor import Actor
from app.services.metrics import reset_metrics
from tests.helpers.fake_calendar import FakeCalendar

# Test database URL (in-memory SQLite for fast tests)
SQLALCHEMY_DATABASE_URL = os.environ.get("DATABASE_URL", "sqlite:///:memory:")


def is_sqlite() -> bool:
    """Return True if the test database is SQLite (e.g. in-memory tests)."""
    url = SQLALCHEMY_DATABASE_URL or ""
    return url.startswith("sqlite")


# SQLite needs check_same_thread=False and StaticPool; Postgres does not support check_same_thread
if is_sqlite():
    engine = create_engine(
        SQLALCHEMY_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
else:
    engine = create_engine(SQLALCHEMY_DATABASE_URL)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Make the app use the same DB as the tests
import app.db.session as _db_session

_db_session.engine = engine
_db_session.SessionLocal = TestingSessionLocal

ADMIN_ID = "admin-1"
SALES_ID = "sales-1"
OTHER_SALES_ID = "sales-2"


@pytest.fixture(scope="function")
def db():
    """Create a fresh database for each test."""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def clean_metrics():
    reset_metrics()
    yield
    reset_metrics()


@pytest.fixture
def calendar():
    return FakeCalendar()


@pytest.fixture(scope="function")
def client(db, calendar):
    """Create a test client with database and calendar dependency overrides."""

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_calendar] = lambda: calendar
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def admin():
    return Actor(user_id=ADMIN_ID, role="admin")


@pytest.fixture
def sales():
    return Actor(user_id=SALES_ID, role="sales")


@pytest.fixture
def other_sales():
    return Actor(user_id=OTHER_SALES_ID, role="sales")


@pytest.fixture
def admin_headers():
    return {"X-Actor-Id": ADMIN_ID, "X-Actor-Role": "admin"}


@pytest.fixture
def sales_headers():
    return {"X-Actor-Id": SALES_ID, "X-Actor-Role": "sales"}


@pytest.fixture
def other_sales_headers():
    return {"X-Actor-Id": OTHER_SALES_ID, "X-Actor-Role": "sales"}


@pytest.fixture
def make_lead(db):
    """Insert a lead directly (bypasses the lead store) with sensible defaults."""

    def _make_lead(**overrides) -> Lead:
        values = {
            "lead_type": "normal",
            "status": "allocated",
            "client_name": "Asha Rao",
            "country_code": "+91",
            "contact_number": "+919876543210",
            "no_of_pax": 2,
            "place": "Goa",
            "travel_date": None,
            "travel_month": "2026-06",
            "expected_budget": Decimal("50000.00"),
            "assigned_to": SALES_ID,
            "assigned_by": ADMIN_ID,
            "created_by": ADMIN_ID,
        }
        values.update(overrides)
        lead = Lead(**values)
        db.add(lead)
        db.commit()
        db.refresh(lead)
        return lead

    return _make_lead


@pytest.fixture
def hot_lead(make_lead):
    return make_lead(lead_type="hot", status="hot", travel_month=None, travel_date=date(2026, 8, 10))
