# tests/conftest.py

import os

# Settings are read at import time, so the test environment goes in first.
os.environ["ENV"] = "local"
os.environ["DATABASE_URL_LOCAL"] = "sqlite://"
os.environ["JWT_SECRET"] = "test-jwt-secret"
os.environ["INTERNAL_API_KEY"] = "test-internal-key"
os.environ["STRIPE_SECRET_KEY"] = "sk_test_123"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test_123"
os.environ["SCHEDULER_ENABLED"] = "false"

from datetime import date, datetime, time, timezone  # noqa: E402
from decimal import Decimal  # noqa: E402
from unittest.mock import MagicMock, patch  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from starlette.testclient import TestClient  # noqa: E402

from studio_bookings import models  # noqa: E402,F401
from studio_bookings.api import deps  # noqa: E402
from studio_bookings.db.base_class import Base  # noqa: E402
from studio_bookings.db.session import get_db  # noqa: E402
from studio_bookings.main import app  # noqa: E402
from studio_bookings.models.course import Course, CourseSession  # noqa: E402
from studio_bookings.models.organization import Organization  # noqa: E402
from studio_bookings.models.signup import Signup  # noqa: E402
from studio_bookings.schemas.token import TokenPayload  # noqa: E402

ORG_ID = "org_test"

# A Tuesday, 11:00 in Oslo
FIXED_NOW = datetime(2026, 3, 3, 10, 0, tzinfo=timezone.utc)


# --- In-memory database ---
engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db_session():
    """A fresh schema per test; CRUD code commits freely."""
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    yield session
    session.close()
    Base.metadata.drop_all(bind=engine)


# --- Data factories ---
@pytest.fixture
def organization(db_session):
    org = Organization(id=ORG_ID, name="Studio Flyt", slug="studio-flyt")
    db_session.add(org)
    db_session.commit()
    return org


@pytest.fixture
def make_course(db_session, organization):
    def _make_course(**overrides):
        values = {
            "organization_id": organization.id,
            "title": "Vinyasa Flow",
            "max_participants": 5,
            "location": "Sal 1",
            "time_schedule": "Tirsdager, 18:00",
            "start_date": date(2026, 3, 10),
            "price": Decimal("250.00"),
        }
        values.update(overrides)
        course = Course(**values)
        db_session.add(course)
        db_session.commit()
        db_session.refresh(course)
        return course

    return _make_course


@pytest.fixture
def course(make_course):
    return make_course()


@pytest.fixture
def make_signup(db_session, organization):
    counter = {"n": 0}

    def _make_signup(course, **overrides):
        counter["n"] += 1
        values = {
            "course_id": course.id,
            "organization_id": organization.id,
            "participant_name": f"Deltaker {counter['n']}",
            "participant_email": f"deltaker{counter['n']}@example.no",
            "status": "confirmed",
            "payment_status": "paid",
        }
        values.update(overrides)
        signup = Signup(**values)
        db_session.add(signup)
        db_session.commit()
        db_session.refresh(signup)
        return signup

    return _make_signup


@pytest.fixture
def course_session(db_session, course):
    session = CourseSession(course_id=course.id, session_date=date(2026, 3, 17), start_time=time(9, 30))
    db_session.add(session)
    db_session.commit()
    db_session.refresh(session)
    return session


# --- Collaborator mocks ---
@pytest.fixture
def notifier():
    mock = MagicMock()
    mock.send.return_value = {"success": True, "id": "email_123"}
    return mock


@pytest.fixture
def gateway():
    return MagicMock()


def override_get_current_user():
    return TokenPayload(sub="user_teacher", org_id=ORG_ID, exp=4102444800)


# --- Test Client Fixtures ---
@pytest.fixture(scope="function")
def test_client(db_session, notifier, gateway):
    """
    TestClient backed by the in-memory database, with auth, email and
    Stripe refunds mocked. Webhook signatures still go through the real
    gateway so tests patch `stripe.Webhook.construct_event`.
    """
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[deps.get_current_user] = override_get_current_user
    app.dependency_overrides[deps.get_notifier] = lambda: notifier

    # Keep the lifespan create_all off the application engine
    with patch("studio_bookings.main.Base"):
        with TestClient(app) as client:
            yield client

    app.dependency_overrides.clear()


@pytest.fixture
def refund_client(test_client, gateway):
    """test_client with the Stripe refund gateway mocked as well."""
    app.dependency_overrides[deps.get_gateway] = lambda: gateway
    yield test_client
