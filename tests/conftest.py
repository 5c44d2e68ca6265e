"""
Pytest configuration and fixtures.
Every test gets a fresh in-memory SQLite database; nothing touches the
configured DATABASE_URL.
"""

import os

# Set before importing the package so settings and the limiter pick them up
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("SECRET_KEY", "test-secret-key-that-is-at-least-32-characters")

from datetime import date
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from reservation_engine.database import Base, get_db
from reservation_engine import models  # noqa: F401
from reservation_engine.models.property import Property
from reservation_engine.services.reservation_lifecycle import ReservationLifecycle, ReservationRequest
from reservation_engine.utils.security import Principal, Role

TODAY = date(2024, 1, 1)

ADMIN = Principal(user_id="admin-1", role=Role.ADMIN)
MANAGER = Principal(user_id="manager-1", role=Role.MANAGER)
PARTNER = Principal(user_id="partner-1", role=Role.PARTNER)
GUEST = Principal(user_id="guest-1", role=Role.GUEST)


def make_request(property_id: str, check_in: date, check_out: date, **overrides) -> ReservationRequest:
    """Booking request with sensible guest defaults"""
    fields = {
        "property_id": property_id,
        "guest_name": "Amina Benali",
        "guest_email": "amina@example.com",
        "guest_phone": "+213 555 12 34 56",
        "guest_count": 2,
        "check_in_date": check_in,
        "check_out_date": check_out,
    }
    fields.update(overrides)
    return ReservationRequest(**fields)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db_session(engine):
    Session = sessionmaker(bind=engine)
    session = Session()
    yield session
    session.close()


@pytest.fixture
def property_x(db_session):
    """Base 5000/night, cleaning 1000, service 500, tax 10%"""
    prop = Property(
        name="Loft X",
        price_per_night=Decimal("5000"),
        cleaning_fee=Decimal("1000"),
        service_fee=Decimal("500"),
        tax_rate_percent=Decimal("10"),
        currency="DZD",
        max_guests=4,
    )
    db_session.add(prop)
    db_session.commit()
    return prop


@pytest.fixture
def property_y(db_session):
    prop = Property(
        name="Loft Y",
        price_per_night=Decimal("7000"),
        cleaning_fee=Decimal("1000"),
        service_fee=Decimal("0"),
        tax_rate_percent=Decimal("10"),
        currency="DZD",
        max_guests=6,
    )
    db_session.add(prop)
    db_session.commit()
    return prop


@pytest.fixture
def notifier():
    return MagicMock()


@pytest.fixture
def lifecycle(db_session, notifier):
    return ReservationLifecycle(db_session, notifier=notifier, today_provider=lambda: TODAY)


@pytest.fixture
def current_principal():
    """Mutable holder so a test can switch the caller's role"""
    return {"principal": ADMIN}


@pytest.fixture
def client(db_session, notifier, current_principal):
    from reservation_engine.main import app
    from reservation_engine.routers.reservations import get_lifecycle
    from reservation_engine.utils.dependencies import get_current_principal
    from reservation_engine.utils.rate_limiter import limiter

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_principal] = lambda: current_principal["principal"]
    app.dependency_overrides[get_lifecycle] = lambda: ReservationLifecycle(
        db_session, notifier=notifier, today_provider=lambda: TODAY
    )
    limiter.enabled = False

    yield TestClient(app)

    app.dependency_overrides.clear()
