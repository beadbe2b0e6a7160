# =============================================================================
# Eventy - Pytest Fixtures Configuration
# =============================================================================

import os

os.environ["CACHE_ENABLED"] = "false"
os.environ["KAFKA_ENABLED"] = "false"
os.environ["LOKI_URL"] = ""
os.environ["OTLP_ENDPOINT"] = ""
os.environ["JWT_SECRET"] = "eventy-test-secret-with-enough-bytes-for-hs256"

import itertools
from datetime import datetime
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

import eventy.entities  # noqa: F401
from eventy.api.deps import create_access_token, get_session_factory
from eventy.dto.event import EventCreate, EventDateCreate, EventZoneCreate, EventSocialMediaCreate
from eventy.repositories.event_repository import event_repository
from eventy.repositories.ticket_repository import ticket_repository
from eventy.repositories.user_repository import user_repository
from eventy.utils.database import Base, build_engine

CONCERT_DATE = datetime(2026, 7, 1, 20, 0)


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture(scope='function')
def engine(tmp_path):
    """File-backed SQLite so that worker threads share one database."""
    db_engine = build_engine(f"sqlite:///{tmp_path / 'eventy.db'}")
    Base.metadata.create_all(bind=db_engine)
    yield db_engine
    db_engine.dispose()


@pytest.fixture(scope='function')
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


@pytest.fixture(scope='function')
def db(session_factory):
    """Session for single-threaded repository tests.

    SQLite transactions take the write lock on their first statement, so
    tests that start threads or HTTP requests must not leave it mid-transaction.
    """
    session = session_factory()
    yield session
    session.close()


# =============================================================================
# Data Factories
# =============================================================================

@pytest.fixture
def make_user(session_factory):
    counter = itertools.count(1)

    def _make(**fields):
        n = next(counter)
        data = {
            "user_name": f"Buyer{n}",
            "user_surname": "Tester",
            "email": f"buyer{n}@example.com",
            "phone_number": f"+37060000{n:03d}",
        }
        data.update(fields)
        with session_factory() as session:
            return user_repository.create(session, **data)

    return _make


@pytest.fixture
def owner(make_user):
    return make_user(user_name="Olivia", user_surname="Organizer", email="organizer@example.com")


@pytest.fixture
def make_event(session_factory):
    """Create an event through the repository, inventory included.

    zones is a sequence of (name, price, seat_count) tuples.
    """

    def _make(owner, zones=(("VIP", "150.00", 2),), dates=(CONCERT_DATE,), **fields):
        payload = EventCreate(
            title=fields.pop("title", "Summer Concert"),
            short_description="Open air",
            full_description="An open air concert in the park",
            country="LT",
            dates=[EventDateCreate(date=value) for value in dates],
            zones=[
                EventZoneCreate(name=name, price=Decimal(price), currency="EUR", seat_count=seats)
                for name, price, seats in zones
            ],
            social_media=[EventSocialMediaCreate(platform="instagram", link="https://instagram.com/concert")],
            **fields,
        )
        with session_factory() as session:
            return event_repository.create(session, payload, owner_id=owner.id)

    return _make


@pytest.fixture
def vip_event(make_event, owner):
    """One VIP zone with two seats on one date."""
    return make_event(owner)


@pytest.fixture
def available(session_factory):
    def _available(event_id, **filters):
        with session_factory() as session:
            return ticket_repository.list_available(session, event_id, **filters)

    return _available


# =============================================================================
# API Fixtures
# =============================================================================

@pytest.fixture(scope='function')
def client(session_factory):
    from main import app

    app.dependency_overrides[get_session_factory] = lambda: session_factory
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def auth_header():
    def _header(user):
        return {"Authorization": f"Bearer {create_access_token(user.id)}"}

    return _header
