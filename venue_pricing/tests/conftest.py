"""
Centralized Test Configuration.
"""

from datetime import datetime, timezone

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import Pool, StaticPool

from venue_pricing.app.main import app
from venue_pricing.app.db.session import get_db, Base
from venue_pricing.app.models.customer import Customer
from venue_pricing.app.models.enums import ApprovalStatus, ConflictResolution, RatesheetType
from venue_pricing.app.models.event import Event
from venue_pricing.app.models.location import Location
from venue_pricing.app.models.ratesheet import Ratesheet
from venue_pricing.app.models.sub_location import SubLocation

# Setup In-Memory Test Database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@event.listens_for(Pool, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    """Enable foreign key constraints for SQLite."""
    if 'sqlite' in str(type(dbapi_conn)):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


@pytest.fixture
async def engine():
    """Fresh in-memory database per test."""
    test_engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(session_factory):
    """Async client for testing, bound to the test database."""
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
async def hierarchy(db_session):
    """
    Customer (New York, $25/hr) -> Location ($40/hr, no timezone)
    -> SubLocation "Court A" (Chicago, no rate), plus "Court B" without a
    timezone and "Closed Court" with pricing disabled.
    """
    customer = Customer(name="Acme Sports", default_hourly_rate=25.0, timezone="America/New_York")
    db_session.add(customer)
    await db_session.flush()

    location = Location(customer_id=customer.id, name="Downtown Arena", default_hourly_rate=40.0)
    db_session.add(location)
    await db_session.flush()

    court_a = SubLocation(location_id=location.id, label="Court A", timezone="America/Chicago")
    court_b = SubLocation(location_id=location.id, label="Court B", default_hourly_rate=60.0)
    closed = SubLocation(location_id=location.id, label="Closed Court", pricing_enabled=False)
    db_session.add_all([court_a, court_b, closed])
    await db_session.commit()

    return {
        "customer_id": customer.id,
        "location_id": location.id,
        "sub_location_id": court_a.id,
        "court_b_id": court_b.id,
        "closed_id": closed.id,
    }


@pytest.fixture
async def unpriced_hierarchy(db_session):
    """A hierarchy with no default rate at any level."""
    customer = Customer(name="No Rates Inc")
    db_session.add(customer)
    await db_session.flush()
    location = Location(customer_id=customer.id, name="Bare Hall")
    db_session.add(location)
    await db_session.flush()
    sub_location = SubLocation(location_id=location.id, label="Room 1", timezone="UTC")
    db_session.add(sub_location)
    await db_session.commit()
    return {"sub_location_id": sub_location.id}


@pytest.fixture
async def event_at_court_a(db_session, hierarchy):
    championship = Event(
        name="City Championship",
        sub_location_id=hierarchy["sub_location_id"],
        start_date=utc(2026, 1, 13, 0, 0),
        end_date=utc(2026, 1, 14, 0, 0),
    )
    db_session.add(championship)
    await db_session.commit()
    return championship.id


@pytest.fixture
def add_ratesheet(db_session):
    """Insert an approved, active ratesheet directly."""
    async def _add(level, entity_id, time_windows=None, duration_rules=None, **overrides):
        values = dict(
            name="Ratesheet",
            type=RatesheetType.DURATION_BASED if duration_rules else RatesheetType.TIMING_BASED,
            applies_to_level=level,
            applies_to_entity_id=entity_id,
            priority=None,
            conflict_resolution=ConflictResolution.PRIORITY,
            effective_from=utc(2026, 1, 1),
            effective_to=None,
            time_windows=time_windows or [],
            duration_rules=duration_rules or [],
            is_active=True,
            approval_status=ApprovalStatus.APPROVED,
        )
        values.update(overrides)
        ratesheet = Ratesheet(**values)
        db_session.add(ratesheet)
        await db_session.commit()
        return ratesheet

    return _add

