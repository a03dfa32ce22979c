"""
Pytest configuration and fixtures for booking tests.

Provides:
- db: SQLAlchemy session on an in-memory SQLite database (schema per test)
- client: async HTTP client with the db session injected and a pinned clock
- tenant / owner / member: tenant with an owner and a second team member
- make_booking_page / make_slot / make_override / make_appointment: row factories
- now: pinned "current time" used by policy checks
"""

import os
import uuid
from datetime import datetime, time, timezone

# Must be set before the app modules are imported
os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["TESTING"] = "1"
os.environ.setdefault("ENV", "test")

import pytest
from httpx import ASGITransport, AsyncClient

from agency_booking.core.deps import get_db, get_now
from agency_booking.core.rate_limit import limiter
from agency_booking.db.base import Base
from agency_booking.db.models import (
    Appointment,
    AvailabilityOverride,
    AvailabilitySlot,
    BookingPage,
    Profile,
    Tenant,
)
from agency_booking.db.session import SessionLocal, engine

# Monday 2026-02-02 12:00 UTC; 2026-02-10 is the following Tuesday
NOW = datetime(2026, 2, 2, 12, 0, tzinfo=timezone.utc)


def utc(year: int, month: int, day: int, hour: int = 0, minute: int = 0) -> datetime:
    return datetime(year, month, day, hour, minute, tzinfo=timezone.utc)


# =============================================================================
# Database
# =============================================================================

@pytest.fixture
def db():
    """Fresh schema per test on the shared in-memory connection."""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture(autouse=True)
def reset_rate_limiter():
    limiter.reset()
    yield


# =============================================================================
# Tenant & Members
# =============================================================================

@pytest.fixture
def tenant(db):
    """Tenant without an owner yet."""
    row = Tenant(
        id=uuid.uuid4(),
        name="Sunrise Agency",
        slug=f"sunrise-{uuid.uuid4().hex[:8]}",
    )
    db.add(row)
    db.flush()
    return row


@pytest.fixture
def owner(db, tenant):
    """Tenant owner profile (the default assignee)."""
    profile = Profile(
        id=uuid.uuid4(),
        tenant_id=tenant.id,
        email="owner@example.com",
        display_name="Owner",
    )
    db.add(profile)
    db.flush()
    tenant.owner_id = profile.id
    db.commit()
    return profile


@pytest.fixture
def member(db, tenant):
    """Second team member."""
    profile = Profile(
        id=uuid.uuid4(),
        tenant_id=tenant.id,
        email="coordinator@example.com",
        display_name="Coordinator",
    )
    db.add(profile)
    db.commit()
    return profile


# =============================================================================
# Factories
# =============================================================================

@pytest.fixture
def make_booking_page(db, tenant):
    def _make(**overrides) -> BookingPage:
        values = {
            "id": uuid.uuid4(),
            "tenant_id": tenant.id,
            "name": "Consultation",
            "slug": "consultation",
            "duration_minutes": 30,
            "buffer_before": 0,
            "buffer_after": 0,
            "min_notice_hours": 1,
            "max_advance_days": 60,
            "is_active": True,
        }
        values.update(overrides)
        page = BookingPage(**values)
        db.add(page)
        db.commit()
        return page

    return _make


@pytest.fixture
def make_slot(db, tenant):
    def _make(
        member_id: uuid.UUID,
        day_of_week: int,
        start: time,
        end: time,
        tz: str = "UTC",
        is_available: bool = True,
    ) -> AvailabilitySlot:
        slot = AvailabilitySlot(
            id=uuid.uuid4(),
            tenant_id=tenant.id,
            member_id=member_id,
            day_of_week=day_of_week,
            start_time=start,
            end_time=end,
            timezone=tz,
            is_available=is_available,
        )
        db.add(slot)
        db.commit()
        return slot

    return _make


@pytest.fixture
def make_override(db, tenant):
    def _make(member_id: uuid.UUID, override_date, **fields) -> AvailabilityOverride:
        override = AvailabilityOverride(
            id=uuid.uuid4(),
            tenant_id=tenant.id,
            member_id=member_id,
            override_date=override_date,
            is_blocked=fields.pop("is_blocked", True),
            **fields,
        )
        db.add(override)
        db.commit()
        return override

    return _make


@pytest.fixture
def make_appointment(db, tenant):
    def _make(
        start: datetime,
        end: datetime,
        member_id: uuid.UUID | None = None,
        booking_page_id: uuid.UUID | None = None,
        status: str = "confirmed",
    ) -> Appointment:
        appointment = Appointment(
            id=uuid.uuid4(),
            tenant_id=tenant.id,
            booking_page_id=booking_page_id,
            assigned_member_id=member_id,
            client_name="Existing Client",
            client_email="existing@example.com",
            start_time=start,
            end_time=end,
            status=status,
        )
        db.add(appointment)
        db.commit()
        return appointment

    return _make


# =============================================================================
# HTTP Client
# =============================================================================

@pytest.fixture
async def client(db):
    """Async HTTP client sharing the test session, with the clock pinned to NOW."""
    from agency_booking.main import app

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_now] = lambda: NOW

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()
