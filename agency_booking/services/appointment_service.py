"""Appointment service - persistence, conflict detection and booking locks.

Handles:
- Buffered overlap queries against non-cancelled appointments
- Per-member transaction-scoped advisory locks (PostgreSQL)
- Appointment insert and idempotent replay lookup
"""

import hashlib
import logging
from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy import text
from sqlalchemy.orm import Session

from agency_booking.core.structured_logging import build_log_context
from agency_booking.db.enums import AppointmentStatus
from agency_booking.db.models import Appointment

logger = logging.getLogger(__name__)


# =============================================================================
# Keys
# =============================================================================

def normalize_idempotency_key(tenant_id: UUID, booking_page_id: UUID, key: str) -> str:
    """Normalize idempotency key to avoid cross-tenant collisions."""
    raw = f"{tenant_id}:{booking_page_id}:{key}".encode()
    return hashlib.sha256(raw).hexdigest()


def booking_lock_key(
    tenant_id: UUID,
    member_id: UUID | None = None,
    booking_page_id: UUID | None = None,
) -> int:
    """
    Signed 64-bit advisory lock key for a booking resource.

    Scoped to the member when known, else to the booking page.
    """
    if member_id is not None:
        scope = f"booking:{tenant_id}:member:{member_id}"
    elif booking_page_id is not None:
        scope = f"booking:{tenant_id}:page:{booking_page_id}"
    else:
        raise ValueError("member_id or booking_page_id is required")
    digest = hashlib.sha256(scope.encode()).digest()
    return int.from_bytes(digest[:8], "big", signed=True)


def buffered_window(
    start: datetime,
    end: datetime,
    buffer_before: int,
    buffer_after: int,
) -> tuple[datetime, datetime]:
    """Widen a window by the page buffers (minutes)."""
    return (
        start - timedelta(minutes=buffer_before or 0),
        end + timedelta(minutes=buffer_after or 0),
    )


# =============================================================================
# Locking
# =============================================================================

def acquire_booking_lock(
    db: Session,
    tenant_id: UUID,
    member_id: UUID | None = None,
    booking_page_id: UUID | None = None,
    timeout_ms: int = 5000,
) -> bool:
    """
    Serialize admissions for one member until the transaction ends.

    Uses pg_advisory_xact_lock bounded by lock_timeout; a timeout surfaces as
    OperationalError. Other dialects return False without locking.
    """
    if db.get_bind().dialect.name != "postgresql":
        return False

    key = booking_lock_key(tenant_id, member_id=member_id, booking_page_id=booking_page_id)
    db.execute(text(f"SET LOCAL lock_timeout = '{int(timeout_ms)}ms'"))
    db.execute(text("SELECT pg_advisory_xact_lock(:key)"), {"key": key})
    logger.debug(
        "Booking lock acquired",
        extra=build_log_context(
            tenant_id=tenant_id,
            member_id=member_id,
            booking_page_id=booking_page_id,
            stage="locking",
        ),
    )
    return True


# =============================================================================
# Conflict Detection
# =============================================================================

def find_conflicting_appointments(
    db: Session,
    tenant_id: UUID,
    buffered_start: datetime,
    buffered_end: datetime,
    member_id: UUID | None = None,
    booking_page_id: UUID | None = None,
) -> list[Appointment]:
    """
    Non-cancelled appointments overlapping [buffered_start, buffered_end).

    Scoped by member when resolved, otherwise by booking page.
    """
    query = db.query(Appointment).filter(
        Appointment.tenant_id == tenant_id,
        Appointment.status != AppointmentStatus.CANCELLED.value,
        Appointment.start_time < buffered_end,
        Appointment.end_time > buffered_start,
    )
    if member_id is not None:
        query = query.filter(Appointment.assigned_member_id == member_id)
    elif booking_page_id is not None:
        query = query.filter(Appointment.booking_page_id == booking_page_id)
    else:
        raise ValueError("member_id or booking_page_id is required")
    return query.order_by(Appointment.start_time).all()


# =============================================================================
# Persistence
# =============================================================================

def get_appointment_by_idempotency_key(
    db: Session,
    tenant_id: UUID,
    idempotency_key: str,
) -> Appointment | None:
    """Look up an appointment by its normalized idempotency key."""
    return db.query(Appointment).filter(
        Appointment.tenant_id == tenant_id,
        Appointment.idempotency_key == idempotency_key,
    ).first()


def insert_appointment(db: Session, data: dict) -> Appointment:
    """Add an appointment and flush so constraint violations surface under the lock."""
    appointment = Appointment(**data)
    db.add(appointment)
    db.flush()
    return appointment
