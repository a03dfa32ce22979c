"""Availability service - weekly slots, date overrides and member resolution.

Handles:
- Resolving the member responsible for a booking page (explicit, tenant-wide
  pool or owner fallback)
- Weekly slot lookup and window containment (slot-local wall clock)
- Date override checks (full-day and sub-window blocks)
- Admin CRUD for slots and overrides
"""

import logging
from datetime import date, datetime
from typing import NamedTuple
from uuid import UUID

from sqlalchemy.orm import Session

from agency_booking.core import timezones
from agency_booking.core.structured_logging import build_log_context
from agency_booking.db.models import (
    AvailabilityOverride,
    AvailabilitySlot,
    Profile,
    Tenant,
)
from agency_booking.schemas.booking import (
    AvailabilityOverrideCreate,
    AvailabilitySlotUpsert,
    BulkAvailabilityUpsert,
)
from agency_booking.services.booking_errors import (
    DATE_BLOCKED_MESSAGE,
    NO_AVAILABILITY_MESSAGE,
    OUTSIDE_HOURS_MESSAGE,
    TIME_BLOCKED_MESSAGE,
    BookingRejected,
    RejectionKind,
)

logger = logging.getLogger(__name__)


class MemberNotFound(ValueError):
    """Member does not belong to the tenant."""


# =============================================================================
# Types
# =============================================================================

class MemberAvailability(NamedTuple):
    """
    All usable weekly slots governing a booking page.

    ``member_id`` is None when tenant-wide slots belong to several members;
    the member is then picked per request.
    """
    member_id: UUID | None
    timezone: str
    slots: list[AvailabilitySlot]


class ResolvedAvailability(NamedTuple):
    """Candidate slots for one requested start."""
    member_id: UUID
    timezone: str
    slots: list[AvailabilitySlot]
    local_date: date
    day_of_week: int


# =============================================================================
# Lookups
# =============================================================================

def get_availability_slots(
    db: Session,
    tenant_id: UUID,
    member_id: UUID | None = None,
) -> list[AvailabilitySlot]:
    """Available weekly slots for the tenant, optionally scoped to one member."""
    query = db.query(AvailabilitySlot).filter(
        AvailabilitySlot.tenant_id == tenant_id,
        AvailabilitySlot.is_available.is_(True),
    )
    if member_id:
        query = query.filter(AvailabilitySlot.member_id == member_id)
    return query.order_by(
        AvailabilitySlot.created_at,
        AvailabilitySlot.day_of_week,
        AvailabilitySlot.start_time,
    ).all()


def get_tenant_owner(db: Session, tenant_id: UUID) -> UUID | None:
    """Owner profile id of the tenant, if one is set."""
    tenant = db.query(Tenant).filter(Tenant.id == tenant_id).first()
    return tenant.owner_id if tenant else None


def get_overrides(
    db: Session,
    tenant_id: UUID,
    member_id: UUID,
    on_date: date,
) -> list[AvailabilityOverride]:
    """All overrides for a member on one date."""
    return db.query(AvailabilityOverride).filter(
        AvailabilityOverride.tenant_id == tenant_id,
        AvailabilityOverride.member_id == member_id,
        AvailabilityOverride.override_date == on_date,
    ).all()


def _ensure_member(db: Session, tenant_id: UUID, member_id: UUID) -> Profile:
    member = db.query(Profile).filter(
        Profile.id == member_id,
        Profile.tenant_id == tenant_id,
    ).first()
    if not member:
        raise MemberNotFound("Member not found")
    return member


# =============================================================================
# Member Resolution
# =============================================================================

def resolve_member_availability(
    db: Session,
    tenant_id: UUID,
    assigned_member_id: UUID | None = None,
) -> MemberAvailability:
    """
    Resolve whose weekly slots govern a booking page.

    Uses the assigned member when set. Otherwise tenant-wide slots, falling
    back to the tenant owner's slots. Tenant-wide slots are kept whole; the
    member is only known here when a single member owns them all.

    Raises BookingRejected(NO_AVAILABILITY) when nothing is configured.
    """
    slots = get_availability_slots(db, tenant_id, assigned_member_id)
    member_id = assigned_member_id

    if not slots and not assigned_member_id:
        owner_id = get_tenant_owner(db, tenant_id)
        if owner_id:
            slots = get_availability_slots(db, tenant_id, owner_id)
            member_id = owner_id

    if not slots:
        raise BookingRejected(RejectionKind.NO_AVAILABILITY, NO_AVAILABILITY_MESSAGE)

    if member_id is None:
        owners = {s.member_id for s in slots}
        if len(owners) == 1:
            member_id = slots[0].member_id

    canonical_tz = slots[0].timezone
    if member_id is not None and len({s.timezone for s in slots}) > 1:
        logger.warning(
            "Member has slots in multiple timezones; using %s for day resolution",
            canonical_tz,
            extra=build_log_context(tenant_id=tenant_id, member_id=member_id),
        )

    return MemberAvailability(member_id=member_id, timezone=canonical_tz, slots=slots)


def resolve_availability(
    db: Session,
    tenant_id: UUID,
    assigned_member_id: UUID | None,
    start: datetime,
    end: datetime | None = None,
) -> ResolvedAvailability:
    """
    Slots on the requested start's weekday, narrowed to one member.

    The weekday and local date are read in the canonical timezone. Among
    tenant-wide slots the member owning the first slot that contains
    [start, end] wins, else the owner of the first slot on that day.
    """
    pool = resolve_member_availability(db, tenant_id, assigned_member_id)
    day = timezones.day_of_week(start, pool.timezone)
    candidates = [s for s in pool.slots if s.day_of_week == day]
    if not candidates:
        raise BookingRejected(RejectionKind.NO_AVAILABILITY, NO_AVAILABILITY_MESSAGE)

    member_id = pool.member_id
    if member_id is None:
        fitting = [s for s in candidates if end is not None and fits_slot(s, start, end)]
        member_id = (fitting or candidates)[0].member_id
        candidates = [s for s in candidates if s.member_id == member_id]

    return ResolvedAvailability(
        member_id=member_id,
        timezone=pool.timezone,
        slots=candidates,
        local_date=timezones.project(start, pool.timezone).date(),
        day_of_week=day,
    )


# =============================================================================
# Containment
# =============================================================================

def fits_slot(slot: AvailabilitySlot, start: datetime, end: datetime) -> bool:
    """True if [start, end] sits inside the slot on the slot's own weekday and clock."""
    tz_name = slot.timezone
    if timezones.date_string(start, tz_name) != timezones.date_string(end, tz_name):
        return False
    if timezones.day_of_week(start, tz_name) != slot.day_of_week:
        return False
    request_start = timezones.time_of_day(start, tz_name)
    request_end = timezones.time_of_day(end, tz_name)
    return (
        request_start >= timezones.normalize_time(slot.start_time)
        and request_end <= timezones.normalize_time(slot.end_time)
    )


def check_containment(slots: list[AvailabilitySlot], start: datetime, end: datetime) -> AvailabilitySlot:
    """Return the first slot containing the window, else reject with OUTSIDE_HOURS."""
    for slot in slots:
        if fits_slot(slot, start, end):
            return slot
    raise BookingRejected(RejectionKind.OUTSIDE_HOURS, OUTSIDE_HOURS_MESSAGE)


# =============================================================================
# Overrides
# =============================================================================

def check_overrides(
    overrides: list[AvailabilityOverride],
    start: datetime,
    end: datetime,
    tz_name: str,
) -> None:
    """
    Reject when an override blocks the window.

    Blocked with no times blocks the date; blocked with both times blocks the
    sub-window (strict overlap, wall clock in ``tz_name``). Overrides with only
    one bound, or not blocked, are ignored.
    """
    request_start = timezones.time_of_day(start, tz_name)
    request_end = timezones.time_of_day(end, tz_name)

    for override in overrides:
        if not override.is_blocked:
            continue
        if override.start_time is None and override.end_time is None:
            raise BookingRejected(RejectionKind.DATE_BLOCKED, DATE_BLOCKED_MESSAGE)
        if override.start_time is not None and override.end_time is not None:
            block_start = timezones.normalize_time(override.start_time)
            block_end = timezones.normalize_time(override.end_time)
            if request_start < block_end and request_end > block_start:
                raise BookingRejected(RejectionKind.TIME_BLOCKED, TIME_BLOCKED_MESSAGE)


# =============================================================================
# Admin: Weekly Slots
# =============================================================================

def upsert_availability_slot(
    db: Session,
    tenant_id: UUID,
    data: AvailabilitySlotUpsert,
    member_id: UUID | None = None,
    commit: bool = True,
) -> AvailabilitySlot:
    """
    Create or update a weekly slot.

    A slot is identified by (member, day_of_week, start_time); several slots
    per member and day are allowed.
    """
    member_id = data.member_id or member_id
    if not member_id:
        raise MemberNotFound("member_id is required")
    _ensure_member(db, tenant_id, member_id)
    timezones.get_zone(data.timezone)

    slot = db.query(AvailabilitySlot).filter(
        AvailabilitySlot.tenant_id == tenant_id,
        AvailabilitySlot.member_id == member_id,
        AvailabilitySlot.day_of_week == data.day_of_week,
        AvailabilitySlot.start_time == data.start_time,
    ).first()

    if slot:
        slot.end_time = data.end_time
        slot.timezone = data.timezone
        slot.is_available = data.is_available
    else:
        slot = AvailabilitySlot(
            tenant_id=tenant_id,
            member_id=member_id,
            day_of_week=data.day_of_week,
            start_time=data.start_time,
            end_time=data.end_time,
            timezone=data.timezone,
            is_available=data.is_available,
        )
        db.add(slot)

    if commit:
        db.commit()
        db.refresh(slot)
    else:
        db.flush()
    return slot


def bulk_upsert_availability(
    db: Session,
    tenant_id: UUID,
    data: BulkAvailabilityUpsert,
) -> list[AvailabilitySlot]:
    """Upsert several slots in one transaction (entry member_id wins over the batch default)."""
    try:
        slots = [
            upsert_availability_slot(db, tenant_id, entry, member_id=data.member_id, commit=False)
            for entry in data.entries
        ]
        db.commit()
    except Exception:
        db.rollback()
        raise

    for slot in slots:
        db.refresh(slot)
    return slots


# =============================================================================
# Admin: Overrides
# =============================================================================

def create_availability_override(
    db: Session,
    tenant_id: UUID,
    data: AvailabilityOverrideCreate,
) -> AvailabilityOverride:
    """Create a date override for a member."""
    _ensure_member(db, tenant_id, data.member_id)
    override = AvailabilityOverride(
        tenant_id=tenant_id,
        member_id=data.member_id,
        override_date=data.override_date,
        is_blocked=data.is_blocked,
        start_time=data.start_time,
        end_time=data.end_time,
        reason=data.reason,
    )
    db.add(override)
    db.commit()
    db.refresh(override)
    return override


def list_availability_overrides(
    db: Session,
    tenant_id: UUID,
    member_id: UUID | None = None,
    from_date: date | None = None,
) -> list[AvailabilityOverride]:
    """Overrides for the tenant, optionally per member and from a date onward."""
    query = db.query(AvailabilityOverride).filter(
        AvailabilityOverride.tenant_id == tenant_id,
    )
    if member_id:
        query = query.filter(AvailabilityOverride.member_id == member_id)
    if from_date:
        query = query.filter(AvailabilityOverride.override_date >= from_date)
    return query.order_by(AvailabilityOverride.override_date, AvailabilityOverride.start_time).all()


def delete_availability_override(
    db: Session,
    tenant_id: UUID,
    override_id: UUID,
) -> bool:
    """Delete an availability override."""
    override = db.query(AvailabilityOverride).filter(
        AvailabilityOverride.id == override_id,
        AvailabilityOverride.tenant_id == tenant_id,
    ).first()
    if override:
        db.delete(override)
        db.commit()
        return True
    return False
