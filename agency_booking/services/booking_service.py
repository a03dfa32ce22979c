"""Booking service - admission controller for public booking submissions.

Runs a submission through a fixed sequence of stages:

    validating -> policy_checking -> availability_resolving
    -> containment_checking -> override_checking -> conflict_checking
    -> inserting -> succeeded

Any stage may end in ``rejected``. Rules raise BookingRejected where they
fail; this module turns that into an AdmissionResult so callers never see a
rule failure as an exception. Database timeouts and disconnects become
TRANSIENT rejections, the only kind worth retrying.

The per-member advisory lock is taken right after the member is resolved and
held through the insert, so concurrent requests for one member are admitted
one at a time.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import NamedTuple
from uuid import UUID

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session

from agency_booking.core import timezones
from agency_booking.core.config import settings
from agency_booking.core.structured_logging import build_log_context, mask_email
from agency_booking.db.enums import DEFAULT_APPOINTMENT_STATUS, AppointmentSource
from agency_booking.db.models import (
    Appointment,
    AvailabilityOverride,
    AvailabilitySlot,
    BookingPage,
)
from agency_booking.db.types import utcnow
from agency_booking.schemas.booking import PublicBookingSubmit
from agency_booking.services import (
    appointment_service,
    availability_service,
    booking_page_service,
    workflow_triggers,
)
from agency_booking.services.booking_errors import (
    BOOKING_PAGE_NOT_FOUND,
    PAST_START_MESSAGE,
    SLOT_TAKEN_MESSAGE,
    TRANSIENT_MESSAGE,
    BookingRejected,
    RejectionKind,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Types
# =============================================================================

class AdmissionStage(str, Enum):
    """Stages of a booking admission."""

    VALIDATING = "validating"
    POLICY_CHECKING = "policy_checking"
    AVAILABILITY_RESOLVING = "availability_resolving"
    CONTAINMENT_CHECKING = "containment_checking"
    OVERRIDE_CHECKING = "override_checking"
    CONFLICT_CHECKING = "conflict_checking"
    INSERTING = "inserting"
    SUCCEEDED = "succeeded"
    REJECTED = "rejected"


@dataclass
class AdmissionResult:
    """Outcome of one admission attempt."""

    stage: AdmissionStage
    appointment: Appointment | None = None
    kind: RejectionKind | None = None
    message: str | None = None
    rejected_at: AdmissionStage | None = None
    replayed: bool = False

    @property
    def accepted(self) -> bool:
        return self.stage == AdmissionStage.SUCCEEDED

    @property
    def retryable(self) -> bool:
        return self.kind is not None and self.kind.retryable


class TimeSlot(NamedTuple):
    """Bookable time slot (UTC)."""
    start: datetime
    end: datetime


class SlotListing(NamedTuple):
    """Candidate slots for one local date."""
    member_id: UUID | None
    timezone: str | None
    slots: list[TimeSlot]


class PublicPageData(NamedTuple):
    """What the public booking form renders."""
    booking_page: BookingPage
    member_id: UUID | None
    timezone: str | None
    availability: list[AvailabilitySlot]
    overrides: list[AvailabilityOverride]


# =============================================================================
# Helpers
# =============================================================================

def _require_page(db: Session, slug: str, tenant_id: UUID | None) -> BookingPage:
    page = booking_page_service.get_booking_page(db, slug, tenant_id)
    if not page:
        raise BookingRejected(RejectionKind.NOT_FOUND, BOOKING_PAGE_NOT_FOUND)
    return page


def _validate_window(start: datetime, end: datetime) -> tuple[datetime, datetime]:
    if start.tzinfo is None or end.tzinfo is None:
        raise BookingRejected(RejectionKind.INVALID, "Timestamps must include a timezone")
    start = start.astimezone(timezone.utc)
    end = end.astimezone(timezone.utc)
    if end <= start:
        raise BookingRejected(RejectionKind.INVALID, "End time must be after start time")
    return start, end


def check_policy(page: BookingPage, start: datetime, now: datetime) -> None:
    """
    Notice and advance limits as pure duration comparisons against ``now``.

    A zero or unset limit is not enforced. Starts in the past are always rejected.
    """
    lead = start - now
    if lead < timedelta(0):
        raise BookingRejected(RejectionKind.POLICY_VIOLATION, PAST_START_MESSAGE)
    if page.min_notice_hours and lead < timedelta(hours=page.min_notice_hours):
        raise BookingRejected(
            RejectionKind.POLICY_VIOLATION,
            f"Bookings require at least {page.min_notice_hours:g} hours notice",
        )
    if page.max_advance_days and lead > timedelta(days=page.max_advance_days):
        raise BookingRejected(
            RejectionKind.POLICY_VIOLATION,
            f"Bookings cannot be scheduled more than {page.max_advance_days} days in advance",
        )


def _rejected(stage: AdmissionStage, error: BookingRejected) -> AdmissionResult:
    return AdmissionResult(
        stage=AdmissionStage.REJECTED,
        kind=error.kind,
        message=error.message,
        rejected_at=stage,
    )


# =============================================================================
# Admission
# =============================================================================

def admit_booking(
    db: Session,
    slug: str,
    submission: PublicBookingSubmit,
    tenant_id: UUID | None = None,
    now: datetime | None = None,
) -> AdmissionResult:
    """
    Decide whether a public booking may be created, and create it.

    ``now`` is injectable so policy decisions are reproducible.
    """
    now = now or utcnow()
    stage = AdmissionStage.VALIDATING
    page: BookingPage | None = None
    idempotency_key: str | None = None
    log_context = build_log_context(tenant_id=tenant_id)

    try:
        start, end = _validate_window(submission.start_time, submission.end_time)
        page = _require_page(db, slug, tenant_id)
        page_tenant_id = page.tenant_id
        log_context = build_log_context(tenant_id=page.tenant_id, booking_page_id=page.id)

        if submission.idempotency_key:
            idempotency_key = appointment_service.normalize_idempotency_key(
                page.tenant_id, page.id, submission.idempotency_key
            )
            existing = appointment_service.get_appointment_by_idempotency_key(
                db, page.tenant_id, idempotency_key
            )
            if existing:
                return AdmissionResult(
                    stage=AdmissionStage.SUCCEEDED, appointment=existing, replayed=True
                )

        stage = AdmissionStage.POLICY_CHECKING
        check_policy(page, start, now)

        stage = AdmissionStage.AVAILABILITY_RESOLVING
        resolved = availability_service.resolve_availability(
            db, page.tenant_id, page.assigned_member_id, start, end
        )
        appointment_service.acquire_booking_lock(
            db,
            page.tenant_id,
            member_id=resolved.member_id,
            booking_page_id=page.id,
            timeout_ms=settings.BOOKING_LOCK_TIMEOUT_MS,
        )

        stage = AdmissionStage.CONTAINMENT_CHECKING
        availability_service.check_containment(resolved.slots, start, end)

        stage = AdmissionStage.OVERRIDE_CHECKING
        overrides = availability_service.get_overrides(
            db, page.tenant_id, resolved.member_id, resolved.local_date
        )
        availability_service.check_overrides(overrides, start, end, resolved.timezone)

        stage = AdmissionStage.CONFLICT_CHECKING
        buffered_start, buffered_end = appointment_service.buffered_window(
            start, end, page.buffer_before, page.buffer_after
        )
        conflicts = appointment_service.find_conflicting_appointments(
            db,
            page.tenant_id,
            buffered_start,
            buffered_end,
            member_id=resolved.member_id,
            booking_page_id=page.id,
        )
        if conflicts:
            raise BookingRejected(RejectionKind.SLOT_TAKEN, SLOT_TAKEN_MESSAGE)

        stage = AdmissionStage.INSERTING
        appointment = appointment_service.insert_appointment(
            db,
            {
                "tenant_id": page.tenant_id,
                "booking_page_id": page.id,
                "assigned_member_id": resolved.member_id,
                "client_name": submission.client_name,
                "client_email": str(submission.client_email),
                "client_phone": submission.client_phone,
                "notes": submission.notes,
                "form_response_id": submission.form_response_id,
                "start_time": start,
                "end_time": end,
                "status": DEFAULT_APPOINTMENT_STATUS.value,
                "source": AppointmentSource.PUBLIC_BOOKING.value,
                "idempotency_key": idempotency_key,
            },
        )
        db.commit()
        db.refresh(appointment)

    except BookingRejected as e:
        db.rollback()
        logger.info(
            "Booking rejected (%s): %s",
            e.kind.value,
            e.message,
            extra={**log_context, "stage": stage.value},
        )
        return _rejected(stage, e)

    except IntegrityError:
        db.rollback()
        if page is not None and idempotency_key:
            existing = appointment_service.get_appointment_by_idempotency_key(
                db, page_tenant_id, idempotency_key
            )
            if existing:
                return AdmissionResult(
                    stage=AdmissionStage.SUCCEEDED, appointment=existing, replayed=True
                )
        raise

    except (OperationalError, PoolTimeoutError) as e:
        db.rollback()
        logger.warning(
            "Booking admission hit a transient database error: %s",
            type(e).__name__,
            extra={**log_context, "stage": stage.value},
        )
        return _rejected(stage, BookingRejected(RejectionKind.TRANSIENT, TRANSIENT_MESSAGE))

    logger.info(
        "Booking admitted for %s",
        mask_email(appointment.client_email),
        extra=build_log_context(
            tenant_id=appointment.tenant_id,
            booking_page_id=page.id,
            member_id=appointment.assigned_member_id,
            appointment_id=appointment.id,
            stage=AdmissionStage.SUCCEEDED.value,
        ),
    )

    workflow_triggers.trigger_booking_created(db, appointment, page)
    return AdmissionResult(stage=AdmissionStage.SUCCEEDED, appointment=appointment)


# =============================================================================
# Public Page Data
# =============================================================================

def get_public_booking_page(
    db: Session,
    slug: str,
    tenant_id: UUID | None = None,
    now: datetime | None = None,
) -> PublicPageData:
    """Booking page with the resolved member's weekly slots and upcoming overrides."""
    now = now or utcnow()
    page = _require_page(db, slug, tenant_id)

    try:
        member = availability_service.resolve_member_availability(
            db, page.tenant_id, page.assigned_member_id
        )
    except BookingRejected:
        member_id = page.assigned_member_id or availability_service.get_tenant_owner(
            db, page.tenant_id
        )
        return PublicPageData(page, member_id, None, [], [])

    today = timezones.project(now, member.timezone).date()
    overrides = availability_service.list_availability_overrides(
        db, page.tenant_id, member_id=member.member_id, from_date=today
    )
    return PublicPageData(page, member.member_id, member.timezone, member.slots, overrides)


def list_available_slots(
    db: Session,
    slug: str,
    day: date,
    tenant_id: UUID | None = None,
    now: datetime | None = None,
    interval_minutes: int | None = None,
) -> SlotListing:
    """
    Candidate starts of ``duration_minutes`` on one local date.

    Every returned slot passes the same checks as an admission would
    (policy, containment, overrides, buffered conflicts) at ``now``.
    """
    now = now or utcnow()
    step = timedelta(minutes=interval_minutes or settings.SLOT_INTERVAL_MINUTES)
    page = _require_page(db, slug, tenant_id)

    try:
        member = availability_service.resolve_member_availability(
            db, page.tenant_id, page.assigned_member_id
        )
    except BookingRejected:
        return SlotListing(page.assigned_member_id, None, [])

    day_number = day.isoweekday() % 7
    day_slots = [s for s in member.slots if s.day_of_week == day_number]
    slots_by_member: dict[UUID, list[AvailabilitySlot]] = {}
    for slot in day_slots:
        slots_by_member.setdefault(slot.member_id, []).append(slot)

    available: set[TimeSlot] = set()
    for member_id, member_slots in slots_by_member.items():
        available.update(
            _open_member_slots(
                db, page, member_id, member_slots, day_slots, member.timezone, day, now, step
            )
        )

    return SlotListing(member.member_id, member.timezone, sorted(available))


def _open_member_slots(
    db: Session,
    page: BookingPage,
    member_id: UUID,
    slots: list[AvailabilitySlot],
    day_slots: list[AvailabilitySlot],
    tz_name: str,
    day: date,
    now: datetime,
    step: timedelta,
) -> list[TimeSlot]:
    """
    Starts on ``day`` that one member's slots could admit.

    A start is left to another member when an earlier slot in ``day_slots``
    contains it, matching the member admission would pick.
    """
    duration = timedelta(minutes=page.duration_minutes)
    candidates: set[TimeSlot] = set()
    for slot in slots:
        zone = timezones.get_zone(slot.timezone)
        current = datetime.combine(day, slot.start_time, tzinfo=zone).astimezone(timezone.utc)
        slot_end = datetime.combine(day, slot.end_time, tzinfo=zone).astimezone(timezone.utc)
        while current + duration <= slot_end:
            candidates.add(TimeSlot(start=current, end=current + duration))
            current += step

    if not candidates:
        return []

    overrides = availability_service.get_overrides(db, page.tenant_id, member_id, day)
    window_start, window_end = appointment_service.buffered_window(
        min(c.start for c in candidates),
        max(c.end for c in candidates),
        page.buffer_before,
        page.buffer_after,
    )
    existing = appointment_service.find_conflicting_appointments(
        db,
        page.tenant_id,
        window_start,
        window_end,
        member_id=member_id,
        booking_page_id=page.id,
    )

    available: list[TimeSlot] = []
    for candidate in sorted(candidates):
        try:
            check_policy(page, candidate.start, now)
            slot = availability_service.check_containment(
                day_slots, candidate.start, candidate.end
            )
            if slot.member_id != member_id:
                continue
            availability_service.check_overrides(
                overrides, candidate.start, candidate.end, tz_name
            )
        except BookingRejected:
            continue

        buffered_start, buffered_end = appointment_service.buffered_window(
            candidate.start, candidate.end, page.buffer_before, page.buffer_after
        )
        if any(a.start_time < buffered_end and a.end_time > buffered_start for a in existing):
            continue
        available.append(candidate)

    return available
