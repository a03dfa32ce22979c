"""
Tests for the booking admission controller.

Coverage:
- Accept inside weekly availability, reject outside it
- Date overrides (full-day and partial)
- Buffered conflict detection
- Notice / advance policy, evaluated before any availability lookup
- Owner fallback, assigned-member and tenant-wide resolution
- Advisory lock statements and their place in the admission
- Tenant scoping of slugs
- Idempotent replays (including the insert race)
- Trigger publishing after commit, never fatal
- Transient database errors
- Slot listing and public page data
"""

import uuid
from datetime import date, datetime, time, timedelta, timezone
from types import SimpleNamespace

import pytest
from sqlalchemy.exc import OperationalError

from agency_booking.db.enums import AppointmentStatus, JobType
from agency_booking.db.models import Appointment, BookingPage, Job, Tenant
from agency_booking.schemas.booking import PublicBookingSubmit
from agency_booking.schemas.events import BookingCreatedEvent
from agency_booking.services import (
    appointment_service,
    availability_service,
    booking_service,
    job_service,
    workflow_triggers,
)
from agency_booking.services.booking_errors import RejectionKind
from agency_booking.services.booking_service import AdmissionStage

SLUG = "consultation"
TUESDAY = 2


def _utc(day: int, hour: int, minute: int = 0) -> datetime:
    return datetime(2026, 2, day, hour, minute, tzinfo=timezone.utc)


def _submission(start: datetime, end: datetime, **fields) -> PublicBookingSubmit:
    return PublicBookingSubmit(
        client_name="Jane Client",
        client_email="jane@example.com",
        start_time=start,
        end_time=end,
        **fields,
    )


def _admit(db, start, end, now, slug=SLUG, **kwargs):
    tenant_id = kwargs.pop("tenant_id", None)
    return booking_service.admit_booking(
        db, slug, _submission(start, end, **kwargs), tenant_id=tenant_id, now=now
    )


@pytest.fixture
def tuesday_page(make_booking_page, make_slot, owner):
    """Unassigned page; the owner is available Tuesdays 10:00-12:00 UTC."""
    make_slot(owner.id, TUESDAY, time(10, 0), time(12, 0))
    return make_booking_page()


# =============================================================================
# Containment
# =============================================================================

def test_accepts_window_inside_availability(db, tuesday_page, owner, now):
    result = _admit(db, _utc(10, 10), _utc(10, 10, 30), now)

    assert result.accepted
    assert result.stage == AdmissionStage.SUCCEEDED
    assert result.replayed is False
    appointment = result.appointment
    assert appointment.start_time == _utc(10, 10)
    assert appointment.end_time == _utc(10, 10, 30)
    assert appointment.status == AppointmentStatus.CONFIRMED.value
    assert appointment.source == "public_booking"
    assert appointment.assigned_member_id == owner.id
    assert appointment.booking_page_id == tuesday_page.id
    assert db.query(Appointment).count() == 1


def test_rejects_window_ending_after_availability(db, tuesday_page, now):
    result = _admit(db, _utc(10, 12), _utc(10, 12, 30), now)

    assert not result.accepted
    assert result.stage == AdmissionStage.REJECTED
    assert result.kind == RejectionKind.OUTSIDE_HOURS
    assert result.rejected_at == AdmissionStage.CONTAINMENT_CHECKING
    assert result.message == "The selected time is outside available hours"
    assert db.query(Appointment).count() == 0


def test_rejects_day_without_availability(db, tuesday_page, now):
    # Wednesday
    result = _admit(db, _utc(11, 10), _utc(11, 10, 30), now)

    assert result.kind == RejectionKind.NO_AVAILABILITY
    assert result.rejected_at == AdmissionStage.AVAILABILITY_RESOLVING


def test_accepts_new_york_slot_across_utc_date_boundary(db, make_booking_page, make_slot, owner, now):
    # Monday 18:00-23:00 New York; Monday 20:00 local is Tuesday 01:00 UTC
    make_slot(owner.id, 1, time(18, 0), time(23, 0), tz="America/New_York")
    make_booking_page()

    result = _admit(db, _utc(10, 1), _utc(10, 1, 30), now)

    assert result.accepted


def test_accepts_offset_timestamps(db, make_booking_page, make_slot, owner, now):
    make_slot(owner.id, 1, time(9, 0), time(17, 0), tz="America/New_York")
    make_booking_page()
    new_york = timezone(timedelta(hours=-5))

    result = _admit(
        db,
        datetime(2026, 2, 9, 9, 0, tzinfo=new_york),
        datetime(2026, 2, 9, 9, 30, tzinfo=new_york),
        now,
    )

    assert result.accepted
    assert result.appointment.start_time == _utc(9, 14)


def test_rejects_window_crossing_local_midnight(db, make_booking_page, make_slot, owner, now):
    make_slot(owner.id, 1, time(0, 0), time(23, 59), tz="America/New_York")
    make_booking_page()

    # Monday 23:45 -> Tuesday 00:15 New York
    result = _admit(db, _utc(10, 4, 45), _utc(10, 5, 15), now)

    assert result.kind == RejectionKind.OUTSIDE_HOURS


# =============================================================================
# Overrides
# =============================================================================

def test_full_day_override_blocks_date(db, tuesday_page, owner, make_override, now):
    make_override(owner.id, date(2026, 2, 10), reason="Holiday")

    result = _admit(db, _utc(10, 10), _utc(10, 10, 30), now)

    assert result.kind == RejectionKind.DATE_BLOCKED
    assert result.rejected_at == AdmissionStage.OVERRIDE_CHECKING
    assert result.message == "The selected date is not available"


def test_partial_override_blocks_overlap_only(db, tuesday_page, owner, make_override, now):
    make_override(owner.id, date(2026, 2, 10), start_time=time(10, 0), end_time=time(11, 0))

    blocked = _admit(db, _utc(10, 10, 30), _utc(10, 11), now)
    allowed = _admit(db, _utc(10, 11), _utc(10, 11, 30), now)

    assert blocked.kind == RejectionKind.TIME_BLOCKED
    assert blocked.message == "The selected time overlaps with a blocked period"
    assert allowed.accepted


def test_override_for_other_date_is_ignored(db, tuesday_page, owner, make_override, now):
    make_override(owner.id, date(2026, 2, 17))

    result = _admit(db, _utc(10, 10), _utc(10, 10, 30), now)

    assert result.accepted


def test_unblocked_override_is_ignored(db, tuesday_page, owner, make_override, now):
    make_override(owner.id, date(2026, 2, 10), is_blocked=False)

    assert _admit(db, _utc(10, 10), _utc(10, 10, 30), now).accepted


# =============================================================================
# Conflicts & Buffers
# =============================================================================

@pytest.fixture
def buffered_page(make_booking_page, make_slot, make_appointment, owner):
    """15 minute buffers, owner busy 10:00-11:00 on Tuesday."""
    make_slot(owner.id, TUESDAY, time(9, 0), time(17, 0))
    page = make_booking_page(buffer_before=15, buffer_after=15)
    make_appointment(_utc(10, 10), _utc(10, 11), member_id=owner.id, booking_page_id=page.id)
    return page


def test_buffer_overlap_is_rejected(db, buffered_page, now):
    result = _admit(db, _utc(10, 11, 5), _utc(10, 11, 30), now)

    assert result.kind == RejectionKind.SLOT_TAKEN
    assert result.rejected_at == AdmissionStage.CONFLICT_CHECKING
    assert result.message == "The selected time slot is already booked"


def test_window_clear_of_buffers_is_accepted(db, buffered_page, now):
    result = _admit(db, _utc(10, 11, 16), _utc(10, 11, 45), now)

    assert result.accepted


def test_touching_windows_without_buffers_do_not_conflict(
    db, make_booking_page, make_slot, make_appointment, owner, now
):
    make_slot(owner.id, TUESDAY, time(9, 0), time(17, 0))
    make_booking_page()
    make_appointment(_utc(10, 10), _utc(10, 11), member_id=owner.id)

    after = _admit(db, _utc(10, 11), _utc(10, 11, 30), now)
    before = _admit(db, _utc(10, 9, 30), _utc(10, 10), now)

    assert after.accepted
    assert before.accepted


@pytest.mark.parametrize(
    "buffers, start, end",
    [
        ({"buffer_before": 5}, (11, 0), (11, 30)),
        ({"buffer_after": 5}, (9, 30), (10, 0)),
    ],
)
def test_either_buffer_extends_the_window(
    db, make_booking_page, make_slot, make_appointment, owner, now, buffers, start, end
):
    make_slot(owner.id, TUESDAY, time(9, 0), time(17, 0))
    make_booking_page(**buffers)
    make_appointment(_utc(10, 10), _utc(10, 11), member_id=owner.id)

    result = _admit(db, _utc(10, *start), _utc(10, *end), now)

    assert result.kind == RejectionKind.SLOT_TAKEN


def test_cancelled_appointment_frees_the_slot(
    db, tuesday_page, make_appointment, owner, now
):
    make_appointment(
        _utc(10, 10),
        _utc(10, 10, 30),
        member_id=owner.id,
        status=AppointmentStatus.CANCELLED.value,
    )

    assert _admit(db, _utc(10, 10), _utc(10, 10, 30), now).accepted


def test_other_members_appointments_do_not_conflict(
    db, make_booking_page, make_slot, make_appointment, owner, member, now
):
    make_slot(member.id, TUESDAY, time(9, 0), time(17, 0))
    make_booking_page(assigned_member_id=member.id)
    make_appointment(_utc(10, 10), _utc(10, 11), member_id=owner.id)

    result = _admit(db, _utc(10, 10), _utc(10, 10, 30), now)

    assert result.accepted
    assert result.appointment.assigned_member_id == member.id


def test_second_booking_of_same_window_is_rejected(db, tuesday_page, now):
    first = _admit(db, _utc(10, 10), _utc(10, 10, 30), now)
    second = _admit(db, _utc(10, 10), _utc(10, 10, 30), now)

    assert first.accepted
    assert second.kind == RejectionKind.SLOT_TAKEN
    assert db.query(Appointment).count() == 1


def test_admitted_appointments_never_overlap_with_buffers(
    db, make_booking_page, make_slot, owner, now
):
    make_slot(owner.id, TUESDAY, time(9, 0), time(17, 0))
    page = make_booking_page(buffer_before=10, buffer_after=10)

    start = _utc(10, 9)
    while start + timedelta(minutes=30) <= _utc(10, 17):
        _admit(db, start, start + timedelta(minutes=30), now)
        start += timedelta(minutes=20)

    # Admitted in start order, so each later booking's buffered window must clear the earlier one
    appointments = db.query(Appointment).order_by(Appointment.start_time).all()
    assert len(appointments) > 1
    for earlier, later in zip(appointments, appointments[1:]):
        assert earlier.end_time <= later.start_time - timedelta(minutes=page.buffer_before)


# =============================================================================
# Policy
# =============================================================================

def test_min_notice_rejected_before_availability_lookup(
    db, make_booking_page, now, monkeypatch
):
    make_booking_page(min_notice_hours=24)

    def _fail(*args, **kwargs):
        raise AssertionError("availability must not be resolved")

    monkeypatch.setattr(availability_service, "resolve_availability", _fail)

    result = _admit(db, now + timedelta(hours=2), now + timedelta(hours=2, minutes=30), now)

    assert result.kind == RejectionKind.POLICY_VIOLATION
    assert result.rejected_at == AdmissionStage.POLICY_CHECKING
    assert result.message == "Bookings require at least 24 hours notice"


def test_fractional_notice_message(db, make_booking_page, now):
    make_booking_page(min_notice_hours=1.5)

    result = _admit(db, now + timedelta(hours=1), now + timedelta(hours=1, minutes=30), now)

    assert result.message == "Bookings require at least 1.5 hours notice"


def test_max_advance_rejected(db, tuesday_page, now):
    start = now + timedelta(days=61)

    result = _admit(db, start, start + timedelta(minutes=30), now)

    assert result.kind == RejectionKind.POLICY_VIOLATION
    assert result.message == "Bookings cannot be scheduled more than 60 days in advance"


def test_past_start_rejected(db, tuesday_page, now):
    start = now - timedelta(days=1)

    result = _admit(db, start, start + timedelta(minutes=30), now)

    assert result.kind == RejectionKind.POLICY_VIOLATION
    assert result.message == "Bookings cannot be scheduled in the past"


def test_zero_notice_is_not_enforced(db, make_booking_page, make_slot, owner):
    make_slot(owner.id, TUESDAY, time(10, 0), time(12, 0))
    make_booking_page(min_notice_hours=0)

    result = _admit(db, _utc(10, 10), _utc(10, 10, 30), now=_utc(10, 9, 55))

    assert result.accepted


def test_rejections_are_deterministic(db, tuesday_page, now):
    first = _admit(db, _utc(10, 12), _utc(10, 12, 30), now)
    second = _admit(db, _utc(10, 12), _utc(10, 12, 30), now)

    assert (first.kind, first.message, first.rejected_at) == (
        second.kind,
        second.message,
        second.rejected_at,
    )


# =============================================================================
# Validation & Lookup
# =============================================================================

def test_naive_timestamps_rejected_as_invalid(db, tuesday_page, now):
    submission = PublicBookingSubmit.model_construct(
        client_name="Jane Client",
        client_email="jane@example.com",
        start_time=datetime(2026, 2, 10, 10, 0),
        end_time=datetime(2026, 2, 10, 10, 30),
        idempotency_key=None,
    )

    result = booking_service.admit_booking(db, SLUG, submission, now=now)

    assert result.kind == RejectionKind.INVALID
    assert result.rejected_at == AdmissionStage.VALIDATING


def test_unknown_slug_not_found(db, tuesday_page, now):
    result = _admit(db, _utc(10, 10), _utc(10, 10, 30), now, slug="missing")

    assert result.kind == RejectionKind.NOT_FOUND
    assert result.message == "Booking page not found"


def test_inactive_page_not_found(db, make_booking_page, now):
    make_booking_page(is_active=False)

    result = _admit(db, _utc(10, 10), _utc(10, 10, 30), now)

    assert result.kind == RejectionKind.NOT_FOUND


def test_slug_scoped_to_requesting_tenant(db, tuesday_page, now):
    result = _admit(db, _utc(10, 10), _utc(10, 10, 30), now, tenant_id=uuid.uuid4())

    assert result.kind == RejectionKind.NOT_FOUND


def test_ambiguous_slug_requires_tenant(db, tuesday_page, tenant, now):
    other = Tenant(id=uuid.uuid4(), name="Other Agency", slug="other-agency")
    db.add(other)
    db.flush()
    db.add(BookingPage(id=uuid.uuid4(), tenant_id=other.id, name="Consultation", slug=SLUG))
    db.commit()

    without_tenant = _admit(db, _utc(10, 10), _utc(10, 10, 30), now)
    with_tenant = _admit(db, _utc(10, 10), _utc(10, 10, 30), now, tenant_id=tenant.id)

    assert without_tenant.kind == RejectionKind.NOT_FOUND
    assert with_tenant.accepted
    assert with_tenant.appointment.tenant_id == tenant.id


# =============================================================================
# Member Resolution
# =============================================================================

def test_no_owner_and_no_slots_rejects(db, make_booking_page, now):
    make_booking_page()

    result = _admit(db, _utc(10, 10), _utc(10, 10, 30), now)

    assert result.kind == RejectionKind.NO_AVAILABILITY
    assert result.message == "The selected time is not within available hours"


def test_assigned_member_without_slots_does_not_fall_back(
    db, make_booking_page, make_slot, owner, member, now
):
    make_slot(owner.id, TUESDAY, time(10, 0), time(12, 0))
    make_booking_page(assigned_member_id=member.id)

    result = _admit(db, _utc(10, 10), _utc(10, 10, 30), now)

    assert result.kind == RejectionKind.NO_AVAILABILITY


def test_unassigned_page_books_member_free_that_day(
    db, make_booking_page, make_slot, owner, member, now
):
    make_slot(owner.id, 1, time(9, 0), time(17, 0))
    make_slot(member.id, TUESDAY, time(9, 0), time(17, 0))
    make_booking_page()

    result = _admit(db, _utc(10, 10), _utc(10, 10, 30), now)

    assert result.accepted
    assert result.appointment.assigned_member_id == member.id


def test_unassigned_page_books_member_whose_hours_fit(
    db, make_booking_page, make_slot, owner, member, now
):
    make_slot(owner.id, TUESDAY, time(9, 0), time(10, 0))
    make_slot(member.id, TUESDAY, time(14, 0), time(17, 0))
    make_booking_page()

    result = _admit(db, _utc(10, 15), _utc(10, 15, 30), now)

    assert result.accepted
    assert result.appointment.assigned_member_id == member.id


# =============================================================================
# Idempotency
# =============================================================================

def test_idempotent_replay_returns_original(db, tuesday_page, now):
    first = _admit(db, _utc(10, 10), _utc(10, 10, 30), now, idempotency_key="retry-1")
    second = _admit(db, _utc(10, 10), _utc(10, 10, 30), now, idempotency_key="retry-1")

    assert first.accepted and second.accepted
    assert second.replayed is True
    assert second.appointment.id == first.appointment.id
    assert db.query(Appointment).count() == 1


def test_replay_skips_policy(db, tuesday_page, now):
    first = _admit(db, _utc(10, 10), _utc(10, 10, 30), now, idempotency_key="retry-2")

    # Retried after the start has passed
    later = _admit(
        db, _utc(10, 10), _utc(10, 10, 30), _utc(10, 11), idempotency_key="retry-2"
    )

    assert later.replayed
    assert later.appointment.id == first.appointment.id


def test_idempotency_key_is_normalized(db, tuesday_page, now):
    result = _admit(db, _utc(10, 10), _utc(10, 10, 30), now, idempotency_key="retry-3")

    expected = appointment_service.normalize_idempotency_key(
        tuesday_page.tenant_id, tuesday_page.id, "retry-3"
    )
    assert result.appointment.idempotency_key == expected
    assert len(expected) == 64


def test_idempotency_insert_race_replays(db, tuesday_page, now, monkeypatch):
    first = _admit(db, _utc(10, 10), _utc(10, 10, 30), now, idempotency_key="race")

    original_lookup = appointment_service.get_appointment_by_idempotency_key
    calls = {"n": 0}

    def _miss_once(*args, **kwargs):
        calls["n"] += 1
        if calls["n"] == 1:
            return None
        return original_lookup(*args, **kwargs)

    monkeypatch.setattr(appointment_service, "get_appointment_by_idempotency_key", _miss_once)
    monkeypatch.setattr(appointment_service, "find_conflicting_appointments", lambda *a, **k: [])

    second = _admit(db, _utc(10, 10), _utc(10, 10, 30), now, idempotency_key="race")

    assert second.replayed
    assert second.appointment.id == first.appointment.id
    assert db.query(Appointment).count() == 1


# =============================================================================
# Triggers
# =============================================================================

def test_booking_created_trigger_published(db, tuesday_page, now):
    result = _admit(db, _utc(10, 10), _utc(10, 10, 30), now)

    jobs = db.query(Job).all()
    assert len(jobs) == 1
    job = jobs[0]
    assert job.job_type == JobType.WORKFLOW_TRIGGER.value
    assert job.max_attempts == 1
    assert job.payload["trigger_type"] == "booking_created"
    event = job.payload["event"]
    assert event["entity_id"] == str(result.appointment.id)
    assert event["booking_page_id"] == str(tuesday_page.id)
    assert event["entity_type"] == "appointment"


def test_rejection_publishes_nothing(db, tuesday_page, now):
    _admit(db, _utc(10, 12), _utc(10, 12, 30), now)

    assert db.query(Job).count() == 0


def test_trigger_failure_does_not_fail_booking(db, tuesday_page, now, monkeypatch):
    def _boom(*args, **kwargs):
        raise RuntimeError("queue unavailable")

    monkeypatch.setattr(job_service, "schedule_job", _boom)

    result = _admit(db, _utc(10, 10), _utc(10, 10, 30), now)

    assert result.accepted
    assert db.query(Appointment).count() == 1
    assert db.query(Job).count() == 0


def test_invalid_trigger_event_does_not_fail_booking(db, tuesday_page, now, monkeypatch):
    class _EventWithCampaign(BookingCreatedEvent):
        campaign_id: uuid.UUID

    monkeypatch.setattr(workflow_triggers, "BookingCreatedEvent", _EventWithCampaign)

    result = _admit(db, _utc(10, 10), _utc(10, 10, 30), now)

    assert result.accepted
    assert db.query(Appointment).count() == 1
    assert db.query(Job).count() == 0


# =============================================================================
# Transient Errors
# =============================================================================

def test_database_timeout_is_transient(db, tuesday_page, now, monkeypatch):
    def _timeout(*args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("canceling statement due to lock timeout"))

    monkeypatch.setattr(appointment_service, "find_conflicting_appointments", _timeout)

    result = _admit(db, _utc(10, 10), _utc(10, 10, 30), now)

    assert result.kind == RejectionKind.TRANSIENT
    assert result.retryable is True
    assert result.rejected_at == AdmissionStage.CONFLICT_CHECKING
    assert result.message == "Booking is temporarily unavailable. Please try again."
    assert db.query(Appointment).count() == 0


def test_rule_rejections_are_not_retryable(db, tuesday_page, now):
    result = _admit(db, _utc(10, 12), _utc(10, 12, 30), now)

    assert result.retryable is False


def test_booking_lock_is_noop_on_sqlite(db, tenant):
    assert appointment_service.acquire_booking_lock(db, tenant.id, member_id=uuid.uuid4()) is False


class _RecordingSession:
    """Stands in for a PostgreSQL session and records executed SQL."""

    def __init__(self):
        self.statements = []

    def get_bind(self):
        return SimpleNamespace(dialect=SimpleNamespace(name="postgresql"))

    def execute(self, statement, params=None):
        self.statements.append((str(statement), params))


def test_booking_lock_on_postgres_sets_timeout_and_takes_member_lock():
    tenant_id, member_id = uuid.uuid4(), uuid.uuid4()
    session = _RecordingSession()

    acquired = appointment_service.acquire_booking_lock(
        session, tenant_id, member_id=member_id, booking_page_id=uuid.uuid4(), timeout_ms=2500
    )

    assert acquired is True
    assert session.statements == [
        ("SET LOCAL lock_timeout = '2500ms'", None),
        (
            "SELECT pg_advisory_xact_lock(:key)",
            {"key": appointment_service.booking_lock_key(tenant_id, member_id=member_id)},
        ),
    ]


def test_lock_taken_for_resolved_member_before_conflict_check(
    db, tuesday_page, owner, now, monkeypatch
):
    calls = []
    find_conflicts = appointment_service.find_conflicting_appointments

    def _lock(db, tenant_id, member_id=None, booking_page_id=None, timeout_ms=5000):
        calls.append(("lock", member_id, booking_page_id))
        return True

    def _find(*args, **kwargs):
        calls.append(("conflicts", kwargs["member_id"], kwargs["booking_page_id"]))
        return find_conflicts(*args, **kwargs)

    monkeypatch.setattr(appointment_service, "acquire_booking_lock", _lock)
    monkeypatch.setattr(appointment_service, "find_conflicting_appointments", _find)

    result = _admit(db, _utc(10, 10), _utc(10, 10, 30), now)

    assert result.accepted
    assert calls == [
        ("lock", owner.id, tuesday_page.id),
        ("conflicts", owner.id, tuesday_page.id),
    ]


def test_booking_lock_key_is_stable_and_scoped():
    tenant_id, member_id = uuid.uuid4(), uuid.uuid4()

    key = appointment_service.booking_lock_key(tenant_id, member_id=member_id)

    assert key == appointment_service.booking_lock_key(tenant_id, member_id=member_id)
    assert key != appointment_service.booking_lock_key(tenant_id, member_id=uuid.uuid4())
    assert -(2**63) <= key < 2**63
    with pytest.raises(ValueError):
        appointment_service.booking_lock_key(tenant_id)


# =============================================================================
# Slot Listing
# =============================================================================

def _starts(listing):
    return [(s.start.hour, s.start.minute) for s in listing.slots]


def test_slots_cover_availability_in_steps(db, tuesday_page, now):
    listing = booking_service.list_available_slots(db, SLUG, date(2026, 2, 10), now=now)

    assert listing.timezone == "UTC"
    assert _starts(listing) == [
        (10, 0), (10, 15), (10, 30), (10, 45), (11, 0), (11, 15), (11, 30),
    ]
    assert all(s.end - s.start == timedelta(minutes=30) for s in listing.slots)


def test_slots_exclude_booked_windows(db, tuesday_page, owner, make_appointment, now):
    make_appointment(_utc(10, 10, 30), _utc(10, 11), member_id=owner.id)

    listing = booking_service.list_available_slots(db, SLUG, date(2026, 2, 10), now=now)

    assert _starts(listing) == [(10, 0), (11, 0), (11, 15), (11, 30)]


def test_slots_exclude_partial_block(db, tuesday_page, owner, make_override, now):
    make_override(owner.id, date(2026, 2, 10), start_time=time(11, 0), end_time=time(11, 30))

    listing = booking_service.list_available_slots(db, SLUG, date(2026, 2, 10), now=now)

    assert _starts(listing) == [(10, 0), (10, 15), (10, 30), (11, 30)]


def test_slots_respect_min_notice(db, tuesday_page):
    listing = booking_service.list_available_slots(
        db, SLUG, date(2026, 2, 10), now=_utc(10, 10, 20)
    )

    assert _starts(listing) == [(11, 30)]


def test_slots_in_member_timezone(db, make_booking_page, make_slot, owner, now):
    make_slot(owner.id, 1, time(18, 0), time(19, 0), tz="America/New_York")
    make_booking_page()

    listing = booking_service.list_available_slots(db, SLUG, date(2026, 2, 9), now=now)

    assert listing.timezone == "America/New_York"
    assert [s.start for s in listing.slots] == [_utc(9, 23), _utc(9, 23, 15), _utc(9, 23, 30)]


def test_slots_empty_on_unavailable_day(db, tuesday_page, now):
    listing = booking_service.list_available_slots(db, SLUG, date(2026, 2, 11), now=now)

    assert listing.slots == []


def test_slots_cover_every_member_of_tenant_pool(
    db, make_booking_page, make_slot, owner, member, now
):
    make_slot(owner.id, TUESDAY, time(10, 0), time(11, 0))
    make_slot(member.id, TUESDAY, time(14, 0), time(15, 0))
    make_slot(member.id, 3, time(9, 0), time(17, 0))
    make_booking_page()

    listing = booking_service.list_available_slots(db, SLUG, date(2026, 2, 10), now=now)

    assert listing.member_id is None
    assert _starts(listing) == [
        (10, 0), (10, 15), (10, 30), (14, 0), (14, 15), (14, 30),
    ]


def test_pool_listing_checks_each_members_bookings(
    db, make_booking_page, make_slot, owner, member, make_appointment, now
):
    make_slot(owner.id, TUESDAY, time(10, 0), time(11, 0))
    make_slot(member.id, TUESDAY, time(14, 0), time(15, 0))
    make_booking_page()
    make_appointment(_utc(10, 14), _utc(10, 14, 30), member_id=member.id)

    listing = booking_service.list_available_slots(db, SLUG, date(2026, 2, 10), now=now)

    assert _starts(listing) == [(10, 0), (10, 15), (10, 30), (14, 30)]
    result = _admit(db, listing.slots[-1].start, listing.slots[-1].end, now)
    assert result.appointment.assigned_member_id == member.id


def test_listed_slot_is_admissible(db, tuesday_page, owner, make_appointment, now):
    make_appointment(_utc(10, 10, 30), _utc(10, 11), member_id=owner.id)
    listing = booking_service.list_available_slots(db, SLUG, date(2026, 2, 10), now=now)
    slot = listing.slots[-1]

    assert _admit(db, slot.start, slot.end, now).accepted


# =============================================================================
# Public Page Data
# =============================================================================

def test_public_page_lists_slots_and_upcoming_overrides(
    db, tuesday_page, owner, make_override, now
):
    make_override(owner.id, date(2026, 1, 20))
    upcoming = make_override(owner.id, date(2026, 2, 16), reason="Holiday")

    data = booking_service.get_public_booking_page(db, SLUG, now=now)

    assert data.booking_page.id == tuesday_page.id
    assert data.member_id == owner.id
    assert data.timezone == "UTC"
    assert len(data.availability) == 1
    assert [o.id for o in data.overrides] == [upcoming.id]


def test_public_page_shows_whole_tenant_pool(
    db, make_booking_page, make_slot, owner, member, now
):
    make_slot(owner.id, 1, time(9, 0), time(17, 0))
    make_slot(member.id, TUESDAY, time(9, 0), time(17, 0))
    make_booking_page()

    data = booking_service.get_public_booking_page(db, SLUG, now=now)

    assert data.member_id is None
    assert {s.member_id for s in data.availability} == {owner.id, member.id}


def test_public_page_without_availability(db, make_booking_page, owner, now):
    make_booking_page()

    data = booking_service.get_public_booking_page(db, SLUG, now=now)

    assert data.member_id == owner.id
    assert data.timezone is None
    assert data.availability == []
