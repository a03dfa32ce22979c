"""SQLAlchemy ORM models for booking pages, availability and appointments."""

from __future__ import annotations

import uuid
from datetime import date, datetime, time

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Time,
    UniqueConstraint,
    Uuid,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from agency_booking.db.base import Base
from agency_booking.db.enums import (
    DEFAULT_APPOINTMENT_STATUS,
    AppointmentSource,
    LocationType,
)
from agency_booking.db.types import utcnow


class BookingPage(Base):
    """
    Public booking page configured by a tenant.

    Reached at /book/{slug}. Slugs are unique per tenant; lookups without a
    tenant context expect the slug to be unique platform-wide.
    """

    __tablename__ = "booking_pages"
    __table_args__ = (
        UniqueConstraint("tenant_id", "slug", name="uq_booking_page_tenant_slug"),
        Index("idx_booking_pages_slug", "slug"),
        Index("idx_booking_pages_tenant", "tenant_id", "is_active"),
        CheckConstraint("buffer_before >= 0 AND buffer_after >= 0", name="ck_booking_page_buffers"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    duration_minutes: Mapped[int] = mapped_column(Integer, default=30, nullable=False)

    # Buffers in minutes around each appointment
    buffer_before: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    buffer_after: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Explicit assignee; NULL falls back to the tenant owner
    assigned_member_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True
    )
    form_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)

    location_type: Mapped[str] = mapped_column(
        String(20), default=LocationType.VIDEO.value, nullable=False
    )
    location_details: Mapped[str | None] = mapped_column(String(500), nullable=True)

    # Booking policy
    min_notice_hours: Mapped[float] = mapped_column(Float, default=1, nullable=False)
    max_advance_days: Mapped[int] = mapped_column(Integer, default=60, nullable=False)

    color: Mapped[str] = mapped_column(String(20), default="#84cc16", nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        default=utcnow, onupdate=utcnow, server_default=func.now(), nullable=False
    )


class AvailabilitySlot(Base):
    """
    Recurring weekly availability for a team member (e.g., "Monday 9am-5pm").

    Uses Sunday=0 ... Saturday=6, evaluated in the slot's own timezone.
    Several slots may exist for one member and day (split shifts).
    """

    __tablename__ = "team_availability"
    __table_args__ = (
        Index("idx_team_availability_member", "tenant_id", "member_id", "day_of_week"),
        CheckConstraint("day_of_week >= 0 AND day_of_week <= 6", name="ck_valid_day_of_week"),
        CheckConstraint("end_time > start_time", name="ck_availability_time_order"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False
    )
    member_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )

    day_of_week: Mapped[int] = mapped_column(Integer, nullable=False)

    # Wall-clock range in the slot's timezone
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)
    timezone: Mapped[str] = mapped_column(String(100), default="America/New_York", nullable=False)

    is_available: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        default=utcnow, server_default=func.now(), nullable=False
    )


class AvailabilityOverride(Base):
    """
    Date-specific exception for a member.

    Blocked with no times blocks the whole date; blocked with both times
    blocks that sub-window (in the member's timezone).
    """

    __tablename__ = "availability_overrides"
    __table_args__ = (
        Index("idx_availability_overrides_member_date", "tenant_id", "member_id", "override_date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False
    )
    member_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )

    override_date: Mapped[date] = mapped_column(Date, nullable=False)
    is_blocked: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    start_time: Mapped[time | None] = mapped_column(Time, nullable=True)
    end_time: Mapped[time | None] = mapped_column(Time, nullable=True)

    # Reason (optional, e.g., "Holiday", "Vacation")
    reason: Mapped[str | None] = mapped_column(String(500), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        default=utcnow, server_default=func.now(), nullable=False
    )


class Appointment(Base):
    """
    Booked appointment.

    Created once by the admission controller and never mutated by it.
    Non-cancelled appointments for one member must not overlap once the
    page buffers are applied.
    """

    __tablename__ = "appointments"
    __table_args__ = (
        Index("idx_appointments_member_time", "tenant_id", "assigned_member_id", "start_time"),
        Index("idx_appointments_page_time", "tenant_id", "booking_page_id", "start_time"),
        Index("idx_appointments_tenant_status", "tenant_id", "status"),
        UniqueConstraint("tenant_id", "idempotency_key", name="uq_appointment_idempotency"),
        CheckConstraint("end_time > start_time", name="ck_appointment_time_order"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False
    )
    booking_page_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("booking_pages.id", ondelete="SET NULL"), nullable=True
    )
    assigned_member_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True
    )

    # Client info
    client_name: Mapped[str] = mapped_column(String(255), nullable=False)
    client_email: Mapped[str] = mapped_column(String(255), nullable=False)
    client_phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    form_response_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)

    # Scheduling (stored in UTC)
    start_time: Mapped[datetime] = mapped_column(nullable=False)
    end_time: Mapped[datetime] = mapped_column(nullable=False)

    status: Mapped[str] = mapped_column(
        String(20),
        default=DEFAULT_APPOINTMENT_STATUS.value,
        server_default=text(f"'{DEFAULT_APPOINTMENT_STATUS.value}'"),
        nullable=False,
    )
    source: Mapped[str] = mapped_column(
        String(100), default=AppointmentSource.PUBLIC_BOOKING.value, nullable=False
    )

    # Idempotency (prevent duplicate bookings on client retries)
    idempotency_key: Mapped[str | None] = mapped_column(String(64), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        default=utcnow, onupdate=utcnow, server_default=func.now(), nullable=False
    )

    booking_page: Mapped["BookingPage | None"] = relationship()
