"""Booking schemas - Pydantic models for the public booking API and admin services."""

import re
from datetime import date, datetime, time
from typing import Literal
from uuid import UUID

from pydantic import (
    AwareDatetime,
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    ValidationInfo,
    field_validator,
)

# ISO 8601 timestamp must carry Z or +/-HH:MM
_EXPLICIT_OFFSET = re.compile(r"(Z|[+-]\d{2}:\d{2})$", re.IGNORECASE)
_SLUG = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")

LocationTypeLiteral = Literal["video", "phone", "in_person", "custom"]


def _require_explicit_offset(value):
    if isinstance(value, str) and not _EXPLICIT_OFFSET.search(value.strip()):
        raise ValueError(
            "Timestamp must be ISO 8601 format with timezone "
            "(e.g., 2026-02-10T14:00:00Z or 2026-02-10T14:00:00+05:00)"
        )
    return value


# =============================================================================
# Public Booking Submission
# =============================================================================

class PublicBookingSubmit(BaseModel):
    """Schema for a public booking submission."""
    client_name: str = Field(..., min_length=1, max_length=255)
    client_email: EmailStr
    client_phone: str | None = Field(None, max_length=50)
    start_time: AwareDatetime
    end_time: AwareDatetime
    notes: str | None = Field(None, max_length=5000)
    form_response_id: UUID | None = None
    idempotency_key: str | None = Field(None, min_length=1, max_length=64)

    @field_validator("client_name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Client name is required")
        return value

    @field_validator("client_email", mode="before")
    @classmethod
    def _email_length(cls, value):
        if isinstance(value, str) and len(value) > 255:
            raise ValueError("Email must be at most 255 characters")
        return value

    @field_validator("client_phone")
    @classmethod
    def _blank_phone_is_none(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip() or None

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def _explicit_offset(cls, value):
        return _require_explicit_offset(value)

    @field_validator("end_time")
    @classmethod
    def _end_after_start(cls, value: datetime, info: ValidationInfo) -> datetime:
        start = info.data.get("start_time")
        if start is not None and value <= start:
            raise ValueError("End time must be after start time")
        return value


class AppointmentRead(BaseModel):
    """Schema for reading an appointment."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    tenant_id: UUID
    booking_page_id: UUID | None
    assigned_member_id: UUID | None
    client_name: str
    client_email: str
    client_phone: str | None
    notes: str | None
    form_response_id: UUID | None
    start_time: datetime
    end_time: datetime
    status: str
    source: str
    created_at: datetime


class BookingSubmitResponse(BaseModel):
    """201 body for an admitted booking."""
    appointment: AppointmentRead


# =============================================================================
# Public Booking Page
# =============================================================================

class BookingPageRead(BaseModel):
    """Public-safe booking page configuration."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    tenant_id: UUID
    name: str
    slug: str
    description: str | None
    duration_minutes: int
    buffer_before: int
    buffer_after: int
    assigned_member_id: UUID | None
    form_id: UUID | None
    location_type: str
    location_details: str | None
    min_notice_hours: float
    max_advance_days: int
    color: str


class AvailabilitySlotRead(BaseModel):
    """Schema for reading a weekly availability slot."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    member_id: UUID
    day_of_week: int
    start_time: time
    end_time: time
    timezone: str
    is_available: bool


class AvailabilityOverrideRead(BaseModel):
    """Schema for reading a date override."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    member_id: UUID
    override_date: date
    is_blocked: bool
    start_time: time | None
    end_time: time | None
    reason: str | None


class PublicBookingPageRead(BaseModel):
    """Everything the public booking form needs to render."""
    booking_page: BookingPageRead
    member_id: UUID | None
    timezone: str | None
    availability: list[AvailabilitySlotRead]
    overrides: list[AvailabilityOverrideRead]


class TimeSlotRead(BaseModel):
    """Bookable start/end pair (UTC)."""
    start: datetime
    end: datetime


class AvailableSlotsResponse(BaseModel):
    """Candidate slots for one local date."""
    day: date
    timezone: str | None
    slots: list[TimeSlotRead]


# =============================================================================
# Admin Payloads
# =============================================================================

class BookingPageCreate(BaseModel):
    """Schema for creating a booking page."""
    name: str = Field(..., min_length=1, max_length=255)
    slug: str = Field(..., min_length=1, max_length=100)
    duration_minutes: int = Field(..., ge=5, le=480)
    description: str | None = Field(None, max_length=2000)
    buffer_before: int = Field(0, ge=0, le=120)
    buffer_after: int = Field(0, ge=0, le=120)
    form_id: UUID | None = None
    assigned_member_id: UUID | None = None
    location_type: LocationTypeLiteral = "video"
    location_details: str | None = Field(None, max_length=500)
    min_notice_hours: float = Field(1, ge=0, le=720)
    max_advance_days: int = Field(60, ge=1, le=365)
    color: str = Field("#84cc16", max_length=20)
    is_active: bool = True

    @field_validator("slug")
    @classmethod
    def _slug_format(cls, value: str) -> str:
        if not _SLUG.match(value):
            raise ValueError("Slug must contain only lowercase letters, numbers, and hyphens")
        return value


class AvailabilitySlotUpsert(BaseModel):
    """Schema for creating or updating a weekly availability slot."""
    member_id: UUID | None = None
    day_of_week: int = Field(..., ge=0, le=6)
    start_time: time
    end_time: time
    timezone: str = Field("America/New_York", max_length=100)
    is_available: bool = True

    @field_validator("end_time")
    @classmethod
    def _end_after_start(cls, value: time, info: ValidationInfo) -> time:
        start = info.data.get("start_time")
        if start is not None and value <= start:
            raise ValueError("End time must be after start time")
        return value


class BulkAvailabilityUpsert(BaseModel):
    """Schema for bulk availability updates."""
    member_id: UUID | None = None
    entries: list[AvailabilitySlotUpsert] = Field(..., min_length=1)


class AvailabilityOverrideCreate(BaseModel):
    """Schema for creating a date override."""
    member_id: UUID
    override_date: date
    is_blocked: bool = True
    start_time: time | None = None
    end_time: time | None = None
    reason: str | None = Field(None, max_length=500)

    @field_validator("end_time")
    @classmethod
    def _end_after_start(cls, value: time | None, info: ValidationInfo) -> time | None:
        start = info.data.get("start_time")
        if start is not None and value is not None and value <= start:
            raise ValueError("End time must be after start time")
        return value
