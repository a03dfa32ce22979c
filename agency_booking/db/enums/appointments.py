"""Appointment and booking enums."""

from enum import Enum


class AppointmentStatus(str, Enum):
    """
    Appointment lifecycle status.

    Flow: confirmed → completed
              ↘ cancelled
              ↘ no_show
              ↘ rescheduled
    """

    CONFIRMED = "confirmed"  # Admitted through the booking page
    CANCELLED = "cancelled"  # Frees the slot
    COMPLETED = "completed"  # Meeting took place
    NO_SHOW = "no_show"  # Client didn't show up
    RESCHEDULED = "rescheduled"  # Superseded by a new appointment


class AppointmentSource(str, Enum):
    """Where an appointment row came from."""

    PUBLIC_BOOKING = "public_booking"
    MANUAL = "manual"
    IMPORT = "import"


class LocationType(str, Enum):
    """Meeting location for a booking page."""

    VIDEO = "video"
    PHONE = "phone"
    IN_PERSON = "in_person"
    CUSTOM = "custom"


# Default appointment status for public bookings
DEFAULT_APPOINTMENT_STATUS = AppointmentStatus.CONFIRMED
