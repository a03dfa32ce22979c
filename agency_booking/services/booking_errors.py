"""Rejection taxonomy shared by the booking services."""

from enum import Enum


class RejectionKind(str, Enum):
    """Why a booking attempt was not admitted."""

    NOT_FOUND = "not_found"
    POLICY_VIOLATION = "policy_violation"
    NO_AVAILABILITY = "no_availability"
    OUTSIDE_HOURS = "outside_hours"
    DATE_BLOCKED = "date_blocked"
    TIME_BLOCKED = "time_blocked"
    SLOT_TAKEN = "slot_taken"
    TRANSIENT = "transient"
    INVALID = "invalid"

    @property
    def retryable(self) -> bool:
        return self is RejectionKind.TRANSIENT


# User-facing messages
BOOKING_PAGE_NOT_FOUND = "Booking page not found"
NO_AVAILABILITY_MESSAGE = "The selected time is not within available hours"
OUTSIDE_HOURS_MESSAGE = "The selected time is outside available hours"
DATE_BLOCKED_MESSAGE = "The selected date is not available"
TIME_BLOCKED_MESSAGE = "The selected time overlaps with a blocked period"
SLOT_TAKEN_MESSAGE = "The selected time slot is already booked"
PAST_START_MESSAGE = "Bookings cannot be scheduled in the past"
TRANSIENT_MESSAGE = "Booking is temporarily unavailable. Please try again."


class BookingRejected(ValueError):
    """Raised where a booking rule fails; carries the rejection kind."""

    def __init__(self, kind: RejectionKind, message: str):
        super().__init__(message)
        self.kind = kind
        self.message = message
