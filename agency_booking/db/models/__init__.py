"""SQLAlchemy ORM models."""

from agency_booking.db.models.appointments import (
    Appointment,
    AvailabilityOverride,
    AvailabilitySlot,
    BookingPage,
)
from agency_booking.db.models.jobs import Job
from agency_booking.db.models.tenants import Profile, Tenant
from agency_booking.db.models.workflows import AutomationWorkflow, WorkflowExecution

__all__ = [
    "Appointment",
    "AutomationWorkflow",
    "AvailabilityOverride",
    "AvailabilitySlot",
    "BookingPage",
    "Job",
    "Profile",
    "Tenant",
    "WorkflowExecution",
]
