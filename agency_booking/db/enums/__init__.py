"""Enum definitions for application constants."""

from agency_booking.db.enums.appointments import (
    AppointmentSource,
    AppointmentStatus,
    DEFAULT_APPOINTMENT_STATUS,
    LocationType,
)
from agency_booking.db.enums.jobs import DEFAULT_JOB_STATUS, JobStatus, JobType
from agency_booking.db.enums.workflows import (
    WorkflowExecutionStatus,
    WorkflowStatus,
    WorkflowTriggerType,
)

__all__ = [
    "AppointmentSource",
    "AppointmentStatus",
    "DEFAULT_APPOINTMENT_STATUS",
    "DEFAULT_JOB_STATUS",
    "JobStatus",
    "JobType",
    "LocationType",
    "WorkflowExecutionStatus",
    "WorkflowStatus",
    "WorkflowTriggerType",
]
