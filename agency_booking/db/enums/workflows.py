"""Workflow automation enums."""

from enum import Enum


class WorkflowTriggerType(str, Enum):
    """Named triggers published for the automation engine."""

    BOOKING_CREATED = "booking_created"
    BOOKING_PAGE_CREATED = "booking_page_created"


class WorkflowStatus(str, Enum):
    """Automation workflow status."""

    ACTIVE = "active"
    PAUSED = "paused"
    DRAFT = "draft"


class WorkflowExecutionStatus(str, Enum):
    """Status of a matched workflow execution handed to the engine."""

    QUEUED = "queued"
