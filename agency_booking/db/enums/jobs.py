"""Background job enums."""

from enum import Enum


class JobType(str, Enum):
    """Types of background jobs."""

    WORKFLOW_TRIGGER = "workflow_trigger"


class JobStatus(str, Enum):
    """Background job status."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


DEFAULT_JOB_STATUS = JobStatus.PENDING
