"""Job handler registry."""

from __future__ import annotations

from typing import Awaitable, Callable, Mapping

from agency_booking.db.enums import JobType
from agency_booking.jobs.handlers import workflows

JobHandler = Callable[[object, object], Awaitable[None]]

JOB_HANDLERS: Mapping[str, JobHandler] = {
    JobType.WORKFLOW_TRIGGER.value: workflows.process_workflow_trigger,
}


def resolve_job_handler(job_type: str) -> JobHandler:
    handler = JOB_HANDLERS.get(job_type)
    if not handler:
        raise ValueError(f"Unknown job type: {job_type}")
    return handler
