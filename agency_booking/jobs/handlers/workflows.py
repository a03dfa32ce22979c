"""Workflow-related job handlers."""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)


async def process_workflow_trigger(db, job) -> None:
    """
    Process a WORKFLOW_TRIGGER job - match a published event to workflows.

    Payload:
        - trigger_type: trigger name (e.g. 'booking_created')
        - event: typed event as JSON
    """
    from agency_booking.schemas.events import parse_event
    from agency_booking.services import workflow_engine

    payload = job.payload or {}
    trigger_type = payload.get("trigger_type")
    if not trigger_type or "event" not in payload:
        raise ValueError("Missing trigger_type or event in job payload")

    event = parse_event(trigger_type, payload["event"])
    executions = workflow_engine.queue_executions(db, trigger_type, event)
    logger.info(
        "Workflow trigger job %s processed: trigger=%s, executions=%s",
        job.id,
        trigger_type,
        len(executions),
    )
