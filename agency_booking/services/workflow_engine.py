"""Workflow matching for published trigger events.

Consumer side of the outbox: finds active workflows subscribed to an event
and queues an execution record for each one. Running the workflow's actions
belongs to the external automation engine.
"""

import logging

from sqlalchemy.orm import Session

from agency_booking.db.enums import WorkflowExecutionStatus, WorkflowStatus
from agency_booking.db.models import AutomationWorkflow, WorkflowExecution
from agency_booking.schemas.events import TriggerEvent

logger = logging.getLogger(__name__)

# trigger_config keys compared against event fields, per trigger
TRIGGER_FILTERS: dict[str, tuple[str, ...]] = {
    "booking_created": ("booking_page_id",),
    "booking_page_created": (),
}


def _matches_config(workflow: AutomationWorkflow, event: TriggerEvent, trigger_type: str) -> bool:
    config = workflow.trigger_config or {}
    for key in TRIGGER_FILTERS.get(trigger_type, ()):
        expected = config.get(key)
        if not expected:
            continue
        actual = getattr(event, key, None)
        if actual is None or str(actual) != str(expected):
            return False
    return True


def find_matching_workflows(
    db: Session,
    trigger_type: str,
    event: TriggerEvent,
) -> list[AutomationWorkflow]:
    """Active workflows of the event's tenant subscribed to ``trigger_type``."""
    candidates = db.query(AutomationWorkflow).filter(
        AutomationWorkflow.tenant_id == event.tenant_id,
        AutomationWorkflow.trigger_type == trigger_type,
        AutomationWorkflow.status == WorkflowStatus.ACTIVE.value,
    ).order_by(AutomationWorkflow.created_at).all()
    return [w for w in candidates if _matches_config(w, event, trigger_type)]


def queue_executions(
    db: Session,
    trigger_type: str,
    event: TriggerEvent,
) -> list[WorkflowExecution]:
    """Record one queued execution per matching workflow."""
    workflows = find_matching_workflows(db, trigger_type, event)
    trigger_event = event.model_dump(mode="json")

    executions = []
    for workflow in workflows:
        execution = WorkflowExecution(
            tenant_id=event.tenant_id,
            workflow_id=workflow.id,
            event_id=event.event_id,
            entity_type=event.entity_type,
            entity_id=event.entity_id,
            trigger_event=trigger_event,
            status=WorkflowExecutionStatus.QUEUED.value,
        )
        db.add(execution)
        executions.append(execution)

    db.commit()
    logger.info(
        "Trigger %s matched %s workflow(s) for event %s",
        trigger_type,
        len(executions),
        event.event_id,
    )
    return executions
