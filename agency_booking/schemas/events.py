"""Typed trigger events published to the automation engine.

One model per trigger name so producer and consumer share field names.
Events travel through the job outbox as JSON (``model_dump(mode="json")``).
"""

from datetime import datetime
from typing import Literal
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from agency_booking.db.enums import WorkflowTriggerType


class TriggerEvent(BaseModel):
    """Fields shared by every trigger event."""
    event_id: UUID = Field(default_factory=uuid4)
    tenant_id: UUID
    entity_id: UUID
    entity_type: str
    entity_name: str


class BookingCreatedEvent(TriggerEvent):
    """Published after a public booking commits."""
    trigger_type: Literal["booking_created"] = WorkflowTriggerType.BOOKING_CREATED.value
    entity_type: Literal["appointment"] = "appointment"
    client_name: str
    client_email: str
    client_phone: str | None = None
    start_time: datetime
    end_time: datetime
    booking_page_id: UUID | None = None
    booking_page_name: str | None = None
    assigned_member_id: UUID | None = None
    status: str
    source: str


class BookingPageCreatedEvent(TriggerEvent):
    """Published after an admin creates a booking page."""
    trigger_type: Literal["booking_page_created"] = WorkflowTriggerType.BOOKING_PAGE_CREATED.value
    entity_type: Literal["booking_page"] = "booking_page"
    booking_page_name: str
    booking_page_slug: str
    duration_minutes: int


EVENT_MODELS: dict[str, type[TriggerEvent]] = {
    WorkflowTriggerType.BOOKING_CREATED.value: BookingCreatedEvent,
    WorkflowTriggerType.BOOKING_PAGE_CREATED.value: BookingPageCreatedEvent,
}


def parse_event(trigger_type: str, payload: dict) -> TriggerEvent:
    """Validate an outbox payload against the model registered for ``trigger_type``."""
    model = EVENT_MODELS.get(trigger_type)
    if model is None:
        raise ValueError(f"Unknown trigger type: {trigger_type}")
    return model.model_validate(payload)
