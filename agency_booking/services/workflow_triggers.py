"""Workflow triggers - publish typed events to the job outbox.

Delivery is at-most-once: each event becomes one WORKFLOW_TRIGGER job with
max_attempts=1. Publishing happens after the caller's commit; a failure,
including an event that does not validate, is logged and never propagates.
"""

import logging
from uuid import UUID

from sqlalchemy.orm import Session

from agency_booking.core.structured_logging import build_log_context
from agency_booking.db.enums import JobType
from agency_booking.db.models import Appointment, BookingPage, Job
from agency_booking.schemas.events import (
    BookingCreatedEvent,
    BookingPageCreatedEvent,
    TriggerEvent,
)
from agency_booking.services import job_service

logger = logging.getLogger(__name__)


def fire_trigger(
    db: Session,
    event_model: type[TriggerEvent],
    tenant_id: UUID,
    **fields,
) -> Job | None:
    """Build an ``event_model`` event and enqueue it. Returns None when publishing failed."""
    trigger_type = event_model.model_fields["trigger_type"].default
    try:
        event = event_model(tenant_id=tenant_id, **fields)
        return job_service.schedule_job(
            db=db,
            tenant_id=tenant_id,
            job_type=JobType.WORKFLOW_TRIGGER,
            payload={
                "trigger_type": trigger_type,
                "event": event.model_dump(mode="json"),
            },
            idempotency_key=f"trigger:{trigger_type}:{event.event_id}",
            max_attempts=1,
        )
    except Exception as e:
        db.rollback()
        logger.error(
            "Workflow trigger publish failed (%s): %s",
            trigger_type,
            type(e).__name__,
            extra=build_log_context(tenant_id=tenant_id, stage="publishing"),
        )
        return None


# =============================================================================
# Booking Triggers
# =============================================================================

def trigger_booking_created(
    db: Session,
    appointment: Appointment,
    booking_page: BookingPage,
) -> Job | None:
    """Publish booking_created for a committed appointment."""
    return fire_trigger(
        db,
        BookingCreatedEvent,
        appointment.tenant_id,
        entity_id=appointment.id,
        entity_name=f"Booking: {appointment.client_name}",
        client_name=appointment.client_name,
        client_email=appointment.client_email,
        client_phone=appointment.client_phone,
        start_time=appointment.start_time,
        end_time=appointment.end_time,
        booking_page_id=booking_page.id,
        booking_page_name=booking_page.name,
        assigned_member_id=appointment.assigned_member_id,
        status=appointment.status,
        source=appointment.source,
    )


def trigger_booking_page_created(db: Session, booking_page: BookingPage) -> Job | None:
    """Publish booking_page_created for a new page."""
    return fire_trigger(
        db,
        BookingPageCreatedEvent,
        booking_page.tenant_id,
        entity_id=booking_page.id,
        entity_name=booking_page.name,
        booking_page_name=booking_page.name,
        booking_page_slug=booking_page.slug,
        duration_minutes=booking_page.duration_minutes,
    )
