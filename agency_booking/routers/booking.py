"""Public booking router - API endpoints for public appointment booking.

Unauthenticated endpoints for clients to:
- View a booking page with its weekly availability
- View available time slots for a date
- Submit booking requests
"""

from datetime import date, datetime
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from agency_booking.core.config import settings
from agency_booking.core.deps import get_db, get_now, get_tenant_id
from agency_booking.core.rate_limit import limiter
from agency_booking.schemas.booking import (
    AppointmentRead,
    AvailabilityOverrideRead,
    AvailabilitySlotRead,
    AvailableSlotsResponse,
    BookingPageRead,
    BookingSubmitResponse,
    PublicBookingPageRead,
    PublicBookingSubmit,
    TimeSlotRead,
)
from agency_booking.services import booking_service
from agency_booking.services.booking_errors import BookingRejected, RejectionKind

router = APIRouter()


# =============================================================================
# Helper Functions
# =============================================================================

def _rejection_response(result: booking_service.AdmissionResult) -> JSONResponse:
    """Map a rejected admission to its HTTP status and error body."""
    if result.kind == RejectionKind.NOT_FOUND:
        return JSONResponse(status_code=404, content={"error": result.message})
    if result.kind == RejectionKind.TRANSIENT:
        return JSONResponse(
            status_code=503,
            content={"error": result.message},
            headers={"Retry-After": str(settings.TRANSIENT_RETRY_AFTER_SECONDS)},
        )
    return JSONResponse(status_code=400, content={"error": result.message})


# =============================================================================
# Public Booking Page
# =============================================================================

@router.get("/{slug}", response_model=PublicBookingPageRead)
def get_booking_page(
    slug: str,
    db: Session = Depends(get_db),
    tenant_id: UUID | None = Depends(get_tenant_id),
    now: datetime = Depends(get_now),
):
    """
    Get public booking page data.

    Returns page configuration, the resolved member's weekly availability
    and upcoming date overrides.
    """
    try:
        data = booking_service.get_public_booking_page(db, slug, tenant_id=tenant_id, now=now)
    except BookingRejected as e:
        raise HTTPException(status_code=404, detail=e.message)

    return PublicBookingPageRead(
        booking_page=BookingPageRead.model_validate(data.booking_page),
        member_id=data.member_id,
        timezone=data.timezone,
        availability=[AvailabilitySlotRead.model_validate(s) for s in data.availability],
        overrides=[AvailabilityOverrideRead.model_validate(o) for o in data.overrides],
    )


@router.get("/{slug}/slots", response_model=AvailableSlotsResponse)
def get_available_slots(
    slug: str,
    day: date = Query(..., alias="date", description="Local date (YYYY-MM-DD)"),
    db: Session = Depends(get_db),
    tenant_id: UUID | None = Depends(get_tenant_id),
    now: datetime = Depends(get_now),
):
    """Get bookable slots for one date in the member's timezone."""
    try:
        listing = booking_service.list_available_slots(db, slug, day, tenant_id=tenant_id, now=now)
    except BookingRejected as e:
        raise HTTPException(status_code=404, detail=e.message)

    return AvailableSlotsResponse(
        day=day,
        timezone=listing.timezone,
        slots=[TimeSlotRead(start=s.start, end=s.end) for s in listing.slots],
    )


# =============================================================================
# Submission
# =============================================================================

@router.post("/{slug}/submit", status_code=201)
@limiter.limit(settings.RATE_LIMIT_BOOKING)
def submit_booking(
    slug: str,
    data: PublicBookingSubmit,
    request: Request,
    db: Session = Depends(get_db),
    tenant_id: UUID | None = Depends(get_tenant_id),
    now: datetime = Depends(get_now),
):
    """
    Submit a booking request.

    Creates a confirmed appointment when the window is free. Rate limited
    per client IP. Replays with the same idempotency_key return the
    original appointment.
    """
    result = booking_service.admit_booking(db, slug, data, tenant_id=tenant_id, now=now)
    if not result.accepted:
        return _rejection_response(result)

    body = BookingSubmitResponse(appointment=AppointmentRead.model_validate(result.appointment))
    return JSONResponse(status_code=201, content=body.model_dump(mode="json"))
