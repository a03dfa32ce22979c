"""Booking page service - lookup by slug and admin management."""

import logging
from uuid import UUID

from sqlalchemy.orm import Session

from agency_booking.db.models import BookingPage, Profile
from agency_booking.schemas.booking import BookingPageCreate
from agency_booking.services import workflow_triggers

logger = logging.getLogger(__name__)


class BookingPageSlugTaken(ValueError):
    """Slug already used by another booking page of the tenant."""


def get_booking_page(
    db: Session,
    slug: str,
    tenant_id: UUID | None = None,
) -> BookingPage | None:
    """
    Active booking page by slug.

    Without a tenant the slug must identify exactly one active page
    platform-wide; an ambiguous slug resolves to None.
    """
    query = db.query(BookingPage).filter(
        BookingPage.slug == slug,
        BookingPage.is_active.is_(True),
    )
    if tenant_id:
        return query.filter(BookingPage.tenant_id == tenant_id).first()

    pages = query.limit(2).all()
    if len(pages) > 1:
        logger.warning("Booking slug %r is ambiguous without tenant context", slug)
        return None
    return pages[0] if pages else None


def list_booking_pages(
    db: Session,
    tenant_id: UUID,
    active_only: bool = False,
) -> list[BookingPage]:
    """List booking pages for a tenant, newest first."""
    query = db.query(BookingPage).filter(BookingPage.tenant_id == tenant_id)
    if active_only:
        query = query.filter(BookingPage.is_active.is_(True))
    return query.order_by(BookingPage.created_at.desc()).all()


def create_booking_page(
    db: Session,
    tenant_id: UUID,
    data: BookingPageCreate,
) -> BookingPage:
    """Create a booking page and publish booking_page_created."""
    existing = db.query(BookingPage).filter(
        BookingPage.tenant_id == tenant_id,
        BookingPage.slug == data.slug,
    ).first()
    if existing:
        raise BookingPageSlugTaken(f"Slug '{data.slug}' is already in use")

    if data.assigned_member_id:
        member = db.query(Profile).filter(
            Profile.id == data.assigned_member_id,
            Profile.tenant_id == tenant_id,
        ).first()
        if not member:
            raise ValueError("Assigned member not found")

    page = BookingPage(tenant_id=tenant_id, **data.model_dump())
    db.add(page)
    db.commit()
    db.refresh(page)

    workflow_triggers.trigger_booking_page_created(db, page)
    return page
