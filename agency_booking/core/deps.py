"""FastAPI dependencies for database access and tenant scoping."""

from datetime import datetime
from typing import Generator
from uuid import UUID

from fastapi import HTTPException, Request
from sqlalchemy.orm import Session

from agency_booking.db.session import SessionLocal
from agency_booking.db.types import utcnow

# Set by the upstream subdomain router when a booking page is reached
# through a tenant subdomain
TENANT_HEADER = "X-Tenant-ID"


def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency.

    Yields a database session and ensures it's closed after the request.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_tenant_id(request: Request) -> UUID | None:
    """Optional tenant scope from the ``X-Tenant-ID`` header."""
    raw = request.headers.get(TENANT_HEADER)
    if not raw:
        return None
    try:
        return UUID(raw.strip())
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid {TENANT_HEADER} header")


def get_now() -> datetime:
    """Request clock; overridden in tests to pin policy decisions."""
    return utcnow()
