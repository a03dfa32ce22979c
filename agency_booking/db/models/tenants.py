"""SQLAlchemy ORM models for tenants and team members."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import ForeignKey, Index, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from agency_booking.db.base import Base
from agency_booking.db.types import utcnow


class Tenant(Base):
    """
    An agency account in the multi-tenant system.

    All domain entities belong to a tenant
    and must be scoped by tenant_id in all queries.
    """

    __tablename__ = "tenants"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)

    # Default assignee for booking pages without an explicit member.
    # No FK: profiles reference tenants, and the owner is set after signup.
    owner_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)

    timezone: Mapped[str] = mapped_column(
        String(50), default="America/New_York", nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        default=utcnow, server_default=func.now(), nullable=False
    )

    members: Mapped[list["Profile"]] = relationship(back_populates="tenant")


class Profile(Base):
    """
    A team member (user profile) inside a tenant.

    Owns availability slots and overrides, and is the resolved member
    for appointments.
    """

    __tablename__ = "profiles"
    __table_args__ = (Index("idx_profiles_tenant", "tenant_id"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False
    )
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    display_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        default=utcnow, server_default=func.now(), nullable=False
    )

    tenant: Mapped["Tenant"] = relationship(back_populates="members")
