"""SQLAlchemy ORM models for background jobs."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import JSON, ForeignKey, Index, Integer, String, Text, Uuid, func, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from agency_booking.db.base import Base
from agency_booking.db.enums import DEFAULT_JOB_STATUS
from agency_booking.db.types import utcnow

JSONType = JSON().with_variant(JSONB(), "postgresql")


class Job(Base):
    """
    Outbox row for an event published after a business commit.

    Claimed by the worker once ``run_at`` has passed; ``attempts`` counts
    claims and ``max_attempts`` bounds redelivery.
    """

    __tablename__ = "jobs"
    __table_args__ = (
        Index(
            "idx_jobs_pending",
            "status",
            "run_at",
            postgresql_where=text("status = 'pending'"),
        ),
        Index("idx_jobs_tenant", "tenant_id", "created_at"),
        Index(
            "uq_job_idempotency",
            "idempotency_key",
            unique=True,
            postgresql_where=text("idempotency_key IS NOT NULL"),
            sqlite_where=text("idempotency_key IS NOT NULL"),
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False
    )

    job_type: Mapped[str] = mapped_column(String(50), nullable=False)
    payload: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)
    run_at: Mapped[datetime] = mapped_column(
        default=utcnow, server_default=func.now(), nullable=False
    )
    status: Mapped[str] = mapped_column(
        String(20),
        default=DEFAULT_JOB_STATUS.value,
        server_default=text(f"'{DEFAULT_JOB_STATUS.value}'"),
        nullable=False,
    )
    attempts: Mapped[int] = mapped_column(Integer, default=0, server_default=text("0"), nullable=False)
    max_attempts: Mapped[int] = mapped_column(
        Integer, default=3, server_default=text("3"), nullable=False
    )
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        default=utcnow, server_default=func.now(), nullable=False
    )
    completed_at: Mapped[datetime | None] = mapped_column(nullable=True)

    # Idempotency key for deduplication
    idempotency_key: Mapped[str | None] = mapped_column(String(255), nullable=True)
