"""SQLAlchemy ORM models for the automation workflows fed by booking triggers."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import ForeignKey, Index, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from agency_booking.db.base import Base
from agency_booking.db.enums import WorkflowStatus
from agency_booking.db.models.jobs import JSONType
from agency_booking.db.types import utcnow


class AutomationWorkflow(Base):
    """
    Automation workflow definition.

    Subscribes to a trigger (booking_created, booking_page_created).
    ``trigger_config`` may narrow the subscription, e.g.
    ``{"booking_page_id": "<uuid>"}``.
    """

    __tablename__ = "automation_workflows"
    __table_args__ = (
        Index("idx_wf_matching", "tenant_id", "trigger_type", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Trigger
    trigger_type: Mapped[str] = mapped_column(String(50), nullable=False)
    trigger_config: Mapped[dict] = mapped_column(JSONType, default=dict, nullable=False)

    status: Mapped[str] = mapped_column(
        String(20), default=WorkflowStatus.ACTIVE.value, nullable=False
    )

    created_at: Mapped[datetime] = mapped_column(
        default=utcnow, server_default=func.now(), nullable=False
    )


class WorkflowExecution(Base):
    """
    Record of a published event matched to a workflow.

    The automation engine picks these up; this service only queues them.
    """

    __tablename__ = "workflow_executions"
    __table_args__ = (
        Index("idx_exec_workflow", "workflow_id", "executed_at"),
        Index("idx_exec_entity", "entity_type", "entity_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False
    )
    workflow_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("automation_workflows.id", ondelete="CASCADE"), nullable=False
    )

    # Context
    event_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    trigger_event: Mapped[dict] = mapped_column(JSONType, nullable=False)

    status: Mapped[str] = mapped_column(String(20), nullable=False)
    executed_at: Mapped[datetime] = mapped_column(
        default=utcnow, server_default=func.now(), nullable=False
    )
