"""Baseline migration - tenants, booking pages, availability, appointments, jobs, workflows

Revision ID: 0001_baseline
Revises:
Create Date: 2026-02-10

Creates every table the booking service reads or writes.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '0001_baseline'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSON_TYPE = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def _timestamp(name: str, nullable: bool = False) -> sa.Column:
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        nullable=nullable,
        server_default=None if nullable else sa.func.now(),
    )


def upgrade() -> None:
    """Create booking tables."""

    # ==========================================================================
    # Tenants & Members
    # ==========================================================================
    op.create_table(
        'tenants',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('slug', sa.String(100), nullable=False, unique=True),
        sa.Column('owner_id', sa.Uuid(), nullable=True),
        sa.Column('timezone', sa.String(50), nullable=False, server_default='America/New_York'),
        _timestamp('created_at'),
    )

    op.create_table(
        'profiles',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('tenant_id', sa.Uuid(), sa.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('display_name', sa.String(255), nullable=True),
        _timestamp('created_at'),
    )
    op.create_index('idx_profiles_tenant', 'profiles', ['tenant_id'])

    # ==========================================================================
    # Booking Pages
    # ==========================================================================
    op.create_table(
        'booking_pages',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('tenant_id', sa.Uuid(), sa.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('slug', sa.String(100), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('duration_minutes', sa.Integer(), nullable=False, server_default='30'),
        sa.Column('buffer_before', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('buffer_after', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('assigned_member_id', sa.Uuid(), sa.ForeignKey('profiles.id', ondelete='SET NULL'), nullable=True),
        sa.Column('form_id', sa.Uuid(), nullable=True),
        sa.Column('location_type', sa.String(20), nullable=False, server_default='video'),
        sa.Column('location_details', sa.String(500), nullable=True),
        sa.Column('min_notice_hours', sa.Float(), nullable=False, server_default='1'),
        sa.Column('max_advance_days', sa.Integer(), nullable=False, server_default='60'),
        sa.Column('color', sa.String(20), nullable=False, server_default='#84cc16'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        _timestamp('created_at'),
        _timestamp('updated_at'),
        sa.UniqueConstraint('tenant_id', 'slug', name='uq_booking_page_tenant_slug'),
        sa.CheckConstraint('buffer_before >= 0 AND buffer_after >= 0', name='ck_booking_page_buffers'),
    )
    op.create_index('idx_booking_pages_slug', 'booking_pages', ['slug'])
    op.create_index('idx_booking_pages_tenant', 'booking_pages', ['tenant_id', 'is_active'])

    # ==========================================================================
    # Availability
    # ==========================================================================
    op.create_table(
        'team_availability',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('tenant_id', sa.Uuid(), sa.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('member_id', sa.Uuid(), sa.ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False),
        sa.Column('day_of_week', sa.Integer(), nullable=False),
        sa.Column('start_time', sa.Time(), nullable=False),
        sa.Column('end_time', sa.Time(), nullable=False),
        sa.Column('timezone', sa.String(100), nullable=False, server_default='America/New_York'),
        sa.Column('is_available', sa.Boolean(), nullable=False, server_default=sa.true()),
        _timestamp('created_at'),
        sa.CheckConstraint('day_of_week >= 0 AND day_of_week <= 6', name='ck_valid_day_of_week'),
        sa.CheckConstraint('end_time > start_time', name='ck_availability_time_order'),
    )
    op.create_index(
        'idx_team_availability_member', 'team_availability', ['tenant_id', 'member_id', 'day_of_week']
    )

    op.create_table(
        'availability_overrides',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('tenant_id', sa.Uuid(), sa.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('member_id', sa.Uuid(), sa.ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False),
        sa.Column('override_date', sa.Date(), nullable=False),
        sa.Column('is_blocked', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('start_time', sa.Time(), nullable=True),
        sa.Column('end_time', sa.Time(), nullable=True),
        sa.Column('reason', sa.String(500), nullable=True),
        _timestamp('created_at'),
    )
    op.create_index(
        'idx_availability_overrides_member_date',
        'availability_overrides',
        ['tenant_id', 'member_id', 'override_date'],
    )

    # ==========================================================================
    # Appointments
    # ==========================================================================
    op.create_table(
        'appointments',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('tenant_id', sa.Uuid(), sa.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('booking_page_id', sa.Uuid(), sa.ForeignKey('booking_pages.id', ondelete='SET NULL'), nullable=True),
        sa.Column('assigned_member_id', sa.Uuid(), sa.ForeignKey('profiles.id', ondelete='SET NULL'), nullable=True),
        sa.Column('client_name', sa.String(255), nullable=False),
        sa.Column('client_email', sa.String(255), nullable=False),
        sa.Column('client_phone', sa.String(50), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('form_response_id', sa.Uuid(), nullable=True),
        sa.Column('start_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('end_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='confirmed'),
        sa.Column('source', sa.String(100), nullable=False, server_default='public_booking'),
        sa.Column('idempotency_key', sa.String(64), nullable=True),
        _timestamp('created_at'),
        _timestamp('updated_at'),
        sa.UniqueConstraint('tenant_id', 'idempotency_key', name='uq_appointment_idempotency'),
        sa.CheckConstraint('end_time > start_time', name='ck_appointment_time_order'),
    )
    op.create_index(
        'idx_appointments_member_time', 'appointments', ['tenant_id', 'assigned_member_id', 'start_time']
    )
    op.create_index(
        'idx_appointments_page_time', 'appointments', ['tenant_id', 'booking_page_id', 'start_time']
    )
    op.create_index('idx_appointments_tenant_status', 'appointments', ['tenant_id', 'status'])

    # ==========================================================================
    # Jobs (trigger outbox)
    # ==========================================================================
    op.create_table(
        'jobs',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('tenant_id', sa.Uuid(), sa.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('job_type', sa.String(50), nullable=False),
        sa.Column('payload', JSON_TYPE, nullable=False),
        _timestamp('run_at'),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('max_attempts', sa.Integer(), nullable=False, server_default='3'),
        sa.Column('last_error', sa.Text(), nullable=True),
        _timestamp('created_at'),
        _timestamp('completed_at', nullable=True),
        sa.Column('idempotency_key', sa.String(255), nullable=True),
    )
    op.create_index(
        'idx_jobs_pending', 'jobs', ['status', 'run_at'],
        postgresql_where=sa.text("status = 'pending'"),
    )
    op.create_index('idx_jobs_tenant', 'jobs', ['tenant_id', 'created_at'])
    op.create_index(
        'uq_job_idempotency', 'jobs', ['idempotency_key'], unique=True,
        postgresql_where=sa.text('idempotency_key IS NOT NULL'),
        sqlite_where=sa.text('idempotency_key IS NOT NULL'),
    )

    # ==========================================================================
    # Automation Workflows
    # ==========================================================================
    op.create_table(
        'automation_workflows',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('tenant_id', sa.Uuid(), sa.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('trigger_type', sa.String(50), nullable=False),
        sa.Column('trigger_config', JSON_TYPE, nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='active'),
        _timestamp('created_at'),
    )
    op.create_index('idx_wf_matching', 'automation_workflows', ['tenant_id', 'trigger_type', 'status'])

    op.create_table(
        'workflow_executions',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('tenant_id', sa.Uuid(), sa.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('workflow_id', sa.Uuid(), sa.ForeignKey('automation_workflows.id', ondelete='CASCADE'), nullable=False),
        sa.Column('event_id', sa.Uuid(), nullable=False),
        sa.Column('entity_type', sa.String(50), nullable=False),
        sa.Column('entity_id', sa.Uuid(), nullable=False),
        sa.Column('trigger_event', JSON_TYPE, nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        _timestamp('executed_at'),
    )
    op.create_index('idx_exec_workflow', 'workflow_executions', ['workflow_id', 'executed_at'])
    op.create_index('idx_exec_entity', 'workflow_executions', ['entity_type', 'entity_id'])


def downgrade() -> None:
    """Drop booking tables."""
    op.drop_table('workflow_executions')
    op.drop_table('automation_workflows')
    op.drop_table('jobs')
    op.drop_table('appointments')
    op.drop_table('availability_overrides')
    op.drop_table('team_availability')
    op.drop_table('booking_pages')
    op.drop_table('profiles')
    op.drop_table('tenants')
