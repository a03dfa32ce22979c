"""Job service - outbox rows for published events and their processing state.

Jobs are written after the business transaction commits. The worker claims
due rows in batches; on PostgreSQL the claim uses ``FOR UPDATE SKIP LOCKED``
so several workers can drain the table without picking the same job.
"""

import logging
from datetime import datetime
from uuid import UUID

from sqlalchemy.orm import Session

from agency_booking.core.structured_logging import build_log_context
from agency_booking.db.enums import JobStatus, JobType
from agency_booking.db.models import Job
from agency_booking.db.types import utcnow

logger = logging.getLogger(__name__)

MAX_ERROR_LENGTH = 2000


def schedule_job(
    db: Session,
    tenant_id: UUID,
    job_type: JobType,
    payload: dict,
    run_at: datetime | None = None,
    idempotency_key: str | None = None,
    max_attempts: int = 3,
) -> Job:
    """
    Commit a pending job for the worker.

    ``run_at`` defaults to now. A repeated ``idempotency_key`` violates the
    unique index and raises IntegrityError for the caller to handle.
    """
    job = Job(
        tenant_id=tenant_id,
        job_type=job_type.value,
        payload=payload,
        run_at=run_at or utcnow(),
        max_attempts=max_attempts,
        idempotency_key=idempotency_key,
    )
    db.add(job)
    db.commit()
    db.refresh(job)
    logger.debug(
        "Scheduled %s job %s",
        job.job_type,
        job.id,
        extra=build_log_context(tenant_id=tenant_id, stage="publishing"),
    )
    return job


def claim_due_jobs(db: Session, limit: int = 10, now: datetime | None = None) -> list[Job]:
    """
    Move up to ``limit`` due pending jobs to running and return them.

    Each claim counts as an attempt.
    """
    query = (
        db.query(Job)
        .filter(
            Job.status == JobStatus.PENDING.value,
            Job.run_at <= (now or utcnow()),
        )
        .order_by(Job.run_at)
        .limit(limit)
    )
    if db.get_bind().dialect.name == "postgresql":
        query = query.with_for_update(skip_locked=True)

    jobs = query.all()
    for job in jobs:
        job.status = JobStatus.RUNNING.value
        job.attempts += 1
    db.commit()
    return jobs


def complete_job(db: Session, job: Job) -> Job:
    """Record a successful run."""
    job.status = JobStatus.COMPLETED.value
    job.completed_at = utcnow()
    job.last_error = None
    db.commit()
    return job


def fail_job(db: Session, job: Job, error: str) -> bool:
    """
    Record a failed run. Returns True when the job will be retried.

    Jobs with attempts left go back to pending; trigger jobs are created
    with max_attempts=1 and so end here as failed.
    """
    job.last_error = error[:MAX_ERROR_LENGTH]
    retry = job.attempts < job.max_attempts
    job.status = JobStatus.PENDING.value if retry else JobStatus.FAILED.value
    db.commit()
    return retry
