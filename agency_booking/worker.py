"""
Background worker for published trigger events.

Usage:
    python -m agency_booking.worker

Polls the jobs table, claims due jobs in batches and runs the handler
registered for each job type. Run it as its own process next to the API.
"""

import asyncio
import logging

from agency_booking.core.config import settings
from agency_booking.core.structured_logging import build_log_context
from agency_booking.db.session import SessionLocal
from agency_booking.jobs.registry import resolve_job_handler
from agency_booking.services import job_service

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

POLL_INTERVAL_SECONDS = settings.WORKER_POLL_INTERVAL
BATCH_SIZE = settings.WORKER_BATCH_SIZE


async def run_job(db, job) -> None:
    handler = resolve_job_handler(job.job_type)
    await handler(db, job)


async def process_pending_jobs(db, limit: int = BATCH_SIZE) -> int:
    """Claim and run one batch of due jobs. Returns the batch size."""
    jobs = job_service.claim_due_jobs(db, limit=limit)
    if jobs:
        logger.info("Claimed %s job(s)", len(jobs))

    for job in jobs:
        context = build_log_context(tenant_id=job.tenant_id, stage="worker")
        try:
            await run_job(db, job)
        except Exception as e:
            db.rollback()
            retry = job_service.fail_job(db, job, str(e))
            logger.error(
                "Job %s (%s) failed on attempt %s%s: %s",
                job.id,
                job.job_type,
                job.attempts,
                ", will retry" if retry else "",
                type(e).__name__,
                extra=context,
            )
            continue

        job_service.complete_job(db, job)
        logger.info("Job %s (%s) completed", job.id, job.job_type, extra=context)

    return len(jobs)


async def worker_loop() -> None:
    logger.info(
        "Worker starting (poll interval: %ss, batch size: %s)", POLL_INTERVAL_SECONDS, BATCH_SIZE
    )

    while True:
        with SessionLocal() as db:
            try:
                processed = await process_pending_jobs(db, limit=BATCH_SIZE)
            except Exception:
                logger.exception("Worker batch aborted")
                processed = 0

        # Drain a full batch without waiting
        if processed < BATCH_SIZE:
            await asyncio.sleep(POLL_INTERVAL_SECONDS)


def main() -> None:
    try:
        asyncio.run(worker_loop())
    except KeyboardInterrupt:
        logger.info("Worker shutting down")


if __name__ == "__main__":
    main()
