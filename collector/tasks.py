"""
Celery tasks for the Product Data Collector.

- process_collection_job: Worker task that runs one collection job
- check_due_schedules: Periodic task that enqueues due recurring jobs
- clean_old_jobs: Periodic task that deletes expired job records
"""

import logging
from typing import Any, Dict, Optional

from asgiref.sync import async_to_sync
from celery import shared_task
from celery.exceptions import Ignore
from django.conf import settings
from django.utils import timezone

from collector.queue import get_job_queue, get_rate_limiter
from collector.services.collection_worker import CollectionWorker
from collector.services.results import JobFailure

logger = logging.getLogger(__name__)


def _retry_countdown(retries: int) -> float:
    """Exponential job-level backoff: base * 2^retries."""
    base = getattr(settings, "COLLECTOR_JOB_BACKOFF_SECONDS", 2)
    return base * (2 ** retries)


@shared_task(
    name="collector.tasks.process_collection_job",
    bind=True,
    acks_late=True,
)
def process_collection_job(
    self, job_data: Dict[str, Any], attempts: Optional[int] = None
) -> Optional[Dict[str, Any]]:
    """
    Worker task - runs one collection job.

    The task id is the job id. A job start slot is taken from the global
    rate limiter first; when the window is full the same message is sent
    again for the next window without counting as a retry.

    Args:
        job_data: {type, asin?, keyword?, limit?, country?}
        attempts: Total deliveries allowed for this job

    Returns:
        Handler output summary, or None when the job is suspended
    """
    job_id = self.request.id
    attempts = attempts or getattr(settings, "COLLECTOR_DEFAULT_JOB_ATTEMPTS", 3)

    wait = get_rate_limiter().acquire()
    if wait:
        logger.info(f"Job start limit reached, deferring job {job_id} by {wait:.1f}s")
        self.signature_from_request(countdown=wait, retries=self.request.retries).apply_async()
        raise Ignore()

    logger.info(
        f"Starting job {job_id} ({job_data.get('type')}), "
        f"attempt {self.request.retries + 1}/{attempts}"
    )

    worker = CollectionWorker()
    try:
        return async_to_sync(worker.process_job)(job_id, job_data)

    except JobFailure as e:
        if not e.retryable:
            logger.warning(f"Job {job_id} failed permanently ({e.kind.value}): {e}")
            raise
        logger.warning(f"Job {job_id} failed ({e.kind.value}), scheduling retry: {e}")
        raise self.retry(
            exc=e,
            countdown=_retry_countdown(self.request.retries),
            max_retries=attempts - 1,
        )

    except Exception as e:
        logger.error(f"Job {job_id} raised unexpected error, scheduling retry: {e}")
        raise self.retry(
            exc=e,
            countdown=_retry_countdown(self.request.retries),
            max_retries=attempts - 1,
        )


@shared_task(name="collector.tasks.check_due_schedules")
def check_due_schedules() -> Dict[str, Any]:
    """
    Periodic task to enqueue recurring jobs whose fire time has passed.

    Runs every minute via Celery Beat.

    Returns:
        Dict with the ids of the enqueued runs
    """
    now = timezone.now()
    job_ids = get_job_queue().enqueue_due_schedules(now)

    if job_ids:
        logger.info(f"Due schedule check complete: {len(job_ids)} jobs enqueued")

    return {
        "checked": True,
        "jobs_enqueued": len(job_ids),
        "job_ids": job_ids,
        "timestamp": now.isoformat(),
    }


@shared_task(name="collector.tasks.clean_old_jobs")
def clean_old_jobs() -> Dict[str, Any]:
    """
    Periodic task to delete finished job records past their retention.

    Runs hourly via Celery Beat.
    """
    cleaned = get_job_queue().clean_old_jobs()
    return {"cleaned": cleaned, "timestamp": timezone.now().isoformat()}
