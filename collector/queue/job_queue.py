"""
Job Queue - thin wrapper over the Celery "collection" queue.

Every job is a ``process_collection_job`` task whose Celery task id is
also the primary key of its ScrapeJob record, so broker state and the
database can always be joined by id.

Callers pass "higher is more urgent" (manual triggers use 10, background
work 1) and the value is inverted onto the Redis transport's 0-9 scale
where 0 is served first.

Recurring jobs are stored as RecurringSchedule rows. Celery beat calls
``enqueue_due_schedules`` every minute, which enqueues each due schedule
under its pre-allocated ``next_job_id``.
"""

import logging
import uuid
from dataclasses import asdict, dataclass
from datetime import timedelta
from typing import Any, Dict, List, Optional

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from collector.models import JobStatus, JobType, RecurringSchedule, ScrapeJob
from collector.queue.recurrence import next_fire_time

logger = logging.getLogger(__name__)

COLLECTION_QUEUE = "collection"

# Job states before a worker has picked the job up
WAITING_STATES = {"waiting", "delayed"}

CELERY_STATE_MAP = {
    "PENDING": "waiting",
    "RECEIVED": "waiting",
    "RETRY": "delayed",
    "STARTED": "active",
    "SUCCESS": "completed",
    "FAILURE": "failed",
    "REVOKED": "removed",
}

RECORD_STATE_MAP = {
    JobStatus.PENDING: "waiting",
    JobStatus.RUNNING: "active",
    JobStatus.COMPLETED: "completed",
    JobStatus.FAILED: "failed",
    JobStatus.SUSPENDED: "suspended",
}


@dataclass
class JobData:
    """Payload consumed by the collection worker."""

    type: str
    asin: Optional[str] = None
    keyword: Optional[str] = None
    limit: Optional[int] = None
    country: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {key: value for key, value in asdict(self).items() if value is not None}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "JobData":
        return cls(
            type=data.get("type"),
            asin=data.get("asin"),
            keyword=data.get("keyword"),
            limit=data.get("limit"),
            country=data.get("country"),
        )


@dataclass
class RepeatOptions:
    """Cron recurrence descriptor."""

    pattern: str
    timezone: str = "UTC"


@dataclass
class JobOptions:
    """
    Enqueue options.

    Attributes:
        priority: Higher runs first (1 = background, 10 = manual trigger)
        delay: Seconds to wait before the job becomes runnable
        attempts: Total deliveries before the job is left failed
        repeat: Store as a recurring schedule instead of enqueuing once
        job_id: Reuse an existing id (resume, scheduled runs)
    """

    priority: int = 1
    delay: Optional[float] = None
    attempts: Optional[int] = None
    repeat: Optional[RepeatOptions] = None
    job_id: Optional[str] = None


class JobQueue:
    """
    Producer-side access to collection jobs.

    Args:
        app: Celery app (defaults to the project app)
    """

    def __init__(self, app=None):
        if app is None:
            from config.celery import app as celery_app

            app = celery_app
        self.app = app
        self.default_attempts = getattr(settings, "COLLECTOR_DEFAULT_JOB_ATTEMPTS", 3)
        self._connection = None

    # ============================================================
    # Enqueue
    # ============================================================

    @staticmethod
    def _broker_priority(priority: Optional[int]) -> int:
        """Map "higher is more urgent" onto Redis' 0 (first) to 9 (last)."""
        priority = 1 if priority is None else int(priority)
        return 9 - max(0, min(priority, 9))

    def add(self, job_data: JobData, options: Optional[JobOptions] = None) -> str:
        """
        Enqueue a collection job.

        Args:
            job_data: Job payload
            options: Priority, delay, attempts or recurrence

        Returns:
            Job id (also the job record's primary key)
        """
        from collector.tasks import process_collection_job

        options = options or JobOptions()
        if options.repeat is not None:
            return self.add_recurring(job_data, options.repeat)

        job_id = options.job_id or str(uuid.uuid4())
        attempts = options.attempts or self.default_attempts

        process_collection_job.apply_async(
            kwargs={"job_data": job_data.to_dict(), "attempts": attempts},
            task_id=job_id,
            priority=self._broker_priority(options.priority),
            countdown=options.delay or None,
            queue=COLLECTION_QUEUE,
        )

        logger.info(
            f"Enqueued {job_data.type} job {job_id} "
            f"(priority={options.priority}, attempts={attempts})"
        )
        return job_id

    def add_product_job(self, asin: str, options: Optional[JobOptions] = None) -> str:
        return self.add(JobData(type=JobType.PRODUCT.value, asin=asin), options)

    def add_search_job(
        self,
        keyword: str,
        limit: Optional[int] = None,
        country: Optional[str] = None,
        options: Optional[JobOptions] = None,
    ) -> str:
        return self.add(
            JobData(type=JobType.SEARCH.value, keyword=keyword, limit=limit, country=country),
            options,
        )

    def add_review_job(
        self, asin: str, limit: Optional[int] = None, options: Optional[JobOptions] = None
    ) -> str:
        return self.add(JobData(type=JobType.REVIEW.value, asin=asin, limit=limit), options)

    def add_recurring_price_job(self, asin: str, pattern: str, tz_name: str = "UTC") -> str:
        return self.add_recurring(
            JobData(type=JobType.PRICE_UPDATE.value, asin=asin), RepeatOptions(pattern, tz_name)
        )

    def add_recurring(self, job_data: JobData, repeat: RepeatOptions) -> str:
        """
        Store a recurring job.

        Creates the scheduled job record (pending, is_scheduled) and its
        RecurringSchedule in one transaction.

        Raises:
            ValueError: If the cron pattern or timezone is invalid
        """
        first_run = next_fire_time(repeat.pattern, repeat.timezone)

        job_id = str(uuid.uuid4())
        payload = job_data.to_dict()

        with transaction.atomic():
            job = ScrapeJob.objects.create(
                id=job_id,
                type=job_data.type,
                status=JobStatus.PENDING,
                input={**payload, "cron_pattern": repeat.pattern, "timezone": repeat.timezone},
                is_scheduled=True,
            )
            RecurringSchedule.objects.create(
                job=job,
                job_type=job_data.type,
                payload=payload,
                pattern=repeat.pattern,
                timezone=repeat.timezone,
                next_job_id=str(uuid.uuid4()),
                next_run_at=first_run,
            )

        logger.info(
            f"Scheduled recurring {job_data.type} job {job_id} "
            f"('{repeat.pattern}' {repeat.timezone}), first run at {first_run.isoformat()}"
        )
        return job_id

    def enqueue_due_schedules(self, now=None) -> List[str]:
        """
        Enqueue every active schedule whose fire time has passed.

        Each run gets the schedule's pre-allocated id; the id is then
        rotated and the next fire time computed from ``now``.

        Returns:
            Ids of the enqueued runs
        """
        now = now or timezone.now()
        enqueued = []

        due = RecurringSchedule.objects.filter(is_active=True, next_run_at__lte=now)
        for schedule in due:
            run_id = schedule.next_job_id
            try:
                self.add(
                    JobData.from_dict({**schedule.payload, "type": schedule.job_type}),
                    JobOptions(job_id=run_id),
                )
            except Exception as e:
                logger.error(f"Failed to enqueue scheduled run for job {schedule.job_id}: {e}")
                continue

            schedule.next_job_id = str(uuid.uuid4())
            schedule.last_run_at = now
            schedule.run_count += 1
            try:
                schedule.next_run_at = next_fire_time(schedule.pattern, schedule.timezone, now)
            except ValueError as e:
                logger.error(f"Deactivating schedule for job {schedule.job_id}: {e}")
                schedule.is_active = False
            schedule.save(
                update_fields=[
                    "next_job_id", "last_run_at", "run_count", "next_run_at",
                    "is_active", "updated_at",
                ]
            )
            enqueued.append(run_id)

        return enqueued

    # ============================================================
    # Inspection
    # ============================================================

    def get_job(self, job_id: str) -> Optional[ScrapeJob]:
        return ScrapeJob.objects.filter(pk=job_id).first()

    def get_job_state(self, job_id: str) -> Optional[Dict[str, Any]]:
        """
        Combined broker and record view of a job.

        Returns:
            {id, state, data, progress, return_value, failed_reason,
            processed_on, finished_on}, or None when neither the result
            backend nor the job records know the id
        """
        job = self.get_job(job_id)
        result = self.app.AsyncResult(job_id)
        celery_state = result.state

        if job is None and celery_state == "PENDING":
            return None

        if job is not None and (job.status == JobStatus.SUSPENDED or celery_state == "PENDING"):
            state = RECORD_STATE_MAP.get(job.status, job.status)
        else:
            state = CELERY_STATE_MAP.get(celery_state, celery_state.lower())

        data = job.input if job is not None else (result.kwargs or {}).get("job_data")
        return_value = job.output if job is not None else None
        failed_reason = job.error if job is not None else None
        if return_value is None and celery_state == "SUCCESS":
            return_value = result.result
        if failed_reason is None and celery_state == "FAILURE":
            failed_reason = str(result.result)

        return {
            "id": job_id,
            "state": state,
            "data": data,
            "progress": 100 if state in ("completed", "failed") else 0,
            "return_value": return_value,
            "failed_reason": failed_reason,
            "processed_on": job.started_at if job is not None else None,
            "finished_on": job.completed_at if job is not None else result.date_done,
        }

    def remove_job(self, job_id: str) -> bool:
        """
        Revoke a job that has not been picked up yet.

        Returns:
            True if the job was revoked
        """
        state = self.get_job_state(job_id)
        if state is None:
            return False
        if state["state"] not in WAITING_STATES:
            logger.info(f"Job {job_id} is {state['state']}, not removing from queue")
            return False

        self.app.control.revoke(job_id)
        logger.info(f"Revoked waiting job {job_id}")
        return True

    def _get_connection(self):
        if self._connection is None:
            self._connection = self.app.connection_for_read()
        return self._connection

    def _count_waiting(self) -> int:
        """Messages sitting in the collection queue on the broker."""
        try:
            with self._get_connection().channel() as channel:
                _, count, _ = channel.queue_declare(COLLECTION_QUEUE, passive=True)
                return count
        except Exception as e:
            logger.warning(f"Could not read broker queue length: {e}")
            return ScrapeJob.objects.filter(status=JobStatus.PENDING, is_scheduled=False).count()

    def _count_inspected(self, method: str) -> int:
        """Tasks reported by live workers (active or ETA-scheduled)."""
        try:
            replies = getattr(self.app.control.inspect(timeout=1.0), method)() or {}
        except Exception as e:
            logger.warning(f"Worker inspect '{method}' failed: {e}")
            return 0
        return sum(
            1
            for tasks in replies.values()
            for task in tasks
            if (task.get("request", task).get("delivery_info") or {}).get("routing_key")
            in (None, COLLECTION_QUEUE)
        )

    def get_queue_stats(self) -> Dict[str, int]:
        """
        Counts of waiting, active, completed, failed and delayed jobs.

        Completed and failed come from the job records; the others from
        the broker and live workers.
        """
        stats = {
            "waiting": self._count_waiting(),
            "active": self._count_inspected("active"),
            "completed": ScrapeJob.objects.filter(status=JobStatus.COMPLETED).count(),
            "failed": ScrapeJob.objects.filter(status=JobStatus.FAILED).count(),
            "delayed": self._count_inspected("scheduled"),
        }
        stats["total"] = sum(stats.values())
        return stats

    # ============================================================
    # Housekeeping
    # ============================================================

    def clean_old_jobs(self, grace: Optional[timedelta] = None) -> int:
        """
        Delete finished job records past their retention.

        Args:
            grace: Retention for both completed and failed records. Without
                it, completed records are kept for
                COLLECTOR_COMPLETED_JOB_RETENTION_HOURS and failed ones for
                COLLECTOR_FAILED_JOB_RETENTION_DAYS.

        Returns:
            Number of deleted job records
        """
        now = timezone.now()
        if grace is not None:
            completed_cutoff = failed_cutoff = now - grace
        else:
            completed_cutoff = now - timedelta(
                hours=getattr(settings, "COLLECTOR_COMPLETED_JOB_RETENTION_HOURS", 24)
            )
            failed_cutoff = now - timedelta(
                days=getattr(settings, "COLLECTOR_FAILED_JOB_RETENTION_DAYS", 7)
            )

        base = ScrapeJob.objects.filter(is_scheduled=False)
        cleaned = 0
        for status, cutoff in (
            (JobStatus.COMPLETED, completed_cutoff),
            (JobStatus.FAILED, failed_cutoff),
        ):
            old = base.filter(status=status, completed_at__lt=cutoff)
            count = old.count()
            old.delete()
            cleaned += count

        if cleaned:
            logger.info(f"Cleaned {cleaned} old job records")
        return cleaned

    def close(self) -> None:
        """Release the broker connection held for statistics."""
        if self._connection is not None:
            self._connection.release()
            self._connection = None
            logger.info("Job queue connection closed")


_job_queue: Optional[JobQueue] = None


def get_job_queue() -> JobQueue:
    """Get the process-wide JobQueue, creating it on first use."""
    global _job_queue
    if _job_queue is None:
        _job_queue = JobQueue()
    return _job_queue


def close_job_queue() -> None:
    """Close and drop the process-wide JobQueue."""
    global _job_queue
    if _job_queue is not None:
        _job_queue.close()
        _job_queue = None
