"""
Job Scheduler - producer side of the collection queue.

Creates job records alongside queue entries so that the API can report on
a job before a worker has picked it up, and manages recurring price
tracking and operator suspension.
"""

import logging
from typing import Any, Dict, List, Optional, Union

from django.db import transaction
from django.db.models import QuerySet
from django.utils import timezone

from collector.models import JobStatus, JobType, RecurringSchedule, ScrapeJob
from collector.queue import JobData, JobOptions, JobQueue, get_job_queue, next_fire_time
from collector.services.data_processor import get_data_processor, normalize_asin

logger = logging.getLogger(__name__)

# Manual triggers jump ahead of scheduled work
MANUAL_PRIORITY = 10

CANCELLED_MESSAGE = "Cancelled by user"


class JobStateError(Exception):
    """Operation not allowed in the job's current state."""


class JobScheduler:
    """
    Enqueues collection jobs and manages scheduled ones.

    Args:
        queue: JobQueue (defaults to the process-wide queue)
    """

    def __init__(self, queue: Optional[JobQueue] = None):
        self.queue = queue or get_job_queue()
        self.processor = get_data_processor()

    def trigger_manual_collection(self, job_data: Union[JobData, Dict[str, Any]]) -> str:
        """
        Enqueue a product, search or review job at manual priority.

        Args:
            job_data: {type, asin?, keyword?, limit?, country?}

        Returns:
            Job id

        Raises:
            ValueError: If the type is missing its required field
        """
        if isinstance(job_data, dict):
            job_data = JobData.from_dict(job_data)

        options = JobOptions(priority=MANUAL_PRIORITY)

        if job_data.type == JobType.PRODUCT and job_data.asin:
            job_id = self.queue.add_product_job(job_data.asin, options)
        elif job_data.type == JobType.SEARCH and job_data.keyword:
            job_id = self.queue.add_search_job(
                job_data.keyword, job_data.limit, job_data.country, options
            )
        elif job_data.type == JobType.REVIEW and job_data.asin:
            job_id = self.queue.add_review_job(job_data.asin, job_data.limit, options)
        else:
            raise ValueError("Invalid job data")

        # The worker may already have inserted the row for this id
        ScrapeJob.objects.get_or_create(
            id=job_id,
            defaults={
                "type": job_data.type,
                "status": JobStatus.PENDING,
                "input": job_data.to_dict(),
                "is_scheduled": False,
            },
        )

        logger.info(f"Manual {job_data.type} collection triggered as job {job_id}")
        return job_id

    def schedule_product_updates(
        self, asin: str, cron_pattern: str, tz_name: str = "UTC"
    ) -> str:
        """
        Track a product's price on a cron schedule.

        Args:
            asin: Product ASIN
            cron_pattern: e.g. "0 */6 * * *" for every 6 hours
            tz_name: Timezone the pattern is evaluated in

        Returns:
            Id of the scheduled job record

        Raises:
            ValueError: If the ASIN, pattern or timezone is invalid
        """
        if not self.processor.is_valid_asin(asin):
            raise ValueError(f"Invalid ASIN format: {asin}")

        return self.queue.add_recurring_price_job(normalize_asin(asin), cron_pattern, tz_name)

    def cancel_scheduled_job(self, job_id: str) -> bool:
        """
        Cancel one job by id.

        Deactivates its schedule, revokes its message if still waiting and
        marks the record failed.

        Returns:
            False if the job does not exist or has already finished
        """
        job = ScrapeJob.objects.filter(pk=job_id).first()
        if job is None or job.is_finished:
            return False

        RecurringSchedule.objects.filter(job_id=job_id).update(
            is_active=False, updated_at=timezone.now()
        )
        self.queue.remove_job(job_id)
        job.complete(success=False, error_message=CANCELLED_MESSAGE)

        logger.info(f"Cancelled job {job_id}")
        return True

    def stop_tracking(self, asin: str) -> int:
        """
        Cancel every scheduled price update for a product.

        Returns:
            Number of cancelled schedules
        """
        asin = normalize_asin(asin)
        job_ids = list(
            ScrapeJob.objects.filter(
                is_scheduled=True,
                type=JobType.PRICE_UPDATE,
                status__in=[JobStatus.PENDING, JobStatus.SUSPENDED],
                input__asin=asin,
            ).values_list("id", flat=True)
        )
        return sum(1 for job_id in job_ids if self.cancel_scheduled_job(job_id))

    def suspend_job(self, job_id: str) -> Optional[ScrapeJob]:
        """
        Suspend a job that has not finished.

        A waiting message stays in the queue; the worker skips it on
        dequeue. A job that is already running is not interrupted.

        Returns:
            The job, or None if it does not exist

        Raises:
            JobStateError: If the job has finished
        """
        job = ScrapeJob.objects.filter(pk=job_id).first()
        if job is None:
            return None
        if job.is_finished:
            raise JobStateError(f"Cannot suspend a {job.status} job")
        if job.status == JobStatus.SUSPENDED:
            return job

        with transaction.atomic():
            job.status = JobStatus.SUSPENDED
            job.save(update_fields=["status", "updated_at"])
            RecurringSchedule.objects.filter(job_id=job_id).update(
                is_active=False, updated_at=timezone.now()
            )

        logger.info(f"Suspended job {job_id}")
        return job

    def resume_job(self, job_id: str) -> Optional[ScrapeJob]:
        """
        Resume a suspended job.

        Scheduled jobs get their schedule back. A one-off job whose message
        was discarded by a worker while suspended is enqueued again under
        the same id; otherwise its message is still queued and runs as is.

        Returns:
            The job, or None if it does not exist

        Raises:
            JobStateError: If the job is not suspended
        """
        with transaction.atomic():
            job = ScrapeJob.objects.select_for_update().filter(pk=job_id).first()
            if job is None:
                return None
            if job.status != JobStatus.SUSPENDED:
                raise JobStateError(f"Job is {job.status}, not suspended")

            dropped = job.dropped_while_suspended
            job.status = JobStatus.PENDING
            job.dropped_while_suspended = False
            job.save(update_fields=["status", "dropped_while_suspended", "updated_at"])

        schedule = RecurringSchedule.objects.filter(job_id=job_id).first()
        if schedule is not None:
            now = timezone.now()
            schedule.is_active = True
            if schedule.next_run_at <= now:
                schedule.next_run_at = next_fire_time(schedule.pattern, schedule.timezone, now)
            schedule.save(update_fields=["is_active", "next_run_at", "updated_at"])
            logger.info(f"Resumed schedule for job {job_id}, next run {schedule.next_run_at}")
            return job

        if dropped:
            self.queue.add(
                JobData.from_dict({**job.input, "type": job.type}),
                JobOptions(job_id=job_id, priority=MANUAL_PRIORITY),
            )
            logger.info(f"Resumed job {job_id}, re-enqueued")
        else:
            logger.info(f"Resumed job {job_id}, message still queued")
        return job

    def get_scheduled_jobs(self) -> QuerySet:
        return (
            ScrapeJob.objects.filter(is_scheduled=True)
            .select_related("schedule")
            .order_by("-created_at")
        )

    def get_job_history(self, limit: int = 50) -> List[ScrapeJob]:
        return list(ScrapeJob.objects.order_by("-created_at")[:limit])
