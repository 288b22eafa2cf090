"""
Job queue management - Celery-backed collection queue.

Provides the producer-side queue wrapper, cron recurrence for scheduled
jobs and the global job start rate limiter.
"""

from .job_queue import (
    JobData,
    JobOptions,
    JobQueue,
    RepeatOptions,
    close_job_queue,
    get_job_queue,
)
from .rate_limiter import JobStartRateLimiter, get_rate_limiter
from .recurrence import next_fire_time, parse_cron_pattern

__all__ = [
    "JobData",
    "JobOptions",
    "JobQueue",
    "RepeatOptions",
    "close_job_queue",
    "get_job_queue",
    "JobStartRateLimiter",
    "get_rate_limiter",
    "next_fire_time",
    "parse_cron_pattern",
]
