"""
Collector service views.

Health check endpoint for monitoring and load balancer checks.
"""

import logging

from django.db import connection
from django.http import JsonResponse
from django.utils import timezone

from collector.models import JobStatus, ScrapeJob

logger = logging.getLogger(__name__)


def get_redis_connection():
    """
    Get Redis connection for health check.

    Returns:
        Redis client if the cache is django-redis backed, None otherwise.
    """
    from django.core.cache import cache

    if hasattr(cache, "client"):
        return cache.client.get_client()
    return None


def get_celery_worker_count() -> int:
    """
    Get the count of active Celery workers.

    Returns:
        Number of workers answering the inspect broadcast.
    """
    from config.celery import app as celery_app

    active = celery_app.control.inspect(timeout=1.0).active()
    return len(active) if active else 0


def health_check(request):
    """
    Health check endpoint for the collector service.

    Endpoint: GET /api/health/
    No authentication required (for load balancer checks).

    Response fields:
        - status: "healthy" or "unhealthy"
        - database: "connected" or "error"
        - redis: "connected", "not_configured", or "error"
        - celery_workers: integer count of active workers
        - running_jobs: job records currently running
        - last_job_completed: ISO timestamp of the latest finished job

    Returns:
        JsonResponse: HTTP 200 for healthy, HTTP 503 for unhealthy
    """
    status = "healthy"
    http_status = 200

    database_status = "connected"
    try:
        connection.ensure_connection()
    except Exception as e:
        logger.error(f"Health check database error: {e}")
        database_status = "error"
        status = "unhealthy"
        http_status = 503

    # Redis and workers degrade gracefully
    redis_status = "not_configured"
    try:
        redis_client = get_redis_connection()
        if redis_client is not None:
            redis_status = "connected" if redis_client.ping() else "error"
    except Exception as e:
        logger.warning(f"Health check redis error: {e}")
        redis_status = "error"

    celery_workers = 0
    try:
        celery_workers = get_celery_worker_count()
    except Exception as e:
        logger.warning(f"Health check could not inspect workers: {e}")

    running_jobs = 0
    last_job_completed = None
    if database_status == "connected":
        running_jobs = ScrapeJob.objects.filter(status=JobStatus.RUNNING).count()
        last = (
            ScrapeJob.objects.filter(completed_at__isnull=False)
            .order_by("-completed_at")
            .values_list("completed_at", flat=True)
            .first()
        )
        last_job_completed = last.isoformat() if last else None

    return JsonResponse(
        {
            "status": status,
            "database": database_status,
            "redis": redis_status,
            "celery_workers": celery_workers,
            "running_jobs": running_jobs,
            "last_job_completed": last_job_completed,
            "timestamp": timezone.now().isoformat(),
        },
        status=http_status,
    )
