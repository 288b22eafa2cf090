"""
Signal handlers for the collector application.

Active Signals:
- Celery worker_shutdown -> close the process-wide JobQueue
"""

import logging

from celery.signals import worker_shutdown

from collector.queue import close_job_queue

logger = logging.getLogger(__name__)


@worker_shutdown.connect
def close_queue_on_worker_shutdown(sender=None, **kwargs):
    """Release queue connections once Celery has drained in-flight tasks."""
    logger.info("Worker shutting down, closing job queue")
    close_job_queue()
