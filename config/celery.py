"""
Celery configuration for the Product Data Collector.

Collection jobs run on the "collection" queue; housekeeping and the
recurring-schedule sweep run on "default".
"""

import os
from celery import Celery
from celery.schedules import crontab

# Set the default Django settings module for the 'celery' program.
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("product_collector")

# Using a string here means the worker doesn't have to serialize
# the configuration object to child processes.
# - namespace='CELERY' means all celery-related configuration keys
#   should have a `CELERY_` prefix.
app.config_from_object("django.conf:settings", namespace="CELERY")

# Load task modules from all registered Django apps.
app.autodiscover_tasks()

app.conf.task_queues = {
    "collection": {
        "exchange": "collection",
        "routing_key": "collection",
    },
    "default": {
        "exchange": "default",
        "routing_key": "default",
    },
}

app.conf.task_default_queue = "default"
app.conf.task_default_exchange = "default"
app.conf.task_default_routing_key = "default"

app.conf.beat_schedule = {
    # Enqueue recurring price updates whose cron pattern is due
    "check-due-schedules-every-minute": {
        "task": "collector.tasks.check_due_schedules",
        "schedule": crontab(),
    },
    "clean-old-jobs-hourly": {
        "task": "collector.tasks.clean_old_jobs",
        "schedule": crontab(minute=15),
    },
}
