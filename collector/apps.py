"""
Collector application configuration.
"""

from django.apps import AppConfig


class CollectorConfig(AppConfig):
    """Configuration for the collector Django application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "collector"
    verbose_name = "Product Data Collector"

    def ready(self):
        """
        Connect worker lifecycle signals.

        The job queue is closed when a Celery worker shuts down.
        """
        from collector import signals  # noqa: F401
