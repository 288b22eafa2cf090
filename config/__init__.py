"""
Project configuration package.

The Celery app is imported here so that it is set as the current app when
Django starts and @shared_task binds to it.
"""

from .celery import app as celery_app

__all__ = ("celery_app",)
