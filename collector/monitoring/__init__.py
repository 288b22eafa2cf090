"""
Monitoring for the collector.

Sentry error tracking with job context.
"""

from .sentry_integration import add_job_breadcrumb, capture_job_error

__all__ = [
    "add_job_breadcrumb",
    "capture_job_error",
]
