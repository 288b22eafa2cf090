"""
Sentry error tracking for collection jobs.

- Breadcrumbs for job progress (job id, type, ASIN/keyword)
- Filters sensitive data (API keys, tokens) from attached context
- Captures job failures with tags for type and failure kind

Sentry itself is initialized in settings when SENTRY_DSN is set; without
a DSN the SDK calls below are no-ops.

Usage:
    from collector.monitoring import capture_job_error

    try:
        await worker.process_job(job_id, job_data)
    except Exception as e:
        capture_job_error(e, job_id=job_id, job_data=job_data)
"""

import logging
from typing import Any, Dict, Optional

import sentry_sdk

logger = logging.getLogger(__name__)

# Sensitive fields to filter from Sentry events
SENSITIVE_FIELDS = {
    "cookie",
    "api_key",
    "apikey",
    "api-key",
    "authorization",
    "password",
    "secret",
    "token",
}


def _filter_sensitive_data(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Filter sensitive data from a dictionary.

    Replaces values for keys that match sensitive field names, recursing
    into nested dicts.

    Args:
        data: Dictionary potentially containing sensitive data

    Returns:
        Dictionary with sensitive values replaced
    """
    if not isinstance(data, dict):
        return data

    filtered = {}
    for key, value in data.items():
        key_lower = str(key).lower()

        if any(sensitive in key_lower for sensitive in SENSITIVE_FIELDS):
            filtered[key] = "[Filtered]"
        elif isinstance(value, dict):
            filtered[key] = _filter_sensitive_data(value)
        else:
            filtered[key] = value

    return filtered


def add_job_breadcrumb(
    job_id: str,
    job_type: str,
    message: str = "Collection job",
    level: str = "info",
    extra_data: Optional[Dict[str, Any]] = None,
) -> None:
    """
    Add a breadcrumb to Sentry for job context.

    Args:
        job_id: Queue job id
        job_type: product, search, review or price_update
        message: Description of the step
        level: Log level (info, warning, error)
        extra_data: Additional context data (filtered)
    """
    breadcrumb_data = {
        "job_id": job_id,
        "job_type": job_type,
    }
    if extra_data:
        breadcrumb_data.update(_filter_sensitive_data(extra_data))

    try:
        sentry_sdk.add_breadcrumb(
            category="collection",
            message=message,
            level=level,
            data=breadcrumb_data,
        )
    except Exception as e:
        logger.warning(f"Failed to add Sentry breadcrumb: {e}")


def capture_job_error(
    error: Exception,
    job_id: Optional[str] = None,
    job_data: Optional[Dict[str, Any]] = None,
) -> None:
    """
    Capture a job failure to Sentry with job context.

    Args:
        error: The exception that ended the job
        job_id: Queue job id
        job_data: Job payload (filtered for sensitive fields)
    """
    job_data = job_data or {}
    job_type = str(job_data.get("type", "unknown"))
    kind = getattr(error, "kind", None)

    add_job_breadcrumb(
        job_id=job_id or "unknown",
        job_type=job_type,
        message=f"Error: {type(error).__name__}",
        level="error",
    )

    try:
        with sentry_sdk.new_scope() as scope:
            scope.set_tag("collector.job_type", job_type)
            if kind is not None:
                scope.set_tag("collector.failure_kind", getattr(kind, "value", str(kind)))
            if job_id:
                scope.set_extra("job_id", job_id)
            scope.set_extra("job_data", _filter_sensitive_data(job_data))

            sentry_sdk.capture_exception(error)

    except Exception as e:
        logger.warning(f"Failed to capture exception to Sentry: {e}")
