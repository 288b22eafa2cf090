"""
Usage Tracker - monthly ScraperAPI call budget.

Tracks calls per calendar month in the ApiUsage table and refuses calls
once the plan limit is reached. The month key is derived from the clock on
every call, so a new month starts with a fresh record automatically.

Increments are single UPDATE statements with an F() expression; concurrent
workers may briefly overshoot the limit by a call or two, which is
acceptable for a monthly budget.
"""

import logging
from typing import Any, Dict, Optional

from django.conf import settings
from django.db.models import F
from django.utils import timezone

logger = logging.getLogger(__name__)


class UsageTracker:
    """
    Tracks ScraperAPI usage against the monthly plan limit.

    Args:
        monthly_limit: Calls allowed per month; defaults to
            settings.SCRAPERAPI_MONTHLY_LIMIT
    """

    # Warn at 80% usage
    WARNING_THRESHOLD = 0.80

    def __init__(self, monthly_limit: Optional[int] = None):
        self.monthly_limit = (
            monthly_limit
            if monthly_limit is not None
            else getattr(settings, "SCRAPERAPI_MONTHLY_LIMIT", 1000)
        )

    def _get_current_month(self) -> str:
        """Get current month key (YYYY-MM)."""
        return timezone.now().strftime("%Y-%m")

    def _get_or_create_usage(self):
        """Get or create the ApiUsage record for the current month."""
        from collector.models import ApiUsage

        month_key = self._get_current_month()

        usage, created = ApiUsage.objects.get_or_create(
            month=month_key,
            defaults={
                "calls_used": 0,
                "calls_limit": self.monthly_limit,
            },
        )

        if created:
            logger.info(f"Created usage record for {month_key} (limit {self.monthly_limit})")

        return usage

    def can_make_call(self) -> bool:
        """True while this month's used count is below the limit."""
        usage = self._get_or_create_usage()
        return usage.calls_used < usage.calls_limit

    def record_usage(self, count: int = 1) -> None:
        """
        Record API calls for the current month.

        Args:
            count: Number of calls to record (default 1)
        """
        from collector.models import ApiUsage

        usage = self._get_or_create_usage()
        ApiUsage.objects.filter(pk=usage.pk).update(
            calls_used=F("calls_used") + count,
            last_used=timezone.now(),
        )
        logger.debug(f"Recorded {count} ScraperAPI calls for {usage.month}")

        self.check_usage_warning()

    def get_remaining_calls(self) -> int:
        """Number of calls left this month (never negative)."""
        usage = self._get_or_create_usage()
        return max(0, usage.calls_limit - usage.calls_used)

    def check_usage_warning(self) -> None:
        """Log a warning once usage passes the warning threshold."""
        usage = self._get_or_create_usage()
        limit = usage.calls_limit

        if limit <= 0:
            return

        usage_ratio = usage.calls_used / limit

        if usage_ratio >= self.WARNING_THRESHOLD:
            logger.warning(
                f"ScraperAPI usage at {usage_ratio * 100:.1f}% "
                f"({max(0, limit - usage.calls_used)} remaining of {limit})"
            )

    def get_usage_stats(self) -> Dict[str, Any]:
        """
        Usage summary for the current month.

        Returns:
            Dict with month, calls_used, calls_limit, remaining, percentage_used
        """
        usage = self._get_or_create_usage()
        return {
            "month": usage.month,
            "calls_used": usage.calls_used,
            "calls_limit": usage.calls_limit,
            "remaining": usage.remaining,
            "percentage_used": usage.percentage_used,
        }


_usage_tracker: Optional[UsageTracker] = None


def get_usage_tracker() -> UsageTracker:
    """Get the global UsageTracker instance."""
    global _usage_tracker
    if _usage_tracker is None:
        _usage_tracker = UsageTracker()
    return _usage_tracker
