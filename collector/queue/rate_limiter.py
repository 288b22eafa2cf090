"""
Job start rate limiter.

Caps how many collection jobs may start per fixed time window across all
worker processes. The limit protects the scraping API's own rate limit and
is independent of worker concurrency.

Uses the Django cache for distributed counting (Redis in production).
"""

import logging
import time
from typing import Optional

from django.conf import settings
from django.core.cache import cache

logger = logging.getLogger(__name__)


class JobStartRateLimiter:
    """
    Fixed-window counter of job starts.

    Limits are configurable via settings:
    - COLLECTOR_RATE_LIMIT_MAX_STARTS: starts per window (default 10)
    - COLLECTOR_RATE_LIMIT_WINDOW_SECONDS: window length (default 60)

    Usage:
        limiter = JobStartRateLimiter()
        wait = limiter.acquire()
        if wait:
            ...  # re-queue the job with countdown=wait
    """

    def __init__(
        self,
        max_starts: Optional[int] = None,
        window_seconds: Optional[int] = None,
        cache_prefix: str = "collector:job-starts",
    ):
        self.max_starts = (
            max_starts
            if max_starts is not None
            else getattr(settings, "COLLECTOR_RATE_LIMIT_MAX_STARTS", 10)
        )
        self.window_seconds = (
            window_seconds
            if window_seconds is not None
            else getattr(settings, "COLLECTOR_RATE_LIMIT_WINDOW_SECONDS", 60)
        )
        self.cache_prefix = cache_prefix

    def _window_index(self, now: float) -> int:
        return int(now // self.window_seconds)

    def _window_key(self, index: int) -> str:
        """Cache key like "collector:job-starts:28493012"."""
        return f"{self.cache_prefix}:{index}"

    def acquire(self, now: Optional[float] = None) -> float:
        """
        Try to take a start slot in the current window.

        Args:
            now: Current epoch seconds (injectable for tests)

        Returns:
            0 if the job may start, else seconds until the next window opens
        """
        if self.max_starts <= 0:
            return 0.0

        now = time.time() if now is None else now
        index = self._window_index(now)
        key = self._window_key(index)

        # add() is a no-op when the key exists, so the first start of a
        # window creates the counter and everyone increments atomically
        cache.add(key, 0, timeout=self.window_seconds * 2)
        try:
            count = cache.incr(key)
        except ValueError:
            cache.set(key, 1, timeout=self.window_seconds * 2)
            count = 1

        if count <= self.max_starts:
            return 0.0

        wait = (index + 1) * self.window_seconds - now
        logger.debug(
            f"Job start limit reached ({count - 1}/{self.max_starts}), next window in {wait:.1f}s"
        )
        return max(wait, 0.001)

    def get_current_count(self, now: Optional[float] = None) -> int:
        now = time.time() if now is None else now
        return cache.get(self._window_key(self._window_index(now)), 0)


_rate_limiter: Optional[JobStartRateLimiter] = None


def get_rate_limiter() -> JobStartRateLimiter:
    """Get the global JobStartRateLimiter instance."""
    global _rate_limiter
    if _rate_limiter is None:
        _rate_limiter = JobStartRateLimiter()
    return _rate_limiter
