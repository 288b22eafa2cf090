"""
Cron-style recurrence for scheduled jobs.

Patterns use the five standard fields (minute hour day-of-month month
day-of-week) and are parsed with Celery's crontab parser, so they accept
the same syntax as the beat schedule: ranges, steps, lists and day names.
As in Celery, day-of-month and day-of-week must both match.
"""

from datetime import datetime, timezone as dt_timezone, tzinfo
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from celery.schedules import ParseException, crontab
from django.utils import timezone


class ZonedCrontab(crontab):
    """
    Crontab evaluated in a fixed timezone rather than the app's.

    Reference times are passed in as aware datetimes in ``zone`` and the
    schedule never converts them, so hours and days match local wall time.
    """

    def __init__(self, zone: tzinfo = dt_timezone.utc, **kwargs):
        self.zone = zone
        super().__init__(**kwargs)

    @property
    def tz(self):
        return self.zone

    def to_local(self, dt: datetime) -> datetime:
        return dt


def parse_cron_pattern(pattern: str, zone: tzinfo = dt_timezone.utc) -> ZonedCrontab:
    """
    Parse a five-field cron pattern.

    Raises:
        ValueError: If the pattern is malformed
    """
    fields = (pattern or "").split()
    if len(fields) != 5:
        raise ValueError(
            f"Cron pattern must have 5 fields (minute hour day month weekday): '{pattern}'"
        )

    minute, hour, day_of_month, month_of_year, day_of_week = fields
    try:
        return ZonedCrontab(
            zone,
            minute=minute,
            hour=hour,
            day_of_month=day_of_month,
            month_of_year=month_of_year,
            day_of_week=day_of_week,
        )
    except (ParseException, ValueError) as e:
        raise ValueError(f"Invalid cron pattern '{pattern}': {e}") from e


def get_zone(name: str) -> ZoneInfo:
    """
    Raises:
        ValueError: If the timezone name is unknown
    """
    try:
        return ZoneInfo(name or "UTC")
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValueError(f"Unknown timezone '{name}'") from e


def next_fire_time(pattern: str, tz_name: str = "UTC", after: Optional[datetime] = None) -> datetime:
    """
    Next time a cron pattern fires, strictly after ``after``.

    Celery's crontab does the calendar arithmetic: ``after`` is both the
    last run and the current time, so the remaining estimate is the gap to
    the following fire time.

    Args:
        pattern: Five-field cron pattern, e.g. "0 */6 * * *"
        tz_name: IANA timezone the pattern is evaluated in
        after: Reference time (defaults to now)

    Returns:
        Aware datetime in UTC

    Raises:
        ValueError: If the pattern or timezone is invalid, or the pattern
            never fires
    """
    zone = get_zone(tz_name)
    schedule = parse_cron_pattern(pattern, zone)

    local_after = (after or timezone.now()).astimezone(zone)
    schedule.nowfun = lambda: local_after

    try:
        remaining = schedule.remaining_estimate(local_after)
    except RuntimeError as e:
        # crontab gives up rolling over dates that never exist
        raise ValueError(f"Cron pattern '{pattern}' does not fire: {e}") from e

    return local_after.astimezone(dt_timezone.utc) + remaining
