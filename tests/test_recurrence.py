"""
Tests for cron pattern parsing and fire time computation.
"""

from datetime import datetime, timezone as dt_timezone

import pytest

from collector.queue.recurrence import next_fire_time, parse_cron_pattern


def utc(*args):
    return datetime(*args, tzinfo=dt_timezone.utc)


class TestParseCronPattern:

    def test_valid_pattern(self):
        schedule = parse_cron_pattern("0 */6 * * *")

        assert schedule.minute == {0}
        assert schedule.hour == {0, 6, 12, 18}

    @pytest.mark.parametrize("pattern", [
        "",
        "* * *",
        "0 0 * * * *",
        "61 * * * *",
        "0 25 * * *",
        "0 0 * * funday",
    ])
    def test_invalid_patterns(self, pattern):
        with pytest.raises(ValueError):
            parse_cron_pattern(pattern)


class TestNextFireTime:

    def test_every_six_hours(self):
        assert next_fire_time("0 */6 * * *", after=utc(2025, 1, 15, 7, 30)) == utc(2025, 1, 15, 12, 0)

    def test_strictly_after_reference(self):
        assert next_fire_time("0 */6 * * *", after=utc(2025, 1, 15, 12, 0)) == utc(2025, 1, 15, 18, 0)

    def test_rolls_over_to_next_day(self):
        assert next_fire_time("15 3 * * *", after=utc(2025, 1, 15, 4, 0)) == utc(2025, 1, 16, 3, 15)

    def test_weekday_names(self):
        # 2025-01-15 is a Wednesday
        assert next_fire_time("30 8 * * mon", after=utc(2025, 1, 15)) == utc(2025, 1, 20, 8, 30)

    def test_day_of_month(self):
        assert next_fire_time("0 0 1 * *", after=utc(2025, 1, 15)) == utc(2025, 2, 1, 0, 0)

    def test_timezone(self):
        # 09:00 in New York during standard time is 14:00 UTC
        fire = next_fire_time("0 9 * * *", "America/New_York", after=utc(2025, 1, 15, 12, 0))

        assert fire == utc(2025, 1, 15, 14, 0)
        assert fire.tzinfo == dt_timezone.utc

    def test_day_of_month_in_timezone(self):
        # 23:00 on the 15th in New York is already the 16th in UTC
        fire = next_fire_time("0 0 16 * *", "America/New_York", after=utc(2025, 1, 16, 4, 0))

        assert fire == utc(2025, 1, 16, 5, 0)

    def test_daylight_saving_change(self):
        # Clocks go forward overnight: 09:30 EST before, 09:30 EDT after
        fire = next_fire_time("30 9 * * *", "America/New_York", after=utc(2025, 3, 8, 15, 0))

        assert fire == utc(2025, 3, 9, 13, 30)

    def test_unknown_timezone(self):
        with pytest.raises(ValueError, match="Unknown timezone"):
            next_fire_time("0 * * * *", "Mars/Olympus_Mons")

    def test_pattern_that_never_fires(self):
        with pytest.raises(ValueError, match="does not fire"):
            next_fire_time("0 0 30 2 *", after=utc(2025, 1, 1))

    def test_defaults_to_now(self):
        assert next_fire_time("* * * * *") > datetime.now(dt_timezone.utc)
