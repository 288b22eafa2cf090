"""
Tests for the monthly ScraperAPI usage tracker.
"""

import logging
from datetime import datetime, timezone as dt_timezone
from unittest.mock import patch

import pytest

from collector.models import ApiUsage
from collector.services.usage_tracker import UsageTracker


@pytest.mark.django_db
class TestUsageTracker:

    def test_creates_month_record_lazily(self):
        tracker = UsageTracker(monthly_limit=5)

        assert ApiUsage.objects.count() == 0
        assert tracker.can_make_call() is True

        usage = ApiUsage.objects.get()
        assert usage.calls_used == 0
        assert usage.calls_limit == 5

    def test_record_usage_increments(self):
        tracker = UsageTracker(monthly_limit=5)

        tracker.record_usage()
        tracker.record_usage(2)

        usage = ApiUsage.objects.get()
        assert usage.calls_used == 3
        assert usage.last_used is not None
        assert tracker.get_remaining_calls() == 2

    def test_refuses_calls_at_limit(self):
        tracker = UsageTracker(monthly_limit=2)

        tracker.record_usage(2)

        assert tracker.can_make_call() is False
        assert tracker.get_remaining_calls() == 0

    def test_remaining_never_negative(self):
        tracker = UsageTracker(monthly_limit=1)

        tracker.record_usage(3)

        assert tracker.get_remaining_calls() == 0

    def test_usage_stats(self):
        tracker = UsageTracker(monthly_limit=200)
        tracker.record_usage(50)

        stats = tracker.get_usage_stats()

        assert stats["calls_used"] == 50
        assert stats["calls_limit"] == 200
        assert stats["remaining"] == 150
        assert stats["percentage_used"] == 25.0
        assert len(stats["month"]) == 7

    def test_new_month_starts_fresh(self):
        tracker = UsageTracker(monthly_limit=1)

        with patch(
            "collector.services.usage_tracker.timezone.now",
            return_value=datetime(2025, 1, 31, 23, 0, tzinfo=dt_timezone.utc),
        ):
            tracker.record_usage()
            assert tracker.can_make_call() is False

        with patch(
            "collector.services.usage_tracker.timezone.now",
            return_value=datetime(2025, 2, 1, 0, 5, tzinfo=dt_timezone.utc),
        ):
            assert tracker.can_make_call() is True

        assert sorted(ApiUsage.objects.values_list("month", flat=True)) == ["2025-01", "2025-02"]

    def test_warns_past_threshold(self, caplog):
        tracker = UsageTracker(monthly_limit=10)

        with caplog.at_level(logging.WARNING, logger="collector.services.usage_tracker"):
            tracker.record_usage(7)
            assert not caplog.records
            tracker.record_usage(1)

        assert any("80.0%" in record.getMessage() for record in caplog.records)
