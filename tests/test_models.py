"""
Tests for collector models.
"""

from datetime import timedelta

import pytest
from django.db import IntegrityError, models
from django.utils import timezone

from collector.models import ApiUsage, JobStatus, PriceSnapshot, Product, Review, ScrapeJob, Seller


@pytest.mark.django_db
class TestScrapeJob:

    def test_defaults(self):
        job = ScrapeJob.objects.create(id="job-1", type="product")

        assert job.status == JobStatus.PENDING
        assert job.input == {}
        assert job.api_calls_used == 0
        assert job.is_finished is False
        assert job.duration_seconds is None

    def test_start_then_complete(self):
        job = ScrapeJob.objects.create(id="job-2", type="search")

        job.start()
        assert job.status == JobStatus.RUNNING
        assert job.started_at is not None

        job.complete(True, output={"success_count": 3}, api_calls_used=4)
        job.refresh_from_db()
        assert job.status == JobStatus.COMPLETED
        assert job.output == {"success_count": 3}
        assert job.api_calls_used == 4
        assert job.is_finished
        assert job.duration_seconds >= 0

    def test_failure_keeps_message(self):
        job = ScrapeJob.objects.create(id="job-3", type="review", status=JobStatus.RUNNING)

        job.complete(False, "Product with ASIN B08N5WRWNW not found")

        job.refresh_from_db()
        assert job.status == JobStatus.FAILED
        assert job.error == "Product with ASIN B08N5WRWNW not found"

    def test_duration(self):
        started = timezone.now()
        job = ScrapeJob(
            id="job-4",
            type="product",
            started_at=started,
            completed_at=started + timedelta(seconds=90),
        )

        assert job.duration_seconds == 90


@pytest.mark.django_db
class TestProduct:

    def test_asin_is_unique(self, product):
        with pytest.raises(IntegrityError):
            Product.objects.create(asin=product.asin, title="Duplicate")


@pytest.mark.parametrize("model, field_name", [
    (Product, "brand"),
    (Product, "category"),
    (Product, "availability"),
    (Product, "currency"),
    (PriceSnapshot, "currency"),
    (PriceSnapshot, "availability"),
    (PriceSnapshot, "seller_name"),
    (Review, "author"),
    (Seller, "name"),
])
def test_upstream_text_columns_are_unbounded(model, field_name):
    field = model._meta.get_field(field_name)

    assert isinstance(field, models.TextField)
    assert field.max_length is None


@pytest.mark.django_db
class TestApiUsage:

    def test_remaining_and_percentage(self):
        usage = ApiUsage.objects.create(month="2025-01", calls_used=250, calls_limit=1000)

        assert usage.remaining == 750
        assert usage.percentage_used == 25.0
        assert str(usage) == "2025-01: 250/1000"

    def test_over_limit(self):
        usage = ApiUsage(month="2025-02", calls_used=1200, calls_limit=1000)

        assert usage.remaining == 0

    def test_zero_limit(self):
        assert ApiUsage(month="2025-03", calls_used=0, calls_limit=0).percentage_used == 100.0
