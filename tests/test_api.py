"""
Tests for the collector REST API and the health check.

Enqueueing is patched at the task so no job runs; queue statistics are
patched where the broker would be asked.
"""

from datetime import timedelta
from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest
from django.utils import timezone

from collector.models import JobStatus, PriceSnapshot, RecurringSchedule, Review, ScrapeJob
from collector.queue.job_queue import JobQueue
from collector.tasks import process_collection_job

QUEUE_STATS = {"waiting": 1, "active": 0, "completed": 2, "failed": 0, "delayed": 0, "total": 3}


@pytest.fixture
def apply_async():
    with patch.object(process_collection_job, "apply_async") as mocked:
        yield mocked


@pytest.fixture
def queue_stats():
    with patch.object(JobQueue, "get_queue_stats", return_value=QUEUE_STATS) as mocked:
        yield mocked


@pytest.fixture
def revoke():
    from config.celery import app

    with patch.object(app.control, "revoke") as mocked:
        yield mocked


@pytest.fixture
def price_history(product):
    now = timezone.now()
    return [
        PriceSnapshot.objects.create(
            product=product,
            price=Decimal(price),
            currency="USD",
            collected_at=now - timedelta(days=days),
        )
        for price, days in (("49.99", 2), ("44.99", 1), ("39.99", 0))
    ]


@pytest.mark.django_db
class TestAuthentication:

    @pytest.mark.parametrize("url", [
        "/api/v1/products/",
        "/api/v1/jobs/",
        "/api/v1/usage/",
        "/api/v1/dashboard/stats/",
    ])
    def test_requires_authentication(self, api_client, url):
        assert api_client.get(url).status_code == 403

    def test_collect_requires_authentication(self, api_client, apply_async):
        response = api_client.post("/api/v1/products/collect/", {"asin": "B08N5WRWNW"}, format="json")

        assert response.status_code == 403
        apply_async.assert_not_called()


@pytest.mark.django_db
class TestCollect:

    def test_asin_queues_product_job(self, authenticated_client, apply_async):
        response = authenticated_client.post(
            "/api/v1/products/collect/", {"asin": "B08N5WRWNW"}, format="json"
        )

        assert response.status_code == 202
        assert response.data["success"] is True
        assert response.data["message"] == "Collection job queued"
        job = ScrapeJob.objects.get(pk=response.data["job_id"])
        assert job.type == "product"
        assert job.status == JobStatus.PENDING
        assert apply_async.call_args.kwargs["priority"] == 0

    def test_keyword_queues_search_job(self, authenticated_client, apply_async):
        response = authenticated_client.post(
            "/api/v1/products/collect/",
            {"keyword": "wireless earbuds", "limit": 5, "country": "uk"},
            format="json",
        )

        assert response.status_code == 202
        assert apply_async.call_args.kwargs["kwargs"]["job_data"] == {
            "type": "search",
            "keyword": "wireless earbuds",
            "limit": 5,
            "country": "uk",
        }

    def test_asin_wins_over_keyword(self, authenticated_client, apply_async):
        response = authenticated_client.post(
            "/api/v1/products/collect/",
            {"asin": "B08N5WRWNW", "keyword": "echo"},
            format="json",
        )

        assert ScrapeJob.objects.get(pk=response.data["job_id"]).type == "product"

    def test_missing_asin_and_keyword(self, authenticated_client, apply_async):
        response = authenticated_client.post("/api/v1/products/collect/", {}, format="json")

        assert response.status_code == 400
        assert response.data == {"success": False, "error": "Invalid job data"}
        apply_async.assert_not_called()

    @pytest.mark.parametrize("limit", [0, -3, "5", 2.5, True])
    def test_invalid_limit(self, authenticated_client, apply_async, limit):
        response = authenticated_client.post(
            "/api/v1/products/collect/", {"keyword": "echo", "limit": limit}, format="json"
        )

        assert response.status_code == 400
        apply_async.assert_not_called()

    def test_throttled(self, authenticated_client, apply_async):
        for _ in range(30):
            response = authenticated_client.post(
                "/api/v1/products/collect/", {"asin": "B08N5WRWNW"}, format="json"
            )
            assert response.status_code == 202

        response = authenticated_client.post(
            "/api/v1/products/collect/", {"asin": "B08N5WRWNW"}, format="json"
        )
        assert response.status_code == 429


@pytest.mark.django_db
class TestProducts:

    def test_list_with_pagination(self, authenticated_client, product):
        response = authenticated_client.get("/api/v1/products/?page=1&limit=10")

        assert response.status_code == 200
        assert [p["asin"] for p in response.data["products"]] == ["B08N5WRWNW"]
        assert response.data["pagination"] == {"page": 1, "limit": 10, "total": 1, "total_pages": 1}

    def test_list_search_filter(self, authenticated_client, product):
        assert len(authenticated_client.get("/api/v1/products/?search=echo").data["products"]) == 1
        assert authenticated_client.get("/api/v1/products/?search=kettle").data["products"] == []

    def test_list_caps_page_size(self, authenticated_client, product):
        response = authenticated_client.get("/api/v1/products/?limit=1000")

        assert response.data["pagination"]["limit"] == 100

    def test_list_defaults_and_empty_result(self, authenticated_client, db):
        response = authenticated_client.get("/api/v1/products/")

        assert response.data == {
            "products": [],
            "pagination": {"page": 1, "limit": 20, "total": 0, "total_pages": 0},
        }

    @pytest.mark.parametrize("page", ["3", "abc"])
    def test_list_invalid_page(self, authenticated_client, product, page):
        response = authenticated_client.get(f"/api/v1/products/?page={page}")

        assert response.status_code == 404

    def test_detail(self, authenticated_client, product, price_history):
        Review.objects.create(product=product, rating=5, text="Great")

        response = authenticated_client.get("/api/v1/products/b08n5wrwnw/")

        assert response.status_code == 200
        assert response.data["product"]["asin"] == "B08N5WRWNW"
        assert [p["price"] for p in response.data["price_history"]] == ["39.99", "44.99", "49.99"]
        assert response.data["reviews"][0]["text"] == "Great"

    @pytest.mark.parametrize("suffix", ["", "prices/", "reviews/"])
    def test_unknown_product(self, authenticated_client, suffix):
        response = authenticated_client.get(f"/api/v1/products/B000MISSING/{suffix}")

        assert response.status_code == 404
        assert response.data == {"success": False, "error": "Product not found"}

    def test_prices(self, authenticated_client, product, price_history):
        response = authenticated_client.get("/api/v1/products/B08N5WRWNW/prices/")

        assert len(response.data["prices"]) == 3
        assert response.data["prices"][0]["price"] == "39.99"

    def test_reviews_paginated(self, authenticated_client, product):
        for i in range(5):
            Review.objects.create(product=product, rating=4, text=f"Review {i}")

        response = authenticated_client.get("/api/v1/products/B08N5WRWNW/reviews/?page=2&limit=2")

        assert len(response.data["reviews"]) == 2
        assert response.data["pagination"] == {"page": 2, "limit": 2, "total": 5, "total_pages": 3}


@pytest.mark.django_db
class TestTracking:

    def test_start_tracking(self, authenticated_client, product):
        response = authenticated_client.post(
            "/api/v1/products/B08N5WRWNW/track/", {"cron_pattern": "0 8 * * *"}, format="json"
        )

        assert response.status_code == 201
        assert response.data["message"] == "Product tracking started"
        schedule = RecurringSchedule.objects.get(job_id=response.data["job_id"])
        assert schedule.pattern == "0 8 * * *"

    def test_default_pattern(self, authenticated_client, product, settings):
        response = authenticated_client.post("/api/v1/products/B08N5WRWNW/track/", format="json")

        schedule = RecurringSchedule.objects.get(job_id=response.data["job_id"])
        assert schedule.pattern == settings.COLLECTOR_DEFAULT_TRACK_PATTERN

    @pytest.mark.parametrize("asin,body", [
        ("not-an-asin", {}),
        ("B08N5WRWNW", {"cron_pattern": "whenever"}),
        ("B08N5WRWNW", {"timezone": "Nowhere/Special"}),
    ])
    def test_invalid_tracking_request(self, authenticated_client, asin, body):
        response = authenticated_client.post(f"/api/v1/products/{asin}/track/", body, format="json")

        assert response.status_code == 400
        assert response.data["success"] is False

    def test_stop_tracking(self, authenticated_client, product, revoke):
        authenticated_client.post("/api/v1/products/B08N5WRWNW/track/", format="json")

        response = authenticated_client.delete("/api/v1/products/B08N5WRWNW/track/")

        assert response.status_code == 200
        assert response.data["cancelled"] == 1
        assert not RecurringSchedule.objects.filter(is_active=True).exists()


@pytest.mark.django_db
class TestJobs:

    def test_list_jobs(self, authenticated_client, queue_stats):
        ScrapeJob.objects.create(id="job-1", type="product", status=JobStatus.COMPLETED)

        response = authenticated_client.get("/api/v1/jobs/")

        assert response.status_code == 200
        assert response.data["jobs"][0]["id"] == "job-1"
        assert response.data["queue"] == QUEUE_STATS

    def test_job_detail(self, authenticated_client):
        job = ScrapeJob.objects.create(
            id="job-2", type="product", status=JobStatus.RUNNING, input={"asin": "B08N5WRWNW"}
        )
        job.complete(True, output={"asin": "B08N5WRWNW"}, api_calls_used=2)

        response = authenticated_client.get("/api/v1/jobs/job-2/")

        assert response.status_code == 200
        assert response.data["job"]["api_calls_used"] == 2
        assert response.data["state"]["state"] == "completed"
        assert response.data["state"]["progress"] == 100
        assert response.data["state"]["return_value"] == {"asin": "B08N5WRWNW"}
        assert isinstance(response.data["state"]["finished_on"], str)

    def test_unknown_job(self, authenticated_client):
        response = authenticated_client.get("/api/v1/jobs/unknown-id/")

        assert response.status_code == 404
        assert response.data == {"success": False, "error": "Job not found"}

    def test_schedule_job(self, authenticated_client):
        response = authenticated_client.post(
            "/api/v1/jobs/schedule/",
            {"asin": "B08N5WRWNW", "cron_pattern": "0 */6 * * *", "timezone": "Europe/Berlin"},
            format="json",
        )

        assert response.status_code == 201
        job = ScrapeJob.objects.get(pk=response.data["job_id"])
        assert job.is_scheduled
        assert job.schedule.timezone == "Europe/Berlin"

    @pytest.mark.parametrize("body", [
        {"asin": "B08N5WRWNW"},
        {"cron_pattern": "0 */6 * * *"},
        {"asin": "B08N5WRWNW", "cron_pattern": "0 */6 * *"},
    ])
    def test_schedule_job_invalid(self, authenticated_client, body):
        response = authenticated_client.post("/api/v1/jobs/schedule/", body, format="json")

        assert response.status_code == 400

    def test_suspend_and_resume(self, authenticated_client, apply_async):
        ScrapeJob.objects.create(id="job-3", type="product", status=JobStatus.PENDING)

        response = authenticated_client.post("/api/v1/jobs/job-3/suspend/")
        assert response.status_code == 200
        assert response.data == {"success": True, "message": "Job suspended successfully"}
        assert ScrapeJob.objects.get(pk="job-3").status == JobStatus.SUSPENDED

        response = authenticated_client.post("/api/v1/jobs/job-3/resume/")
        assert response.status_code == 200
        assert response.data == {"success": True, "message": "Job resumed successfully"}
        assert ScrapeJob.objects.get(pk="job-3").status == JobStatus.PENDING

    def test_suspend_finished_job(self, authenticated_client):
        ScrapeJob.objects.create(id="job-4", type="product", status=JobStatus.COMPLETED)

        response = authenticated_client.post("/api/v1/jobs/job-4/suspend/")

        assert response.status_code == 400
        assert response.data["success"] is False

    def test_resume_job_that_is_not_suspended(self, authenticated_client):
        ScrapeJob.objects.create(id="job-5", type="product", status=JobStatus.PENDING)

        assert authenticated_client.post("/api/v1/jobs/job-5/resume/").status_code == 400

    @pytest.mark.parametrize("action", ["suspend", "resume"])
    def test_unknown_job_actions(self, authenticated_client, action):
        assert authenticated_client.post(f"/api/v1/jobs/missing/{action}/").status_code == 404


@pytest.mark.django_db
class TestUsageAndDashboard:

    def test_usage(self, authenticated_client):
        response = authenticated_client.get("/api/v1/usage/")

        assert response.status_code == 200
        assert response.data["calls_used"] == 0
        assert response.data["calls_limit"] == 1000
        assert response.data["remaining"] == 1000

    def test_dashboard(self, authenticated_client, product, price_history, queue_stats):
        Review.objects.create(product=product, rating=5, text="Great")
        ScrapeJob.objects.create(id="d1", type="product", status=JobStatus.COMPLETED)
        ScrapeJob.objects.create(id="d2", type="product", status=JobStatus.FAILED)
        ScrapeJob.objects.create(id="d3", type="search", status=JobStatus.RUNNING)

        response = authenticated_client.get("/api/v1/dashboard/stats/")

        assert response.status_code == 200
        data = response.data
        assert data["products"] == {"total": 1, "recent": 1}
        assert data["prices"] == {"total": 3}
        assert data["reviews"] == {"total": 1}
        assert data["jobs"]["total"] == 3
        assert data["jobs"]["completed"] == 1
        assert data["jobs"]["failed"] == 1
        assert data["jobs"]["running"] == 1
        assert len(data["jobs"]["recent"]) == 3
        assert data["queue"] == QUEUE_STATS
        assert data["most_tracked"][0]["price_count"] == 3
        assert data["most_reviewed"][0]["stored_reviews"] == 1
        assert data["most_reviewed"][0]["review_count"] == 12034


@pytest.mark.django_db
class TestHealthCheck:

    def test_healthy(self, client):
        with patch("collector.views.get_celery_worker_count", return_value=2):
            response = client.get("/api/health/")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["database"] == "connected"
        assert data["redis"] == "not_configured"
        assert data["celery_workers"] == 2
        assert data["running_jobs"] == 0

    def test_worker_inspect_failure_is_tolerated(self, client):
        with patch("collector.views.get_celery_worker_count", side_effect=OSError("no broker")):
            response = client.get("/api/health/")

        assert response.status_code == 200
        assert response.json()["celery_workers"] == 0

    def test_redis_error(self, client):
        redis_client = MagicMock()
        redis_client.ping.side_effect = ConnectionError("refused")

        with patch("collector.views.get_redis_connection", return_value=redis_client), \
                patch("collector.views.get_celery_worker_count", return_value=1):
            response = client.get("/api/health/")

        assert response.json()["redis"] == "error"
        assert response.status_code == 200

    def test_database_down(self, client):
        with patch("collector.views.connection") as connection, \
                patch("collector.views.get_celery_worker_count", return_value=1):
            connection.ensure_connection.side_effect = Exception("could not connect")
            response = client.get("/api/health/")

        assert response.status_code == 503
        assert response.json()["status"] == "unhealthy"
        assert response.json()["database"] == "error"
