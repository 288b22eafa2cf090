"""
Tests for the JobScheduler.
"""

from datetime import timedelta
from unittest.mock import MagicMock, patch

import pytest
from django.utils import timezone

from collector.models import JobStatus, RecurringSchedule, ScrapeJob
from collector.queue.job_queue import JobData, JobOptions, JobQueue
from collector.services import persistence
from collector.services.scheduler import CANCELLED_MESSAGE, JobScheduler, JobStateError
from collector.tasks import process_collection_job


@pytest.fixture
def queue():
    queue = JobQueue()
    with patch.object(process_collection_job, "apply_async") as apply_async, \
            patch.object(queue.app.control, "revoke") as revoke:
        queue.apply_async = apply_async
        queue.revoke = revoke
        yield queue


@pytest.fixture
def scheduler(queue):
    return JobScheduler(queue)


@pytest.mark.django_db
class TestManualCollection:

    def test_product_job_gets_manual_priority_and_record(self, scheduler, queue):
        job_id = scheduler.trigger_manual_collection({"type": "product", "asin": "B08N5WRWNW"})

        assert queue.apply_async.call_args.kwargs["priority"] == 0
        job = ScrapeJob.objects.get(pk=job_id)
        assert job.status == JobStatus.PENDING
        assert job.type == "product"
        assert job.is_scheduled is False
        assert job.input == {"type": "product", "asin": "B08N5WRWNW"}

    def test_search_job(self, scheduler, queue):
        scheduler.trigger_manual_collection(JobData(type="search", keyword="echo", limit=3, country="uk"))

        assert queue.apply_async.call_args.kwargs["kwargs"]["job_data"] == {
            "type": "search",
            "keyword": "echo",
            "limit": 3,
            "country": "uk",
        }

    @pytest.mark.parametrize("job_data", [
        {"type": "product"},
        {"type": "search", "asin": "B08N5WRWNW"},
        {"type": "review"},
        {"type": "price_update", "asin": "B08N5WRWNW"},
        {},
    ])
    def test_invalid_job_data(self, scheduler, queue, job_data):
        with pytest.raises(ValueError, match="Invalid job data"):
            scheduler.trigger_manual_collection(job_data)

        queue.apply_async.assert_not_called()
        assert ScrapeJob.objects.count() == 0

    def test_record_inserted_by_worker_is_kept(self, scheduler, queue):
        def worker_started_first(**kwargs):
            ScrapeJob.objects.create(id=kwargs["task_id"], type="product", status=JobStatus.RUNNING)

        queue.apply_async.side_effect = worker_started_first

        job_id = scheduler.trigger_manual_collection({"type": "product", "asin": "B08N5WRWNW"})

        assert ScrapeJob.objects.get(pk=job_id).status == JobStatus.RUNNING


@pytest.mark.django_db
class TestTracking:

    def test_schedule_normalizes_asin(self, scheduler):
        job_id = scheduler.schedule_product_updates(" b08n5wrwnw ", "0 */6 * * *")

        job = ScrapeJob.objects.get(pk=job_id)
        assert job.input["asin"] == "B08N5WRWNW"
        assert job.schedule.pattern == "0 */6 * * *"

    def test_schedule_rejects_invalid_asin(self, scheduler):
        with pytest.raises(ValueError, match="Invalid ASIN"):
            scheduler.schedule_product_updates("not-an-asin", "0 */6 * * *")

    def test_schedule_rejects_invalid_pattern(self, scheduler):
        with pytest.raises(ValueError):
            scheduler.schedule_product_updates("B08N5WRWNW", "every hour")

    def test_cancel_scheduled_job(self, scheduler, queue):
        job_id = scheduler.schedule_product_updates("B08N5WRWNW", "0 */6 * * *")

        assert scheduler.cancel_scheduled_job(job_id) is True

        job = ScrapeJob.objects.get(pk=job_id)
        assert job.status == JobStatus.FAILED
        assert job.error == CANCELLED_MESSAGE
        assert job.schedule.is_active is False
        queue.revoke.assert_called_once_with(job_id)

    def test_cancel_finished_or_missing(self, scheduler):
        ScrapeJob.objects.create(id="done", type="product", status=JobStatus.COMPLETED)

        assert scheduler.cancel_scheduled_job("done") is False
        assert scheduler.cancel_scheduled_job("missing") is False

    def test_stop_tracking(self, scheduler):
        first = scheduler.schedule_product_updates("B08N5WRWNW", "0 */6 * * *")
        second = scheduler.schedule_product_updates("B08N5WRWNW", "0 0 * * *")
        other = scheduler.schedule_product_updates("B000TEST01", "0 0 * * *")
        scheduler.suspend_job(second)

        assert scheduler.stop_tracking("b08n5wrwnw") == 2

        assert not RecurringSchedule.objects.filter(job_id__in=[first, second], is_active=True).exists()
        assert RecurringSchedule.objects.get(job_id=other).is_active
        assert scheduler.stop_tracking("B08N5WRWNW") == 0


@pytest.mark.django_db
class TestSuspendResume:

    def test_suspend_one_off_job(self, scheduler, queue):
        job_id = scheduler.trigger_manual_collection({"type": "product", "asin": "B08N5WRWNW"})

        job = scheduler.suspend_job(job_id)

        assert job.status == JobStatus.SUSPENDED
        queue.revoke.assert_not_called()

    def test_suspend_scheduled_job_pauses_schedule(self, scheduler):
        job_id = scheduler.schedule_product_updates("B08N5WRWNW", "0 */6 * * *")

        scheduler.suspend_job(job_id)

        assert RecurringSchedule.objects.get(job_id=job_id).is_active is False

    def test_suspend_is_idempotent(self, scheduler):
        ScrapeJob.objects.create(id="s1", type="product", status=JobStatus.SUSPENDED)

        assert scheduler.suspend_job("s1").status == JobStatus.SUSPENDED

    def test_suspend_finished_job(self, scheduler):
        ScrapeJob.objects.create(id="f1", type="product", status=JobStatus.FAILED)

        with pytest.raises(JobStateError):
            scheduler.suspend_job("f1")

    def test_missing_job(self, scheduler):
        assert scheduler.suspend_job("missing") is None
        assert scheduler.resume_job("missing") is None

    def test_resume_requires_suspended(self, scheduler):
        ScrapeJob.objects.create(id="r1", type="product", status=JobStatus.RUNNING)

        with pytest.raises(JobStateError):
            scheduler.resume_job("r1")

    def test_resume_scheduled_job_recomputes_past_fire_time(self, scheduler):
        job_id = scheduler.schedule_product_updates("B08N5WRWNW", "0 */6 * * *")
        scheduler.suspend_job(job_id)
        RecurringSchedule.objects.filter(job_id=job_id).update(
            next_run_at=timezone.now() - timedelta(days=1)
        )

        job = scheduler.resume_job(job_id)

        assert job.status == JobStatus.PENDING
        schedule = RecurringSchedule.objects.get(job_id=job_id)
        assert schedule.is_active is True
        assert schedule.next_run_at > timezone.now()

    def test_resume_with_message_still_queued(self, scheduler, queue):
        job_id = scheduler.trigger_manual_collection({"type": "product", "asin": "B08N5WRWNW"})
        scheduler.suspend_job(job_id)
        queue.apply_async.reset_mock()

        scheduler.resume_job(job_id)

        assert ScrapeJob.objects.get(pk=job_id).status == JobStatus.PENDING
        queue.apply_async.assert_not_called()

    def test_resume_dropped_job_re_enqueues_same_id(self):
        ScrapeJob.objects.create(
            id="c1",
            type="review",
            status=JobStatus.SUSPENDED,
            input={"type": "review", "asin": "B08N5WRWNW", "limit": 20},
        )
        assert persistence.start_job_record("c1", "review", {}) is None
        queue = MagicMock()
        # Expired and unknown results both report PENDING
        queue.app.AsyncResult.return_value.state = "PENDING"

        job = JobScheduler(queue).resume_job("c1")

        queue.add.assert_called_once_with(
            JobData(type="review", asin="B08N5WRWNW", limit=20),
            JobOptions(job_id="c1", priority=10),
        )
        assert job.status == JobStatus.PENDING
        assert ScrapeJob.objects.get(pk="c1").dropped_while_suspended is False

    def test_resume_after_drop_and_second_suspend(self, scheduler, queue):
        job_id = scheduler.trigger_manual_collection({"type": "product", "asin": "B08N5WRWNW"})
        scheduler.suspend_job(job_id)
        persistence.start_job_record(job_id, "product", {})
        scheduler.resume_job(job_id)
        scheduler.suspend_job(job_id)
        queue.apply_async.reset_mock()

        scheduler.resume_job(job_id)

        queue.apply_async.assert_not_called()


@pytest.mark.django_db
class TestListing:

    def test_scheduled_jobs(self, scheduler):
        scheduled = scheduler.schedule_product_updates("B08N5WRWNW", "0 */6 * * *")
        scheduler.trigger_manual_collection({"type": "product", "asin": "B08N5WRWNW"})

        assert [job.id for job in scheduler.get_scheduled_jobs()] == [scheduled]

    def test_history_is_newest_first(self, scheduler):
        now = timezone.now()
        for i in range(3):
            ScrapeJob.objects.create(
                id=f"h{i}", type="product", created_at=now - timedelta(minutes=i)
            )

        assert [job.id for job in scheduler.get_job_history(limit=2)] == ["h0", "h1"]
