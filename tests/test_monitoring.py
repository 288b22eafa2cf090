"""
Tests for Sentry job monitoring.

The SDK is patched at the module so no event leaves the process.
"""

from unittest.mock import MagicMock, patch

from collector.monitoring import add_job_breadcrumb, capture_job_error
from collector.monitoring.sentry_integration import _filter_sensitive_data
from collector.services.results import ErrorKind, JobFailure


class TestSensitiveDataFilter:

    def test_filters_nested_keys(self):
        filtered = _filter_sensitive_data({
            "asin": "B08N5WRWNW",
            "api_key": "secret-value",
            "headers": {"Authorization": "Bearer abc", "Accept": "json"},
        })

        assert filtered == {
            "asin": "B08N5WRWNW",
            "api_key": "[Filtered]",
            "headers": {"Authorization": "[Filtered]", "Accept": "json"},
        }

    def test_non_dict_passthrough(self):
        assert _filter_sensitive_data(["a"]) == ["a"]


class TestSentryCapture:

    @patch("collector.monitoring.sentry_integration.sentry_sdk")
    def test_breadcrumb(self, sentry_sdk):
        add_job_breadcrumb("job-1", "product", extra_data={"asin": "B08N5WRWNW", "token": "x"})

        kwargs = sentry_sdk.add_breadcrumb.call_args.kwargs
        assert kwargs["category"] == "collection"
        assert kwargs["data"] == {
            "job_id": "job-1",
            "job_type": "product",
            "asin": "B08N5WRWNW",
            "token": "[Filtered]",
        }

    @patch("collector.monitoring.sentry_integration.sentry_sdk")
    def test_capture_job_failure_tags_kind(self, sentry_sdk):
        scope = MagicMock()
        sentry_sdk.new_scope.return_value.__enter__.return_value = scope
        error = JobFailure("Product with ASIN B08N5WRWNW not found", ErrorKind.NOT_FOUND)

        capture_job_error(error, job_id="job-2", job_data={"type": "review", "asin": "B08N5WRWNW"})

        scope.set_tag.assert_any_call("collector.job_type", "review")
        scope.set_tag.assert_any_call("collector.failure_kind", "not_found")
        scope.set_extra.assert_any_call("job_id", "job-2")
        sentry_sdk.capture_exception.assert_called_once_with(error)

    @patch("collector.monitoring.sentry_integration.sentry_sdk")
    def test_sdk_errors_are_swallowed(self, sentry_sdk):
        sentry_sdk.add_breadcrumb.side_effect = RuntimeError("transport closed")
        sentry_sdk.new_scope.side_effect = RuntimeError("transport closed")

        capture_job_error(ValueError("boom"))
