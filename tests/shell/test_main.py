"""Tests for the Cloud Function entry points."""

from unittest.mock import Mock, patch

from exposure_watch.core.config import Config
from exposure_watch.main import build_response, exposure_check
from exposure_watch.orchestrator import CheckResult, CycleResult


def cycle_result(geo_errors=None):
    return CycleResult(
        proximity=CheckResult(name="proximity", skipped_reason="proximity check disabled"),
        geo=CheckResult(name="geo", ran=True, candidates=1, errors=geo_errors or []),
        checkpoint_ms=1234,
    )


class TestBuildResponse:
    """Tests for build_response function."""

    def test_success_response(self):
        response = build_response(cycle_result())

        assert response["status"] == "success"
        assert response["checkpoint_ms"] == 1234
        assert response["proximity"]["skipped_reason"] == "proximity check disabled"
        assert response["geo"]["candidates"] == 1
        assert "errors" not in response

    def test_partial_failure_lists_errors(self):
        response = build_response(cycle_result(["Geo check failed: bad signature"]))

        assert response["status"] == "partial_failure"
        assert response["errors"] == ["Geo check failed: bad signature"]


class TestExposureCheck:
    """Tests for the HTTP entry point."""

    @patch("exposure_watch.main.Orchestrator")
    @patch("exposure_watch.main._validated_config")
    def test_force_ignores_throttle(self, mock_config, mock_orchestrator):
        mock_config.return_value = Config(data_url="https://feed.example.com")
        mock_orchestrator.return_value.run_cycle.return_value = cycle_result()
        request = Mock()
        request.args = {"force": "true"}

        body, status = exposure_check(request)

        assert status == 200
        assert body["status"] == "success"
        mock_orchestrator.return_value.run_cycle.assert_called_once_with(ignore_throttle=True)

    @patch("exposure_watch.main.Orchestrator")
    @patch("exposure_watch.main._validated_config")
    def test_partial_failure_is_multi_status(self, mock_config, mock_orchestrator):
        mock_config.return_value = Config(data_url="https://feed.example.com")
        mock_orchestrator.return_value.run_cycle.return_value = cycle_result(["boom"])
        request = Mock()
        request.args = {}

        _, status = exposure_check(request)

        assert status == 207
        mock_orchestrator.return_value.run_cycle.assert_called_once_with(ignore_throttle=False)

    @patch("exposure_watch.main._validated_config", return_value=None)
    def test_invalid_config(self, _mock_config):
        body, status = exposure_check(Mock())

        assert status == 400
        assert body["message"] == "Invalid configuration"

    @patch("exposure_watch.main._validated_config", side_effect=RuntimeError("boom"))
    def test_unexpected_error(self, _mock_config):
        body, status = exposure_check(Mock())

        assert status == 500
        assert body["message"] == "boom"
