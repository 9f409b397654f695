"""
Tests for idea_archiver.scheduler — daily capture + sync job.
"""

import copy
from unittest.mock import MagicMock, patch

from idea_archiver.config import DEFAULT_CONFIG
from idea_archiver.exceptions import CaptureError
from idea_archiver.scheduler import _daily_job, _state, start_scheduler


def _config():
    config = copy.deepcopy(DEFAULT_CONFIG)
    config["delivery"]["webhook_url"] = "https://discord.com/api/webhooks/1/x"
    return config


def test_daily_job_skips_when_config_invalid():
    config = copy.deepcopy(DEFAULT_CONFIG)  # no webhook
    with patch("idea_archiver.scheduler.capture_and_send") as mock_capture:
        with patch("idea_archiver.scheduler.sync_from_config") as mock_sync:
            _daily_job(config)
    mock_capture.assert_not_called()
    mock_sync.assert_not_called()


def test_daily_job_captures_then_syncs():
    order = []
    stats = {"delivered": 1, "failed": 0}
    with patch(
        "idea_archiver.scheduler.capture_and_send",
        side_effect=lambda *a, **k: order.append("capture"),
    ):
        with patch(
            "idea_archiver.scheduler.sync_from_config",
            side_effect=lambda *a, **k: order.append("sync") or stats,
        ):
            _daily_job(_config())

    assert order == ["capture", "sync"]
    assert _state["running"] is False


def test_daily_job_syncs_even_when_capture_fails():
    with patch(
        "idea_archiver.scheduler.capture_and_send",
        side_effect=CaptureError("browser crashed"),
    ):
        with patch(
            "idea_archiver.scheduler.sync_from_config", return_value={}
        ) as mock_sync:
            _daily_job(_config())
    mock_sync.assert_called_once()


def test_daily_job_skips_when_already_running():
    with patch("idea_archiver.scheduler._state", {"running": True}):
        with patch("idea_archiver.scheduler.capture_and_send") as mock_capture:
            _daily_job(_config())
    mock_capture.assert_not_called()


def test_start_scheduler_adds_daily_cron_job():
    config = _config()
    config["schedule"]["hour"] = 6
    config["schedule"]["minute"] = 15
    with patch("idea_archiver.scheduler.BackgroundScheduler") as mock_cls:
        scheduler = mock_cls.return_value
        scheduler.get_job.return_value = MagicMock(next_run_time=None)
        result = start_scheduler(lambda: config)

    assert result is scheduler
    scheduler.add_job.assert_called_once()
    assert scheduler.add_job.call_args.kwargs["id"] == "daily"
    scheduler.start.assert_called_once()


def test_start_scheduler_runs_on_start_when_enabled():
    config = _config()
    config["schedule"]["run_on_start"] = True
    with patch("idea_archiver.scheduler.BackgroundScheduler") as mock_cls:
        mock_cls.return_value.get_job.return_value = None
        with patch("idea_archiver.scheduler.threading.Thread") as mock_thread:
            start_scheduler(lambda: config)
    mock_thread.return_value.start.assert_called_once()


def test_daily_job_releases_guard_after_failure():
    with patch("idea_archiver.scheduler.capture_and_send"):
        with patch(
            "idea_archiver.scheduler.sync_from_config",
            side_effect=OSError("disk full"),
        ):
            _daily_job(_config())
    assert _state["running"] is False
