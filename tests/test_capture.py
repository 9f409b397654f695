"""
Tests for idea_archiver.capture — headless screenshot into the dated archive.
"""

import copy
import os
import tempfile
from datetime import datetime
from unittest.mock import MagicMock, patch

import pytest
from playwright.sync_api import Error as PlaywrightError

from idea_archiver.capture import capture_and_send, capture_today
from idea_archiver.config import DEFAULT_CONFIG
from idea_archiver.exceptions import CaptureError, TransportError
from idea_archiver.tracker import DeliveryTracker

NOW = datetime(2025, 12, 9, 8, 30)


def _write_png(path=None, **_kwargs):
    with open(path, "wb") as fh:
        fh.write(b"\x89PNG\r\n\x1a\n")


@pytest.fixture
def browser():
    """Patch sync_playwright; yields the mocked page."""
    with patch("idea_archiver.capture.sync_playwright") as mock_pw:
        p = mock_pw.return_value.__enter__.return_value
        page = p.chromium.launch.return_value.new_page.return_value
        page.screenshot.side_effect = _write_png
        yield page


@pytest.fixture
def config():
    with tempfile.TemporaryDirectory() as tmpdir:
        cfg = copy.deepcopy(DEFAULT_CONFIG)
        cfg["archive"]["root"] = os.path.join(tmpdir, "archives")
        cfg["archive"]["state_file"] = os.path.join(tmpdir, ".discord-sent.json")
        cfg["capture"]["settle_seconds"] = 0
        yield cfg


def test_capture_today_writes_dated_path(browser, config):
    path = capture_today(config, now=NOW)

    expected = os.path.join(
        config["archive"]["root"], "2025", "December", "9 December 2025.png"
    )
    assert path == expected
    assert os.path.isfile(path)
    browser.goto.assert_called_once()
    assert browser.goto.call_args.args[0] == config["capture"]["url"]
    assert browser.screenshot.call_args.kwargs["full_page"] is True


def test_capture_today_wraps_browser_errors(browser, config):
    browser.goto.side_effect = PlaywrightError("net::ERR_NAME_NOT_RESOLVED")
    with pytest.raises(CaptureError):
        capture_today(config, now=NOW)


def test_capture_today_fails_when_no_file_written(browser, config):
    browser.screenshot.side_effect = None
    with pytest.raises(CaptureError, match="not written"):
        capture_today(config, now=NOW)


def test_capture_and_send_without_webhook_only_captures(browser, config):
    with patch("idea_archiver.capture.deliver") as mock_deliver:
        path, sent = capture_and_send(config, now=NOW)

    assert os.path.isfile(path)
    assert sent is False
    mock_deliver.assert_not_called()


def test_capture_and_send_records_delivery(browser, config):
    config["delivery"]["webhook_url"] = "https://discord.com/api/webhooks/1/x"
    with patch("idea_archiver.capture.deliver", return_value=True):
        path, sent = capture_and_send(config, now=NOW)

    assert sent is True
    tracker = DeliveryTracker(config["archive"]["state_file"])
    tracker.load()
    assert tracker.has(path)


def test_capture_and_send_keeps_screenshot_when_send_fails(browser, config):
    config["delivery"]["webhook_url"] = "https://discord.com/api/webhooks/1/x"
    with patch(
        "idea_archiver.capture.deliver",
        side_effect=TransportError("Webhook API error (500)", 500),
    ):
        path, sent = capture_and_send(config, now=NOW)

    assert sent is False
    assert os.path.isfile(path)
    assert not os.path.exists(config["archive"]["state_file"])


def test_capture_and_send_skips_already_delivered(browser, config):
    config["delivery"]["webhook_url"] = "https://discord.com/api/webhooks/1/x"
    tracker = DeliveryTracker(config["archive"]["state_file"])
    with patch("idea_archiver.capture.deliver", return_value=True):
        capture_and_send(config, tracker=tracker, now=NOW)
    with patch("idea_archiver.capture.deliver") as mock_deliver:
        _path, sent = capture_and_send(config, tracker=tracker, now=NOW)

    assert sent is False
    mock_deliver.assert_not_called()
