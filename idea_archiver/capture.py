"""
Idea Archiver - Daily page capture.

Takes one full-page screenshot of the configured URL with headless Chromium
and writes it to today's dated path in the archive, then sends it.
"""

from __future__ import annotations

import logging
import os
from datetime import datetime

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import sync_playwright

from idea_archiver.archive import archive_path_for
from idea_archiver.constants import (
    DEFAULT_DEVICE_SCALE_FACTOR,
    DEFAULT_NAVIGATION_TIMEOUT,
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_SETTLE_SECONDS,
    DEFAULT_VIEWPORT_HEIGHT,
    DEFAULT_VIEWPORT_WIDTH,
    MILLISECONDS_PER_SECOND,
)
from idea_archiver.exceptions import ArchiverError, CaptureError
from idea_archiver.sync import delivery_options
from idea_archiver.tracker import DeliveryTracker
from idea_archiver.webhook import deliver

logger = logging.getLogger(__name__)

# Chromium refuses to start as root inside containers without these.
_BROWSER_ARGS = ["--no-sandbox", "--disable-setuid-sandbox"]


def take_screenshot(url: str, filepath: str, capture_config: dict) -> str:
    """
    Screenshot ``url`` to ``filepath`` as PNG. Returns the path.

    Raises CaptureError if the browser cannot load the page or write the file.
    """
    timeout_ms = (
        capture_config.get("navigation_timeout", DEFAULT_NAVIGATION_TIMEOUT)
        * MILLISECONDS_PER_SECOND
    )
    settle_ms = (
        capture_config.get("settle_seconds", DEFAULT_SETTLE_SECONDS)
        * MILLISECONDS_PER_SECOND
    )

    try:
        with sync_playwright() as p:
            browser = p.chromium.launch(args=_BROWSER_ARGS)
            try:
                page = browser.new_page(
                    viewport={
                        "width": capture_config.get(
                            "viewport_width", DEFAULT_VIEWPORT_WIDTH
                        ),
                        "height": capture_config.get(
                            "viewport_height", DEFAULT_VIEWPORT_HEIGHT
                        ),
                    },
                    device_scale_factor=capture_config.get(
                        "device_scale_factor", DEFAULT_DEVICE_SCALE_FACTOR
                    ),
                )
                logger.info("Navigating to %s...", url)
                page.goto(url, wait_until="networkidle", timeout=timeout_ms)
                if settle_ms > 0:
                    logger.debug("Waiting %.0f ms for the page to settle", settle_ms)
                    page.wait_for_timeout(settle_ms)
                logger.debug("Taking screenshot...")
                page.screenshot(
                    path=filepath,
                    full_page=capture_config.get("full_page", True),
                    type="png",
                )
            finally:
                browser.close()
    except PlaywrightError as exc:
        raise CaptureError(f"Could not capture {url}: {exc}") from exc

    if not os.path.isfile(filepath):
        raise CaptureError(f"Browser reported success but {filepath} was not written")
    logger.info("Screenshot saved to %s", filepath)
    return filepath


def capture_today(config: dict, now: datetime | None = None) -> str:
    """Capture the configured page into today's archive path. Returns the path."""
    if now is None:
        now = datetime.now()
    root = config["archive"]["root"]
    capture_config = config.get("capture", {})
    filepath = archive_path_for(root, now)

    try:
        os.makedirs(os.path.dirname(filepath), exist_ok=True)
    except OSError as exc:
        raise CaptureError(
            f"Failed to create directory {os.path.dirname(filepath)}: {exc}"
        ) from exc

    logger.info("Capturing %s to %s", capture_config.get("url"), filepath)
    return take_screenshot(capture_config["url"], filepath, capture_config)


def capture_and_send(
    config: dict,
    tracker: DeliveryTracker | None = None,
    now: datetime | None = None,
) -> tuple[str, bool]:
    """
    Capture today's screenshot and send it when a webhook is configured.

    A failed send is logged, not raised: the screenshot is still archived
    and the next sync picks it up. A successful send is recorded so the next
    sync does not send it twice.

    Returns (path, sent).
    """
    filepath = capture_today(config, now=now)

    delivery = config.get("delivery", {})
    webhook_url = (delivery.get("webhook_url") or "").strip()
    if not webhook_url:
        logger.warning("Webhook URL not set; skipping delivery of %s", filepath)
        return filepath, False

    if tracker is None:
        tracker = DeliveryTracker(config["archive"]["state_file"])
    tracker.load()
    if tracker.has(filepath):
        logger.info("%s was already delivered; not sending again", filepath)
        return filepath, False

    try:
        deliver(
            filepath,
            webhook_url,
            options=delivery_options(config),
            timeout=delivery.get("request_timeout", DEFAULT_REQUEST_TIMEOUT),
        )
    except ArchiverError as exc:
        logger.error("Failed to send %s: %s", os.path.basename(filepath), exc)
        return filepath, False

    tracker.record_success(filepath)
    return filepath, True
