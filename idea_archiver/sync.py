"""
Idea Archiver - Archive backfill.

Delivers every archived screenshot the tracker has not seen yet, oldest
first, one at a time. Progress is saved after each success so an interrupted
run resumes where it stopped.
"""

from __future__ import annotations

import logging
import math
import os
import time
from dataclasses import dataclass

from idea_archiver.archive import ArchiveFile, scan_archive, sort_archive_files
from idea_archiver.constants import (
    DEFAULT_DELAY_SECONDS,
    DEFAULT_RATE_LIMIT_COOLDOWN_SECONDS,
    DEFAULT_REQUEST_TIMEOUT,
    MAX_RETRY_AFTER_SECONDS,
)
from idea_archiver.exceptions import ArchiverError, RateLimitError
from idea_archiver.tracker import DeliveryTracker
from idea_archiver.webhook import check_webhook_url, deliver

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeliveryOutcome:
    """Result of one delivery attempt. Not persisted."""

    path: str
    ok: bool
    reason: str = ""
    rate_limited: bool = False
    retry_after: float | None = None

    @classmethod
    def success(cls, path: str) -> "DeliveryOutcome":
        return cls(path=path, ok=True)

    @classmethod
    def failure(
        cls,
        path: str,
        reason: str,
        rate_limited: bool = False,
        retry_after: float | None = None,
    ) -> "DeliveryOutcome":
        return cls(
            path=path,
            ok=False,
            reason=reason,
            rate_limited=rate_limited,
            retry_after=retry_after,
        )


def _new_stats() -> dict:
    return {
        "files_found": 0,
        "already_delivered": 0,
        "attempted": 0,
        "delivered": 0,
        "failed": 0,
        "rate_limited": 0,
    }


def rate_limit_cooldown(
    delay_seconds: float,
    cooldown_seconds: float,
    retry_after: float | None = None,
) -> float:
    """
    Seconds to pause after a rate-limited delivery.

    The configured cooldown, raised to the server's retry_after when that is
    longer (capped at MAX_RETRY_AFTER_SECONDS), and always longer than the
    normal inter-message delay.
    """
    hint = 0.0
    if retry_after is not None and math.isfinite(retry_after) and retry_after > 0:
        hint = min(retry_after, MAX_RETRY_AFTER_SECONDS)
    wait = max(cooldown_seconds, hint)
    if wait <= delay_seconds:
        wait = delay_seconds * 2
    return wait


def pending_files(
    archive_root: str, tracker: DeliveryTracker, stats: dict | None = None
) -> list[ArchiveFile]:
    """Undelivered archive files, oldest first."""
    found = sort_archive_files(scan_archive(archive_root))
    pending = [f for f in found if not tracker.has(f.path)]
    if stats is not None:
        stats["files_found"] = len(found)
        stats["already_delivered"] = len(found) - len(pending)
    return pending


def _attempt(
    archive_file: ArchiveFile, webhook_url: str, options: dict | None, timeout: float
) -> DeliveryOutcome:
    try:
        deliver(archive_file.path, webhook_url, options=options, timeout=timeout)
    except RateLimitError as exc:
        return DeliveryOutcome.failure(
            archive_file.path,
            str(exc),
            rate_limited=True,
            retry_after=exc.retry_after,
        )
    except ArchiverError as exc:
        return DeliveryOutcome.failure(archive_file.path, str(exc))
    return DeliveryOutcome.success(archive_file.path)


def sync_archives(
    archive_root: str,
    webhook_url: str,
    tracker: DeliveryTracker,
    delay_seconds: float = DEFAULT_DELAY_SECONDS,
    cooldown_seconds: float = DEFAULT_RATE_LIMIT_COOLDOWN_SECONDS,
    options: dict | None = None,
    timeout: float = DEFAULT_REQUEST_TIMEOUT,
) -> dict:
    """
    Deliver all undelivered screenshots under ``archive_root``.

    The tracker is loaded here and updated after every success. A failed
    file is counted and skipped; a rate-limited one also pauses the run for
    the cooldown. Raises ConfigurationError when the webhook URL is missing.

    Returns a stats dict with keys: files_found, already_delivered,
    attempted, delivered, failed, rate_limited.
    """
    check_webhook_url(webhook_url)
    stats = _new_stats()

    tracker.load()
    queue = pending_files(archive_root, tracker, stats)

    logger.info("Found %d archive file(s) in %s", stats["files_found"], archive_root)
    logger.info("Already delivered: %d file(s)", stats["already_delivered"])
    logger.info("New files to send: %d", len(queue))

    total = len(queue)
    for idx, archive_file in enumerate(queue, start=1):
        is_last = idx == total
        stats["attempted"] += 1
        outcome = _attempt(archive_file, webhook_url, options, timeout)

        if outcome.ok:
            tracker.record_success(archive_file.path)
            stats["delivered"] += 1
            if not is_last and delay_seconds > 0:
                logger.info(
                    "Waiting %.1fs before next message... (%d/%d)",
                    delay_seconds,
                    idx,
                    total,
                )
                time.sleep(delay_seconds)
            continue

        stats["failed"] += 1
        logger.error(
            "Failed to send %s: %s", os.path.basename(outcome.path), outcome.reason
        )
        if outcome.rate_limited:
            stats["rate_limited"] += 1
            if not is_last:
                wait = rate_limit_cooldown(
                    delay_seconds, cooldown_seconds, outcome.retry_after
                )
                logger.warning("Rate limited, waiting %.0f seconds...", wait)
                time.sleep(wait)

    logger.info(
        "Sync complete: %d found, %d already delivered, %d attempted, "
        "%d sent, %d failed.",
        stats["files_found"],
        stats["already_delivered"],
        stats["attempted"],
        stats["delivered"],
        stats["failed"],
    )
    return stats


def sync_from_config(config: dict, tracker: DeliveryTracker | None = None) -> dict:
    """Run sync_archives with settings from a loaded config dict."""
    delivery = config.get("delivery", {})
    archive = config.get("archive", {})
    if tracker is None:
        tracker = DeliveryTracker(archive.get("state_file", ".discord-sent.json"))
    return sync_archives(
        archive.get("root", "archives"),
        delivery.get("webhook_url", ""),
        tracker,
        delay_seconds=delivery.get("delay_seconds", DEFAULT_DELAY_SECONDS),
        cooldown_seconds=delivery.get(
            "rate_limit_cooldown_seconds", DEFAULT_RATE_LIMIT_COOLDOWN_SECONDS
        ),
        options=delivery_options(config),
        timeout=delivery.get("request_timeout", DEFAULT_REQUEST_TIMEOUT),
    )


def delivery_options(config: dict) -> dict:
    """Webhook message overrides (username, avatar) from config."""
    delivery = config.get("delivery", {})
    options = {}
    for key in ("username", "avatar_url"):
        value = (delivery.get(key) or "").strip()
        if value:
            options[key] = value
    return options
