"""
Idea Archiver - Webhook delivery client.

Uploads one screenshot with an embed that shows it inline. The request is a
multipart body with a ``payload_json`` part and a ``files[0]`` part; the embed
references the file as ``attachment://<filename>``.
"""

from __future__ import annotations

import json
import logging
import math
import os
from datetime import datetime, timezone

import requests

from idea_archiver.archive import format_date_line
from idea_archiver.constants import (
    ATTACHMENT_DESCRIPTION,
    DEFAULT_AVATAR_URL,
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_USERNAME,
    EMBED_COLOR,
    EMBED_DESCRIPTION,
    EMBED_FOOTER,
    EMBED_TITLE,
)
from idea_archiver.exceptions import ConfigurationError, RateLimitError, TransportError
from idea_archiver.version import VERSION

logger = logging.getLogger(__name__)

_USER_AGENT = f"IdeaArchiver/{VERSION} (+https://www.ideabrowser.com/)"

HTTP_TOO_MANY_REQUESTS = 429

# Keep error messages readable when the server returns an HTML error page.
_MAX_BODY_IN_MESSAGE = 500


def check_webhook_url(webhook_url: str | None) -> None:
    """Raise ConfigurationError unless ``webhook_url`` is a non-empty http(s) URL."""
    if not webhook_url or not webhook_url.strip():
        raise ConfigurationError(
            "Webhook URL is required. Set delivery.webhook_url or DISCORD_WEBHOOK_URL."
        )
    if not webhook_url.strip().startswith(("http://", "https://")):
        raise ConfigurationError(f"Webhook URL is not an http(s) URL: {webhook_url!r}")


def _check_inputs(file_path: str, webhook_url: str) -> None:
    check_webhook_url(webhook_url)
    if not os.path.isfile(file_path):
        raise ConfigurationError(f"Image file not found: {file_path}")
    if not os.access(file_path, os.R_OK):
        raise ConfigurationError(f"Image file not readable: {file_path}")


def build_payload(file_path: str, options: dict | None = None) -> dict:
    """
    Build the ``payload_json`` object for one screenshot.

    ``options`` may carry ``embed`` (merged over the default embed),
    ``username`` and ``avatar_url``.
    """
    options = options or {}
    filename = os.path.basename(file_path)
    date_line = format_date_line(filename)

    embed = {
        "title": EMBED_TITLE,
        "description": EMBED_DESCRIPTION.format(date=date_line),
        "color": EMBED_COLOR,
        "image": {"url": f"attachment://{filename}"},
        "footer": {"text": EMBED_FOOTER},
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    embed.update(options.get("embed") or {})

    return {
        "embeds": [embed],
        "username": options.get("username") or DEFAULT_USERNAME,
        "avatar_url": options.get("avatar_url") or DEFAULT_AVATAR_URL,
        "attachments": [
            {
                "id": 0,
                "filename": filename,
                "description": ATTACHMENT_DESCRIPTION.format(date=date_line),
            }
        ],
    }


def _valid_wait(value) -> float | None:
    try:
        wait = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    if math.isfinite(wait) and wait > 0:
        return wait
    return None


def _retry_after(resp: requests.Response) -> float | None:
    """
    Seconds to wait from a 429 response (Retry-After header or JSON body).

    Values that are not finite and positive are ignored.
    """
    header = resp.headers.get("Retry-After")
    if header:
        wait = _valid_wait(header)
        if wait is not None:
            return wait
    try:
        data = resp.json()
    except ValueError:
        return None
    if isinstance(data, dict):
        value = data.get("retry_after")
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return _valid_wait(value)
    return None


def _raise_for_response(resp: requests.Response, filename: str) -> None:
    body = resp.text or ""
    short_body = body[:_MAX_BODY_IN_MESSAGE]
    if resp.status_code == HTTP_TOO_MANY_REQUESTS:
        retry_after = _retry_after(resp)
        raise RateLimitError(
            f"Webhook rate limited ({resp.status_code}) sending {filename}: "
            f"{short_body}",
            status_code=resp.status_code,
            body=body,
            retry_after=retry_after,
        )
    raise TransportError(
        f"Webhook API error ({resp.status_code}) sending {filename}: {short_body}",
        status_code=resp.status_code,
        body=body,
    )


def deliver(
    file_path: str,
    webhook_url: str,
    options: dict | None = None,
    timeout: float = DEFAULT_REQUEST_TIMEOUT,
) -> bool:
    """
    Upload one screenshot to the webhook.

    Returns True on a 2xx response. Raises ConfigurationError for a missing
    URL or file (no request is made), RateLimitError for HTTP 429, and
    TransportError for any other failure. Does not retry.
    """
    _check_inputs(file_path, webhook_url)

    filename = os.path.basename(file_path)
    payload = build_payload(file_path, options)
    logger.debug("Posting %s to webhook", filename)

    try:
        with open(file_path, "rb") as fh:
            resp = requests.post(
                webhook_url.strip(),
                files={
                    "payload_json": (None, json.dumps(payload), "application/json"),
                    "files[0]": (filename, fh, "image/png"),
                },
                headers={"User-Agent": _USER_AGENT},
                timeout=timeout,
            )
    # RequestException subclasses OSError, so it must be handled first.
    except requests.RequestException as exc:
        raise TransportError(f"Webhook request failed for {filename}: {exc}") from exc
    except OSError as exc:
        raise ConfigurationError(f"Could not read {file_path}: {exc}") from exc

    if not 200 <= resp.status_code < 300:
        _raise_for_response(resp, filename)

    logger.info("Sent to webhook: %s", filename)
    return True
