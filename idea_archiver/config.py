"""
Idea Archiver - Configuration loader.

Loads and validates configuration from a YAML file plus environment overrides.
"""

from __future__ import annotations

import copy
import logging
import os

import yaml
from dotenv import load_dotenv

from idea_archiver.constants import (
    DEFAULT_AVATAR_URL,
    DEFAULT_CAPTURE_URL,
    DEFAULT_DELAY_SECONDS,
    DEFAULT_DEVICE_SCALE_FACTOR,
    DEFAULT_NAVIGATION_TIMEOUT,
    DEFAULT_RATE_LIMIT_COOLDOWN_SECONDS,
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_SETTLE_SECONDS,
    DEFAULT_USERNAME,
    DEFAULT_VIEWPORT_HEIGHT,
    DEFAULT_VIEWPORT_WIDTH,
    MILLISECONDS_PER_SECOND,
)

logger = logging.getLogger(__name__)

DEFAULT_CONFIG = {
    "archive": {
        "root": "archives",
        # Hidden file listing delivered paths; delete it to re-send everything.
        "state_file": ".discord-sent.json",
    },
    "capture": {
        "url": DEFAULT_CAPTURE_URL,
        "viewport_width": DEFAULT_VIEWPORT_WIDTH,
        "viewport_height": DEFAULT_VIEWPORT_HEIGHT,
        "device_scale_factor": DEFAULT_DEVICE_SCALE_FACTOR,
        "navigation_timeout": DEFAULT_NAVIGATION_TIMEOUT,
        "settle_seconds": DEFAULT_SETTLE_SECONDS,
        "full_page": True,
    },
    "delivery": {
        "webhook_url": "",
        "delay_seconds": DEFAULT_DELAY_SECONDS,
        "rate_limit_cooldown_seconds": DEFAULT_RATE_LIMIT_COOLDOWN_SECONDS,
        "request_timeout": DEFAULT_REQUEST_TIMEOUT,
        "username": DEFAULT_USERNAME,
        "avatar_url": DEFAULT_AVATAR_URL,
    },
    "schedule": {
        "hour": 9,
        "minute": 0,
        "run_on_start": False,
    },
    "logging": {
        "level": "INFO",
        "file": "",
    },
}

_CONFIG_PATH_ENV = "IDEA_ARCHIVER_CONFIG"
_DEFAULT_CONFIG_PATH = os.path.join("config", "config.yaml")

# Map env vars to config paths. Type: str, int, "float", bool, or "ms"
# (milliseconds, stored as seconds). Later entries win.
_ENV_TO_CONFIG: list[tuple[str, tuple[str, ...], str | type]] = [
    ("DISCORD_WEBHOOK_URL", ("delivery", "webhook_url"), str),
    ("DISCORD_DELAY_MS", ("delivery", "delay_seconds"), "ms"),
    ("IDEA_ARCHIVER_ARCHIVE_ROOT", ("archive", "root"), str),
    ("IDEA_ARCHIVER_ARCHIVE_STATE_FILE", ("archive", "state_file"), str),
    ("IDEA_ARCHIVER_CAPTURE_URL", ("capture", "url"), str),
    ("IDEA_ARCHIVER_CAPTURE_VIEWPORT_WIDTH", ("capture", "viewport_width"), int),
    ("IDEA_ARCHIVER_CAPTURE_VIEWPORT_HEIGHT", ("capture", "viewport_height"), int),
    (
        "IDEA_ARCHIVER_CAPTURE_DEVICE_SCALE_FACTOR",
        ("capture", "device_scale_factor"),
        "float",
    ),
    (
        "IDEA_ARCHIVER_CAPTURE_NAVIGATION_TIMEOUT",
        ("capture", "navigation_timeout"),
        int,
    ),
    ("IDEA_ARCHIVER_CAPTURE_SETTLE_SECONDS", ("capture", "settle_seconds"), "float"),
    ("IDEA_ARCHIVER_CAPTURE_FULL_PAGE", ("capture", "full_page"), bool),
    ("IDEA_ARCHIVER_DELIVERY_WEBHOOK_URL", ("delivery", "webhook_url"), str),
    ("IDEA_ARCHIVER_DELIVERY_DELAY_SECONDS", ("delivery", "delay_seconds"), "float"),
    (
        "IDEA_ARCHIVER_DELIVERY_RATE_LIMIT_COOLDOWN_SECONDS",
        ("delivery", "rate_limit_cooldown_seconds"),
        "float",
    ),
    ("IDEA_ARCHIVER_DELIVERY_REQUEST_TIMEOUT", ("delivery", "request_timeout"), int),
    ("IDEA_ARCHIVER_DELIVERY_USERNAME", ("delivery", "username"), str),
    ("IDEA_ARCHIVER_DELIVERY_AVATAR_URL", ("delivery", "avatar_url"), str),
    ("IDEA_ARCHIVER_SCHEDULE_HOUR", ("schedule", "hour"), int),
    ("IDEA_ARCHIVER_SCHEDULE_MINUTE", ("schedule", "minute"), int),
    ("IDEA_ARCHIVER_SCHEDULE_RUN_ON_START", ("schedule", "run_on_start"), bool),
    ("IDEA_ARCHIVER_LOGGING_LEVEL", ("logging", "level"), str),
    ("IDEA_ARCHIVER_LOGGING_FILE", ("logging", "file"), str),
]


def _parse_env_bool(val: str) -> bool:
    """Parse string to bool. Accepts true/false, 1/0, yes/no (case-insensitive)."""
    v = val.strip().lower()
    return v in ("true", "1", "yes", "on")


def _parse_env_value(val: str, typ: str | type):
    if typ is str:
        return val
    if typ is int:
        return int(val)
    if typ == "float":
        return float(val) if "." in val else int(val)
    if typ is bool:
        return _parse_env_bool(val)
    if typ == "ms":
        return int(val) / MILLISECONDS_PER_SECOND
    raise ValueError(f"unknown type {typ!r}")


def _env_overrides() -> dict:
    """Build config override dict from environment variables."""
    overrides: dict = {}
    for env_key, path, typ in _ENV_TO_CONFIG:
        val = os.environ.get(env_key, "").strip()
        if not val:
            continue
        try:
            parsed = _parse_env_value(val, typ)
        except (ValueError, TypeError):
            logger.warning("Invalid env %s=%r; ignoring.", env_key, val)
            continue
        target = overrides
        for key in path[:-1]:
            target = target.setdefault(key, {})
        target[path[-1]] = parsed
    return overrides


def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge override into base, returning a new dict."""
    result = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def load_config(config_path: str | None = None) -> dict:
    """
    Load configuration from a YAML file, falling back to defaults.

    A ``.env`` file in the working directory is read first. The config file
    path is resolved in this order:
    1. Explicit ``config_path`` argument
    2. ``IDEA_ARCHIVER_CONFIG`` environment variable
    3. Default path ``config/config.yaml``

    Missing keys fall back to DEFAULT_CONFIG values; environment variables
    override the file.
    """
    load_dotenv()
    path = config_path or os.environ.get(_CONFIG_PATH_ENV, _DEFAULT_CONFIG_PATH)

    config = copy.deepcopy(DEFAULT_CONFIG)

    if os.path.isfile(path):
        try:
            with open(path, "r", encoding="utf-8") as fh:
                user_config = yaml.safe_load(fh) or {}
            if isinstance(user_config, dict):
                config = _deep_merge(config, user_config)
                logger.info("Configuration loaded from %s", path)
            else:
                logger.error(
                    "Config file %s must contain a mapping; using defaults.", path
                )
        except yaml.YAMLError as exc:
            logger.error("Failed to parse config file %s: %s", path, exc)
        except OSError as exc:
            logger.error("Failed to read config file %s: %s", path, exc)
    else:
        logger.debug(
            "Config file not found at %s; using defaults and environment.", path
        )

    env_overrides = _env_overrides()
    if env_overrides:
        config = _deep_merge(config, env_overrides)
        logger.debug("Applied config overrides from environment variables")

    return config


def validate_config(config: dict, require_webhook: bool = True) -> list[str]:
    """
    Validate configuration for minimal operation.

    Returns a list of error messages. Empty list means config is valid.
    """
    errors: list[str] = []

    delivery = config.get("delivery", {})
    webhook_url = (delivery.get("webhook_url") or "").strip()
    if require_webhook and not webhook_url:
        errors.append(
            "Webhook URL is not set. Set DISCORD_WEBHOOK_URL or delivery.webhook_url."
        )
    elif webhook_url and not webhook_url.startswith(("http://", "https://")):
        errors.append("Webhook URL (delivery.webhook_url) must start with http(s)://.")

    root = (config.get("archive", {}).get("root") or "").strip()
    if not root:
        errors.append("Archive root (archive.root) must not be empty.")

    delay = delivery.get("delay_seconds", DEFAULT_DELAY_SECONDS)
    cooldown = delivery.get(
        "rate_limit_cooldown_seconds", DEFAULT_RATE_LIMIT_COOLDOWN_SECONDS
    )
    if delay < 0:
        errors.append("Delivery delay (delivery.delay_seconds) must not be negative.")
    if cooldown <= 0:
        errors.append(
            "Rate-limit cooldown (delivery.rate_limit_cooldown_seconds) must be "
            "positive."
        )
    elif cooldown <= delay:
        # Not fatal: sync.rate_limit_cooldown stretches the pause past the delay.
        logger.warning(
            "Rate-limit cooldown (%ss) is not longer than the delay (%ss); "
            "rate-limit pauses will use twice the delay instead.",
            cooldown,
            delay,
        )

    schedule = config.get("schedule", {})
    if not 0 <= schedule.get("hour", 0) <= 23:
        errors.append("Schedule hour (schedule.hour) must be between 0 and 23.")
    if not 0 <= schedule.get("minute", 0) <= 59:
        errors.append("Schedule minute (schedule.minute) must be between 0 and 59.")

    if errors:
        logger.debug("Config validation failed: %s", "; ".join(errors))
    return errors


def _check_dir_writable(dir_path: str, label: str) -> None:
    test_path = os.path.join(dir_path, ".idea_archiver_write_test")
    try:
        with open(test_path, "wb") as fh:
            fh.write(b"")
    except OSError as exc:
        logger.warning("%s %s is not writable: %s.", label, dir_path, exc)
        return
    try:
        os.unlink(test_path)
    except OSError as exc:
        logger.debug("Could not remove write-test file %s: %s", test_path, exc)


def check_host_resources(config: dict) -> None:
    """
    Log warnings when the archive root or the delivery state location is
    missing or not writable. Helps diagnose volume mount and permission issues.
    """
    root = (config.get("archive", {}).get("root") or "").strip()
    if root:
        if not os.path.isdir(root):
            logger.warning(
                "Archive root %s does not exist yet; it will be created on the "
                "first capture.",
                root,
            )
        else:
            _check_dir_writable(root, "Archive root")

    state_file = (config.get("archive", {}).get("state_file") or "").strip()
    if state_file:
        state_dir = os.path.dirname(os.path.abspath(state_file))
        if os.path.isdir(state_dir):
            _check_dir_writable(state_dir, "Delivery state directory")
        else:
            logger.debug("Delivery state directory %s will be created.", state_dir)
