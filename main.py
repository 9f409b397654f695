"""
Idea Archiver - application entry point.

Commands:
    capture   screenshot today's page into the archive and send it
    sync      send every archived screenshot that has not been sent yet
    run       capture, then sync
    schedule  run capture + sync every day at schedule.hour:schedule.minute
    reset     forget delivery state so the next sync re-sends everything
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
import time

from idea_archiver.capture import capture_and_send
from idea_archiver.config import check_host_resources, load_config, validate_config
from idea_archiver.exceptions import CaptureError, ConfigurationError
from idea_archiver.scheduler import start_scheduler
from idea_archiver.sync import sync_from_config
from idea_archiver.tracker import DeliveryTracker
from idea_archiver.version import VERSION

EXIT_OK = 0
EXIT_CONFIG_ERROR = 1
EXIT_CAPTURE_ERROR = 2

logger = logging.getLogger(__name__)


def setup_logging(config: dict) -> None:
    level_str = config.get("logging", {}).get("level", "INFO").upper()
    level = getattr(logging, level_str, logging.INFO)

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]

    log_file = config.get("logging", {}).get("file", "")
    if log_file:
        try:
            log_dir = os.path.dirname(log_file)
            if log_dir:
                os.makedirs(log_dir, exist_ok=True)
            handlers.append(logging.FileHandler(log_file))
        except OSError as exc:
            logging.getLogger(__name__).warning(
                "Could not open log file %s: %s. Logging to stdout only.",
                log_file,
                exc,
            )

    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=handlers,
        force=True,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="idea-archiver",
        description="Capture the Idea of the Day and archive it to a webhook.",
    )
    parser.add_argument(
        "--config", help="Path to config YAML (default: config/config.yaml)"
    )
    parser.add_argument("--version", action="version", version=VERSION)
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("capture", help="Screenshot today's page and send it.")
    sub.add_parser("sync", help="Send all archived screenshots not yet sent.")
    sub.add_parser("run", help="Capture, then sync.")
    sub.add_parser("schedule", help="Run capture + sync daily.")
    sub.add_parser("reset", help="Delete delivery state to force a full re-send.")
    return parser


def _config_errors(config: dict, require_webhook: bool) -> bool:
    errors = validate_config(config, require_webhook=require_webhook)
    for err in errors:
        logger.error("Configuration error: %s", err)
    return bool(errors)


def cmd_capture(config: dict) -> int:
    if _config_errors(config, require_webhook=False):
        return EXIT_CONFIG_ERROR
    try:
        capture_and_send(config)
    except CaptureError as exc:
        logger.error("Capture failed: %s", exc)
        return EXIT_CAPTURE_ERROR
    return EXIT_OK


def cmd_sync(config: dict) -> int:
    if _config_errors(config, require_webhook=True):
        return EXIT_CONFIG_ERROR
    logger.info("Archive root: %s", config["archive"]["root"])
    logger.info("Delay between messages: %ss", config["delivery"]["delay_seconds"])
    try:
        stats = sync_from_config(config)
    except ConfigurationError as exc:
        logger.error("Configuration error: %s", exc)
        return EXIT_CONFIG_ERROR
    logger.info("Sent %d file(s), %d failed.", stats["delivered"], stats["failed"])
    return EXIT_OK


def cmd_run(config: dict) -> int:
    if _config_errors(config, require_webhook=True):
        return EXIT_CONFIG_ERROR
    code = cmd_capture(config)
    # Backfill even if today's capture failed.
    sync_code = cmd_sync(config)
    return code or sync_code


def cmd_schedule(config: dict) -> int:
    if _config_errors(config, require_webhook=True):
        return EXIT_CONFIG_ERROR
    scheduler = start_scheduler(lambda: config)
    try:
        while True:
            time.sleep(3600)
    except KeyboardInterrupt:
        pass
    finally:
        scheduler.shutdown(wait=False)
        logger.info("Archiver shut down.")
    return EXIT_OK


def cmd_reset(config: dict) -> int:
    tracker = DeliveryTracker(config["archive"]["state_file"])
    if not tracker.reset():
        logger.info("No delivery state at %s; nothing to reset.", tracker.state_path)
    return EXIT_OK


_COMMANDS = {
    "capture": cmd_capture,
    "sync": cmd_sync,
    "run": cmd_run,
    "schedule": cmd_schedule,
    "reset": cmd_reset,
}


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    config = load_config(args.config)
    setup_logging(config)

    logger.info("Idea Archiver %s: %s", VERSION, args.command)
    check_host_resources(config)
    return _COMMANDS[args.command](config)


if __name__ == "__main__":
    sys.exit(main())
