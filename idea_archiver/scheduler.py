"""
Idea Archiver - Background scheduler.

Runs the daily capture followed by a backfill sync using APScheduler.
"""

import logging
import threading

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from idea_archiver.capture import capture_and_send
from idea_archiver.config import validate_config
from idea_archiver.exceptions import ArchiverError
from idea_archiver.sync import sync_from_config
from idea_archiver.tracker import DeliveryTracker

logger = logging.getLogger(__name__)

# Guards against overlapping runs (job threads and the run_on_start thread)
_state_lock = threading.Lock()
_state = {"running": False}


def _apply_log_level(config: dict) -> None:
    level_str = config.get("logging", {}).get("level", "INFO").upper()
    level = getattr(logging, level_str, logging.INFO)
    logging.getLogger().setLevel(level)


def _daily_job(config: dict) -> None:
    """Scheduled job: capture today's page, then deliver anything unsent."""
    _apply_log_level(config)
    errors = validate_config(config)
    if errors:
        for err in errors:
            logger.warning("Config validation: %s", err)
        return

    with _state_lock:
        if _state["running"]:
            logger.warning("Daily run skipped: previous run still in progress.")
            return
        _state["running"] = True

    logger.info("Daily run started.")
    try:
        tracker = DeliveryTracker(config["archive"]["state_file"])
        try:
            capture_and_send(config, tracker=tracker)
        except ArchiverError as exc:
            # Still backfill: earlier captures may be waiting to be sent.
            logger.error("Capture failed: %s", exc)
        sync_from_config(config, tracker=tracker)
    except Exception:
        logger.exception("Daily run failed")
    finally:
        with _state_lock:
            _state["running"] = False


def start_scheduler(config_getter) -> BackgroundScheduler:
    """
    Create, configure, and start the background scheduler.

    Args:
        config_getter: Callable returning the current config dict, read on
            every run.

    Returns:
        The scheduler instance for graceful shutdown.
    """

    def _job_wrapper() -> None:
        _daily_job(config_getter())

    config = config_getter()
    hour = config["schedule"].get("hour", 9)
    minute = config["schedule"].get("minute", 0)

    scheduler = BackgroundScheduler(daemon=True)
    scheduler.add_job(
        _job_wrapper,
        trigger=CronTrigger(hour=hour, minute=minute),
        id="daily",
        name="Idea of the Day capture",
        replace_existing=True,
    )
    scheduler.start()

    logger.info("Scheduler started: daily at %02d:%02d.", hour, minute)
    job = scheduler.get_job("daily")
    if job and job.next_run_time:
        logger.info("Next run at %s", job.next_run_time)

    if config["schedule"].get("run_on_start", False):
        logger.info("run_on_start is enabled; running the daily job now.")
        threading.Thread(target=_job_wrapper, daemon=True).start()

    return scheduler

