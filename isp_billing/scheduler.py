# isp_billing/scheduler.py
import logging
import time

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from .core.config import get_settings
from .utils.settings_utils import get_setting_sync

logger = logging.getLogger("Scheduler")

DEFAULT_SCAN_INTERVAL = 3600
DEFAULT_REMINDER_HOUR = (9, 0)


def job_listener(event):
    """Logs the outcome of every scheduled job."""
    if event.exception:
        logger.error(f"Job {event.job_id} failed: {event.exception}")
    else:
        logger.info(f"Job {event.job_id} executed successfully")


def parse_run_hour(value: str | None, default: tuple[int, int] = DEFAULT_REMINDER_HOUR) -> tuple[int, int]:
    """'09:30' -> (9, 30); anything invalid falls back to `default`."""
    try:
        hour, minute = (int(part) for part in value.split(":"))
        if not (0 <= hour < 24 and 0 <= minute < 60):
            raise ValueError(value)
        return hour, minute
    except (ValueError, AttributeError):
        logger.warning(f"Invalid run hour: {value!r}. Using {default[0]:02d}:{default[1]:02d}")
        return default


def parse_interval(value: str | None, default: int = DEFAULT_SCAN_INTERVAL) -> int:
    if value and value.isdigit() and int(value) > 0:
        return int(value)
    return default


def build_scheduler() -> BackgroundScheduler:
    """
    Configures the jobs without starting them:
    - billing scan every `billing_scan_interval` seconds (default hourly)
    - payment reminders daily at `reminder_run_hour` (default 09:00)
    """
    # Late imports so the scheduler process only opens the DB when it runs
    from .services.billing_job import run_billing_check, run_reminder_check

    scheduler = BackgroundScheduler(
        job_defaults={
            "coalesce": True,  # Missed runs collapse into one
            "max_instances": 1,
            "misfire_grace_time": 300,
        }
    )
    scheduler.add_listener(job_listener, EVENT_JOB_EXECUTED | EVENT_JOB_ERROR)

    scan_interval = parse_interval(get_setting_sync("billing_scan_interval"))
    logger.info(f"Scheduling billing scan every {scan_interval} seconds")
    scheduler.add_job(
        run_billing_check,
        trigger=IntervalTrigger(seconds=scan_interval),
        id="billing_job",
        name="Billing Cycle Scan",
        replace_existing=True,
    )

    hour, minute = parse_run_hour(get_setting_sync("reminder_run_hour"))
    logger.info(f"Scheduling payment reminders daily at {hour:02d}:{minute:02d}")
    scheduler.add_job(
        run_reminder_check,
        trigger=CronTrigger(hour=hour, minute=minute),
        id="reminder_job",
        name="Daily Payment Reminders",
        replace_existing=True,
    )
    return scheduler


def run_scheduler():
    """
    Entry point for the scheduler process. Blocks until interrupted.
    """
    logging.basicConfig(
        level=get_settings().log_level.upper(),
        format="%(asctime)s - %(levelname)s - [Scheduler] - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logger.info("Initializing BackgroundScheduler...")
    scheduler = build_scheduler()
    scheduler.start()
    logger.info("Scheduler started")

    try:
        while True:
            time.sleep(60)
    except (KeyboardInterrupt, SystemExit):
        logger.info("Stopping scheduler...")
        scheduler.shutdown()
        logger.info("Scheduler stopped")


if __name__ == "__main__":
    run_scheduler()
