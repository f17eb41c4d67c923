from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from isp_billing.scheduler import build_scheduler, parse_interval, parse_run_hour
from isp_billing.services.settings_service import SettingsService


def test_parse_run_hour():
    assert parse_run_hour("07:45") == (7, 45)
    assert parse_run_hour("25:00") == (9, 0)
    assert parse_run_hour(None) == (9, 0)


def test_parse_interval():
    assert parse_interval("600") == 600
    assert parse_interval("0") == 3600
    assert parse_interval("hourly") == 3600


def test_jobs_follow_settings(session):
    SettingsService(session).update_settings({"billing_scan_interval": "900", "reminder_run_hour": "08:30"})

    scheduler = build_scheduler()

    billing = scheduler.get_job("billing_job")
    reminders = scheduler.get_job("reminder_job")
    assert isinstance(billing.trigger, IntervalTrigger)
    assert billing.trigger.interval.total_seconds() == 900
    assert isinstance(reminders.trigger, CronTrigger)
    assert "hour='8'" in str(reminders.trigger)
    assert "minute='30'" in str(reminders.trigger)
