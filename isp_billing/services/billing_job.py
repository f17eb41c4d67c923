import logging

import requests
from sqlmodel import Session

from ..core.config import get_settings
from ..core.constants import Table
from ..db.engine_sync import sync_engine
from .billing_service import BillingService
from .notification_service import NotificationService

logger = logging.getLogger("BillingJob")


def notify_api_update(tables):
    """
    Asks the API process to push "db_updated" to the dashboards.
    The API may be restarting; the job carries on either way.
    """
    try:
        response = requests.post(
            get_settings().notify_url,
            json={"tables": [Table(t).value for t in tables]},
            timeout=2,
        )
        response.raise_for_status()
        return True
    except requests.RequestException as e:
        logger.warning(f"Could not notify the API of updated {list(tables)}: {e}")
        return False


def run_billing_check(engine=None):
    """
    Runs ONE billing cycle scan. Called periodically by APScheduler.
    """
    logger.info("--- RUNNING BILLING CYCLE SCAN ---")
    try:
        with Session(engine or sync_engine) as session:
            report = BillingService(session).process_rollovers()
            logger.info(f"--- END OF SCAN. Summary: {report.to_dict()} ---")
    except Exception as e:
        logger.critical(f"Critical error in billing scan: {e}", exc_info=True)
        raise

    if report.updated:
        notify_api_update([Table.CLIENTS, Table.MESSAGES])
    return report


def run_reminder_check(engine=None):
    """
    Runs ONE reminder pass. Called daily by APScheduler.
    """
    logger.info("--- RUNNING PAYMENT REMINDERS ---")
    try:
        with Session(engine or sync_engine) as session:
            report = NotificationService(session).run_reminders()
            for inconsistency in report.inconsistencies:
                logger.error(f"Needs manual reconciliation: {inconsistency.to_dict()}")
    except Exception as e:
        logger.critical(f"Critical error in reminder run: {e}", exc_info=True)
        raise

    if report.reminded:
        notify_api_update([Table.MESSAGES])
    return report
