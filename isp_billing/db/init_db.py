# isp_billing/db/init_db.py
import logging

from sqlmodel import Session

from ..models.setting import Setting
from .engine_sync import create_sync_db_and_tables, sync_engine

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS = [
    ("company_name", "Mi ISP"),
    ("currency_symbol", "KES"),
    ("notification_enabled", "false"),
    ("payment_reminder_days", "3"),
    ("reminder_run_hour", "09:00"),
    ("billing_scan_interval", "3600"),
    ("payment_instructions", ""),
]


def setup_database(engine=None):
    """
    Creates the tables and seeds default settings without overwriting
    values already configured by the operator.
    """
    engine = engine or sync_engine
    logger.info("Configuring billing database...")
    create_sync_db_and_tables(engine)

    with Session(engine) as session:
        added = 0
        for key, value in DEFAULT_SETTINGS:
            if session.get(Setting, key) is None:
                session.add(Setting(key=key, value=value))
                added += 1
        session.commit()

    logger.info(f"Database ready ({added} default settings added).")
