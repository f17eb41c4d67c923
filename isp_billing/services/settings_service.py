# isp_billing/services/settings_service.py
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Optional

from sqlmodel import Session, select

from ..core.constants import DEFAULT_REMINDER_DAYS
from ..models.setting import Setting

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReminderSettings:
    notification_enabled: bool
    payment_reminder_days: int


class SettingsService:
    def __init__(self, session: Session):
        self.session = session

    def get_all_settings(self) -> Dict[str, str]:
        settings = self.session.exec(select(Setting)).all()
        return {s.key: s.value for s in settings}

    def get_setting(self, key: str, default: Optional[str] = None) -> Optional[str]:
        setting = self.session.get(Setting, key)
        return setting.value if setting else default

    def update_settings(self, settings_to_update: Dict[str, str]):
        for key, value in settings_to_update.items():
            setting = self.session.get(Setting, key)
            if setting:
                setting.value = str(value)
                setting.updated_at = datetime.utcnow()
                self.session.add(setting)
            else:
                self.session.add(Setting(key=key, value=str(value)))

        self.session.commit()

    def get_reminder_settings(self) -> ReminderSettings:
        """
        Read once per reminder run. Notifications are only enabled when the
        operator explicitly set them to true; the window falls back to 3 days.
        """
        settings = self.get_all_settings()

        enabled = settings.get("notification_enabled", "").strip().lower() == "true"

        raw_days = settings.get("payment_reminder_days")
        try:
            days = int(raw_days)
            if days < 0:
                raise ValueError(raw_days)
        except (TypeError, ValueError):
            if raw_days is not None:
                logger.warning(f"Invalid payment_reminder_days {raw_days!r}, using {DEFAULT_REMINDER_DAYS}")
            days = DEFAULT_REMINDER_DAYS

        return ReminderSettings(notification_enabled=enabled, payment_reminder_days=days)
