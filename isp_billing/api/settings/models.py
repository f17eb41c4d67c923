from pydantic import BaseModel


class ReminderSettingsRead(BaseModel):
    notification_enabled: bool
    payment_reminder_days: int
