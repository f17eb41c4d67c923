# isp_billing/billing/reminders.py
"""
Reminder trigger policy: decides whether a client gets a reminder in this run.
Rendering and delivery live in services/notification_service.py.
"""

from datetime import date, datetime
from typing import Optional

from ..core.constants import ClientStatus, MessagingCategory, ReminderKind
from .cycle import BillingSnapshot, days_until_due


def messaging_category(status: ClientStatus) -> MessagingCategory:
    """Suspended clients are addressed as Overdue in messages, nowhere else."""
    status = ClientStatus.parse(status)
    if status == ClientStatus.SUSPENDED:
        return MessagingCategory.OVERDUE
    return MessagingCategory(status.value)


def reminder_kind(
    snapshot: BillingSnapshot,
    now: datetime | date,
    window_days: int,
) -> Optional[ReminderKind]:
    """
    First matching rule wins, so a client gets at most one reminder per run:

    1. outstanding debt
    2. overdue (persisted as Suspended)
    3. due date exactly `window_days` away
    4. due date already passed, whatever the stored status says
    """
    if snapshot.debt_cents > 0:
        return ReminderKind.DEBT
    if messaging_category(snapshot.status) == MessagingCategory.OVERDUE:
        return ReminderKind.OVERDUE

    days_left = days_until_due(snapshot, now)
    if days_left == window_days:
        return ReminderKind.UPCOMING
    if days_left < 0:
        return ReminderKind.PAST_DUE
    return None


def should_remind(snapshot: BillingSnapshot, now: datetime | date, window_days: int) -> bool:
    return reminder_kind(snapshot, now, window_days) is not None
