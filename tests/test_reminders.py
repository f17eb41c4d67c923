from datetime import datetime

import pytest

from isp_billing.billing.cycle import BillingSnapshot
from isp_billing.billing.reminders import messaging_category, reminder_kind, should_remind
from isp_billing.core.constants import ClientStatus, MessagingCategory, ReminderKind
from isp_billing.utils.phone import normalize_phone

NOW = datetime(2024, 3, 1, 9, 0)


def snapshot(**fields) -> BillingSnapshot:
    record = {"status": "Pending", "due_date": "2024-03-04", "amount_paid": 1000, "debt": 0}
    record.update(fields)
    return BillingSnapshot.from_record(record)


def test_debt_has_priority_over_everything():
    snap = snapshot(due_date="2024-03-31", debt=500)

    assert reminder_kind(snap, NOW, 3) == ReminderKind.DEBT


def test_suspended_clients_get_overdue_reminder():
    assert reminder_kind(snapshot(status="Suspended", due_date="2024-03-20"), NOW, 3) == ReminderKind.OVERDUE


def test_upcoming_fires_only_on_the_exact_day():
    assert reminder_kind(snapshot(due_date="2024-03-04"), NOW, 3) == ReminderKind.UPCOMING
    assert reminder_kind(snapshot(due_date="2024-03-05"), NOW, 3) is None
    assert reminder_kind(snapshot(due_date="2024-03-03"), NOW, 3) is None


def test_past_due_date_fires_whatever_the_status():
    assert reminder_kind(snapshot(status="Paid", due_date="2024-02-20"), NOW, 3) == ReminderKind.PAST_DUE


def test_should_remind():
    assert should_remind(snapshot(debt=1), NOW, 3)
    assert not should_remind(snapshot(due_date="2024-03-10"), NOW, 3)


def test_messaging_category_maps_suspended_to_overdue():
    assert messaging_category(ClientStatus.SUSPENDED) == MessagingCategory.OVERDUE
    assert messaging_category("Overdue") == MessagingCategory.OVERDUE
    assert messaging_category("Paid") == MessagingCategory.PAID


@pytest.mark.parametrize(
    "raw",
    ["0712345678", "712345678", "254712345678", "+254 712 345 678", "0112345678"],
)
def test_normalize_phone(raw):
    assert normalize_phone(raw).startswith("+254")
    assert len(normalize_phone(raw)) == 13


@pytest.mark.parametrize("raw", ["", "12345", "+1 555 123 4567", "0812345678"])
def test_normalize_phone_rejects_invalid(raw):
    from isp_billing.core.exceptions import InvalidPhoneNumberError

    with pytest.raises(InvalidPhoneNumberError):
        normalize_phone(raw)
