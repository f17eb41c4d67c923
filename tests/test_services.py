import uuid
from datetime import date, datetime, timedelta
from decimal import Decimal

import pytest
import requests
from sqlalchemy.exc import OperationalError

from isp_billing.core.config import get_settings
from isp_billing.core.constants import ClientStatus, MessageStatus, MessageType, ReminderKind, Table
from isp_billing.core.exceptions import (
    ConstraintViolation,
    InvalidAmountError,
    InvalidPhoneNumberError,
    InvalidTransitionError,
    NotFound,
)
from isp_billing.services import billing_job
from isp_billing.services.billing_job import run_billing_check
from isp_billing.services.billing_service import BillingService
from isp_billing.services.client_service import ClientService
from isp_billing.services.debt_service import DebtService
from isp_billing.services.expense_service import ExpenseService
from isp_billing.services.message_service import MessageService
from isp_billing.services.notification_service import NotificationService
from isp_billing.services.report_service import ReportService
from isp_billing.services.settings_service import SettingsService


class FailingGateway:
    def send_whatsapp(self, phone, text):
        raise ConnectionError("gateway down")

    def send_sms(self, phone, text):
        raise ConnectionError("gateway down")


def messages_for(session, client_id, message_type=None):
    return MessageService(session).get_messages(client_id=client_id, message_type=message_type)


# --- Clients ---


def test_create_client_normalizes_phone(session):
    client = ClientService(session).create_client(
        {"name": "Peter Otieno", "phone_number": "0722 000 111", "amount_paid": 1500, "due_date": "2024-03-10"}
    )

    assert client.phone_number == "+254722000111"
    assert client.status == ClientStatus.PENDING.value
    assert client.due_date == date(2024, 3, 10)
    assert client.debt == 0


def test_create_client_rejects_bad_phone(session):
    with pytest.raises(InvalidPhoneNumberError):
        ClientService(session).create_client(
            {"name": "Bad", "phone_number": "12", "amount_paid": 1000, "due_date": "2024-03-10"}
        )


def test_create_client_requires_due_date(session):
    with pytest.raises(ConstraintViolation):
        ClientService(session).create_client({"name": "No Date", "phone_number": "0712345678"})


def test_bulk_import_is_all_or_nothing(session):
    service = ClientService(session)
    rows = [
        {"name": "A", "phone_number": "0711111111", "amount_paid": 1000, "due_date": "2024-03-01"},
        {"name": "B", "phone_number": "nope", "amount_paid": 1000, "due_date": "2024-03-01"},
    ]

    with pytest.raises(ConstraintViolation, match="Row 2"):
        service.bulk_create_clients(rows)
    assert service.list_clients() == []


def test_update_rejects_immutable_fields(session, make_client):
    client = make_client()

    with pytest.raises(ConstraintViolation):
        ClientService(session).update(client.id, {"created_at": datetime(2020, 1, 1)})


@pytest.mark.parametrize("field,value", [("status", "Suspended"), ("debt", 0), ("previous_due_date", "2024-01-01")])
def test_profile_edit_refuses_billing_fields(session, make_client, field, value):
    client = make_client(status="Paid", debt=1000.0, previous_due_date=date(2024, 3, 1), due_date=date(2024, 4, 1))

    with pytest.raises(ConstraintViolation):
        ClientService(session).update_client(client.id, {field: value})

    session.refresh(client)
    assert (client.status, client.debt) == ("Paid", 1000.0)


def test_due_date_edit_drops_revert_target(session, make_client):
    client = make_client(status="Paid", previous_due_date=date(2024, 3, 1), due_date=date(2024, 4, 1))

    edited = ClientService(session).update_client(client.id, {"due_date": "2024-05-10"})
    assert edited.previous_due_date is None

    reverted = BillingService(session).revert_payment(client.id)
    assert reverted.due_date == date(2024, 5, 10)


def test_batch_update_sets_due_date_and_amount(session, make_client):
    a = make_client(name="A", status="Paid", previous_due_date=date(2024, 2, 1))
    b = make_client(name="B", amount_paid=500.0)

    updated = ClientService(session).bulk_update_clients(
        [a.id, b.id], {"due_date": "2024-06-01", "amount_paid": "1500"}
    )

    assert {c.due_date for c in updated} == {date(2024, 6, 1)}
    assert {c.amount_paid for c in updated} == {1500.0}
    assert all(c.previous_due_date is None for c in updated)
    assert a.status == "Paid"


def test_batch_update_is_all_or_nothing(session, make_client):
    client = make_client(amount_paid=500.0)
    service = ClientService(session)

    with pytest.raises(NotFound):
        service.bulk_update_clients([client.id, uuid.uuid4()], {"amount_paid": 900})
    with pytest.raises(ConstraintViolation):
        service.bulk_update_clients([client.id], {"status": "Paid"})

    session.refresh(client)
    assert client.amount_paid == 500.0


def test_batch_delete(session, make_client):
    a = make_client(name="A")
    b = make_client(name="B")
    keep = make_client(name="C")
    service = ClientService(session)

    with pytest.raises(NotFound):
        service.bulk_delete_clients([a.id, uuid.uuid4()])
    assert len(service.list_clients()) == 3

    assert set(service.bulk_delete_clients([a.id, b.id])) == {a.id, b.id}
    assert [c.id for c in service.list_clients()] == [keep.id]


def test_list_clients_accepts_overdue_filter(session, make_client):
    make_client(name="Suspended One", status="Suspended")
    make_client(name="Pending One")

    clients = ClientService(session).list_clients({"status": "Overdue"})

    assert [c.name for c in clients] == ["Suspended One"]


def test_unknown_client_raises_not_found(session):
    with pytest.raises(NotFound):
        ClientService(session).get_client_by_id(uuid.uuid4())


def test_change_feed_notifies_after_commit(session):
    seen = []
    unsubscribe = ClientService.subscribe_to_changes("clients", seen.append)

    ClientService(session).create_client(
        {"name": "Feed", "phone_number": "0712345678", "amount_paid": 100, "due_date": "2024-03-01"}
    )
    assert seen == ["clients"]

    unsubscribe()
    ClientService(session).create_client(
        {"name": "Feed 2", "phone_number": "0712345679", "amount_paid": 100, "due_date": "2024-03-01"}
    )
    assert seen == ["clients"]


def test_change_feed_ignores_rolled_back_writes(session):
    seen = []
    ClientService.subscribe_to_changes("*", seen.append)

    with pytest.raises(ConstraintViolation):
        ClientService(session).bulk_create_clients(
            [{"name": "X", "phone_number": "bad", "due_date": "2024-03-01"}]
        )

    assert seen == []


# --- Billing ---


def test_late_mark_paid_accrues_and_logs_once(session, make_client):
    client = make_client(due_date=date(2024, 3, 1))

    updated = BillingService(session).mark_paid(client.id, now=datetime(2024, 3, 5))

    assert updated.status == ClientStatus.PAID.value
    assert updated.due_date == date(2024, 4, 1)
    assert updated.previous_due_date == date(2024, 3, 1)
    assert updated.debt == 1000.0

    log = messages_for(session, client.id, MessageType.BILLING)
    assert len(log) == 1
    assert "added to debt" in log[0].message


def test_revert_restores_due_date_and_keeps_debt(session, make_client):
    client = make_client(due_date=date(2024, 3, 1))
    service = BillingService(session)
    service.toggle_payment(client.id, now=datetime(2024, 3, 5))

    reverted = service.toggle_payment(client.id, now=datetime(2024, 3, 5))

    assert reverted.status == ClientStatus.PENDING.value
    assert reverted.due_date == date(2024, 3, 1)
    assert reverted.previous_due_date is None
    assert reverted.debt == 1000.0


def test_paid_client_cannot_be_suspended(session, make_client):
    client = make_client(status="Paid", due_date=date(2024, 4, 1))

    with pytest.raises(InvalidTransitionError):
        BillingService(session).toggle_suspension(client.id, now=datetime(2024, 3, 1))


def test_scan_isolates_bad_records(session, make_client):
    good = make_client(name="A Good", status="Paid", due_date=date(2024, 3, 5))
    no_date = make_client(name="B No Date", due_date=None)
    negative = make_client(name="C Negative", debt=-10.0)
    far = make_client(name="D Far", status="Paid", due_date=date(2024, 4, 30))

    report = BillingService(session).process_rollovers(now=datetime(2024, 3, 1))

    assert report.processed == 4
    assert report.updated == [str(good.id)]
    assert {f["client_id"] for f in report.failures} == {str(no_date.id), str(negative.id)}
    assert all(f["error"] == "data_integrity" for f in report.failures)

    session.refresh(good)
    session.refresh(far)
    assert good.status == ClientStatus.PENDING.value
    assert good.due_date == date(2024, 4, 5)
    assert far.status == ClientStatus.PAID.value


def test_scan_twice_changes_nothing_the_second_time(session, make_client):
    make_client(status="Paid", due_date=date(2024, 3, 5))
    service = BillingService(session)
    now = datetime(2024, 3, 1)

    assert len(service.process_rollovers(now=now).updated) == 1
    assert service.process_rollovers(now=now).updated == []


def test_scan_survives_database_error(session, make_client, monkeypatch):
    locked = make_client(name="A Locked", status="Paid", due_date=date(2024, 3, 5))
    fine = make_client(name="B Fine", status="Paid", due_date=date(2024, 3, 6))
    real_commit = session.commit
    commits = []

    def flaky_commit():
        commits.append(1)
        if len(commits) == 1:
            raise OperationalError("INSERT INTO messages", {}, Exception("database is locked"))
        real_commit()

    monkeypatch.setattr(session, "commit", flaky_commit)
    report = BillingService(session).process_rollovers(now=datetime(2024, 3, 1))
    monkeypatch.undo()

    assert report.processed == 2
    assert report.updated == [str(fine.id)]
    assert report.failures[0]["client_id"] == str(locked.id)
    assert report.failures[0]["error"] == "database_error"

    session.refresh(locked)
    session.refresh(fine)
    assert (locked.status, locked.due_date) == ("Paid", date(2024, 3, 5))
    assert messages_for(session, locked.id) == []
    assert fine.status == ClientStatus.PENDING.value
    assert len(messages_for(session, fine.id, MessageType.BILLING)) == 1


def test_billing_job_uses_given_engine(database, make_client, monkeypatch):
    monkeypatch.setattr(billing_job, "notify_api_update", lambda tables: True)
    make_client(status="Paid", due_date=date.today())

    report = run_billing_check(engine=database)

    assert len(report.updated) == 1


def test_billing_job_notifies_api_only_after_updates(database, make_client, monkeypatch):
    notified = []
    monkeypatch.setattr(billing_job, "notify_api_update", lambda tables: notified.append(list(tables)))
    make_client(name="Far", status="Paid", due_date=date.today() + timedelta(days=25))

    run_billing_check(engine=database)
    assert notified == []

    make_client(name="Near", status="Paid", due_date=date.today())
    run_billing_check(engine=database)
    assert notified == [[Table.CLIENTS, Table.MESSAGES]]


def test_notify_api_update_posts_tables(monkeypatch):
    calls = []

    class Accepted:
        def raise_for_status(self):
            pass

    def fake_post(url, json, timeout):
        calls.append((url, json))
        return Accepted()

    monkeypatch.setattr(billing_job.requests, "post", fake_post)

    assert billing_job.notify_api_update([Table.CLIENTS]) is True
    assert calls == [(get_settings().notify_url, {"tables": ["clients"]})]


def test_notify_api_update_tolerates_api_down(monkeypatch):
    def refused(*args, **kwargs):
        raise requests.ConnectionError("connection refused")

    monkeypatch.setattr(billing_job.requests, "post", refused)

    assert billing_job.notify_api_update([Table.MESSAGES]) is False


# --- Debts ---


def test_charge_and_payments_log_one_message_each(session, make_client):
    client = make_client()
    service = DebtService(session)

    service.add_charge(client.id, 1000, "Router replacement")
    service.pay_client_debt(client.id, 400)
    paid = service.pay_client_debt(client.id, 600)

    assert paid.debt == 0
    log = MessageService(session).get_messages(client_id=client.id)
    assert [m.type for m in log].count(MessageType.DEBT_CHARGE.value) == 1
    assert [m.type for m in log].count(MessageType.DEBT_PAYMENT.value) == 2
    assert "Debt fully paid" in log[0].message
    assert "Remaining balance: KES 600" in log[1].message


def test_overpayment_is_rejected_without_logging(session, make_client):
    client = make_client(debt=100.0)

    with pytest.raises(InvalidAmountError):
        DebtService(session).pay_client_debt(client.id, 150)

    assert messages_for(session, client.id) == []
    session.refresh(client)
    assert client.debt == 100.0


def test_clear_debt_closes_open_records(session, make_client):
    client = make_client()
    service = DebtService(session)
    record = service.create_debt_record(client.id, 500, reason="Installation")

    cleared = service.clear_client_debt(client.id)

    assert cleared.debt == 0
    session.refresh(record)
    assert record.status == "paid"


def test_clear_debt_is_logged_as_write_off(session, make_client):
    client = make_client(debt=750.0)

    DebtService(session).clear_client_debt(client.id)

    log = messages_for(session, client.id, MessageType.DEBT_PAYMENT)
    assert log[0].message == "Outstanding balance of KES 750 written off. No debt remaining."
    assert "received" not in log[0].message


def test_client_payment_settles_oldest_records_first(session, make_client):
    client = make_client()
    service = DebtService(session)
    older = service.create_debt_record(client.id, 300, due_date=date(2024, 1, 1), reason="Router")
    newer = service.create_debt_record(client.id, 500, due_date=date(2024, 2, 1), reason="Cable")

    paid = service.pay_client_debt(client.id, 400)

    session.refresh(older)
    session.refresh(newer)
    assert (older.collected_amount, older.status) == (300.0, "paid")
    assert (newer.collected_amount, newer.status) == (100.0, "partially_paid")
    assert service.totals()["outstanding"] == Decimal(str(paid.debt)).quantize(Decimal("0.01"))


def test_debt_record_lifecycle(session, make_client):
    client = make_client()
    service = DebtService(session)

    record = service.create_debt_record(client.id, 500, reason="Cable")
    assert record.status == "pending"
    assert record.due_date == date(2024, 3, 1)

    record = service.record_debt_payment(record.id, 200)
    assert record.status == "partially_paid"
    session.refresh(client)
    assert client.debt == 300.0

    with pytest.raises(InvalidAmountError):
        service.record_debt_payment(record.id, 301)

    record = service.mark_debt_paid(record.id)
    assert record.status == "paid"
    session.refresh(client)
    assert client.debt == 0

    count = len(messages_for(session, client.id))
    service.mark_debt_paid(record.id)
    assert len(messages_for(session, client.id)) == count

    assert service.totals() == {
        "total": Decimal("500.00"),
        "collected": Decimal("500.00"),
        "outstanding": Decimal("0.00"),
    }


def test_unknown_debt_record(session):
    with pytest.raises(NotFound):
        DebtService(session).record_debt_payment(999, 10)


# --- Settings & reminders ---


def test_reminder_settings_fail_closed(session):
    service = SettingsService(session)
    assert service.get_reminder_settings().notification_enabled is False

    service.update_settings({"notification_enabled": "yes", "payment_reminder_days": "soon"})
    settings = service.get_reminder_settings()
    assert settings.notification_enabled is False
    assert settings.payment_reminder_days == 3

    service.update_settings({"notification_enabled": "true", "payment_reminder_days": "5"})
    settings = service.get_reminder_settings()
    assert settings.notification_enabled is True
    assert settings.payment_reminder_days == 5


def test_reminder_run_skipped_when_disabled(session, make_client):
    make_client(debt=100.0)

    report = NotificationService(session).run_reminders(now=datetime(2024, 2, 27))

    assert report.skipped is True
    assert report.reminded == []


def test_reminder_run_one_reminder_per_client(session, make_client):
    SettingsService(session).update_settings({"notification_enabled": "true"})
    debtor = make_client(name="A Debtor", due_date=date(2024, 3, 1), debt=200.0)
    upcoming = make_client(name="B Upcoming", due_date=date(2024, 3, 1))
    quiet = make_client(name="C Quiet", due_date=date(2024, 3, 20))
    broken = make_client(name="D Broken", due_date=None)

    report = NotificationService(session).run_reminders(now=datetime(2024, 2, 27, 9, 0))

    kinds = {r.client_id: r.kind for r in report.reminded}
    assert kinds == {debtor.id: ReminderKind.DEBT, upcoming.id: ReminderKind.UPCOMING}
    assert quiet.id not in kinds
    assert [f["client_id"] for f in report.failures] == [str(broken.id)]
    assert report.inconsistencies == []

    log = messages_for(session, debtor.id)
    assert len(log) == 1
    assert log[0].type == MessageType.DEBT_REMINDER.value
    assert "outstanding balance of KES 200" in log[0].message
    assert report.reminded[0].link.startswith("https://wa.me/254712345678?text=")


def test_failed_dispatch_is_logged_and_reported(session, make_client):
    SettingsService(session).update_settings({"notification_enabled": "true"})
    client = make_client(debt=50.0)

    report = NotificationService(session, gateway=FailingGateway()).run_reminders(now=datetime(2024, 2, 1))

    assert len(report.inconsistencies) == 1
    inconsistency = report.inconsistencies[0]
    assert inconsistency.dispatched is False
    assert inconsistency.logged is True
    assert messages_for(session, client.id)[0].status == MessageStatus.FAILED.value


def test_dispatched_but_not_logged_is_reported(session, make_client, monkeypatch):
    SettingsService(session).update_settings({"notification_enabled": "true"})
    client = make_client(debt=50.0)
    service = NotificationService(session)

    def broken_log(*args, **kwargs):
        raise RuntimeError("disk full")

    monkeypatch.setattr(service.message_service, "record_message", broken_log)
    report = service.run_reminders(now=datetime(2024, 2, 1))

    assert report.reminded[0].dispatched is True
    assert report.inconsistencies[0].logged is False
    assert "disk full" in report.inconsistencies[0].reason
    assert messages_for(session, client.id) == []


def test_manual_reminder_uses_sms_link(session, make_client):
    client = make_client(due_date=date(2024, 3, 20))

    outcome = NotificationService(session).send_reminder(client.id, now=datetime(2024, 3, 1), channel="sms")

    assert outcome.kind == ReminderKind.UPCOMING
    assert outcome.link.startswith("sms:254712345678?body=")
    assert messages_for(session, client.id)[0].channel == "sms"


def test_custom_message_is_handed_off_then_logged(session, make_client):
    client = make_client()

    outcome = NotificationService(session).send_custom_message(client.id, "  Router visit on Friday.  ")

    assert outcome.dispatched and outcome.logged
    assert outcome.link == "https://wa.me/254712345678?text=Router%20visit%20on%20Friday."
    log = messages_for(session, client.id, MessageType.CUSTOM)
    assert [m.message for m in log] == ["Router visit on Friday."]
    assert log[0].channel == "whatsapp"


def test_custom_message_dispatch_failure_is_logged_as_failed(session, make_client):
    client = make_client()

    outcome = NotificationService(session, gateway=FailingGateway()).send_custom_message(
        client.id, "Hello", channel="sms"
    )

    assert outcome.dispatched is False
    assert outcome.logged is True
    assert messages_for(session, client.id)[0].status == MessageStatus.FAILED.value


@pytest.mark.parametrize("text,channel", [("   ", "whatsapp"), ("Hello", "system")])
def test_custom_message_rejects_empty_text_and_system_channel(session, make_client, text, channel):
    client = make_client()

    with pytest.raises(ConstraintViolation):
        NotificationService(session).send_custom_message(client.id, text, channel=channel)

    assert messages_for(session, client.id) == []


# --- Expenses & reports ---


def test_expense_summary_by_category(session):
    service = ExpenseService(session)
    service.create_expense({"description": "Bandwidth", "amount": 5000, "category": "Internet", "date": date(2024, 3, 2)})
    service.create_expense({"description": "Cable", "amount": 750.5, "category": "Equipment", "date": date(2024, 3, 9)})
    service.create_expense({"description": "Old", "amount": 100, "category": "Other", "date": date(2024, 2, 28)})

    summary = service.summarize(service.get_month_expenses(2024, 3))

    assert summary["count"] == 2
    assert summary["total"] == Decimal("5750.50")
    assert summary["by_category"] == {"Equipment": Decimal("750.50"), "Internet": Decimal("5000.00")}


def test_expense_rejects_unknown_category(session):
    with pytest.raises(ConstraintViolation):
        ExpenseService(session).create_expense(
            {"description": "X", "amount": 10, "category": "Travel", "date": date(2024, 3, 1)}
        )


def test_dashboard_summary(session, make_client):
    make_client(name="A", status="Paid", amount_paid=1000.0, due_date=date(2024, 4, 1))
    make_client(name="B", status="Pending", amount_paid=1500.0, debt=300.0)
    make_client(name="C", status="Suspended", amount_paid=500.0)
    ExpenseService(session).create_expense(
        {"description": "Power", "amount": 400, "category": "Utilities", "date": date(2024, 3, 3)}
    )

    summary = ReportService(session).dashboard_summary(now=datetime(2024, 3, 15))

    assert summary["total_clients"] == 3
    assert (summary["paid"], summary["pending"], summary["suspended"]) == (1, 1, 1)
    assert summary["expected_revenue"] == Decimal("3000.00")
    assert summary["collected_revenue"] == Decimal("1000.00")
    assert summary["outstanding_debt"] == Decimal("300.00")
    assert summary["net_income"] == Decimal("600.00")
