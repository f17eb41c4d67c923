# isp_billing/services/notification_service.py
"""
Payment reminders and operator messages: rendering, hand-off to WhatsApp/SMS
and logging.

Delivery is fire-and-forget. The default gateway only builds the wa.me / sms:
links that the dashboard opens, so "sent" means "handed off", not "delivered".
"""
import logging
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, List, Optional, Protocol
from urllib.parse import quote

from sqlmodel import Session

from ..billing.cycle import BillingSnapshot, days_until_due
from ..billing.money import format_amount
from ..billing.reminders import reminder_kind
from ..core.constants import MessageChannel, MessageStatus, MessageType, ReminderKind
from ..core.exceptions import BillingError, ConstraintViolation, DataIntegrityError, DeliveryInconsistency
from ..models import Client
from ..utils.phone import phone_digits
from .client_service import ClientService
from .message_service import MessageService
from .settings_service import SettingsService

logger = logging.getLogger(__name__)

MESSAGE_TYPE_BY_KIND = {
    ReminderKind.DEBT: MessageType.DEBT_REMINDER,
    ReminderKind.OVERDUE: MessageType.OVERDUE_REMINDER,
    ReminderKind.UPCOMING: MessageType.PAYMENT_REMINDER,
    ReminderKind.PAST_DUE: MessageType.OVERDUE_REMINDER,
}


class MessagingGateway(Protocol):
    def send_whatsapp(self, phone: str, text: str) -> str: ...

    def send_sms(self, phone: str, text: str) -> str: ...


class LinkMessagingGateway:
    """Builds the links the operator's device opens to actually send."""

    def send_whatsapp(self, phone: str, text: str) -> str:
        link = f"https://wa.me/{phone_digits(phone)}?text={quote(text)}"
        logger.info(f"WhatsApp message handed off to {phone}")
        return link

    def send_sms(self, phone: str, text: str) -> str:
        link = f"sms:{phone_digits(phone)}?body={quote(text)}"
        logger.info(f"SMS message handed off to {phone}")
        return link


@dataclass
class ReminderOutcome:
    client_id: uuid.UUID
    kind: ReminderKind
    channel: MessageChannel
    link: Optional[str]
    dispatched: bool
    logged: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "client_id": str(self.client_id),
            "kind": self.kind.value,
            "channel": self.channel.value,
            "link": self.link,
            "dispatched": self.dispatched,
            "logged": self.logged,
        }


@dataclass
class MessageOutcome:
    client_id: uuid.UUID
    channel: MessageChannel
    message: str
    link: Optional[str]
    dispatched: bool
    logged: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "client_id": str(self.client_id),
            "channel": self.channel.value,
            "message": self.message,
            "link": self.link,
            "dispatched": self.dispatched,
            "logged": self.logged,
        }


@dataclass
class ReminderReport:
    skipped: bool = False
    reminded: List[ReminderOutcome] = field(default_factory=list)
    failures: List[dict] = field(default_factory=list)
    inconsistencies: List[DeliveryInconsistency] = field(default_factory=list)
    processed: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "skipped": self.skipped,
            "processed": self.processed,
            "reminded": [r.to_dict() for r in self.reminded],
            "failures": self.failures,
            "inconsistencies": [i.to_dict() for i in self.inconsistencies],
        }


def render_reminder(
    client: Client,
    kind: ReminderKind,
    now: datetime | date,
    currency: str = "KES",
    company_name: str = "",
    payment_instructions: str = "",
) -> str:
    snapshot = BillingSnapshot.from_record(client)
    tariff = format_amount(snapshot.amount_paid, currency)
    due = snapshot.due_date.strftime("%d/%m/%Y")

    if kind == ReminderKind.DEBT:
        text = (
            f"Dear {client.name}, you have an outstanding balance of "
            f"{format_amount(snapshot.debt, currency)}. "
            f"Your internet subscription of {tariff} is due on {due}."
        )
    elif kind == ReminderKind.OVERDUE:
        text = (
            f"Dear {client.name}, your WiFi service has been suspended due to an overdue "
            f"payment of {tariff}. Please make your payment as soon as possible to restore your service."
        )
    elif kind == ReminderKind.UPCOMING:
        days = days_until_due(snapshot, now)
        text = (
            f"Dear {client.name}, this is a friendly reminder that your WiFi payment of "
            f"{tariff} is due in {days} days ({due}). "
            "Please make your payment to avoid any service interruption."
        )
    else:
        text = (
            f"Dear {client.name}, your WiFi payment of {tariff} was due on {due}. "
            "Please make your payment to avoid service suspension."
        )

    if payment_instructions:
        text += f" {payment_instructions}"
    text += f" Thank you for choosing {company_name}." if company_name else " Thank you for choosing our services."
    return text


class NotificationService:
    def __init__(self, session: Session, gateway: Optional[MessagingGateway] = None):
        self.session = session
        self.gateway = gateway or LinkMessagingGateway()
        self.client_service = ClientService(session)
        self.message_service = MessageService(session)
        self.settings_service = SettingsService(session)

    def _dispatch(self, channel: MessageChannel, phone: str, text: str) -> str:
        if channel == MessageChannel.SMS:
            return self.gateway.send_sms(phone, text)
        return self.gateway.send_whatsapp(phone, text)

    def _deliver(
        self,
        client: Client,
        kind: ReminderKind,
        channel: MessageChannel,
        now: datetime | date,
        settings: dict[str, str],
    ) -> tuple[ReminderOutcome, Optional[DeliveryInconsistency]]:
        text = render_reminder(
            client,
            kind,
            now,
            currency=settings.get("currency_symbol") or "KES",
            company_name=settings.get("company_name") or "",
            payment_instructions=settings.get("payment_instructions") or "",
        )
        link, dispatched, logged, inconsistency = self._hand_off(
            client, text, channel, MESSAGE_TYPE_BY_KIND[kind]
        )
        outcome = ReminderOutcome(
            client_id=client.id,
            kind=kind,
            channel=channel,
            link=link,
            dispatched=dispatched,
            logged=logged,
        )
        return outcome, inconsistency

    def _hand_off(
        self,
        client: Client,
        text: str,
        channel: MessageChannel,
        message_type: MessageType,
    ) -> tuple[Optional[str], bool, bool, Optional[DeliveryInconsistency]]:
        """Dispatch first, then log. Either step may fail on its own."""
        link, dispatched, error = None, False, None
        try:
            link = self._dispatch(channel, client.phone_number, text)
            dispatched = True
        except Exception as e:
            error = f"dispatch failed: {e}"
            logger.error(f"Could not hand off {message_type.value} for client {client.id}: {e}")

        logged = False
        try:
            self.message_service.record_message(
                client.id,
                text,
                channel=channel,
                status=MessageStatus.SENT if dispatched else MessageStatus.FAILED,
                message_type=message_type,
            )
            logged = True
        except Exception as e:
            # The send is not rolled back: the operator reconciles by hand
            error = f"{error}; " if error else ""
            error += f"audit log failed: {e}"
            logger.error(f"Message for client {client.id} dispatched={dispatched} but not logged: {e}")

        inconsistency = None
        if dispatched != logged or not dispatched:
            inconsistency = DeliveryInconsistency(
                client_id=client.id,
                channel=channel.value,
                dispatched=dispatched,
                logged=logged,
                reason=error,
            )
        return link, dispatched, logged, inconsistency

    def send_custom_message(
        self,
        client_id: uuid.UUID,
        text: str,
        channel: MessageChannel | str = MessageChannel.WHATSAPP,
    ) -> MessageOutcome:
        """
        Hands an operator-written message to one client and logs it.

        Raises:
            NotFound, ConstraintViolation (empty text or a non-messaging channel)
        """
        text = (text or "").strip()
        if not text:
            raise ConstraintViolation("Message text can't be empty.", client_id)
        channel = MessageChannel(channel)
        if channel == MessageChannel.SYSTEM:
            raise ConstraintViolation("Messages go out over WhatsApp or SMS.", client_id)

        client = self.client_service.get_client_by_id(client_id)
        link, dispatched, logged, inconsistency = self._hand_off(client, text, channel, MessageType.CUSTOM)
        if inconsistency:
            logger.error(f"Delivery inconsistency: {inconsistency.to_dict()}")
        return MessageOutcome(
            client_id=client.id,
            channel=channel,
            message=text,
            link=link,
            dispatched=dispatched,
            logged=logged,
        )

    def send_reminder(
        self,
        client_id: uuid.UUID,
        now: Optional[datetime] = None,
        channel: MessageChannel | str = MessageChannel.WHATSAPP,
    ) -> ReminderOutcome:
        """
        Manual reminder for one client, sent even if the policy would stay
        quiet today (the kind still follows the policy's wording).

        Raises:
            NotFound, DataIntegrityError
        """
        now = now or datetime.now()
        settings = self.settings_service.get_all_settings()
        window = self.settings_service.get_reminder_settings().payment_reminder_days

        client = self.client_service.get_client_by_id(client_id)
        snapshot = BillingSnapshot.from_record(client)
        kind = reminder_kind(snapshot, now, window) or ReminderKind.UPCOMING

        outcome, inconsistency = self._deliver(client, kind, MessageChannel(channel), now, settings)
        if inconsistency:
            logger.error(f"Delivery inconsistency: {inconsistency.to_dict()}")
        return outcome

    def run_reminders(
        self,
        now: Optional[datetime] = None,
        channel: MessageChannel | str = MessageChannel.WHATSAPP,
    ) -> ReminderReport:
        """
        Evaluates every client once and hands off at most one reminder each.
        Settings are read once per run; a bad record is reported and skipped.
        """
        now = now or datetime.now()
        channel = MessageChannel(channel)
        reminder_settings = self.settings_service.get_reminder_settings()
        report = ReminderReport()

        if not reminder_settings.notification_enabled:
            logger.info("Notifications disabled, reminder run skipped.")
            report.skipped = True
            return report

        settings = self.settings_service.get_all_settings()
        window = reminder_settings.payment_reminder_days

        for client in self.client_service.list_clients():
            report.processed += 1
            try:
                kind = reminder_kind(BillingSnapshot.from_record(client), now, window)
            except DataIntegrityError as e:
                logger.warning(f"Client {client.id} skipped: {e.message}")
                report.failures.append({"client_id": str(client.id), **e.to_dict()})
                continue

            if kind is None:
                continue

            try:
                outcome, inconsistency = self._deliver(client, kind, channel, now, settings)
            except BillingError as e:
                report.failures.append({"client_id": str(client.id), **e.to_dict()})
                continue

            report.reminded.append(outcome)
            if inconsistency:
                report.inconsistencies.append(inconsistency)

        logger.info(
            f"Reminder run: {len(report.reminded)} reminders, "
            f"{len(report.failures)} failures, {len(report.inconsistencies)} inconsistencies"
        )
        return report
