"""
Centralized constants for the billing system.
Keeps status strings, message tags and table names out of the call sites.
"""

from enum import Enum, unique


@unique
class ClientStatus(str, Enum):
    """Persisted billing status of a client."""

    PENDING = "Pending"
    PAID = "Paid"
    SUSPENDED = "Suspended"

    @classmethod
    def parse(cls, value: "str | ClientStatus") -> "ClientStatus":
        """
        Accepts the persisted values plus the legacy "Overdue" label,
        which older dashboards wrote for suspended clients.
        """
        if isinstance(value, ClientStatus):
            return value
        if value == MessagingCategory.OVERDUE.value:
            return cls.SUSPENDED
        return cls(value)


@unique
class MessagingCategory(str, Enum):
    """Status as shown in reminders. Suspended clients are "Overdue" here."""

    PENDING = "Pending"
    PAID = "Paid"
    OVERDUE = "Overdue"


@unique
class DebtStatus(str, Enum):
    PENDING = "pending"
    PARTIALLY_PAID = "partially_paid"
    PAID = "paid"


@unique
class ReminderKind(str, Enum):
    """Why a reminder fires. Order of declaration is the priority order."""

    DEBT = "debt"
    OVERDUE = "overdue"
    UPCOMING = "upcoming"
    PAST_DUE = "past_due"


@unique
class MessageChannel(str, Enum):
    WHATSAPP = "whatsapp"
    SMS = "sms"
    SYSTEM = "system"


@unique
class MessageType(str, Enum):
    PAYMENT_REMINDER = "payment_reminder"
    OVERDUE_REMINDER = "overdue_reminder"
    DEBT_REMINDER = "debt_reminder"
    DEBT_CHARGE = "debt_charge"
    DEBT_PAYMENT = "debt_payment"
    BILLING = "billing"
    CUSTOM = "custom"


@unique
class MessageStatus(str, Enum):
    SENT = "sent"
    FAILED = "failed"


@unique
class ExpenseCategory(str, Enum):
    INTERNET = "Internet"
    EQUIPMENT = "Equipment"
    MAINTENANCE = "Maintenance"
    UTILITIES = "Utilities"
    SALARIES = "Salaries"
    MARKETING = "Marketing"
    OTHER = "Other"


@unique
class Table(str, Enum):
    """Tables that publish change notifications."""

    CLIENTS = "clients"
    DEBTS = "debts"
    EXPENSES = "expenses"
    MESSAGES = "messages"
    SETTINGS = "settings"


# Days before the due date at which a Paid client starts a new cycle
PAID_REVERSION_WINDOW_DAYS = 10

DEFAULT_REMINDER_DAYS = 3
