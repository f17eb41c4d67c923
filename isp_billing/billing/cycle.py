# isp_billing/billing/cycle.py
"""
Billing cycle evaluator.

Pure functions that take a snapshot of a client's billing state and return the
state the client should move to. Nothing here touches the database: the
services persist the returned `BillingDecision` as a single update-by-id.

Transitions:
    Paid      -> Pending    automatic, once the due date is <= 10 days away
    Pending   -> Paid       manual (mark paid); accrues the tariff as debt when late
    Suspended -> Paid       manual (mark paid); same rules as Pending
    Paid      -> Pending    manual (revert); restores the previous due date
    Pending  <-> Suspended  manual (suspension toggle); due date and debt untouched
"""

import uuid
from dataclasses import dataclass, replace
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from dateutil.parser import isoparse
from dateutil.relativedelta import relativedelta

from ..core.constants import PAID_REVERSION_WINDOW_DAYS, ClientStatus
from ..core.exceptions import DataIntegrityError, InvalidTransitionError
from . import ledger
from .money import from_cents, to_cents


class ManualAction(str, Enum):
    MARK_PAID = "mark_paid"
    REVERT_PAYMENT = "revert_payment"
    TOGGLE_PAYMENT = "toggle_payment"
    TOGGLE_SUSPENSION = "toggle_suspension"


@dataclass(frozen=True)
class BillingSnapshot:
    client_id: Optional[uuid.UUID]
    status: ClientStatus
    due_date: date
    previous_due_date: Optional[date]
    amount_paid_cents: int
    debt_cents: int

    @property
    def debt(self) -> Decimal:
        return from_cents(self.debt_cents)

    @property
    def amount_paid(self) -> Decimal:
        return from_cents(self.amount_paid_cents)

    @classmethod
    def from_record(cls, record: Any) -> "BillingSnapshot":
        """
        Builds a snapshot from a Client model or a plain dict.

        Raises:
            DataIntegrityError: missing/unparseable dates, negative or
                non-numeric amounts, unknown status.
        """
        get = record.get if isinstance(record, dict) else lambda key: getattr(record, key, None)
        client_id = get("id")

        raw_status = get("status")
        try:
            status = ClientStatus.parse(raw_status)
        except ValueError:
            raise DataIntegrityError(f"Unknown status {raw_status!r}", client_id)

        due_date = parse_date(get("due_date"), "due_date", client_id)
        previous = get("previous_due_date")
        previous_due_date = parse_date(previous, "previous_due_date", client_id) if previous else None

        return cls(
            client_id=client_id,
            status=status,
            due_date=due_date,
            previous_due_date=previous_due_date,
            amount_paid_cents=_non_negative_cents(get("amount_paid"), "amount_paid", client_id),
            debt_cents=_non_negative_cents(get("debt") or 0, "debt", client_id),
        )


@dataclass(frozen=True)
class BillingDecision:
    status: ClientStatus
    due_date: date
    previous_due_date: Optional[date]
    debt: Decimal

    def as_update(self) -> dict[str, Any]:
        """Complete replacement of the billing fields, ready for update-by-id."""
        return {
            "status": self.status.value,
            "due_date": self.due_date,
            "previous_due_date": self.previous_due_date,
            "debt": float(self.debt),
        }

    def differs_from(self, snapshot: BillingSnapshot) -> bool:
        return (
            self.status != snapshot.status
            or self.due_date != snapshot.due_date
            or self.previous_due_date != snapshot.previous_due_date
            or to_cents(self.debt) != snapshot.debt_cents
        )


def parse_date(value: Any, field: str = "due_date", client_id: Any = None) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return isoparse(value.strip()).date()
        except ValueError:
            pass
    raise DataIntegrityError(f"Unparseable {field}: {value!r}", client_id)


def _non_negative_cents(value: Any, field: str, client_id: Any) -> int:
    try:
        cents = to_cents(value)
    except ValueError:
        raise DataIntegrityError(f"{field} is not a number: {value!r}", client_id)
    if cents < 0:
        raise DataIntegrityError(f"{field} is negative: {value!r}", client_id)
    return cents


def _today(now: datetime | date) -> date:
    return now.date() if isinstance(now, datetime) else now


def add_month(value: date) -> date:
    """Jan 31 -> Feb 29 (leap) / Feb 28; any other day is kept as is."""
    return value + relativedelta(months=1)


def days_until_due(snapshot: BillingSnapshot, now: datetime | date) -> int:
    return (snapshot.due_date - _today(now)).days


def _decision(snapshot: BillingSnapshot, **changes) -> BillingDecision:
    base = BillingDecision(
        status=snapshot.status,
        due_date=snapshot.due_date,
        previous_due_date=snapshot.previous_due_date,
        debt=snapshot.debt,
    )
    return replace(base, **changes)


def evaluate_rollover(snapshot: BillingSnapshot, now: datetime | date) -> Optional[BillingDecision]:
    """
    Automatic Paid -> Pending reversion: once a paid cycle is within
    PAID_REVERSION_WINDOW_DAYS of its due date a new cycle starts.
    Returns None when nothing changes. Debt is never touched here.
    """
    if snapshot.status != ClientStatus.PAID:
        return None
    if days_until_due(snapshot, now) > PAID_REVERSION_WINDOW_DAYS:
        return None
    return _decision(
        snapshot,
        status=ClientStatus.PENDING,
        due_date=add_month(snapshot.due_date),
        previous_due_date=None,
    )


def mark_paid(snapshot: BillingSnapshot, now: datetime | date) -> BillingDecision:
    """
    Manual Pending/Suspended -> Paid. The due date moves one month forward and
    the replaced date is kept for a single reversal. If the old due date had
    already passed, the missed cycle's tariff is added to the debt.
    """
    if snapshot.status == ClientStatus.PAID:
        raise InvalidTransitionError("Client is already marked as paid.", snapshot.client_id)

    debt = snapshot.debt
    if _today(now) > snapshot.due_date and snapshot.amount_paid_cents > 0:
        debt = ledger.accrue(snapshot.debt, snapshot.amount_paid)

    return _decision(
        snapshot,
        status=ClientStatus.PAID,
        due_date=add_month(snapshot.due_date),
        previous_due_date=snapshot.due_date,
        debt=debt,
    )


def revert_payment(snapshot: BillingSnapshot) -> BillingDecision:
    """Manual Paid -> Pending, restoring the due date replaced by mark_paid."""
    if snapshot.status != ClientStatus.PAID:
        raise InvalidTransitionError("Only paid clients can be reverted to pending.", snapshot.client_id)
    return _decision(
        snapshot,
        status=ClientStatus.PENDING,
        due_date=snapshot.previous_due_date or snapshot.due_date,
        previous_due_date=None,
    )


def toggle_suspension(snapshot: BillingSnapshot) -> BillingDecision:
    if snapshot.status == ClientStatus.PAID:
        raise InvalidTransitionError("Paid clients cannot be suspended.", snapshot.client_id)
    new_status = (
        ClientStatus.PENDING if snapshot.status == ClientStatus.SUSPENDED else ClientStatus.SUSPENDED
    )
    return _decision(snapshot, status=new_status)


def apply_action(snapshot: BillingSnapshot, action: ManualAction, now: datetime | date) -> BillingDecision:
    action = ManualAction(action)
    if action == ManualAction.TOGGLE_PAYMENT:
        action = ManualAction.REVERT_PAYMENT if snapshot.status == ClientStatus.PAID else ManualAction.MARK_PAID

    if action == ManualAction.MARK_PAID:
        return mark_paid(snapshot, now)
    if action == ManualAction.REVERT_PAYMENT:
        return revert_payment(snapshot)
    return toggle_suspension(snapshot)


def evaluate(
    snapshot: BillingSnapshot,
    now: datetime | date,
    action: Optional[ManualAction] = None,
) -> Optional[BillingDecision]:
    """
    Single entry point for a billing pass over one client.

    A manual action always wins: when one is given the automatic reversion
    is not applied in the same pass. Returns None when nothing changes.
    """
    if action is not None:
        decision = apply_action(snapshot, action, now)
    else:
        decision = evaluate_rollover(snapshot, now)

    if decision is None or not decision.differs_from(snapshot):
        return None
    return decision
