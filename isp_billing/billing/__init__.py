"""
Billing engine: cycle evaluation, debt ledger and reminder policy.
Everything in this package is pure; persistence happens in services/.
"""

from .cycle import (
    BillingDecision,
    BillingSnapshot,
    ManualAction,
    add_month,
    evaluate,
    evaluate_rollover,
    mark_paid,
    revert_payment,
    toggle_suspension,
)
from .ledger import PaymentResult, accrue, apply_payment, clear, derive_debt_status
from .reminders import messaging_category, reminder_kind, should_remind
