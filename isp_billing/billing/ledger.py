# isp_billing/billing/ledger.py
"""
Debt ledger: pure operations on a debt balance.

The ledger never writes anything. Callers persist the returned balance and
are expected to log one message entry per successful mutation.
"""

from dataclasses import dataclass
from decimal import Decimal

from ..core.constants import DebtStatus
from ..core.exceptions import DataIntegrityError, InvalidAmountError
from .money import from_cents, to_cents


@dataclass(frozen=True)
class PaymentResult:
    remaining: Decimal
    fully_paid: bool


def _balance_cents(debt) -> int:
    try:
        cents = to_cents(debt)
    except ValueError as e:
        raise DataIntegrityError(f"Stored debt is not a number: {e}")
    if cents < 0:
        raise DataIntegrityError(f"Stored debt is negative: {debt}")
    return cents


def _amount_cents(amount) -> int:
    try:
        return to_cents(amount)
    except ValueError as e:
        raise InvalidAmountError(str(e))


def apply_payment(debt, amount) -> PaymentResult:
    """
    Applies a payment against `debt`.

    Raises:
        InvalidAmountError: amount <= 0, or amount > debt (no overpayment).
    """
    balance = _balance_cents(debt)
    paid = _amount_cents(amount)
    if paid <= 0:
        raise InvalidAmountError(f"Payment must be positive, got {amount}.")
    if paid > balance:
        raise InvalidAmountError(
            f"Payment of {from_cents(paid)} exceeds outstanding debt of {from_cents(balance)}."
        )
    remaining = balance - paid
    return PaymentResult(remaining=from_cents(remaining), fully_paid=remaining == 0)


def clear(debt) -> Decimal:
    """Full write-off. Always succeeds, whatever the current balance."""
    return from_cents(0)


def accrue(debt, amount) -> Decimal:
    """
    Adds a charge (missed cycle, additional service) to `debt`.

    Raises:
        InvalidAmountError: amount <= 0.
    """
    balance = _balance_cents(debt)
    charge = _amount_cents(amount)
    if charge <= 0:
        raise InvalidAmountError(f"Charge must be positive, got {amount}.")
    return from_cents(balance + charge)


def derive_debt_status(amount, collected) -> DebtStatus:
    owed = to_cents(amount)
    received = to_cents(collected)
    if received >= owed:
        return DebtStatus.PAID
    if received > 0:
        return DebtStatus.PARTIALLY_PAID
    return DebtStatus.PENDING
