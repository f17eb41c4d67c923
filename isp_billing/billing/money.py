# isp_billing/billing/money.py
"""
Currency helpers. The engine computes in integer cents; values cross the
boundary (database floats, API payloads) as Decimal.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

CENT = Decimal("0.01")


def to_cents(value) -> int:
    """
    Converts a float/int/str/Decimal amount to integer cents.
    Raises ValueError for values that are not numbers.
    """
    if isinstance(value, bool) or value is None:
        raise ValueError(f"Not an amount: {value!r}")
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"Not an amount: {value!r}")
    if not amount.is_finite():
        raise ValueError(f"Not an amount: {value!r}")
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_cents(cents: int) -> Decimal:
    return (Decimal(cents) / 100).quantize(CENT)


def format_amount(value, currency: str = "KES") -> str:
    """`format_amount(1500)` -> 'KES 1,500' (cents shown only when present)."""
    amount = from_cents(to_cents(value))
    if amount == amount.to_integral_value():
        return f"{currency} {int(amount):,}"
    return f"{currency} {amount:,.2f}"
