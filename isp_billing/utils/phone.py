# isp_billing/utils/phone.py
import re

from ..core.exceptions import InvalidPhoneNumberError

KENYAN_PHONE_RE = re.compile(r"^\+254[17]\d{8}$")


def normalize_phone(phone: str) -> str:
    """
    Normalizes a Kenyan mobile number to +254XXXXXXXXX.

    Accepts 0712345678, 712345678, 254712345678, +254 712 345 678...

    Raises:
        InvalidPhoneNumberError: the number can't be turned into a valid one.
    """
    cleaned = re.sub(r"\D", "", phone or "")

    if cleaned.startswith("0"):
        cleaned = "254" + cleaned[1:]
    elif cleaned.startswith(("7", "1")):
        cleaned = "254" + cleaned

    cleaned = "+" + cleaned
    if not KENYAN_PHONE_RE.match(cleaned):
        raise InvalidPhoneNumberError(
            f"Invalid phone number {phone!r}: must be +254 followed by 9 digits starting with 7 or 1."
        )
    return cleaned


def phone_digits(phone: str) -> str:
    """Digits only, as wa.me and sms: links expect them."""
    return re.sub(r"\D", "", phone or "")
