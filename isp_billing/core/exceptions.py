# isp_billing/core/exceptions.py
"""
Domain errors shared by the billing engine, the services and the API layer.

Every error carries a short machine-readable `code` so callers (the dashboard,
the scan report) can tell failures apart without parsing messages.
"""

import uuid
from dataclasses import dataclass
from typing import Any, Optional


class BillingError(Exception):
    """Base class for all billing domain errors."""

    code = "billing_error"

    def __init__(self, message: str, resource_id: Any = None):
        super().__init__(message)
        self.message = message
        self.resource_id = resource_id

    def to_dict(self) -> dict[str, Any]:
        data = {"error": self.code, "detail": self.message}
        if self.resource_id is not None:
            data["resource_id"] = str(self.resource_id)
        return data


class DataIntegrityError(BillingError):
    """Stored data is malformed (bad date, negative amount, unknown status)."""

    code = "data_integrity"


class InvalidAmountError(BillingError):
    """A ledger operation received a non-positive or over-limit amount."""

    code = "invalid_amount"


class InvalidTransitionError(BillingError):
    """A manual action is not allowed from the client's current status."""

    code = "invalid_transition"


class NotFound(BillingError):
    code = "not_found"

    def __init__(self, resource: str, resource_id: Any):
        super().__init__(f"{resource} {resource_id} not found.", resource_id)
        self.resource = resource


class ConstraintViolation(BillingError):
    code = "constraint_violation"


class InvalidPhoneNumberError(BillingError):
    code = "invalid_phone_number"


@dataclass(frozen=True)
class DeliveryInconsistency:
    """
    A message was handed to the messaging gateway but its audit entry could
    not be written (or the other way round). Reported to the operator for
    manual reconciliation; never raised.
    """

    client_id: uuid.UUID
    channel: str
    dispatched: bool
    logged: bool
    reason: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "client_id": str(self.client_id),
            "channel": self.channel,
            "dispatched": self.dispatched,
            "logged": self.logged,
            "reason": self.reason,
        }
