# isp_billing/models/client.py
"""
Client model for ISP subscribers.
"""
import uuid
from datetime import date, datetime
from typing import Optional

from sqlmodel import Field, SQLModel

from ..core.constants import ClientStatus


class Client(SQLModel, table=True):
    """
    Client model representing ISP subscribers.

    Fields:
    - id: UUID primary key, assigned on insert
    - name: Client name (required)
    - phone_number: Normalized phone, e.g. +254712345678
    - amount_paid: Recurring monthly tariff (a price, not a payment)
    - due_date: Next unmet payment date
    - previous_due_date: Due date replaced by the last manual "Paid" toggle,
      kept so that exactly one reversal can restore it
    - status: Pending, Paid or Suspended
    - debt: Amount owed outside the current cycle (never negative)
    - created_at / updated_at: Timestamps
    """

    __tablename__ = "clients"

    id: Optional[uuid.UUID] = Field(default_factory=uuid.uuid4, primary_key=True)
    name: str = Field(nullable=False, index=True)
    phone_number: str = Field(nullable=False)
    amount_paid: float = Field(default=0.0, nullable=False)
    due_date: Optional[date] = Field(default=None)
    previous_due_date: Optional[date] = Field(default=None)
    status: str = Field(default=ClientStatus.PENDING.value, nullable=False, index=True)
    debt: float = Field(default=0.0, nullable=False)
    created_at: Optional[datetime] = Field(default_factory=datetime.utcnow)
    updated_at: Optional[datetime] = Field(default_factory=datetime.utcnow)
