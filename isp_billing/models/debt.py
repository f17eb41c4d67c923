# isp_billing/models/debt.py
"""
Individual debt records (additional charges collected over time).
"""

import uuid
from datetime import date, datetime

from sqlmodel import Field, SQLModel

from ..core.constants import DebtStatus


class DebtRecord(SQLModel, table=True):
    """
    Fields:
    - id: Auto-increment primary key
    - client_id: Foreign key to clients table
    - amount: Total owed for this record
    - collected_amount: Sum of partial payments received
    - due_date: When the charge is expected to be settled
    - status: pending, partially_paid or paid (derived from amount vs collected)
    """

    __tablename__ = "debts"

    id: int | None = Field(default=None, primary_key=True)
    client_id: uuid.UUID = Field(foreign_key="clients.id", nullable=False, index=True, ondelete="CASCADE")
    amount: float = Field(nullable=False)
    collected_amount: float = Field(default=0.0, nullable=False)
    due_date: date | None = Field(default=None)
    status: str = Field(default=DebtStatus.PENDING.value, nullable=False)
    reason: str | None = Field(default=None)
    created_at: datetime | None = Field(default_factory=datetime.utcnow)
    updated_at: datetime | None = Field(default_factory=datetime.utcnow)
