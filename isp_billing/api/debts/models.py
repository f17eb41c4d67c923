import uuid
from datetime import date, datetime

from pydantic import BaseModel, ConfigDict


class DebtRecordCreate(BaseModel):
    client_id: uuid.UUID
    amount: float
    due_date: date | None = None
    reason: str | None = None


class DebtRecord(BaseModel):
    id: int
    client_id: uuid.UUID
    amount: float
    collected_amount: float
    due_date: date | None = None
    status: str
    reason: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    model_config = ConfigDict(from_attributes=True)


class DebtPaymentCreate(BaseModel):
    amount: float


class DebtTotals(BaseModel):
    total: float
    collected: float
    outstanding: float
