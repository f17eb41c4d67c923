# isp_billing/api/clients/models.py
import uuid
from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field

from ...core.constants import MessageChannel


# --- Pydantic models (Client) ---
class Client(BaseModel):
    id: uuid.UUID
    name: str
    phone_number: str
    amount_paid: float
    due_date: date | None = None
    previous_due_date: date | None = None
    status: str
    debt: float
    created_at: datetime | None = None
    updated_at: datetime | None = None
    model_config = ConfigDict(from_attributes=True)


class ClientCreate(BaseModel):
    name: str = Field(min_length=1)
    phone_number: str
    amount_paid: float = Field(default=0, ge=0)
    due_date: date
    status: str = "Pending"
    debt: float = Field(default=0, ge=0)


class ClientUpdate(BaseModel):
    # Status and debt only move through the billing and debt endpoints
    name: str | None = None
    phone_number: str | None = None
    amount_paid: float | None = Field(default=None, ge=0)
    due_date: date | None = None
    model_config = ConfigDict(extra="forbid")


class ClientBatchUpdate(BaseModel):
    ids: list[uuid.UUID] = Field(min_length=1)
    amount_paid: float | None = Field(default=None, ge=0)
    due_date: date | None = None


class ClientBatchDelete(BaseModel):
    ids: list[uuid.UUID] = Field(min_length=1)


# --- Debt / payment payloads ---
class ChargeCreate(BaseModel):
    amount: float
    reason: str | None = None


class DebtPayment(BaseModel):
    amount: float


class ReminderRequest(BaseModel):
    channel: MessageChannel = MessageChannel.WHATSAPP


class ReminderResult(BaseModel):
    client_id: uuid.UUID
    kind: str
    channel: str
    link: str | None = None
    dispatched: bool
    logged: bool
