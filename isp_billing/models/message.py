# isp_billing/models/message.py
import uuid
from datetime import datetime

from sqlmodel import Field, SQLModel

from ..core.constants import MessageChannel, MessageStatus, MessageType


class Message(SQLModel, table=True):
    """Append-only log of reminders and billing events sent to a client."""

    __tablename__ = "messages"

    id: int | None = Field(default=None, primary_key=True)
    client_id: uuid.UUID = Field(foreign_key="clients.id", nullable=False, index=True, ondelete="CASCADE")
    message: str = Field(nullable=False)
    channel: str = Field(default=MessageChannel.SYSTEM.value)
    type: str = Field(default=MessageType.PAYMENT_REMINDER.value, index=True)
    status: str = Field(default=MessageStatus.SENT.value)
    sent_at: datetime | None = Field(default_factory=datetime.utcnow)
    created_at: datetime | None = Field(default_factory=datetime.utcnow)
