import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from ...core.constants import MessageChannel


class Message(BaseModel):
    id: int
    client_id: uuid.UUID
    message: str
    channel: str
    type: str
    status: str
    sent_at: datetime | None = None
    created_at: datetime | None = None
    model_config = ConfigDict(from_attributes=True)


class MessageCreate(BaseModel):
    client_id: uuid.UUID
    message: str = Field(min_length=1)
    channel: MessageChannel = MessageChannel.WHATSAPP


class MessageSent(BaseModel):
    client_id: uuid.UUID
    channel: str
    message: str
    link: str | None = None
    dispatched: bool
    logged: bool
