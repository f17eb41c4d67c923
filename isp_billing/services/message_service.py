# isp_billing/services/message_service.py
"""
Message log: append-only audit trail of everything said to a client.
Never read back to drive billing decisions.
"""
import uuid
from datetime import datetime
from typing import List, Optional

from sqlmodel import Session, select

from ..core.constants import MessageChannel, MessageStatus, MessageType
from ..core.exceptions import ConstraintViolation
from ..models import Message


class MessageService:
    def __init__(self, session: Session):
        self.session = session

    @staticmethod
    def build_message(
        client_id: uuid.UUID,
        text: str,
        channel: MessageChannel | str = MessageChannel.SYSTEM,
        status: MessageStatus | str = MessageStatus.SENT,
        message_type: MessageType | str = MessageType.BILLING,
    ) -> Message:
        """Unsaved log entry, for callers that commit it with their own changes."""
        now = datetime.utcnow()
        return Message(
            client_id=client_id,
            message=text,
            channel=MessageChannel(channel).value,
            status=MessageStatus(status).value,
            type=MessageType(message_type).value,
            sent_at=now,
            created_at=now,
        )

    def record_message(
        self,
        client_id: uuid.UUID,
        text: str,
        channel: MessageChannel | str = MessageChannel.SYSTEM,
        status: MessageStatus | str = MessageStatus.SENT,
        message_type: MessageType | str = MessageType.BILLING,
    ) -> Message:
        entry = self.build_message(client_id, text, channel, status, message_type)
        try:
            self.session.add(entry)
            self.session.commit()
            self.session.refresh(entry)
            return entry
        except Exception:
            self.session.rollback()
            raise

    def get_messages(
        self,
        client_id: Optional[uuid.UUID] = None,
        message_type: Optional[str] = None,
        limit: int = 100,
    ) -> List[Message]:
        """Most recent first."""
        statement = select(Message).order_by(Message.created_at.desc(), Message.id.desc())
        if client_id is not None:
            statement = statement.where(Message.client_id == client_id)
        if message_type:
            try:
                message_type = MessageType(message_type).value
            except ValueError:
                raise ConstraintViolation(f"Unknown message type {message_type!r}.")
            statement = statement.where(Message.type == message_type)
        return list(self.session.exec(statement.limit(limit)).all())
