import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlmodel import Session

from ...db.engine_sync import get_sync_session
from ...services.message_service import MessageService
from ...services.notification_service import NotificationService
from .models import Message, MessageCreate, MessageSent

router = APIRouter()


def get_message_service(session: Session = Depends(get_sync_session)) -> MessageService:
    return MessageService(session)


def get_notification_service(session: Session = Depends(get_sync_session)) -> NotificationService:
    return NotificationService(session)


@router.get("/messages", response_model=list[Message])
def api_get_messages(
    client_id: uuid.UUID | None = None,
    message_type: str | None = Query(default=None, alias="type"),
    limit: int = Query(default=100, ge=1, le=1000),
    service: MessageService = Depends(get_message_service),
):
    """Message log, most recent first."""
    return service.get_messages(client_id=client_id, message_type=message_type, limit=limit)


@router.post("/messages", response_model=MessageSent, status_code=status.HTTP_201_CREATED)
def api_send_message(
    outgoing: MessageCreate,
    service: NotificationService = Depends(get_notification_service),
):
    """Free-text message to one client: handed off, then logged."""
    return service.send_custom_message(outgoing.client_id, outgoing.message, channel=outgoing.channel).to_dict()
