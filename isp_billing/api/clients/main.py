import uuid

from fastapi import APIRouter, Depends, Query, Request, status
from sqlmodel import Session

from ...core.audit import log_action
from ...db.engine_sync import get_sync_session
from ...services.billing_service import BillingService
from ...services.client_service import ClientService
from ...services.debt_service import DebtService
from ...services.message_service import MessageService
from ...services.notification_service import NotificationService
from ..messages.models import Message
from .models import (
    ChargeCreate,
    Client,
    ClientBatchDelete,
    ClientBatchUpdate,
    ClientCreate,
    ClientUpdate,
    DebtPayment,
    ReminderRequest,
    ReminderResult,
)

router = APIRouter()


# --- Dependency Injectors ---
def get_client_service(session: Session = Depends(get_sync_session)) -> ClientService:
    return ClientService(session)


def get_billing_service(session: Session = Depends(get_sync_session)) -> BillingService:
    return BillingService(session)


def get_debt_service(session: Session = Depends(get_sync_session)) -> DebtService:
    return DebtService(session)


def get_notification_service(session: Session = Depends(get_sync_session)) -> NotificationService:
    return NotificationService(session)


def get_message_service(session: Session = Depends(get_sync_session)) -> MessageService:
    return MessageService(session)


# --- Client Endpoints ---


@router.get("/clients", response_model=list[Client])
def api_get_all_clients(
    client_status: str | None = Query(default=None, alias="status"),
    service: ClientService = Depends(get_client_service),
):
    return service.list_clients({"status": client_status} if client_status else None)


@router.put("/clients/batch", response_model=list[Client])
def api_batch_update_clients(
    batch: ClientBatchUpdate,
    request: Request,
    service: ClientService = Depends(get_client_service),
):
    """Same due date and/or amount for every selected client, all or none."""
    changes = batch.model_dump(exclude_unset=True, exclude={"ids"})
    clients = service.bulk_update_clients(batch.ids, changes)
    log_action(
        "BATCH_UPDATE",
        "client",
        ",".join(str(c.id) for c in clients),
        request=request,
        details={key: str(value) for key, value in changes.items()},
    )
    return clients


@router.post("/clients/batch/delete", status_code=status.HTTP_204_NO_CONTENT)
def api_batch_delete_clients(
    batch: ClientBatchDelete,
    request: Request,
    service: ClientService = Depends(get_client_service),
):
    deleted = service.bulk_delete_clients(batch.ids)
    log_action("BATCH_DELETE", "client", ",".join(str(i) for i in deleted), request=request)


@router.get("/clients/{client_id}", response_model=Client)
def api_get_client(client_id: uuid.UUID, service: ClientService = Depends(get_client_service)):
    return service.get_client_by_id(client_id)


@router.post("/clients", response_model=Client, status_code=status.HTTP_201_CREATED)
def api_create_client(client: ClientCreate, service: ClientService = Depends(get_client_service)):
    return service.create_client(client.model_dump())


@router.post("/clients/bulk", response_model=list[Client], status_code=status.HTTP_201_CREATED)
def api_bulk_create_clients(
    clients: list[ClientCreate],
    service: ClientService = Depends(get_client_service),
):
    """All-or-nothing import of already parsed rows."""
    return service.bulk_create_clients([c.model_dump() for c in clients])


@router.put("/clients/{client_id}", response_model=Client)
def api_update_client(
    client_id: uuid.UUID,
    client_update: ClientUpdate,
    service: ClientService = Depends(get_client_service),
):
    return service.update_client(client_id, client_update.model_dump(exclude_unset=True))


@router.delete("/clients/{client_id}", status_code=status.HTTP_204_NO_CONTENT)
def api_delete_client(
    client_id: uuid.UUID,
    request: Request,
    service: ClientService = Depends(get_client_service),
):
    service.delete_client(client_id)
    log_action("DELETE", "client", str(client_id), request=request)


# --- Billing cycle actions ---


@router.post("/clients/{client_id}/toggle-payment", response_model=Client)
def api_toggle_payment(client_id: uuid.UUID, service: BillingService = Depends(get_billing_service)):
    """Paid -> Pending (restoring the due date), anything else -> Paid."""
    return service.toggle_payment(client_id)


@router.post("/clients/{client_id}/mark-paid", response_model=Client)
def api_mark_paid(client_id: uuid.UUID, service: BillingService = Depends(get_billing_service)):
    return service.mark_paid(client_id)


@router.post("/clients/{client_id}/revert-payment", response_model=Client)
def api_revert_payment(client_id: uuid.UUID, service: BillingService = Depends(get_billing_service)):
    return service.revert_payment(client_id)


@router.post("/clients/{client_id}/toggle-suspension", response_model=Client)
def api_toggle_suspension(client_id: uuid.UUID, service: BillingService = Depends(get_billing_service)):
    return service.toggle_suspension(client_id)


# --- Client debt ---


@router.post("/clients/{client_id}/charges", response_model=Client)
def api_add_charge(
    client_id: uuid.UUID,
    charge: ChargeCreate,
    service: DebtService = Depends(get_debt_service),
):
    return service.add_charge(client_id, charge.amount, charge.reason)


@router.post("/clients/{client_id}/debt-payments", response_model=Client)
def api_pay_client_debt(
    client_id: uuid.UUID,
    payment: DebtPayment,
    service: DebtService = Depends(get_debt_service),
):
    return service.pay_client_debt(client_id, payment.amount)


@router.post("/clients/{client_id}/clear-debt", response_model=Client)
def api_clear_client_debt(client_id: uuid.UUID, service: DebtService = Depends(get_debt_service)):
    return service.clear_client_debt(client_id)


# --- Reminders & history ---


@router.post("/clients/{client_id}/remind", response_model=ReminderResult)
def api_send_reminder(
    client_id: uuid.UUID,
    reminder: ReminderRequest,
    service: NotificationService = Depends(get_notification_service),
):
    return service.send_reminder(client_id, channel=reminder.channel).to_dict()


@router.get("/clients/{client_id}/messages", response_model=list[Message])
def api_get_client_messages(
    client_id: uuid.UUID,
    service: MessageService = Depends(get_message_service),
):
    return service.get_messages(client_id=client_id)
