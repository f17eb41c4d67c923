import uuid

from fastapi import APIRouter, Depends, status
from sqlmodel import Session

from ...db.engine_sync import get_sync_session
from ...services.debt_service import DebtService
from ..clients.models import Client
from .models import DebtPaymentCreate, DebtRecord, DebtRecordCreate, DebtTotals

router = APIRouter()


def get_debt_service(session: Session = Depends(get_sync_session)) -> DebtService:
    return DebtService(session)


@router.get("/debts", response_model=list[DebtRecord])
def api_get_debt_records(
    client_id: uuid.UUID | None = None,
    outstanding_only: bool = False,
    service: DebtService = Depends(get_debt_service),
):
    return service.list_debt_records(client_id=client_id, outstanding_only=outstanding_only)


@router.get("/debts/totals", response_model=DebtTotals)
def api_get_debt_totals(service: DebtService = Depends(get_debt_service)):
    return service.totals()


@router.get("/debts/clients", response_model=list[Client])
def api_get_clients_with_debt(service: DebtService = Depends(get_debt_service)):
    """Only clients that currently owe something, largest balance first."""
    return service.list_clients_with_debt()


@router.post("/debts", response_model=DebtRecord, status_code=status.HTTP_201_CREATED)
def api_create_debt_record(
    debt: DebtRecordCreate,
    service: DebtService = Depends(get_debt_service),
):
    return service.create_debt_record(debt.client_id, debt.amount, debt.due_date, debt.reason)


@router.post("/debts/{debt_id}/payments", response_model=DebtRecord)
def api_record_debt_payment(
    debt_id: int,
    payment: DebtPaymentCreate,
    service: DebtService = Depends(get_debt_service),
):
    return service.record_debt_payment(debt_id, payment.amount)


@router.post("/debts/{debt_id}/mark-paid", response_model=DebtRecord)
def api_mark_debt_paid(debt_id: int, service: DebtService = Depends(get_debt_service)):
    return service.mark_debt_paid(debt_id)
