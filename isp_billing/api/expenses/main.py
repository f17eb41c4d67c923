from datetime import date

from fastapi import APIRouter, Depends, Query, Request, status
from sqlmodel import Session

from ...core.audit import log_action
from ...db.engine_sync import get_sync_session
from ...services.expense_service import ExpenseService
from .models import Expense, ExpenseCreate, ExpenseSummary, ExpenseUpdate

router = APIRouter()


def get_expense_service(session: Session = Depends(get_sync_session)) -> ExpenseService:
    return ExpenseService(session)


@router.get("/expenses", response_model=list[Expense])
def api_get_expenses(
    start: date | None = None,
    end: date | None = None,
    category: str | None = None,
    service: ExpenseService = Depends(get_expense_service),
):
    return service.get_expenses(start, end, category)


@router.get("/expenses/summary", response_model=ExpenseSummary)
def api_get_expense_summary(
    year: int = Query(ge=2000, le=2100),
    month: int = Query(ge=1, le=12),
    service: ExpenseService = Depends(get_expense_service),
):
    return service.summarize(service.get_month_expenses(year, month))


@router.post("/expenses", response_model=Expense, status_code=status.HTTP_201_CREATED)
def api_create_expense(expense: ExpenseCreate, service: ExpenseService = Depends(get_expense_service)):
    return service.create_expense(expense.model_dump())


@router.put("/expenses/{expense_id}", response_model=Expense)
def api_update_expense(
    expense_id: int,
    expense: ExpenseUpdate,
    service: ExpenseService = Depends(get_expense_service),
):
    return service.update_expense(expense_id, expense.model_dump(exclude_unset=True))


@router.delete("/expenses/{expense_id}", status_code=status.HTTP_204_NO_CONTENT)
def api_delete_expense(
    expense_id: int,
    request: Request,
    service: ExpenseService = Depends(get_expense_service),
):
    service.delete_expense(expense_id)
    log_action("DELETE", "expense", str(expense_id), request=request)
