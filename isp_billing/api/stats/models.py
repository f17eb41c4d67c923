import uuid
from datetime import date

from pydantic import BaseModel

from ..expenses.models import ExpenseSummary


class DashboardStats(BaseModel):
    total_clients: int
    paid: int
    pending: int
    suspended: int
    expected_revenue: float
    collected_revenue: float
    outstanding_debt: float
    month_expenses: float
    net_income: float


class MonthlyClientRow(BaseModel):
    client_id: uuid.UUID
    name: str
    amount: float
    status: str
    due_date: date
    debt: float


class MonthlyReport(BaseModel):
    month: str
    clients: list[MonthlyClientRow]
    paid_total: float
    unpaid_total: float
    expenses: ExpenseSummary
