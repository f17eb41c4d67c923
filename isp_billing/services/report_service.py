# isp_billing/services/report_service.py
"""
Dashboard and report aggregates. Read-only.
"""
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from sqlmodel import Session

from ..billing.money import from_cents, to_cents
from ..core.constants import ClientStatus
from ..models import Client
from .client_service import ClientService
from .expense_service import ExpenseService


class ReportService:
    def __init__(self, session: Session):
        self.session = session
        self.client_service = ClientService(session)
        self.expense_service = ExpenseService(session)

    def dashboard_summary(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Counts per status plus the month's money picture:
        expected (all tariffs), collected (tariffs of Paid clients),
        outstanding debt, expenses and net income.
        """
        now = now or datetime.now()
        clients = self.client_service.list_clients()

        counts = {status.value: 0 for status in ClientStatus}
        expected = collected = debt = 0
        for client in clients:
            try:
                status = ClientStatus.parse(client.status).value
            except ValueError:
                continue
            counts[status] += 1
            expected += to_cents(client.amount_paid)
            debt += to_cents(client.debt)
            if status == ClientStatus.PAID.value:
                collected += to_cents(client.amount_paid)

        expenses = self.expense_service.summarize(
            self.expense_service.get_month_expenses(now.year, now.month)
        )
        net = collected - to_cents(expenses["total"])

        return {
            "total_clients": len(clients),
            "paid": counts[ClientStatus.PAID.value],
            "pending": counts[ClientStatus.PENDING.value],
            "suspended": counts[ClientStatus.SUSPENDED.value],
            "expected_revenue": from_cents(expected),
            "collected_revenue": from_cents(collected),
            "outstanding_debt": from_cents(debt),
            "month_expenses": expenses["total"],
            "net_income": from_cents(net),
        }

    def upcoming_due(self, now: Optional[datetime] = None, days: int = 7) -> List[Client]:
        """Unpaid clients due within `days`, soonest first (overdue included)."""
        today = (now or datetime.now()).date()
        result = []
        for client in self.client_service.list_clients():
            if client.status == ClientStatus.PAID.value or client.due_date is None:
                continue
            if (client.due_date - today).days <= days:
                result.append(client)
        return sorted(result, key=lambda c: c.due_date)

    def monthly_payment_report(self, year: int, month: int) -> Dict[str, Any]:
        """
        Per-client tariff status for clients whose cycle fell in the month,
        plus the month's expense summary.
        """
        start = date(year, month, 1)
        rows = []
        for client in self.client_service.list_clients():
            if client.due_date is None:
                continue
            previous = client.previous_due_date
            in_month = (client.due_date.year, client.due_date.month) == (year, month) or (
                previous is not None and (previous.year, previous.month) == (year, month)
            )
            if not in_month:
                continue
            rows.append(
                {
                    "client_id": str(client.id),
                    "name": client.name,
                    "amount": from_cents(to_cents(client.amount_paid)),
                    "status": client.status,
                    "due_date": client.due_date,
                    "debt": from_cents(to_cents(client.debt)),
                }
            )

        paid = sum(to_cents(r["amount"]) for r in rows if r["status"] == ClientStatus.PAID.value)
        return {
            "month": start.strftime("%Y-%m"),
            "clients": rows,
            "paid_total": from_cents(paid),
            "unpaid_total": from_cents(sum(to_cents(r["amount"]) for r in rows) - paid),
            "expenses": self.expense_service.summarize(self.expense_service.get_month_expenses(year, month)),
        }
