# isp_billing/services/expense_service.py
from calendar import monthrange
from datetime import date
from typing import Any, Dict, List, Optional

from sqlmodel import Session, select

from ..billing.money import from_cents, to_cents
from ..core.constants import ExpenseCategory
from ..core.exceptions import ConstraintViolation
from ..models import Expense
from .base_service import BaseCRUDService


class ExpenseService(BaseCRUDService[Expense]):
    def __init__(self, session: Session):
        super().__init__(session, Expense)

    def _validate(self, data: Dict[str, Any]) -> Dict[str, Any]:
        clean = dict(data)
        if "amount" in clean:
            try:
                cents = to_cents(clean["amount"])
            except ValueError:
                raise ConstraintViolation("Expense amount must be a number.")
            if cents <= 0:
                raise ConstraintViolation("Expense amount must be positive.")
            clean["amount"] = cents / 100
        if "category" in clean:
            try:
                clean["category"] = ExpenseCategory(clean["category"]).value
            except ValueError:
                raise ConstraintViolation(f"Unknown expense category {clean['category']!r}.")
        return clean

    def create_expense(self, data: Dict[str, Any]) -> Expense:
        return self.create(self._validate(data))

    def update_expense(self, expense_id: int, data: Dict[str, Any]) -> Expense:
        return self.update(expense_id, self._validate(data))

    def delete_expense(self, expense_id: int) -> None:
        self.delete(expense_id)

    def get_expenses(
        self,
        start: Optional[date] = None,
        end: Optional[date] = None,
        category: Optional[str] = None,
    ) -> List[Expense]:
        """Expenses in [start, end], newest first."""
        statement = select(Expense).order_by(Expense.date.desc(), Expense.id.desc())
        if start:
            statement = statement.where(Expense.date >= start)
        if end:
            statement = statement.where(Expense.date <= end)
        if category:
            statement = statement.where(Expense.category == category)
        return list(self.session.exec(statement).all())

    def get_month_expenses(self, year: int, month: int) -> List[Expense]:
        last_day = monthrange(year, month)[1]
        return self.get_expenses(date(year, month, 1), date(year, month, last_day))

    def summarize(self, expenses: List[Expense]) -> Dict[str, Any]:
        by_category: Dict[str, int] = {}
        for expense in expenses:
            by_category[expense.category] = by_category.get(expense.category, 0) + to_cents(expense.amount)
        return {
            "total": from_cents(sum(by_category.values())),
            "count": len(expenses),
            "by_category": {k: from_cents(v) for k, v in sorted(by_category.items())},
        }
