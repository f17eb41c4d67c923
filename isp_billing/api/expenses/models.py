import datetime as dt

from pydantic import BaseModel, ConfigDict, Field

from ...core.constants import ExpenseCategory


class ExpenseCreate(BaseModel):
    description: str = Field(min_length=1)
    amount: float = Field(gt=0)
    category: ExpenseCategory = ExpenseCategory.OTHER
    date: dt.date


class ExpenseUpdate(BaseModel):
    description: str | None = None
    amount: float | None = Field(default=None, gt=0)
    category: ExpenseCategory | None = None
    date: dt.date | None = None


class Expense(BaseModel):
    id: int
    description: str
    amount: float
    category: str
    date: dt.date
    created_at: dt.datetime | None = None
    model_config = ConfigDict(from_attributes=True)


class ExpenseSummary(BaseModel):
    total: float
    count: int
    by_category: dict[str, float]
