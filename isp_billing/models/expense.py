from datetime import date as date_type, datetime
from typing import Optional

from sqlmodel import Field, SQLModel

from ..core.constants import ExpenseCategory


class Expense(SQLModel, table=True):
    __tablename__ = "expenses"

    id: Optional[int] = Field(default=None, primary_key=True)
    description: str = Field(nullable=False)
    amount: float = Field(nullable=False)
    category: str = Field(default=ExpenseCategory.OTHER.value, index=True)
    date: date_type = Field(nullable=False, index=True)
    created_at: Optional[datetime] = Field(default_factory=datetime.utcnow)
