# isp_billing/models/setting.py
from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel


class Setting(SQLModel, table=True):
    """Key/value business setting (reminder window, currency, run hours...)."""

    __tablename__ = "settings"

    key: str = Field(primary_key=True)
    value: str
    updated_at: Optional[datetime] = Field(default_factory=datetime.utcnow)
