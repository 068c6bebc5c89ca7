from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from sqlmodel import Field, SQLModel


class TimestampedModel(SQLModel):
    created_at: datetime = Field(default_factory=datetime.utcnow, nullable=False)
    updated_at: datetime | None = Field(default=None, nullable=True)


class UUIDModel(SQLModel):
    id: UUID = Field(default_factory=uuid4, primary_key=True, index=True)


def MoneyField(default: Decimal | None = Decimal("0.00"), **kwargs: Any) -> Any:
    """Fixed-point money column (12 digits, 2 decimals)."""
    return Field(default=default, max_digits=12, decimal_places=2, **kwargs)
