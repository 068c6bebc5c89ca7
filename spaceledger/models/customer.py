from __future__ import annotations

from sqlmodel import Field

from spaceledger.models.base import TimestampedModel, UUIDModel


class Customer(UUIDModel, TimestampedModel, table=True):
    __tablename__ = "customers"

    name: str = Field(index=True)
    phone: str | None = Field(default=None, max_length=32)
    email: str | None = Field(default=None)
