from __future__ import annotations

from pydantic import BaseModel, Field

from spaceledger.schemas.common import IDModel, Timestamped


class CustomerCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    phone: str | None = Field(default=None, max_length=32)
    email: str | None = None


class CustomerRead(IDModel, Timestamped):
    name: str
    phone: str | None = None
    email: str | None = None
