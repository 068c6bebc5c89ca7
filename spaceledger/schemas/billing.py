from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from spaceledger.models.billing import InvoiceStatus, InvoiceType
from spaceledger.models.subscription import RevenueNature
from spaceledger.schemas.common import IDModel, Timestamped


class InvoiceCreate(BaseModel):
    invoice_type: InvoiceType = InvoiceType.TAX_INVOICE
    invoice_date: date | None = None
    due_date: date | None = None
    # Prefill the draft with the subscription's billing items.
    copy_subscription_items: bool = False


class InvoiceIssue(BaseModel):
    # Bare sequence (7 or "7") or formatted ("KS/2025-26/0007"); the previewed candidate when omitted.
    invoice_number: int | str | None = None
    invoice_date: date | None = None
    due_date: date | None = None


class InvoiceItemCreate(BaseModel):
    description: str = Field(min_length=1)
    quantity: Decimal = Field(default=Decimal("1"), gt=0)
    unit_price: Decimal = Field(ge=0, max_digits=12, decimal_places=2)
    revenue_nature: RevenueNature = RevenueNature.TURNOVER
    tax_rate: Decimal = Field(default=Decimal("0"), ge=0)


class InvoiceItemRead(IDModel, Timestamped):
    invoice_id: UUID
    description: str
    quantity: Decimal
    unit_price: Decimal
    amount: Decimal
    revenue_nature: RevenueNature
    tax_rate: Decimal
    tax_amount: Decimal


class InvoiceRead(IDModel, Timestamped):
    subscription_id: UUID
    customer_id: UUID
    invoice_type: InvoiceType
    status: InvoiceStatus
    invoice_number: str | None = None
    fiscal_year: str | None = None
    sequence_number: int | None = None
    invoice_date: date
    due_date: date | None = None
    issued_at: datetime | None = None
    cancelled_at: datetime | None = None
    subtotal: Decimal
    tax_amount: Decimal
    total_amount: Decimal


class InvoiceDetailRead(InvoiceRead):
    items: list[InvoiceItemRead] = []


class InvoiceNumberPreview(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    fiscal_year: str
    sequence_number: int
    invoice_number: str
