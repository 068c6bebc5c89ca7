from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import UniqueConstraint
from sqlmodel import Field

from spaceledger.models.base import MoneyField, TimestampedModel, UUIDModel
from spaceledger.models.subscription import RevenueNature


class InvoiceStatus(str, Enum):
    DRAFT = "DRAFT"
    ISSUED = "ISSUED"
    CANCELLED = "CANCELLED"


class InvoiceType(str, Enum):
    TAX_INVOICE = "TAX_INVOICE"
    PROFORMA = "PROFORMA"


class Invoice(UUIDModel, TimestampedModel, table=True):
    __tablename__ = "invoices"

    subscription_id: UUID = Field(foreign_key="subscriptions.id", index=True)
    customer_id: UUID = Field(foreign_key="customers.id", index=True)
    invoice_type: InvoiceType = Field(default=InvoiceType.TAX_INVOICE)
    status: InvoiceStatus = Field(default=InvoiceStatus.DRAFT, index=True)
    # Null while the invoice is a draft; immutable once assigned.
    invoice_number: str | None = Field(default=None, unique=True, index=True)
    fiscal_year: str | None = Field(default=None, index=True)
    sequence_number: int | None = Field(default=None)
    invoice_date: date
    due_date: date | None = Field(default=None)
    issued_at: datetime | None = Field(default=None)
    cancelled_at: datetime | None = Field(default=None)

    # Cached totals, always rewritten from the items.
    subtotal: Decimal = MoneyField()
    tax_amount: Decimal = MoneyField()
    total_amount: Decimal = MoneyField()


class InvoiceItem(UUIDModel, TimestampedModel, table=True):
    __tablename__ = "invoice_items"

    invoice_id: UUID = Field(foreign_key="invoices.id", index=True)
    description: str
    quantity: Decimal = Field(default=Decimal("1"), max_digits=12, decimal_places=3)
    unit_price: Decimal = MoneyField()
    amount: Decimal = MoneyField()
    revenue_nature: RevenueNature = Field(default=RevenueNature.TURNOVER)
    tax_rate: Decimal = Field(default=Decimal("0"), max_digits=5, decimal_places=2)
    tax_amount: Decimal = MoneyField()


class InvoiceSequence(TimestampedModel, table=True):
    """Invoice number counter, one row per fiscal year."""

    __tablename__ = "invoice_sequences"

    fiscal_year: str = Field(primary_key=True, max_length=16)
    last_number: int = Field(default=0)


class InvoiceNumberAllocation(UUIDModel, TimestampedModel, table=True):
    """Every committed invoice number, kept even after the invoice is cancelled."""

    __tablename__ = "invoice_number_allocations"
    __table_args__ = (
        UniqueConstraint("fiscal_year", "sequence_number", name="uq_invoice_number_allocation"),
    )

    fiscal_year: str = Field(max_length=16, index=True)
    sequence_number: int
    invoice_number: str
    invoice_id: UUID | None = Field(default=None, foreign_key="invoices.id")
