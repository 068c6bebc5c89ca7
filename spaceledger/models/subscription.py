from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import UniqueConstraint
from sqlmodel import Field

from spaceledger.models.base import MoneyField, TimestampedModel, UUIDModel
from spaceledger.models.catalog import CatalogItemType


class SubscriptionStatus(str, Enum):
    ADVANCE_RECEIVED = "Advance Received"
    PAPER_COLLECTED = "Paper Collected"
    DOCUMENTS_READY = "Documents Ready"
    SIGNED_AND_UPLOADED = "Signed and Uploaded"
    COMPLETED = "Completed"


class RubberStampStatus(str, Enum):
    NOT_AVAILABLE = "Not Available"
    AVAILABLE = "Available"
    WITH_CLIENT = "With Client"


class NameBoardStatus(str, Enum):
    NOT_AVAILABLE = "Not Available"
    AVAILABLE = "Available"


class SignatoryType(str, Enum):
    INDIVIDUAL = "individual"
    COMPANY = "company"


class PaymentMethod(str, Enum):
    BANK_TRANSFER = "Bank Transfer"
    CASH = "Cash"


class RevenueNature(str, Enum):
    TURNOVER = "TURNOVER"
    PASSTHROUGH = "PASSTHROUGH"


class Subscription(UUIDModel, TimestampedModel, table=True):
    __tablename__ = "subscriptions"

    customer_id: UUID = Field(foreign_key="customers.id", index=True)
    plan_id: UUID | None = Field(default=None, foreign_key="plans.id")
    bundle_id: UUID | None = Field(default=None, foreign_key="bundles.id")
    suite_number: str | None = Field(default=None)

    purchased_date: date
    start_date: date | None = Field(default=None)
    expiry_date: date | None = Field(default=None)
    purchase_amount: Decimal = MoneyField()
    renewal_amount: Decimal | None = MoneyField(default=None, nullable=True)
    # Derived from payments; only the billing aggregator writes it.
    received_amount: Decimal = MoneyField()

    status: SubscriptionStatus = Field(default=SubscriptionStatus.ADVANCE_RECEIVED, index=True)
    status_version: int = Field(default=0)
    rubber_stamp: RubberStampStatus = Field(default=RubberStampStatus.NOT_AVAILABLE)
    name_board: NameBoardStatus = Field(default=NameBoardStatus.NOT_AVAILABLE)

    # Signatory
    signatory_type: SignatoryType = Field(default=SignatoryType.INDIVIDUAL)
    signatory_name: str | None = Field(default=None)
    signatory_designation: str | None = Field(default=None)
    signatory_address: str | None = Field(default=None)
    company_name: str | None = Field(default=None)
    company_address: str | None = Field(default=None)


class SubscriptionItem(UUIDModel, TimestampedModel, table=True):
    """Billing line copied onto a subscription when it is created."""

    __tablename__ = "subscription_items"

    subscription_id: UUID = Field(foreign_key="subscriptions.id", index=True)
    item_type: CatalogItemType
    item_id: UUID | None = Field(default=None)
    description: str
    amount: Decimal = MoneyField()
    revenue_nature: RevenueNature = Field(default=RevenueNature.TURNOVER)
    position: int = Field(default=0)


class Payment(UUIDModel, TimestampedModel, table=True):
    __tablename__ = "payments"
    __table_args__ = (
        UniqueConstraint("subscription_id", "idempotency_key", name="uq_payment_idempotency"),
    )

    subscription_id: UUID = Field(foreign_key="subscriptions.id", index=True)
    customer_id: UUID = Field(foreign_key="customers.id", index=True)
    amount: Decimal = MoneyField()
    payment_date: date
    payment_method: PaymentMethod = Field(default=PaymentMethod.BANK_TRANSFER)
    idempotency_key: str | None = Field(default=None, max_length=128)
    voided_at: datetime | None = Field(default=None)
