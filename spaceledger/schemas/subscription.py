from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from spaceledger.models.catalog import CatalogItemType
from spaceledger.models.subscription import (
    NameBoardStatus,
    PaymentMethod,
    RevenueNature,
    RubberStampStatus,
    SignatoryType,
    SubscriptionStatus,
)
from spaceledger.schemas.common import IDModel, Timestamped


class SubscriptionCreate(BaseModel):
    customer_id: UUID
    plan_id: UUID | None = None
    bundle_id: UUID | None = None
    suite_number: str | None = None

    purchased_date: date
    start_date: date | None = None
    expiry_date: date | None = None
    # Defaults to the plan/bundle list price when omitted.
    purchase_amount: Decimal | None = Field(default=None, ge=0, max_digits=12, decimal_places=2)
    renewal_amount: Decimal | None = Field(default=None, ge=0, max_digits=12, decimal_places=2)

    rubber_stamp: RubberStampStatus = RubberStampStatus.NOT_AVAILABLE
    name_board: NameBoardStatus = NameBoardStatus.NOT_AVAILABLE

    signatory_type: SignatoryType = SignatoryType.INDIVIDUAL
    signatory_name: str | None = None
    signatory_designation: str | None = None
    signatory_address: str | None = None
    company_name: str | None = None
    company_address: str | None = None

    # Optional advance recorded as the first payment, in the same unit of work.
    advance_amount: Decimal | None = Field(default=None, max_digits=12, decimal_places=2)
    advance_payment_method: PaymentMethod = PaymentMethod.BANK_TRANSFER

    @model_validator(mode="after")
    def _check_dates(self) -> "SubscriptionCreate":
        if self.start_date and self.expiry_date and self.expiry_date < self.start_date:
            raise ValueError("expiry_date must not be before start_date")
        return self


class SubscriptionUpdate(BaseModel):
    """Editable subscription details. Status, its version and the received amount are not."""

    suite_number: str | None = None
    start_date: date | None = None
    expiry_date: date | None = None
    renewal_amount: Decimal | None = Field(default=None, ge=0, max_digits=12, decimal_places=2)
    name_board: NameBoardStatus | None = None

    signatory_type: SignatoryType | None = None
    signatory_name: str | None = None
    signatory_designation: str | None = None
    signatory_address: str | None = None
    company_name: str | None = None
    company_address: str | None = None


class SubscriptionRead(IDModel, Timestamped):
    customer_id: UUID
    plan_id: UUID | None = None
    bundle_id: UUID | None = None
    suite_number: str | None = None
    purchased_date: date
    start_date: date | None = None
    expiry_date: date | None = None
    purchase_amount: Decimal
    renewal_amount: Decimal | None = None
    received_amount: Decimal
    status: SubscriptionStatus
    rubber_stamp: RubberStampStatus
    name_board: NameBoardStatus
    signatory_type: SignatoryType
    signatory_name: str | None = None
    signatory_designation: str | None = None
    signatory_address: str | None = None
    company_name: str | None = None
    company_address: str | None = None


class SubscriptionItemRead(IDModel, Timestamped):
    subscription_id: UUID
    item_type: CatalogItemType
    item_id: UUID | None = None
    description: str
    amount: Decimal
    revenue_nature: RevenueNature
    position: int


class SubscriptionItemCreate(BaseModel):
    item_type: CatalogItemType
    item_id: UUID | None = None
    # Default to the catalog name and current list price when an item_id is given.
    description: str | None = Field(default=None, min_length=1)
    amount: Decimal | None = Field(default=None, max_digits=12, decimal_places=2)
    revenue_nature: RevenueNature = RevenueNature.TURNOVER


class SubscriptionItemUpdate(BaseModel):
    description: str | None = Field(default=None, min_length=1)
    amount: Decimal | None = Field(default=None, max_digits=12, decimal_places=2)
    revenue_nature: RevenueNature | None = None


class StatusTransitionRequest(BaseModel):
    status: SubscriptionStatus


class RubberStampUpdate(BaseModel):
    rubber_stamp: RubberStampStatus


class StatusLogRead(IDModel):
    subscription_id: UUID
    position: int
    old_status: SubscriptionStatus | None = None
    new_status: SubscriptionStatus
    changed_by: UUID | None = None
    created_at: datetime


class PaymentCreate(BaseModel):
    amount: Decimal = Field(max_digits=12, decimal_places=2)
    payment_date: date
    payment_method: PaymentMethod = PaymentMethod.BANK_TRANSFER
    idempotency_key: str | None = Field(default=None, max_length=128)


class PaymentUpdate(BaseModel):
    amount: Decimal | None = Field(default=None, max_digits=12, decimal_places=2)
    payment_date: date | None = None
    payment_method: PaymentMethod | None = None


class PaymentRead(IDModel, Timestamped):
    subscription_id: UUID
    customer_id: UUID
    amount: Decimal
    payment_date: date
    payment_method: PaymentMethod
    idempotency_key: str | None = None
    voided_at: datetime | None = None
