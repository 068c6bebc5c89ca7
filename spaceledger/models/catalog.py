from __future__ import annotations

from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlmodel import Field

from spaceledger.models.base import MoneyField, TimestampedModel, UUIDModel


class CatalogItemType(str, Enum):
    PLAN = "plan"
    SERVICE = "service"
    CONSUMABLE = "consumable"


class Plan(UUIDModel, TimestampedModel, table=True):
    __tablename__ = "plans"

    name: str
    description: str | None = Field(default=None)
    tag: str | None = Field(default=None)
    price: Decimal = MoneyField()
    is_active: bool = Field(default=True)


class Service(UUIDModel, TimestampedModel, table=True):
    __tablename__ = "services"

    name: str
    description: str | None = Field(default=None)
    price: Decimal = MoneyField()
    is_active: bool = Field(default=True)


class Consumable(UUIDModel, TimestampedModel, table=True):
    __tablename__ = "consumables"

    name: str
    unit: str | None = Field(default=None)
    price: Decimal = MoneyField()
    is_active: bool = Field(default=True)


class Bundle(UUIDModel, TimestampedModel, table=True):
    __tablename__ = "bundles"

    name: str
    description: str | None = Field(default=None)
    price: Decimal = MoneyField()
    is_active: bool = Field(default=True)


class BundleItem(UUIDModel, TimestampedModel, table=True):
    __tablename__ = "bundle_items"

    bundle_id: UUID = Field(foreign_key="bundles.id", index=True)
    item_type: CatalogItemType
    item_id: UUID
    position: int = Field(default=0)
    # None means "use the catalog list price"; zero is a real (free) override.
    override_price: Decimal | None = MoneyField(default=None, nullable=True)


CATALOG_MODELS: dict[CatalogItemType, type] = {
    CatalogItemType.PLAN: Plan,
    CatalogItemType.SERVICE: Service,
    CatalogItemType.CONSUMABLE: Consumable,
}
