from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from spaceledger.models.catalog import CatalogItemType
from spaceledger.schemas.common import IDModel, Timestamped


class CatalogItemCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: str | None = None
    price: Decimal = Field(ge=0, max_digits=12, decimal_places=2)


class PlanCreate(CatalogItemCreate):
    tag: str | None = None


class ServiceCreate(CatalogItemCreate):
    pass


class ConsumableCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    unit: str | None = None
    price: Decimal = Field(ge=0, max_digits=12, decimal_places=2)


class BundleCreate(CatalogItemCreate):
    pass


class CatalogItemUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    price: Decimal | None = Field(default=None, ge=0, max_digits=12, decimal_places=2)
    is_active: bool | None = None


class PlanUpdate(CatalogItemUpdate):
    description: str | None = None
    tag: str | None = None


class ServiceUpdate(CatalogItemUpdate):
    description: str | None = None


class ConsumableUpdate(CatalogItemUpdate):
    unit: str | None = None


class CatalogItemRead(IDModel, Timestamped):
    name: str
    price: Decimal
    is_active: bool


class PlanRead(CatalogItemRead):
    description: str | None = None
    tag: str | None = None


class ServiceRead(CatalogItemRead):
    description: str | None = None


class ConsumableRead(CatalogItemRead):
    unit: str | None = None


class BundleRead(CatalogItemRead):
    description: str | None = None


class BundleItemCreate(BaseModel):
    item_type: CatalogItemType
    item_id: UUID
    override_price: Decimal | None = Field(default=None, ge=0, max_digits=12, decimal_places=2)


class BundleItemUpdate(BaseModel):
    override_price: Decimal | None = Field(default=None, ge=0, max_digits=12, decimal_places=2)


class BundleItemRead(IDModel, Timestamped):
    bundle_id: UUID
    item_type: CatalogItemType
    item_id: UUID
    position: int
    override_price: Decimal | None = None


class ResolvedBundleItemRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    item_type: CatalogItemType
    item_id: UUID
    name: str
    list_price: Decimal
    override_price: Decimal | None = None
    effective_price: Decimal
