from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Iterable
from uuid import UUID

from sqlmodel import Session, func, select

from spaceledger.core.errors import NotFound
from spaceledger.core.logging_setup import logger
from spaceledger.models.catalog import CATALOG_MODELS, Bundle, BundleItem, CatalogItemType, Consumable, Plan, Service
from spaceledger.schemas.catalog import (
    BundleCreate,
    BundleItemCreate,
    CatalogItemUpdate,
    ConsumableCreate,
    ConsumableUpdate,
    PlanCreate,
    PlanUpdate,
    ServiceCreate,
    ServiceUpdate,
)
from spaceledger.utils.money import to_money

REQUIRED_CATALOG_FIELDS = frozenset({"name", "price", "is_active"})


class CatalogService:
    """Plans, services, consumables and bundles. Shared reference data for billing."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def create_plan(self, payload: PlanCreate) -> Plan:
        return self._save(Plan(**payload.model_dump()))

    def create_service(self, payload: ServiceCreate) -> Service:
        return self._save(Service(**payload.model_dump()))

    def create_consumable(self, payload: ConsumableCreate) -> Consumable:
        return self._save(Consumable(**payload.model_dump()))

    def create_bundle(self, payload: BundleCreate) -> Bundle:
        return self._save(Bundle(**payload.model_dump()))

    def update_plan(self, plan_id: UUID, payload: PlanUpdate) -> Plan:
        return self._update(Plan, plan_id, payload)

    def update_service(self, service_id: UUID, payload: ServiceUpdate) -> Service:
        return self._update(Service, service_id, payload)

    def update_consumable(self, consumable_id: UUID, payload: ConsumableUpdate) -> Consumable:
        return self._update(Consumable, consumable_id, payload)

    def list_plans(self, include_inactive: bool = False) -> Iterable[Plan]:
        statement = select(Plan)
        if not include_inactive:
            statement = statement.where(Plan.is_active.is_(True))
        return self.session.exec(statement.order_by(Plan.price)).all()

    def list_services(self, include_inactive: bool = False) -> Iterable[Service]:
        statement = select(Service)
        if not include_inactive:
            statement = statement.where(Service.is_active.is_(True))
        return self.session.exec(statement.order_by(Service.name)).all()

    def list_consumables(self, include_inactive: bool = False) -> Iterable[Consumable]:
        statement = select(Consumable)
        if not include_inactive:
            statement = statement.where(Consumable.is_active.is_(True))
        return self.session.exec(statement.order_by(Consumable.name)).all()

    def list_bundles(self) -> Iterable[Bundle]:
        return self.session.exec(select(Bundle).order_by(Bundle.created_at.desc())).all()

    def get_bundle(self, bundle_id: UUID) -> Bundle:
        bundle = self.session.get(Bundle, bundle_id)
        if bundle is None:
            raise NotFound("Bundle", bundle_id)
        return bundle

    def list_bundle_items(self, bundle_id: UUID) -> Iterable[BundleItem]:
        return self.session.exec(
            select(BundleItem)
            .where(BundleItem.bundle_id == bundle_id)
            .order_by(BundleItem.position, BundleItem.created_at)
        ).all()

    def add_bundle_item(self, bundle_id: UUID, payload: BundleItemCreate) -> BundleItem:
        self.get_bundle(bundle_id)
        model = CATALOG_MODELS[CatalogItemType(payload.item_type)]
        if self.session.get(model, payload.item_id) is None:
            raise NotFound(model.__name__, payload.item_id)
        position = self.session.exec(
            select(func.count()).select_from(BundleItem).where(BundleItem.bundle_id == bundle_id)
        ).one()
        item = BundleItem(
            bundle_id=bundle_id,
            item_type=payload.item_type,
            item_id=payload.item_id,
            position=int(position or 0),
            override_price=self._optional_money(payload.override_price),
        )
        return self._save(item)

    def update_bundle_item_override(self, item_id: UUID, override_price: Decimal | None) -> BundleItem:
        item = self.session.get(BundleItem, item_id)
        if item is None:
            raise NotFound("BundleItem", item_id)
        item.override_price = self._optional_money(override_price)
        return self._save(item)

    def remove_bundle_item(self, item_id: UUID) -> None:
        item = self.session.get(BundleItem, item_id)
        if item is None:
            raise NotFound("BundleItem", item_id)
        self.session.delete(item)
        self.session.commit()

    @staticmethod
    def _optional_money(value: Decimal | None) -> Decimal | None:
        return to_money(value) if value is not None else None

    def _update(self, model, item_id: UUID, payload: CatalogItemUpdate):
        """Apply the fields sent in ``payload``.

        Subscription items keep the amounts copied at creation. Bundle items without an
        override resolve to the new price.
        """
        row = self.session.get(model, item_id)
        if row is None:
            raise NotFound(model.__name__, item_id)
        changes = payload.model_dump(exclude_unset=True)
        for field, value in changes.items():
            if value is None and field in REQUIRED_CATALOG_FIELDS:
                continue
            setattr(row, field, to_money(value) if field == "price" else value)
        row.updated_at = datetime.utcnow()
        row = self._save(row)
        logger.info("%s %s updated: %s", model.__name__, item_id, sorted(changes))
        return row

    def _save(self, row):
        self.session.add(row)
        self.session.commit()
        self.session.refresh(row)
        return row
