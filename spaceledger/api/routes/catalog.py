from __future__ import annotations

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Response, status

from spaceledger.api.deps import get_facade
from spaceledger.schemas.catalog import (
    BundleCreate,
    BundleItemCreate,
    BundleItemRead,
    BundleItemUpdate,
    BundleRead,
    ConsumableCreate,
    ConsumableRead,
    ConsumableUpdate,
    PlanCreate,
    PlanRead,
    PlanUpdate,
    ResolvedBundleItemRead,
    ServiceCreate,
    ServiceRead,
    ServiceUpdate,
)
from spaceledger.services.billing import BillingFacade

router = APIRouter(prefix="/catalog", tags=["catalog"])


@router.get("/plans", response_model=List[PlanRead])
def list_plans(facade: BillingFacade = Depends(get_facade)) -> List[PlanRead]:
    return [PlanRead.model_validate(plan) for plan in facade.catalog.list_plans()]


@router.post("/plans", response_model=PlanRead, status_code=status.HTTP_201_CREATED)
def create_plan(payload: PlanCreate, facade: BillingFacade = Depends(get_facade)) -> PlanRead:
    return PlanRead.model_validate(facade.catalog.create_plan(payload))


@router.patch("/plans/{plan_id}", response_model=PlanRead)
def update_plan(plan_id: UUID, payload: PlanUpdate, facade: BillingFacade = Depends(get_facade)) -> PlanRead:
    return PlanRead.model_validate(facade.catalog.update_plan(plan_id, payload))


@router.get("/services", response_model=List[ServiceRead])
def list_services(facade: BillingFacade = Depends(get_facade)) -> List[ServiceRead]:
    return [ServiceRead.model_validate(service) for service in facade.catalog.list_services()]


@router.post("/services", response_model=ServiceRead, status_code=status.HTTP_201_CREATED)
def create_service(payload: ServiceCreate, facade: BillingFacade = Depends(get_facade)) -> ServiceRead:
    return ServiceRead.model_validate(facade.catalog.create_service(payload))


@router.patch("/services/{service_id}", response_model=ServiceRead)
def update_service(service_id: UUID, payload: ServiceUpdate, facade: BillingFacade = Depends(get_facade)) -> ServiceRead:
    return ServiceRead.model_validate(facade.catalog.update_service(service_id, payload))


@router.get("/consumables", response_model=List[ConsumableRead])
def list_consumables(facade: BillingFacade = Depends(get_facade)) -> List[ConsumableRead]:
    return [ConsumableRead.model_validate(item) for item in facade.catalog.list_consumables()]


@router.post("/consumables", response_model=ConsumableRead, status_code=status.HTTP_201_CREATED)
def create_consumable(payload: ConsumableCreate, facade: BillingFacade = Depends(get_facade)) -> ConsumableRead:
    return ConsumableRead.model_validate(facade.catalog.create_consumable(payload))


@router.patch("/consumables/{consumable_id}", response_model=ConsumableRead)
def update_consumable(
    consumable_id: UUID,
    payload: ConsumableUpdate,
    facade: BillingFacade = Depends(get_facade),
) -> ConsumableRead:
    return ConsumableRead.model_validate(facade.catalog.update_consumable(consumable_id, payload))


@router.get("/bundles", response_model=List[BundleRead])
def list_bundles(facade: BillingFacade = Depends(get_facade)) -> List[BundleRead]:
    return [BundleRead.model_validate(bundle) for bundle in facade.catalog.list_bundles()]


@router.post("/bundles", response_model=BundleRead, status_code=status.HTTP_201_CREATED)
def create_bundle(payload: BundleCreate, facade: BillingFacade = Depends(get_facade)) -> BundleRead:
    return BundleRead.model_validate(facade.catalog.create_bundle(payload))


@router.get("/bundles/{bundle_id}/items", response_model=List[BundleItemRead])
def list_bundle_items(bundle_id: UUID, facade: BillingFacade = Depends(get_facade)) -> List[BundleItemRead]:
    facade.catalog.get_bundle(bundle_id)
    return [BundleItemRead.model_validate(item) for item in facade.catalog.list_bundle_items(bundle_id)]


@router.post("/bundles/{bundle_id}/items", response_model=BundleItemRead, status_code=status.HTTP_201_CREATED)
def add_bundle_item(
    bundle_id: UUID,
    payload: BundleItemCreate,
    facade: BillingFacade = Depends(get_facade),
) -> BundleItemRead:
    return BundleItemRead.model_validate(facade.catalog.add_bundle_item(bundle_id, payload))


@router.patch("/bundle-items/{item_id}", response_model=BundleItemRead)
def update_bundle_item(
    item_id: UUID,
    payload: BundleItemUpdate,
    facade: BillingFacade = Depends(get_facade),
) -> BundleItemRead:
    return BundleItemRead.model_validate(facade.catalog.update_bundle_item_override(item_id, payload.override_price))


@router.delete("/bundle-items/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_bundle_item(item_id: UUID, facade: BillingFacade = Depends(get_facade)) -> Response:
    facade.catalog.remove_bundle_item(item_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/bundles/{bundle_id}/pricing", response_model=List[ResolvedBundleItemRead])
def resolve_bundle_pricing(bundle_id: UUID, facade: BillingFacade = Depends(get_facade)) -> List[ResolvedBundleItemRead]:
    return [ResolvedBundleItemRead.model_validate(item) for item in facade.resolve_bundle_pricing(bundle_id)]
