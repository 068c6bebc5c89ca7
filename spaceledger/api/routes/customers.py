from __future__ import annotations

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, status

from spaceledger.api.deps import get_facade
from spaceledger.schemas.customer import CustomerCreate, CustomerRead
from spaceledger.services.billing import BillingFacade

router = APIRouter(prefix="/customers", tags=["customers"])


@router.get("", response_model=List[CustomerRead])
def list_customers(q: str | None = None, facade: BillingFacade = Depends(get_facade)) -> List[CustomerRead]:
    return [CustomerRead.model_validate(customer) for customer in facade.customers.list_customers(q)]


@router.post("", response_model=CustomerRead, status_code=status.HTTP_201_CREATED)
def create_customer(payload: CustomerCreate, facade: BillingFacade = Depends(get_facade)) -> CustomerRead:
    return CustomerRead.model_validate(facade.customers.create_customer(payload))


@router.get("/{customer_id}", response_model=CustomerRead)
def get_customer(customer_id: UUID, facade: BillingFacade = Depends(get_facade)) -> CustomerRead:
    return CustomerRead.model_validate(facade.customers.get_customer(customer_id))
