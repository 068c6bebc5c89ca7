from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends

from spaceledger.api.deps import get_facade
from spaceledger.schemas.subscription import PaymentRead, PaymentUpdate
from spaceledger.services.billing import BillingFacade

router = APIRouter(prefix="/payments", tags=["payments"])


@router.patch("/{payment_id}", response_model=PaymentRead)
def update_payment(
    payment_id: UUID,
    payload: PaymentUpdate,
    facade: BillingFacade = Depends(get_facade),
) -> PaymentRead:
    payment = facade.update_payment(payment_id, **payload.model_dump(exclude_unset=True, exclude_none=True))
    return PaymentRead.model_validate(payment)


@router.post("/{payment_id}/void", response_model=PaymentRead)
def void_payment(payment_id: UUID, facade: BillingFacade = Depends(get_facade)) -> PaymentRead:
    return PaymentRead.model_validate(facade.void_payment(payment_id))
