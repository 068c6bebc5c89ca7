from __future__ import annotations

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, status

from spaceledger.api.deps import get_actor_id, get_facade
from spaceledger.models.subscription import RubberStampStatus
from spaceledger.schemas.billing import InvoiceCreate, InvoiceRead
from spaceledger.schemas.subscription import (
    PaymentCreate,
    PaymentRead,
    RubberStampUpdate,
    StatusLogRead,
    StatusTransitionRequest,
    SubscriptionCreate,
    SubscriptionItemCreate,
    SubscriptionItemRead,
    SubscriptionItemUpdate,
    SubscriptionRead,
    SubscriptionUpdate,
)
from spaceledger.services.billing import BillingFacade

router = APIRouter(prefix="/subscriptions", tags=["subscriptions"])


@router.post("", response_model=SubscriptionRead, status_code=status.HTTP_201_CREATED)
def create_subscription(
    payload: SubscriptionCreate,
    facade: BillingFacade = Depends(get_facade),
    actor_id: UUID | None = Depends(get_actor_id),
) -> SubscriptionRead:
    return SubscriptionRead.model_validate(facade.create_subscription(payload, actor_id))


@router.get("/rubber-stamp", response_model=List[SubscriptionRead])
def list_rubber_stamp_subscriptions(
    rubber_stamp: RubberStampStatus | None = None,
    facade: BillingFacade = Depends(get_facade),
) -> List[SubscriptionRead]:
    subscriptions = facade.list_rubber_stamp_subscriptions(rubber_stamp)
    return [SubscriptionRead.model_validate(subscription) for subscription in subscriptions]


@router.get("/{subscription_id}", response_model=SubscriptionRead)
def get_subscription(subscription_id: UUID, facade: BillingFacade = Depends(get_facade)) -> SubscriptionRead:
    return SubscriptionRead.model_validate(facade.get_subscription(subscription_id))


@router.patch("/{subscription_id}", response_model=SubscriptionRead)
def update_subscription(
    subscription_id: UUID,
    payload: SubscriptionUpdate,
    facade: BillingFacade = Depends(get_facade),
    actor_id: UUID | None = Depends(get_actor_id),
) -> SubscriptionRead:
    return SubscriptionRead.model_validate(facade.update_subscription_details(subscription_id, payload, actor_id))


@router.get("/{subscription_id}/items", response_model=List[SubscriptionItemRead])
def list_subscription_items(
    subscription_id: UUID,
    facade: BillingFacade = Depends(get_facade),
) -> List[SubscriptionItemRead]:
    return [SubscriptionItemRead.model_validate(item) for item in facade.list_subscription_items(subscription_id)]


@router.post("/{subscription_id}/items", response_model=SubscriptionItemRead, status_code=status.HTTP_201_CREATED)
def add_subscription_item(
    subscription_id: UUID,
    payload: SubscriptionItemCreate,
    facade: BillingFacade = Depends(get_facade),
) -> SubscriptionItemRead:
    return SubscriptionItemRead.model_validate(facade.add_subscription_item(subscription_id, payload))


@router.patch("/{subscription_id}/items/{item_id}", response_model=SubscriptionItemRead)
def update_subscription_item(
    subscription_id: UUID,
    item_id: UUID,
    payload: SubscriptionItemUpdate,
    facade: BillingFacade = Depends(get_facade),
) -> SubscriptionItemRead:
    return SubscriptionItemRead.model_validate(facade.update_subscription_item(subscription_id, item_id, payload))


@router.post("/{subscription_id}/status", response_model=SubscriptionRead)
def transition_status(
    subscription_id: UUID,
    payload: StatusTransitionRequest,
    facade: BillingFacade = Depends(get_facade),
    actor_id: UUID | None = Depends(get_actor_id),
) -> SubscriptionRead:
    subscription = facade.transition_subscription_status(subscription_id, payload.status, actor_id)
    return SubscriptionRead.model_validate(subscription)


@router.get("/{subscription_id}/history", response_model=List[StatusLogRead])
def get_status_history(subscription_id: UUID, facade: BillingFacade = Depends(get_facade)) -> List[StatusLogRead]:
    return [StatusLogRead.model_validate(entry) for entry in facade.get_subscription_status_history(subscription_id)]


@router.put("/{subscription_id}/rubber-stamp", response_model=SubscriptionRead)
def update_rubber_stamp(
    subscription_id: UUID,
    payload: RubberStampUpdate,
    facade: BillingFacade = Depends(get_facade),
    actor_id: UUID | None = Depends(get_actor_id),
) -> SubscriptionRead:
    subscription = facade.update_rubber_stamp(subscription_id, payload.rubber_stamp, actor_id)
    return SubscriptionRead.model_validate(subscription)


@router.post("/{subscription_id}/payments", response_model=PaymentRead, status_code=status.HTTP_201_CREATED)
def record_payment(
    subscription_id: UUID,
    payload: PaymentCreate,
    facade: BillingFacade = Depends(get_facade),
) -> PaymentRead:
    payment = facade.record_payment(
        subscription_id,
        payload.amount,
        payload.payment_date,
        payload.payment_method,
        payload.idempotency_key,
    )
    return PaymentRead.model_validate(payment)


@router.get("/{subscription_id}/payments", response_model=List[PaymentRead])
def list_payments(
    subscription_id: UUID,
    include_voided: bool = False,
    facade: BillingFacade = Depends(get_facade),
) -> List[PaymentRead]:
    payments = facade.list_payments(subscription_id, include_voided=include_voided)
    return [PaymentRead.model_validate(payment) for payment in payments]


@router.post("/{subscription_id}/invoices", response_model=InvoiceRead, status_code=status.HTTP_201_CREATED)
def create_draft_invoice(
    subscription_id: UUID,
    payload: InvoiceCreate,
    facade: BillingFacade = Depends(get_facade),
) -> InvoiceRead:
    invoice = facade.create_draft_invoice(
        subscription_id,
        invoice_type=payload.invoice_type,
        invoice_date=payload.invoice_date,
        due_date=payload.due_date,
        copy_subscription_items=payload.copy_subscription_items,
    )
    return InvoiceRead.model_validate(invoice)


@router.get("/{subscription_id}/invoices", response_model=List[InvoiceRead])
def list_invoices(subscription_id: UUID, facade: BillingFacade = Depends(get_facade)) -> List[InvoiceRead]:
    return [InvoiceRead.model_validate(invoice) for invoice in facade.list_invoices(subscription_id)]
