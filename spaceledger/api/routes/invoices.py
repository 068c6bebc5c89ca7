from __future__ import annotations

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, status

from spaceledger.api.deps import get_facade
from spaceledger.models.billing import Invoice
from spaceledger.schemas.billing import (
    InvoiceDetailRead,
    InvoiceIssue,
    InvoiceItemCreate,
    InvoiceItemRead,
    InvoiceNumberPreview,
)
from spaceledger.services.billing import BillingFacade

router = APIRouter(prefix="/invoices", tags=["invoices"])


def _serialize_invoice(facade: BillingFacade, invoice: Invoice) -> InvoiceDetailRead:
    read = InvoiceDetailRead.model_validate(invoice, from_attributes=True)
    items = [InvoiceItemRead.model_validate(item) for item in facade.list_invoice_items(invoice.id)]
    return read.model_copy(update={"items": items})


@router.get("/next-number", response_model=InvoiceNumberPreview)
def preview_next_number(invoice_date: date, facade: BillingFacade = Depends(get_facade)) -> InvoiceNumberPreview:
    return InvoiceNumberPreview.model_validate(facade.preview_next_invoice_number(invoice_date))


@router.get("/{invoice_id}", response_model=InvoiceDetailRead)
def get_invoice(invoice_id: UUID, facade: BillingFacade = Depends(get_facade)) -> InvoiceDetailRead:
    return _serialize_invoice(facade, facade.get_invoice(invoice_id))


@router.get("/{invoice_id}/verify")
def verify_invoice_totals(invoice_id: UUID, facade: BillingFacade = Depends(get_facade)) -> dict[str, bool]:
    return {"consistent": facade.verify_invoice_totals(invoice_id)}


@router.post("/{invoice_id}/items", response_model=InvoiceItemRead, status_code=status.HTTP_201_CREATED)
def add_invoice_item(
    invoice_id: UUID,
    payload: InvoiceItemCreate,
    facade: BillingFacade = Depends(get_facade),
) -> InvoiceItemRead:
    item = facade.add_invoice_item(
        invoice_id,
        payload.description,
        payload.unit_price,
        quantity=payload.quantity,
        revenue_nature=payload.revenue_nature,
        tax_rate=payload.tax_rate,
    )
    return InvoiceItemRead.model_validate(item)


@router.delete("/{invoice_id}/items/{item_id}", response_model=InvoiceDetailRead)
def remove_invoice_item(
    invoice_id: UUID,
    item_id: UUID,
    facade: BillingFacade = Depends(get_facade),
) -> InvoiceDetailRead:
    return _serialize_invoice(facade, facade.remove_invoice_item(invoice_id, item_id))


@router.post("/{invoice_id}/issue", response_model=InvoiceDetailRead)
def issue_invoice(
    invoice_id: UUID,
    payload: InvoiceIssue,
    facade: BillingFacade = Depends(get_facade),
) -> InvoiceDetailRead:
    invoice = facade.issue_invoice(
        invoice_id,
        invoice_number=payload.invoice_number,
        invoice_date=payload.invoice_date,
        due_date=payload.due_date,
    )
    return _serialize_invoice(facade, invoice)


@router.post("/{invoice_id}/cancel", response_model=InvoiceDetailRead)
def cancel_invoice(invoice_id: UUID, facade: BillingFacade = Depends(get_facade)) -> InvoiceDetailRead:
    return _serialize_invoice(facade, facade.cancel_invoice(invoice_id))
