from concurrent.futures import ThreadPoolExecutor
from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlmodel import select

from spaceledger.core.errors import InvalidAmount, InvoiceNotEditable, NotFound, PaymentNotEditable
from spaceledger.models.billing import Invoice
from spaceledger.models.catalog import CatalogItemType
from spaceledger.models.subscription import Payment, PaymentMethod, RevenueNature, Subscription
from spaceledger.services.aggregator import BillingAggregator
from spaceledger.services.billing import BillingFacade
from tests.factories import add_bundle_item, make_bundle, make_plan, make_service, make_subscription

PAID_ON = date(2025, 5, 12)


def _received(session, subscription_id) -> Decimal:
    return session.get(Subscription, subscription_id, populate_existing=True).received_amount


def test_received_amount_tracks_payments(db_session):
    subscription = make_subscription(db_session)
    aggregator = BillingAggregator(db_session)

    aggregator.record_payment(subscription.id, "5000", PAID_ON)
    payment = aggregator.record_payment(subscription.id, 2500.5, PAID_ON, PaymentMethod.CASH)

    assert payment.amount == Decimal("2500.50")
    assert payment.payment_method == PaymentMethod.CASH
    assert payment.customer_id == subscription.customer_id
    assert _received(db_session, subscription.id) == Decimal("7500.50")


@pytest.mark.parametrize("amount", [0, "-50", "abc", "NaN"])
def test_non_positive_or_invalid_amounts_are_rejected(db_session, amount):
    subscription = make_subscription(db_session)
    aggregator = BillingAggregator(db_session)
    aggregator.record_payment(subscription.id, "1000", PAID_ON)

    with pytest.raises(InvalidAmount) as excinfo:
        aggregator.record_payment(subscription.id, amount, PAID_ON)

    assert excinfo.value.details["attempted_amount"] == str(amount)
    assert excinfo.value.details["subscription_id"] == str(subscription.id)
    assert _received(db_session, subscription.id) == Decimal("1000.00")
    assert len(aggregator.list_payments(subscription.id)) == 1


def test_payment_for_unknown_subscription(db_session):
    with pytest.raises(NotFound):
        BillingAggregator(db_session).record_payment(uuid4(), "100", PAID_ON)


def test_update_and_void_recompute_received_amount(db_session):
    subscription = make_subscription(db_session)
    aggregator = BillingAggregator(db_session)
    first = aggregator.record_payment(subscription.id, "4000", PAID_ON)
    second = aggregator.record_payment(subscription.id, "1000", PAID_ON)

    aggregator.update_payment(first.id, amount="4500", payment_method="Cash")
    assert _received(db_session, subscription.id) == Decimal("5500.00")

    voided = aggregator.void_payment(second.id)
    assert voided.voided_at is not None
    assert _received(db_session, subscription.id) == Decimal("4500.00")
    assert [p.id for p in aggregator.list_payments(subscription.id)] == [first.id]
    assert len(aggregator.list_payments(subscription.id, include_voided=True)) == 2

    with pytest.raises(PaymentNotEditable) as excinfo:
        aggregator.update_payment(second.id, amount="10")
    assert excinfo.value.details["payment_id"] == str(second.id)
    with pytest.raises(InvalidAmount):
        aggregator.update_payment(first.id, amount="0")
    assert _received(db_session, subscription.id) == Decimal("4500.00")


def test_idempotency_key_replays_the_original_payment(db_session):
    subscription = make_subscription(db_session)
    aggregator = BillingAggregator(db_session)

    first = aggregator.record_payment(subscription.id, "750", PAID_ON, idempotency_key="bank-ref-0042")
    replay = aggregator.record_payment(subscription.id, "750", PAID_ON, idempotency_key="bank-ref-0042")

    assert replay.id == first.id
    assert _received(db_session, subscription.id) == Decimal("750.00")


def test_recompute_received_amount_repairs_drift(db_session):
    subscription = make_subscription(db_session)
    aggregator = BillingAggregator(db_session)
    aggregator.record_payment(subscription.id, "300", PAID_ON)

    row = db_session.get(Subscription, subscription.id)
    row.received_amount = Decimal("1.00")
    db_session.add(row)
    db_session.commit()

    assert aggregator.recompute_received_amount(subscription.id) == Decimal("300.00")
    assert _received(db_session, subscription.id) == Decimal("300.00")


def test_concurrent_payments_are_all_counted(db_session, session_factory):
    subscription = make_subscription(db_session)
    workers = 10

    def pay(_):
        BillingAggregator(session_factory()).record_payment(subscription.id, "100.00", PAID_ON)

    with ThreadPoolExecutor(max_workers=workers) as pool:
        list(pool.map(pay, range(workers)))

    assert _received(db_session, subscription.id) == Decimal("1000.00")
    assert len(db_session.exec(select(Payment).where(Payment.subscription_id == subscription.id)).all()) == workers


def test_bundle_pricing_prefers_override_over_list_price(db_session):
    plan = make_plan(db_session, price="9000.00")
    service = make_service(db_session, price="500.00")
    bundle = make_bundle(db_session)
    add_bundle_item(db_session, bundle, service, override_price="450.00")
    add_bundle_item(db_session, bundle, plan)

    resolved = BillingAggregator(db_session).resolve_bundle_pricing(bundle.id)

    assert [(r.item_type, r.effective_price) for r in resolved] == [
        (CatalogItemType.SERVICE, Decimal("450.00")),
        (CatalogItemType.PLAN, Decimal("9000.00")),
    ]
    assert resolved[0].list_price == Decimal("500.00")
    assert resolved[1].override_price is None


def test_zero_override_is_a_real_price(db_session):
    service = make_service(db_session, price="500.00")
    bundle = make_bundle(db_session)
    add_bundle_item(db_session, bundle, service, override_price="0")

    [resolved] = BillingAggregator(db_session).resolve_bundle_pricing(bundle.id)

    assert resolved.effective_price == Decimal("0.00")


def test_invoice_totals_follow_items(db_session):
    subscription = make_subscription(db_session)
    facade = BillingFacade(db_session)
    invoice = facade.create_draft_invoice(subscription.id, invoice_date=PAID_ON)
    aggregator = facade.aggregator

    rent = aggregator.add_invoice_item(invoice.id, "Office rent", "1000", quantity=2, tax_rate="18")
    courier = aggregator.add_invoice_item(
        invoice.id, "Courier charges", "150", revenue_nature=RevenueNature.PASSTHROUGH, tax_rate="18"
    )

    assert rent.amount == Decimal("2000.00")
    assert rent.tax_amount == Decimal("360.00")
    assert courier.tax_rate == Decimal("0")
    assert courier.tax_amount == Decimal("0.00")

    invoice = facade.get_invoice(invoice.id)
    assert invoice.subtotal == Decimal("2150.00")
    assert invoice.tax_amount == Decimal("360.00")
    assert invoice.total_amount == Decimal("2510.00")
    assert aggregator.verify_invoice_totals(invoice.id)

    invoice = aggregator.remove_invoice_item(invoice.id, rent.id)
    assert (invoice.subtotal, invoice.tax_amount, invoice.total_amount) == (
        Decimal("150.00"),
        Decimal("0.00"),
        Decimal("150.00"),
    )


def test_tax_rounds_half_up(db_session):
    subscription = make_subscription(db_session)
    facade = BillingFacade(db_session)
    invoice = facade.create_draft_invoice(subscription.id, invoice_date=PAID_ON)

    item = facade.aggregator.add_invoice_item(invoice.id, "Printing", "0.05", tax_rate="10")

    assert item.tax_amount == Decimal("0.01")


def test_invalid_invoice_items_are_rejected(db_session):
    subscription = make_subscription(db_session)
    facade = BillingFacade(db_session)
    invoice = facade.create_draft_invoice(subscription.id, invoice_date=PAID_ON)

    for kwargs in ({"quantity": 0}, {"unit_price": "-1"}, {"tax_rate": "-5"}, {"unit_price": "x"}):
        values = {"description": "Line", "unit_price": "10", **kwargs}
        with pytest.raises(InvalidAmount):
            facade.aggregator.add_invoice_item(invoice.id, **values)

    assert facade.list_invoice_items(invoice.id) == []


def test_issued_invoice_items_are_frozen(db_session):
    subscription = make_subscription(db_session)
    facade = BillingFacade(db_session)
    invoice = facade.create_draft_invoice(subscription.id, invoice_date=PAID_ON)
    item = facade.add_invoice_item(invoice.id, "Office rent", "1000")
    facade.issue_invoice(invoice.id)

    with pytest.raises(InvoiceNotEditable):
        facade.add_invoice_item(invoice.id, "Late fee", "100")
    with pytest.raises(InvoiceNotEditable):
        facade.remove_invoice_item(invoice.id, item.id)

    assert facade.get_invoice(invoice.id).total_amount == Decimal("1000.00")


def test_verify_detects_tampered_totals(db_session):
    subscription = make_subscription(db_session)
    facade = BillingFacade(db_session)
    invoice = facade.create_draft_invoice(subscription.id, invoice_date=PAID_ON)
    facade.add_invoice_item(invoice.id, "Office rent", "1000")

    row = db_session.get(Invoice, invoice.id)
    row.total_amount = Decimal("1.00")
    db_session.add(row)
    db_session.commit()

    assert facade.verify_invoice_totals(invoice.id) is False
    facade.recompute_invoice_totals(invoice.id)
    assert facade.verify_invoice_totals(invoice.id) is True
