from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlmodel import Session, select

from spaceledger.core.errors import InvalidAmount, InvoiceNotEditable, NotFound, PaymentNotEditable
from spaceledger.core.locks import KeyedLocks, invoice_lock, ledger_locks, subscription_lock
from spaceledger.core.logging_setup import logger
from spaceledger.db.session import run_in_transaction
from spaceledger.models.billing import Invoice, InvoiceItem, InvoiceStatus
from spaceledger.models.catalog import CATALOG_MODELS, Bundle, BundleItem, CatalogItemType
from spaceledger.models.subscription import Payment, PaymentMethod, RevenueNature, Subscription
from spaceledger.services.status_ledger import lock_subscription
from spaceledger.utils.money import ZERO, MoneyLike, money_sum, percent_of, to_money


@dataclass(frozen=True)
class ResolvedBundleItem:
    item_type: CatalogItemType
    item_id: UUID
    name: str
    list_price: Decimal
    override_price: Decimal | None
    effective_price: Decimal


@dataclass(frozen=True)
class InvoiceTotals:
    subtotal: Decimal
    tax_amount: Decimal
    total_amount: Decimal


def lock_invoice(session: Session, invoice_id: UUID) -> Invoice:
    invoice = session.exec(
        select(Invoice)
        .where(Invoice.id == invoice_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).first()
    if invoice is None:
        raise NotFound("Invoice", invoice_id)
    return invoice


class BillingAggregator:
    """Keeps derived totals in line with the rows they are derived from.

    ``received_amount`` and the invoice totals are always recomputed from scratch inside
    the same transaction as the write that changed their inputs.
    """

    def __init__(self, session: Session, locks: KeyedLocks | None = None) -> None:
        self.session = session
        self.locks = locks or ledger_locks

    # Payments ------------------------------------------------------------
    def record_payment(
        self,
        subscription_id: UUID,
        amount: MoneyLike,
        payment_date: date,
        payment_method: PaymentMethod | str = PaymentMethod.BANK_TRANSFER,
        idempotency_key: str | None = None,
    ) -> Payment:
        value = self.validate_amount(amount, subscription_id=subscription_id)
        method = PaymentMethod(payment_method)

        def work(session: Session) -> UUID:
            subscription = lock_subscription(session, subscription_id)
            if idempotency_key:
                existing = session.exec(
                    select(Payment).where(
                        Payment.subscription_id == subscription_id,
                        Payment.idempotency_key == idempotency_key,
                    )
                ).first()
                if existing is not None:
                    logger.info("Payment %s replayed for key %s", existing.id, idempotency_key)
                    return existing.id
            payment = self.stage_payment(session, subscription, value, payment_date, method, idempotency_key)
            self.stage_received_amount(session, subscription)
            return payment.id

        with self.locks.hold(subscription_lock(subscription_id)):
            payment_id = run_in_transaction(self.session, work, operation="record payment")
        logger.info("Payment %s of %s recorded for subscription %s", payment_id, value, subscription_id)
        return self.session.get(Payment, payment_id, populate_existing=True)

    def stage_payment(
        self,
        session: Session,
        subscription: Subscription,
        amount: Decimal,
        payment_date: date,
        payment_method: PaymentMethod,
        idempotency_key: str | None = None,
    ) -> Payment:
        payment = Payment(
            subscription_id=subscription.id,
            customer_id=subscription.customer_id,
            amount=amount,
            payment_date=payment_date,
            payment_method=payment_method,
            idempotency_key=idempotency_key,
        )
        session.add(payment)
        session.flush()
        return payment

    def update_payment(
        self,
        payment_id: UUID,
        *,
        amount: MoneyLike | None = None,
        payment_date: date | None = None,
        payment_method: PaymentMethod | str | None = None,
    ) -> Payment:
        payment = self._get_payment(payment_id)
        subscription_id = payment.subscription_id
        value = self.validate_amount(amount, subscription_id=subscription_id) if amount is not None else None
        method = PaymentMethod(payment_method) if payment_method is not None else None

        def work(session: Session) -> None:
            subscription = lock_subscription(session, subscription_id)
            row = session.get(Payment, payment_id, populate_existing=True)
            if row.voided_at is not None:
                raise PaymentNotEditable(
                    "Voided payments cannot be edited",
                    details={"payment_id": str(payment_id), "subscription_id": str(subscription_id)},
                )
            if value is not None:
                row.amount = value
            if payment_date is not None:
                row.payment_date = payment_date
            if method is not None:
                row.payment_method = method
            row.updated_at = datetime.utcnow()
            session.add(row)
            session.flush()
            self.stage_received_amount(session, subscription)

        with self.locks.hold(subscription_lock(subscription_id)):
            run_in_transaction(self.session, work, operation="update payment")
        return self.session.get(Payment, payment_id, populate_existing=True)

    def void_payment(self, payment_id: UUID) -> Payment:
        payment = self._get_payment(payment_id)
        subscription_id = payment.subscription_id

        def work(session: Session) -> None:
            subscription = lock_subscription(session, subscription_id)
            row = session.get(Payment, payment_id, populate_existing=True)
            if row.voided_at is None:
                row.voided_at = datetime.utcnow()
                session.add(row)
                session.flush()
            self.stage_received_amount(session, subscription)

        with self.locks.hold(subscription_lock(subscription_id)):
            run_in_transaction(self.session, work, operation="void payment")
        logger.info("Payment %s voided on subscription %s", payment_id, subscription_id)
        return self.session.get(Payment, payment_id, populate_existing=True)

    def recompute_received_amount(self, subscription_id: UUID) -> Decimal:
        def work(session: Session) -> Decimal:
            return self.stage_received_amount(session, lock_subscription(session, subscription_id))

        with self.locks.hold(subscription_lock(subscription_id)):
            return run_in_transaction(self.session, work, operation="recompute received amount")

    def stage_received_amount(self, session: Session, subscription: Subscription) -> Decimal:
        amounts = session.exec(
            select(Payment.amount).where(
                Payment.subscription_id == subscription.id,
                Payment.voided_at.is_(None),
            )
        ).all()
        total = money_sum(amounts)
        subscription.received_amount = total
        subscription.updated_at = datetime.utcnow()
        session.add(subscription)
        session.flush()
        return total

    def list_payments(self, subscription_id: UUID, include_voided: bool = False) -> list[Payment]:
        query = select(Payment).where(Payment.subscription_id == subscription_id)
        if not include_voided:
            query = query.where(Payment.voided_at.is_(None))
        return self.session.exec(query.order_by(Payment.payment_date, Payment.created_at)).all()

    # Bundle pricing ------------------------------------------------------
    def resolve_bundle_pricing(self, bundle_id: UUID, session: Session | None = None) -> list[ResolvedBundleItem]:
        """Effective price per bundle item: the override when set, else the current list price."""
        session = session or self.session
        if session.get(Bundle, bundle_id) is None:
            raise NotFound("Bundle", bundle_id)
        items = session.exec(
            select(BundleItem)
            .where(BundleItem.bundle_id == bundle_id)
            .order_by(BundleItem.position, BundleItem.created_at)
        ).all()
        resolved: list[ResolvedBundleItem] = []
        for item in items:
            model = CATALOG_MODELS[CatalogItemType(item.item_type)]
            catalog_item = session.get(model, item.item_id)
            if catalog_item is None:
                raise NotFound(model.__name__, item.item_id)
            list_price = to_money(catalog_item.price)
            override = to_money(item.override_price) if item.override_price is not None else None
            resolved.append(
                ResolvedBundleItem(
                    item_type=CatalogItemType(item.item_type),
                    item_id=item.item_id,
                    name=catalog_item.name,
                    list_price=list_price,
                    override_price=override,
                    effective_price=override if override is not None else list_price,
                )
            )
        return resolved

    # Invoice totals ------------------------------------------------------
    def recompute_invoice_totals(self, invoice_id: UUID) -> InvoiceTotals:
        def work(session: Session) -> InvoiceTotals:
            return self.stage_invoice_totals(session, lock_invoice(session, invoice_id))

        with self.locks.hold(invoice_lock(invoice_id)):
            return run_in_transaction(self.session, work, operation="recompute invoice totals")

    def compute_invoice_totals(self, invoice_id: UUID, session: Session | None = None) -> InvoiceTotals:
        session = session or self.session
        items = session.exec(select(InvoiceItem).where(InvoiceItem.invoice_id == invoice_id)).all()
        subtotal = money_sum(item.amount for item in items)
        tax_amount = money_sum(item.tax_amount for item in items)
        return InvoiceTotals(subtotal=subtotal, tax_amount=tax_amount, total_amount=subtotal + tax_amount)

    def stage_invoice_totals(self, session: Session, invoice: Invoice) -> InvoiceTotals:
        session.flush()
        totals = self.compute_invoice_totals(invoice.id, session=session)
        invoice.subtotal = totals.subtotal
        invoice.tax_amount = totals.tax_amount
        invoice.total_amount = totals.total_amount
        invoice.updated_at = datetime.utcnow()
        session.add(invoice)
        session.flush()
        return totals

    def verify_invoice_totals(self, invoice_id: UUID) -> bool:
        invoice = self.session.get(Invoice, invoice_id, populate_existing=True)
        if invoice is None:
            raise NotFound("Invoice", invoice_id)
        fresh = self.compute_invoice_totals(invoice_id)
        return (
            to_money(invoice.subtotal) == fresh.subtotal
            and to_money(invoice.tax_amount) == fresh.tax_amount
            and to_money(invoice.total_amount) == fresh.total_amount
        )

    def add_invoice_item(
        self,
        invoice_id: UUID,
        description: str,
        unit_price: MoneyLike,
        quantity: MoneyLike = 1,
        revenue_nature: RevenueNature | str = RevenueNature.TURNOVER,
        tax_rate: MoneyLike = 0,
    ) -> InvoiceItem:
        def work(session: Session) -> UUID:
            invoice = lock_invoice(session, invoice_id)
            self.ensure_draft(invoice)
            item = self.build_invoice_item(invoice_id, description, unit_price, quantity, revenue_nature, tax_rate)
            session.add(item)
            self.stage_invoice_totals(session, invoice)
            return item.id

        with self.locks.hold(invoice_lock(invoice_id)):
            item_id = run_in_transaction(self.session, work, operation="add invoice item")
        return self.session.get(InvoiceItem, item_id, populate_existing=True)

    def remove_invoice_item(self, invoice_id: UUID, item_id: UUID) -> Invoice:
        def work(session: Session) -> None:
            invoice = lock_invoice(session, invoice_id)
            self.ensure_draft(invoice)
            item = session.get(InvoiceItem, item_id)
            if item is None or item.invoice_id != invoice_id:
                raise NotFound("InvoiceItem", item_id)
            session.delete(item)
            self.stage_invoice_totals(session, invoice)

        with self.locks.hold(invoice_lock(invoice_id)):
            run_in_transaction(self.session, work, operation="remove invoice item")
        return self.session.get(Invoice, invoice_id, populate_existing=True)

    def build_invoice_item(
        self,
        invoice_id: UUID,
        description: str,
        unit_price: MoneyLike,
        quantity: MoneyLike = 1,
        revenue_nature: RevenueNature | str = RevenueNature.TURNOVER,
        tax_rate: MoneyLike = 0,
    ) -> InvoiceItem:
        try:
            qty = Decimal(str(quantity))
            price = to_money(unit_price)
            rate = Decimal(str(tax_rate))
        except (ArithmeticError, ValueError) as exc:
            raise InvalidAmount(
                "Invoice item values must be numbers",
                details={"invoice_id": str(invoice_id), "quantity": str(quantity), "unit_price": str(unit_price)},
            ) from exc
        if not qty.is_finite() or qty <= 0 or price < ZERO or not rate.is_finite() or rate < 0:
            raise InvalidAmount(
                "Quantity must be positive; unit price and tax rate must not be negative",
                details={
                    "invoice_id": str(invoice_id),
                    "quantity": str(quantity),
                    "unit_price": str(unit_price),
                    "tax_rate": str(tax_rate),
                },
            )
        nature = RevenueNature(revenue_nature)
        if nature == RevenueNature.PASSTHROUGH:
            rate = Decimal("0")
        amount = to_money(qty * price)
        return InvoiceItem(
            invoice_id=invoice_id,
            description=description,
            quantity=qty,
            unit_price=price,
            amount=amount,
            revenue_nature=nature,
            tax_rate=rate,
            tax_amount=percent_of(amount, rate),
        )

    # Helpers -------------------------------------------------------------
    @staticmethod
    def ensure_draft(invoice: Invoice) -> None:
        if invoice.status != InvoiceStatus.DRAFT:
            raise InvoiceNotEditable(
                f"Invoice {invoice.id} is {invoice.status.value} and can no longer be edited",
                details={"invoice_id": str(invoice.id), "current_status": invoice.status.value},
            )

    @staticmethod
    def validate_amount(amount: MoneyLike, **context: object) -> Decimal:
        try:
            value = to_money(amount)
        except ValueError as exc:
            raise InvalidAmount(
                f"Invalid payment amount {amount!r}",
                details={**{k: str(v) for k, v in context.items()}, "attempted_amount": str(amount)},
            ) from exc
        if value <= ZERO:
            raise InvalidAmount(
                "Payment amount must be greater than zero",
                details={**{k: str(v) for k, v in context.items()}, "attempted_amount": str(amount)},
            )
        return value

    def _get_payment(self, payment_id: UUID) -> Payment:
        payment = self.session.get(Payment, payment_id)
        if payment is None:
            raise NotFound("Payment", payment_id)
        return payment
