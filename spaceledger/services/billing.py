from __future__ import annotations

from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Iterable
from uuid import UUID

from sqlalchemy import update
from sqlmodel import Session, func, select

from spaceledger.core.config import Settings, settings as default_settings
from spaceledger.core.errors import InvalidAmount, InvalidSubscription, InvoiceNotEditable, NotFound
from spaceledger.core.locks import KeyedLocks, fiscal_year_lock, invoice_lock, ledger_locks, subscription_lock
from spaceledger.core.logging_setup import logger
from spaceledger.db.session import run_in_transaction
from spaceledger.models.billing import Invoice, InvoiceItem, InvoiceStatus, InvoiceType
from spaceledger.models.catalog import CATALOG_MODELS, Bundle, CatalogItemType, Plan
from spaceledger.models.customer import Customer
from spaceledger.models.subscription import (
    Payment,
    PaymentMethod,
    RevenueNature,
    RubberStampStatus,
    Subscription,
    SubscriptionItem,
    SubscriptionStatus,
)
from spaceledger.schemas.subscription import (
    SubscriptionCreate,
    SubscriptionItemCreate,
    SubscriptionItemUpdate,
    SubscriptionUpdate,
)
from spaceledger.services.aggregator import BillingAggregator, InvoiceTotals, ResolvedBundleItem, lock_invoice
from spaceledger.services.catalog import CatalogService
from spaceledger.services.customer import CustomerService
from spaceledger.services.sequencer import InvoiceNumberCandidate, InvoiceSequencer
from spaceledger.services.status_ledger import StatusHistory, StatusTransitionLedger, lock_subscription
from spaceledger.utils.money import MoneyLike, to_money

# Detail columns that cannot be cleared with an explicit null.
REQUIRED_DETAILS = frozenset({"name_board", "signatory_type"})


class BillingFacade:
    """Entry point used by the HTTP layer.

    Composes the status ledger, the invoice sequencer and the aggregator over one session.
    """

    def __init__(self, session: Session, locks: KeyedLocks | None = None, config: Settings | None = None) -> None:
        self.session = session
        self.locks = locks or ledger_locks
        self.config = config or default_settings
        self.status_ledger = StatusTransitionLedger(session, self.locks)
        self.sequencer = InvoiceSequencer(session, self.locks, self.config)
        self.aggregator = BillingAggregator(session, self.locks)
        self.catalog = CatalogService(session)
        self.customers = CustomerService(session)

    # Subscriptions -------------------------------------------------------
    def create_subscription(self, payload: SubscriptionCreate, actor_id: UUID | None = None) -> Subscription:
        if self.session.get(Customer, payload.customer_id) is None:
            raise NotFound("Customer", payload.customer_id)
        if (payload.plan_id is None) == (payload.bundle_id is None):
            raise InvalidSubscription(
                "A subscription needs exactly one of plan or bundle",
                details={
                    "plan_id": str(payload.plan_id) if payload.plan_id else None,
                    "bundle_id": str(payload.bundle_id) if payload.bundle_id else None,
                },
            )
        source = self._catalog_source(payload)
        advance = None
        if payload.advance_amount is not None:
            advance = self.aggregator.validate_amount(payload.advance_amount, customer_id=payload.customer_id)

        values = payload.model_dump(exclude={"advance_amount", "advance_payment_method"})
        values["purchase_amount"] = to_money(
            payload.purchase_amount if payload.purchase_amount is not None else source.price
        )
        if values["renewal_amount"] is not None:
            values["renewal_amount"] = to_money(values["renewal_amount"])
        subscription = Subscription(**values)

        def stage_billing_context(session: Session, row: Subscription) -> None:
            if row.bundle_id is not None:
                resolved = self.aggregator.resolve_bundle_pricing(row.bundle_id, session=session)
                for position, item in enumerate(resolved):
                    session.add(
                        SubscriptionItem(
                            subscription_id=row.id,
                            item_type=item.item_type,
                            item_id=item.item_id,
                            description=item.name,
                            amount=item.effective_price,
                            position=position,
                        )
                    )
            else:
                session.add(
                    SubscriptionItem(
                        subscription_id=row.id,
                        item_type=CatalogItemType.PLAN,
                        item_id=row.plan_id,
                        description=source.name,
                        amount=row.purchase_amount,
                    )
                )
            if advance is not None:
                self.aggregator.stage_payment(
                    session, row, advance, row.purchased_date, PaymentMethod(payload.advance_payment_method)
                )
                self.aggregator.stage_received_amount(session, row)

        return self.status_ledger.create_with_initial_status(subscription, actor_id, stage_billing_context)

    def get_subscription(self, subscription_id: UUID) -> Subscription:
        subscription = self.session.get(Subscription, subscription_id, populate_existing=True)
        if subscription is None:
            raise NotFound("Subscription", subscription_id)
        return subscription

    def list_subscription_items(self, subscription_id: UUID) -> Iterable[SubscriptionItem]:
        self.get_subscription(subscription_id)
        return self.session.exec(
            select(SubscriptionItem)
            .where(SubscriptionItem.subscription_id == subscription_id)
            .order_by(SubscriptionItem.position, SubscriptionItem.created_at)
        ).all()

    def add_subscription_item(self, subscription_id: UUID, payload: SubscriptionItemCreate) -> SubscriptionItem:
        """Append a billing line. Catalog lines default to the item's name and current list price."""
        description, amount = payload.description, payload.amount
        if payload.item_id is not None:
            model = CATALOG_MODELS[CatalogItemType(payload.item_type)]
            source = self.session.get(model, payload.item_id)
            if source is None:
                raise NotFound(model.__name__, payload.item_id)
            description = description or source.name
            amount = amount if amount is not None else source.price
        if description is None or amount is None:
            raise InvalidSubscription(
                "An item without a catalog reference needs a description and an amount",
                details={"subscription_id": str(subscription_id), "item_type": CatalogItemType(payload.item_type).value},
            )
        value = self._item_amount(amount, subscription_id)

        def work(session: Session) -> UUID:
            lock_subscription(session, subscription_id)
            position = session.exec(
                select(func.count())
                .select_from(SubscriptionItem)
                .where(SubscriptionItem.subscription_id == subscription_id)
            ).one()
            item = SubscriptionItem(
                subscription_id=subscription_id,
                item_type=payload.item_type,
                item_id=payload.item_id,
                description=description,
                amount=value,
                revenue_nature=payload.revenue_nature,
                position=int(position or 0),
            )
            session.add(item)
            session.flush()
            return item.id

        with self.locks.hold(subscription_lock(subscription_id)):
            item_id = run_in_transaction(self.session, work, operation="add subscription item")
        logger.info("Item %s added to subscription %s", item_id, subscription_id)
        return self.session.get(SubscriptionItem, item_id, populate_existing=True)

    def update_subscription_item(
        self, subscription_id: UUID, item_id: UUID, payload: SubscriptionItemUpdate
    ) -> SubscriptionItem:
        changes = payload.model_dump(exclude_unset=True, exclude_none=True)
        if "amount" in changes:
            changes["amount"] = self._item_amount(changes["amount"], subscription_id)

        def work(session: Session) -> None:
            lock_subscription(session, subscription_id)
            item = session.get(SubscriptionItem, item_id, populate_existing=True)
            if item is None or item.subscription_id != subscription_id:
                raise NotFound("SubscriptionItem", item_id)
            for field, value in changes.items():
                setattr(item, field, value)
            item.updated_at = datetime.utcnow()
            session.add(item)

        with self.locks.hold(subscription_lock(subscription_id)):
            run_in_transaction(self.session, work, operation="update subscription item")
        return self.session.get(SubscriptionItem, item_id, populate_existing=True)

    def transition_subscription_status(
        self,
        subscription_id: UUID,
        new_status: SubscriptionStatus | str,
        actor_id: UUID | None = None,
    ) -> Subscription:
        return self.status_ledger.transition_status(subscription_id, new_status, actor_id)

    def get_subscription_status_history(self, subscription_id: UUID) -> StatusHistory:
        return self.status_ledger.get_history(subscription_id)

    def update_subscription_details(
        self, subscription_id: UUID, payload: SubscriptionUpdate, actor_id: UUID | None = None
    ) -> Subscription:
        """Edit suite, dates, renewal amount, name board, signatory and company details.

        Only the fields sent in ``payload`` change. ``status``, ``status_version`` and
        ``received_amount`` belong to the status ledger and the aggregator and are never
        written here.
        """
        changes = {
            field: value
            for field, value in payload.model_dump(exclude_unset=True).items()
            if value is not None or field not in REQUIRED_DETAILS
        }
        if changes.get("renewal_amount") is not None:
            changes["renewal_amount"] = to_money(changes["renewal_amount"])

        def work(session: Session) -> None:
            row = lock_subscription(session, subscription_id)
            start = changes.get("start_date", row.start_date)
            expiry = changes.get("expiry_date", row.expiry_date)
            if start and expiry and expiry < start:
                raise InvalidSubscription(
                    "expiry_date must not be before start_date",
                    details={
                        "subscription_id": str(subscription_id),
                        "start_date": start.isoformat(),
                        "expiry_date": expiry.isoformat(),
                    },
                )
            for field, value in changes.items():
                setattr(row, field, value)
            row.updated_at = datetime.utcnow()
            session.add(row)

        with self.locks.hold(subscription_lock(subscription_id)):
            run_in_transaction(self.session, work, operation="update subscription details")
        logger.info("Subscription %s details %s updated by %s", subscription_id, sorted(changes), actor_id)
        return self.get_subscription(subscription_id)

    def update_rubber_stamp(
        self, subscription_id: UUID, value: RubberStampStatus | str, actor_id: UUID | None = None
    ) -> Subscription:
        return self.status_ledger.update_rubber_stamp(subscription_id, value, actor_id)

    def list_rubber_stamp_subscriptions(self, rubber_stamp: RubberStampStatus | None = None) -> list[Subscription]:
        return self.status_ledger.list_rubber_stamp_subscriptions(rubber_stamp)

    # Payments ------------------------------------------------------------
    def record_payment(
        self,
        subscription_id: UUID,
        amount: MoneyLike,
        payment_date: date,
        payment_method: PaymentMethod | str = PaymentMethod.BANK_TRANSFER,
        idempotency_key: str | None = None,
    ) -> Payment:
        return self.aggregator.record_payment(subscription_id, amount, payment_date, payment_method, idempotency_key)

    def update_payment(self, payment_id: UUID, **changes) -> Payment:
        return self.aggregator.update_payment(payment_id, **changes)

    def void_payment(self, payment_id: UUID) -> Payment:
        return self.aggregator.void_payment(payment_id)

    def list_payments(self, subscription_id: UUID, include_voided: bool = False) -> list[Payment]:
        self.get_subscription(subscription_id)
        return self.aggregator.list_payments(subscription_id, include_voided=include_voided)

    # Catalog -------------------------------------------------------------
    def resolve_bundle_pricing(self, bundle_id: UUID) -> list[ResolvedBundleItem]:
        return self.aggregator.resolve_bundle_pricing(bundle_id)

    # Invoices ------------------------------------------------------------
    def create_draft_invoice(
        self,
        subscription_id: UUID,
        invoice_type: InvoiceType | str = InvoiceType.TAX_INVOICE,
        invoice_date: date | None = None,
        due_date: date | None = None,
        copy_subscription_items: bool = False,
    ) -> Invoice:
        subscription = self.get_subscription(subscription_id)
        issued_on = invoice_date or date.today()
        due_on = due_date or issued_on + timedelta(days=self.config.invoice_default_due_days)
        items = list(self.list_subscription_items(subscription_id)) if copy_subscription_items else []
        values = {
            "subscription_id": subscription.id,
            "customer_id": subscription.customer_id,
            "invoice_type": InvoiceType(invoice_type),
            "invoice_date": issued_on,
            "due_date": due_on,
        }

        def work(session: Session) -> UUID:
            invoice = Invoice(**values)
            session.add(invoice)
            session.flush()
            for line in items:
                session.add(
                    self.aggregator.build_invoice_item(
                        invoice.id,
                        line.description,
                        line.amount,
                        revenue_nature=RevenueNature(line.revenue_nature),
                    )
                )
            self.aggregator.stage_invoice_totals(session, invoice)
            return invoice.id

        invoice_id = run_in_transaction(self.session, work, operation="create draft invoice")
        logger.info("Draft invoice %s created for subscription %s", invoice_id, subscription_id)
        return self.get_invoice(invoice_id)

    def get_invoice(self, invoice_id: UUID) -> Invoice:
        invoice = self.session.get(Invoice, invoice_id, populate_existing=True)
        if invoice is None:
            raise NotFound("Invoice", invoice_id)
        return invoice

    def list_invoices(self, subscription_id: UUID) -> Iterable[Invoice]:
        self.get_subscription(subscription_id)
        return self.session.exec(
            select(Invoice).where(Invoice.subscription_id == subscription_id).order_by(Invoice.created_at.desc())
        ).all()

    def list_invoice_items(self, invoice_id: UUID) -> Iterable[InvoiceItem]:
        return self.session.exec(
            select(InvoiceItem).where(InvoiceItem.invoice_id == invoice_id).order_by(InvoiceItem.created_at)
        ).all()

    def preview_next_invoice_number(self, invoice_date: date) -> InvoiceNumberCandidate:
        return self.sequencer.preview(invoice_date)

    def commit_invoice_number(self, invoice_date: date, chosen: int | str) -> InvoiceNumberCandidate:
        return self.sequencer.commit(invoice_date, chosen)

    def add_invoice_item(
        self,
        invoice_id: UUID,
        description: str,
        unit_price: MoneyLike,
        quantity: MoneyLike = 1,
        revenue_nature: RevenueNature | str = RevenueNature.TURNOVER,
        tax_rate: MoneyLike = 0,
    ) -> InvoiceItem:
        return self.aggregator.add_invoice_item(invoice_id, description, unit_price, quantity, revenue_nature, tax_rate)

    def remove_invoice_item(self, invoice_id: UUID, item_id: UUID) -> Invoice:
        return self.aggregator.remove_invoice_item(invoice_id, item_id)

    def recompute_invoice_totals(self, invoice_id: UUID) -> InvoiceTotals:
        return self.aggregator.recompute_invoice_totals(invoice_id)

    def verify_invoice_totals(self, invoice_id: UUID) -> bool:
        return self.aggregator.verify_invoice_totals(invoice_id)

    def issue_invoice(
        self,
        invoice_id: UUID,
        invoice_number: int | str | None = None,
        invoice_date: date | None = None,
        due_date: date | None = None,
    ) -> Invoice:
        """Save a draft as issued: commit its number and flip the status in one transaction.

        Without ``invoice_number`` the next candidate of the fiscal year is used. A
        ``SequenceConflict`` leaves the invoice a draft; re-preview and try again.
        """
        with self.locks.hold(invoice_lock(invoice_id)):
            invoice = self.get_invoice(invoice_id)
            self.aggregator.ensure_draft(invoice)
            effective_date = invoice_date or invoice.invoice_date
            fiscal_year = self.sequencer.fiscal_year(effective_date).label

            with self.locks.hold(fiscal_year_lock(fiscal_year)):
                chosen = invoice_number
                if chosen is None:
                    chosen = self.sequencer.preview(effective_date).sequence_number

                def work(session: Session) -> InvoiceNumberCandidate:
                    row = lock_invoice(session, invoice_id)
                    self.aggregator.ensure_draft(row)
                    candidate = self.sequencer.stage_commit(session, effective_date, chosen, invoice_id)
                    self.aggregator.stage_invoice_totals(session, row)
                    row.invoice_number = candidate.invoice_number
                    row.fiscal_year = candidate.fiscal_year
                    row.sequence_number = candidate.sequence_number
                    row.invoice_date = effective_date
                    if due_date is not None:
                        row.due_date = due_date
                    row.status = InvoiceStatus.ISSUED
                    row.issued_at = datetime.utcnow()
                    session.add(row)
                    session.flush()
                    return candidate

                candidate = run_in_transaction(self.session, work, operation="issue invoice")

        logger.info("Invoice %s issued as %s", invoice_id, candidate.invoice_number)
        return self.get_invoice(invoice_id)

    def cancel_invoice(self, invoice_id: UUID) -> Invoice:
        """Cancel a draft or issued invoice. Its number, if any, stays consumed."""

        def work(session: Session) -> None:
            row = lock_invoice(session, invoice_id)
            if row.status == InvoiceStatus.CANCELLED:
                raise InvoiceNotEditable(
                    f"Invoice {invoice_id} is already cancelled",
                    details={"invoice_id": str(invoice_id), "current_status": row.status.value},
                )
            result = session.exec(
                update(Invoice)
                .where(Invoice.id == invoice_id, Invoice.status == row.status)
                .values(status=InvoiceStatus.CANCELLED, cancelled_at=datetime.utcnow(), updated_at=datetime.utcnow())
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise InvoiceNotEditable(
                    f"Invoice {invoice_id} changed concurrently",
                    details={"invoice_id": str(invoice_id), "current_status": row.status.value},
                )

        with self.locks.hold(invoice_lock(invoice_id)):
            run_in_transaction(self.session, work, operation="cancel invoice")
        logger.info("Invoice %s cancelled", invoice_id)
        return self.get_invoice(invoice_id)

    # Helpers -------------------------------------------------------------
    @staticmethod
    def _item_amount(amount: MoneyLike, subscription_id: UUID) -> Decimal:
        value = to_money(amount)
        if value < 0:
            raise InvalidAmount(
                "Item amount must not be negative",
                details={"subscription_id": str(subscription_id), "amount": str(value)},
            )
        return value

    def _catalog_source(self, payload: SubscriptionCreate) -> Plan | Bundle:
        if payload.plan_id is not None:
            source = self.session.get(Plan, payload.plan_id)
            if source is None:
                raise NotFound("Plan", payload.plan_id)
        else:
            source = self.session.get(Bundle, payload.bundle_id)
            if source is None:
                raise NotFound("Bundle", payload.bundle_id)
        if not source.is_active:
            raise InvalidSubscription(
                f"{type(source).__name__} {source.id} is not active",
                details={"id": str(source.id), "entity": type(source).__name__},
            )
        return source
