"""ledger baseline: customers, catalog, subscriptions, payments, invoices

Revision ID: 0001_initial
Revises:
Create Date: 2025-11-03
"""

from alembic import op
import sqlalchemy as sa

from spaceledger.models.billing import InvoiceStatus, InvoiceType
from spaceledger.models.catalog import CatalogItemType
from spaceledger.models.subscription import (
    NameBoardStatus,
    PaymentMethod,
    RevenueNature,
    RubberStampStatus,
    SignatoryType,
    SubscriptionStatus,
)

# revision identifiers, used by Alembic.
revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def _enum(enum_cls) -> sa.Enum:
    # Stored as VARCHAR on every backend.
    return sa.Enum(enum_cls, name=enum_cls.__name__.lower(), native_enum=False)


def _money(name: str, nullable: bool = False) -> sa.Column:
    return sa.Column(name, sa.Numeric(12, 2), nullable=nullable)


def _base_columns() -> list[sa.Column]:
    return [
        sa.Column("id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    ]


def _catalog_table(name: str, *extra: sa.Column) -> None:
    op.create_table(
        name,
        *_base_columns(),
        sa.Column("name", sa.String(), nullable=False),
        *extra,
        _money("price"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(f"ix_{name}_id", name, ["id"], unique=False)


def upgrade() -> None:
    op.create_table(
        "customers",
        *_base_columns(),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("phone", sa.String(length=32), nullable=True),
        sa.Column("email", sa.String(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_customers_id", "customers", ["id"], unique=False)
    op.create_index("ix_customers_name", "customers", ["name"], unique=False)

    _catalog_table("plans", sa.Column("description", sa.String(), nullable=True), sa.Column("tag", sa.String(), nullable=True))
    _catalog_table("services", sa.Column("description", sa.String(), nullable=True))
    _catalog_table("consumables", sa.Column("unit", sa.String(), nullable=True))
    _catalog_table("bundles", sa.Column("description", sa.String(), nullable=True))

    op.create_table(
        "bundle_items",
        *_base_columns(),
        sa.Column("bundle_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("item_type", _enum(CatalogItemType), nullable=False),
        sa.Column("item_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default=sa.text("0")),
        _money("override_price", nullable=True),
        sa.ForeignKeyConstraint(["bundle_id"], ["bundles.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_bundle_items_id", "bundle_items", ["id"], unique=False)
    op.create_index("ix_bundle_items_bundle_id", "bundle_items", ["bundle_id"], unique=False)

    op.create_table(
        "subscriptions",
        *_base_columns(),
        sa.Column("customer_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("plan_id", sa.Uuid(as_uuid=True), nullable=True),
        sa.Column("bundle_id", sa.Uuid(as_uuid=True), nullable=True),
        sa.Column("suite_number", sa.String(), nullable=True),
        sa.Column("purchased_date", sa.Date(), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("expiry_date", sa.Date(), nullable=True),
        _money("purchase_amount"),
        _money("renewal_amount", nullable=True),
        _money("received_amount"),
        sa.Column("status", _enum(SubscriptionStatus), nullable=False),
        sa.Column("status_version", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("rubber_stamp", _enum(RubberStampStatus), nullable=False),
        sa.Column("name_board", _enum(NameBoardStatus), nullable=False),
        sa.Column("signatory_type", _enum(SignatoryType), nullable=False),
        sa.Column("signatory_name", sa.String(), nullable=True),
        sa.Column("signatory_designation", sa.String(), nullable=True),
        sa.Column("signatory_address", sa.String(), nullable=True),
        sa.Column("company_name", sa.String(), nullable=True),
        sa.Column("company_address", sa.String(), nullable=True),
        sa.ForeignKeyConstraint(["customer_id"], ["customers.id"]),
        sa.ForeignKeyConstraint(["plan_id"], ["plans.id"]),
        sa.ForeignKeyConstraint(["bundle_id"], ["bundles.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_subscriptions_id", "subscriptions", ["id"], unique=False)
    op.create_index("ix_subscriptions_customer_id", "subscriptions", ["customer_id"], unique=False)
    op.create_index("ix_subscriptions_status", "subscriptions", ["status"], unique=False)

    op.create_table(
        "subscription_items",
        *_base_columns(),
        sa.Column("subscription_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("item_type", _enum(CatalogItemType), nullable=False),
        sa.Column("item_id", sa.Uuid(as_uuid=True), nullable=True),
        sa.Column("description", sa.String(), nullable=False),
        _money("amount"),
        sa.Column("revenue_nature", _enum(RevenueNature), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.ForeignKeyConstraint(["subscription_id"], ["subscriptions.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_subscription_items_id", "subscription_items", ["id"], unique=False)
    op.create_index("ix_subscription_items_subscription_id", "subscription_items", ["subscription_id"], unique=False)

    op.create_table(
        "subscription_status_logs",
        *_base_columns(),
        sa.Column("subscription_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("old_status", _enum(SubscriptionStatus), nullable=True),
        sa.Column("new_status", _enum(SubscriptionStatus), nullable=False),
        sa.Column("changed_by", sa.Uuid(as_uuid=True), nullable=True),
        sa.ForeignKeyConstraint(["subscription_id"], ["subscriptions.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("subscription_id", "position", name="uq_status_log_position"),
    )
    op.create_index("ix_subscription_status_logs_id", "subscription_status_logs", ["id"], unique=False)
    op.create_index(
        "ix_subscription_status_logs_subscription_id", "subscription_status_logs", ["subscription_id"], unique=False
    )

    op.create_table(
        "payments",
        *_base_columns(),
        sa.Column("subscription_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("customer_id", sa.Uuid(as_uuid=True), nullable=False),
        _money("amount"),
        sa.Column("payment_date", sa.Date(), nullable=False),
        sa.Column("payment_method", _enum(PaymentMethod), nullable=False),
        sa.Column("idempotency_key", sa.String(length=128), nullable=True),
        sa.Column("voided_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["subscription_id"], ["subscriptions.id"]),
        sa.ForeignKeyConstraint(["customer_id"], ["customers.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("subscription_id", "idempotency_key", name="uq_payment_idempotency"),
    )
    op.create_index("ix_payments_id", "payments", ["id"], unique=False)
    op.create_index("ix_payments_subscription_id", "payments", ["subscription_id"], unique=False)
    op.create_index("ix_payments_customer_id", "payments", ["customer_id"], unique=False)

    op.create_table(
        "invoices",
        *_base_columns(),
        sa.Column("subscription_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("customer_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("invoice_type", _enum(InvoiceType), nullable=False),
        sa.Column("status", _enum(InvoiceStatus), nullable=False),
        sa.Column("invoice_number", sa.String(), nullable=True),
        sa.Column("fiscal_year", sa.String(), nullable=True),
        sa.Column("sequence_number", sa.Integer(), nullable=True),
        sa.Column("invoice_date", sa.Date(), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("issued_at", sa.DateTime(), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(), nullable=True),
        _money("subtotal"),
        _money("tax_amount"),
        _money("total_amount"),
        sa.ForeignKeyConstraint(["subscription_id"], ["subscriptions.id"]),
        sa.ForeignKeyConstraint(["customer_id"], ["customers.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_invoices_id", "invoices", ["id"], unique=False)
    op.create_index("ix_invoices_subscription_id", "invoices", ["subscription_id"], unique=False)
    op.create_index("ix_invoices_customer_id", "invoices", ["customer_id"], unique=False)
    op.create_index("ix_invoices_status", "invoices", ["status"], unique=False)
    op.create_index("ix_invoices_invoice_number", "invoices", ["invoice_number"], unique=True)
    op.create_index("ix_invoices_fiscal_year", "invoices", ["fiscal_year"], unique=False)

    op.create_table(
        "invoice_items",
        *_base_columns(),
        sa.Column("invoice_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("description", sa.String(), nullable=False),
        sa.Column("quantity", sa.Numeric(12, 3), nullable=False),
        _money("unit_price"),
        _money("amount"),
        sa.Column("revenue_nature", _enum(RevenueNature), nullable=False),
        sa.Column("tax_rate", sa.Numeric(5, 2), nullable=False),
        _money("tax_amount"),
        sa.ForeignKeyConstraint(["invoice_id"], ["invoices.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_invoice_items_id", "invoice_items", ["id"], unique=False)
    op.create_index("ix_invoice_items_invoice_id", "invoice_items", ["invoice_id"], unique=False)

    op.create_table(
        "invoice_sequences",
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.Column("fiscal_year", sa.String(length=16), nullable=False),
        sa.Column("last_number", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.PrimaryKeyConstraint("fiscal_year"),
    )

    op.create_table(
        "invoice_number_allocations",
        *_base_columns(),
        sa.Column("fiscal_year", sa.String(length=16), nullable=False),
        sa.Column("sequence_number", sa.Integer(), nullable=False),
        sa.Column("invoice_number", sa.String(), nullable=False),
        sa.Column("invoice_id", sa.Uuid(as_uuid=True), nullable=True),
        sa.ForeignKeyConstraint(["invoice_id"], ["invoices.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("fiscal_year", "sequence_number", name="uq_invoice_number_allocation"),
    )
    op.create_index("ix_invoice_number_allocations_id", "invoice_number_allocations", ["id"], unique=False)
    op.create_index(
        "ix_invoice_number_allocations_fiscal_year", "invoice_number_allocations", ["fiscal_year"], unique=False
    )


def downgrade() -> None:
    for table in (
        "invoice_number_allocations",
        "invoice_sequences",
        "invoice_items",
        "invoices",
        "payments",
        "subscription_status_logs",
        "subscription_items",
        "subscriptions",
        "bundle_items",
        "bundles",
        "consumables",
        "services",
        "plans",
        "customers",
    ):
        op.drop_table(table)
