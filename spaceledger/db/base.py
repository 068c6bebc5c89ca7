# noqa: F401 to ensure models are imported for metadata
from spaceledger.models.audit import StatusLogEntry
from spaceledger.models.billing import Invoice, InvoiceItem, InvoiceNumberAllocation, InvoiceSequence
from spaceledger.models.catalog import Bundle, BundleItem, Consumable, Plan, Service
from spaceledger.models.customer import Customer
from spaceledger.models.subscription import Payment, Subscription, SubscriptionItem

__all__ = [
    "StatusLogEntry",
    "Invoice",
    "InvoiceItem",
    "InvoiceNumberAllocation",
    "InvoiceSequence",
    "Bundle",
    "BundleItem",
    "Consumable",
    "Plan",
    "Service",
    "Customer",
    "Payment",
    "Subscription",
    "SubscriptionItem",
]
