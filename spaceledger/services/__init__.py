from spaceledger.services.aggregator import BillingAggregator
from spaceledger.services.billing import BillingFacade
from spaceledger.services.catalog import CatalogService
from spaceledger.services.customer import CustomerService
from spaceledger.services.sequencer import InvoiceSequencer
from spaceledger.services.status_ledger import StatusTransitionLedger

__all__ = [
    "BillingAggregator",
    "BillingFacade",
    "CatalogService",
    "CustomerService",
    "InvoiceSequencer",
    "StatusTransitionLedger",
]
