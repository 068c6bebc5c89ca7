from spaceledger.schemas import billing, catalog, common, customer, subscription

__all__ = [
    "billing",
    "catalog",
    "common",
    "customer",
    "subscription",
]
