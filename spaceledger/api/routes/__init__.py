from . import catalog, customers, health, invoices, payments, subscriptions

__all__ = [
    "catalog",
    "customers",
    "health",
    "invoices",
    "payments",
    "subscriptions",
]
