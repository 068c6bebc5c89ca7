from __future__ import annotations

from typing import Any, Dict, Optional


class LedgerError(ValueError):
    """Domain error raised by the billing core.

    ``details`` carries the entity id, the attempted value and the current state so the
    caller can build its own message.
    """

    kind = "ledger_error"

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.details = details or {}


class InvalidTransition(LedgerError):
    kind = "invalid_transition"


class SequenceConflict(LedgerError):
    kind = "sequence_conflict"


class InvalidAmount(LedgerError):
    kind = "invalid_amount"


class InvoiceNotEditable(LedgerError):
    kind = "invoice_not_editable"


class PaymentNotEditable(LedgerError):
    kind = "payment_not_editable"


class InvalidSubscription(LedgerError):
    kind = "invalid_subscription"


class NotFound(LedgerError):
    kind = "not_found"

    def __init__(self, entity: str, entity_id: Any) -> None:
        super().__init__(
            f"{entity} {entity_id} not found",
            details={"entity": entity, "id": str(entity_id)},
        )


class StorageUnavailable(RuntimeError):
    """The ledger store could not complete a write after the retry budget was spent."""

    kind = "storage_unavailable"

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.details = details or {}
