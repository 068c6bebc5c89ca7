from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from spaceledger.core.config import Settings, settings as default_settings
from spaceledger.core.errors import SequenceConflict
from spaceledger.core.locks import KeyedLocks, fiscal_year_lock, ledger_locks
from spaceledger.core.logging_setup import logger
from spaceledger.db.session import run_in_transaction
from spaceledger.models.billing import InvoiceNumberAllocation, InvoiceSequence


@dataclass(frozen=True)
class FiscalYear:
    start_year: int
    start: date

    @property
    def label(self) -> str:
        """``2025-26`` for a year starting in 2025; ``2025`` when the year starts on Jan 1."""
        if self.start.month == 1 and self.start.day == 1:
            return str(self.start_year)
        return f"{self.start_year}-{(self.start_year + 1) % 100:02d}"


@dataclass(frozen=True)
class InvoiceNumberCandidate:
    fiscal_year: str
    sequence_number: int
    invoice_number: str


class InvoiceSequencer:
    """Hands out invoice numbers per fiscal year.

    ``preview`` is a read-only hint. ``commit`` is the only writer: it runs under the
    fiscal-year lock and advances the counter with a compare-and-swap, and every committed
    number is recorded in ``invoice_number_allocations`` whose unique key rejects duplicates
    even across processes.
    """

    def __init__(self, session: Session, locks: KeyedLocks | None = None, config: Settings | None = None) -> None:
        self.session = session
        self.locks = locks or ledger_locks
        self.config = config or default_settings

    # Fiscal year helpers -------------------------------------------------
    def fiscal_year(self, on: date) -> FiscalYear:
        if isinstance(on, datetime):
            on = on.date()
        boundary = self.config.fiscal_year_start(on.year)
        start_year = on.year if on >= boundary else on.year - 1
        return FiscalYear(start_year=start_year, start=self.config.fiscal_year_start(start_year))

    def format_number(self, fiscal_year: str, sequence_number: int) -> str:
        padding = max(self.config.invoice_number_padding, 1)
        return f"{self.config.invoice_number_prefix}/{fiscal_year}/{sequence_number:0{padding}d}"

    def parse_number(self, fiscal_year: str, chosen: int | str) -> int:
        """Accept a bare sequence (``7``/``"7"``) or a formatted number (``KS/2025-26/0007``)."""
        if isinstance(chosen, bool):
            raise self._conflict(fiscal_year, chosen, "not an invoice number")
        if isinstance(chosen, int):
            return chosen
        text = str(chosen).strip()
        if text.isdigit():
            return int(text)
        match = re.fullmatch(r"(?P<prefix>.+)/(?P<fy>[^/]+)/(?P<seq>\d+)", text)
        if not match or match.group("prefix") != self.config.invoice_number_prefix:
            raise self._conflict(fiscal_year, chosen, "not an invoice number")
        if match.group("fy") != fiscal_year:
            raise self._conflict(fiscal_year, chosen, "number belongs to another fiscal year")
        return int(match.group("seq"))

    # Operations ----------------------------------------------------------
    def preview(self, invoice_date: date) -> InvoiceNumberCandidate:
        fy = self.fiscal_year(invoice_date).label
        sequence = self.session.get(InvoiceSequence, fy, populate_existing=True)
        next_number = (sequence.last_number if sequence else 0) + 1
        return InvoiceNumberCandidate(fy, next_number, self.format_number(fy, next_number))

    def commit(self, invoice_date: date, chosen: int | str, invoice_id: UUID | None = None) -> InvoiceNumberCandidate:
        fy = self.fiscal_year(invoice_date).label
        with self.locks.hold(fiscal_year_lock(fy)):
            return run_in_transaction(
                self.session,
                lambda session: self.stage_commit(session, invoice_date, chosen, invoice_id),
                operation="commit invoice number",
            )

    def stage_commit(
        self,
        session: Session,
        invoice_date: date,
        chosen: int | str,
        invoice_id: UUID | None = None,
    ) -> InvoiceNumberCandidate:
        """Write the commit into ``session`` without committing it.

        The caller must hold the fiscal-year lock and commit (or roll back) the transaction.
        """
        fy = self.fiscal_year(invoice_date).label
        number = self.parse_number(fy, chosen)
        if number < 1:
            raise self._conflict(fy, chosen, "invoice numbers start at 1")

        sequence = session.exec(
            select(InvoiceSequence)
            .where(InvoiceSequence.fiscal_year == fy)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).first()
        if sequence is None:
            sequence = InvoiceSequence(fiscal_year=fy, last_number=0)
            session.add(sequence)
            try:
                session.flush()
            except IntegrityError as exc:
                raise self._conflict(fy, chosen, "counter initialised concurrently, retry") from exc
        current = sequence.last_number

        already = session.exec(
            select(InvoiceNumberAllocation).where(
                InvoiceNumberAllocation.fiscal_year == fy,
                InvoiceNumberAllocation.sequence_number == number,
            )
        ).first()
        if already is not None:
            raise self._conflict(fy, chosen, "number already committed", current=current)

        if number > current:
            if number > current + 1 and not self.config.invoice_number_allow_gaps:
                raise self._conflict(fy, chosen, "number would leave a gap", current=current)
            result = session.exec(
                update(InvoiceSequence)
                .where(InvoiceSequence.fiscal_year == fy, InvoiceSequence.last_number == current)
                .values(last_number=number, updated_at=datetime.utcnow())
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise self._conflict(fy, chosen, "counter moved concurrently", current=current)

        formatted = self.format_number(fy, number)
        session.add(
            InvoiceNumberAllocation(
                fiscal_year=fy,
                sequence_number=number,
                invoice_number=formatted,
                invoice_id=invoice_id,
            )
        )
        try:
            session.flush()
        except IntegrityError as exc:
            raise self._conflict(fy, chosen, "number already committed", current=current) from exc
        logger.info("Invoice number %s committed for fiscal year %s", formatted, fy)
        return InvoiceNumberCandidate(fy, number, formatted)

    def committed_numbers(self, fiscal_year: str) -> list[int]:
        return list(
            self.session.exec(
                select(InvoiceNumberAllocation.sequence_number)
                .where(InvoiceNumberAllocation.fiscal_year == fiscal_year)
                .order_by(InvoiceNumberAllocation.sequence_number)
            ).all()
        )

    @staticmethod
    def _conflict(fiscal_year: str, chosen: int | str, reason: str, current: int | None = None) -> SequenceConflict:
        return SequenceConflict(
            f"Invoice number {chosen!r} rejected for fiscal year {fiscal_year}: {reason}",
            details={
                "fiscal_year": fiscal_year,
                "attempted_number": str(chosen),
                "last_committed": current,
                "reason": reason,
            },
        )
