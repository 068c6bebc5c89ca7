from concurrent.futures import ThreadPoolExecutor
from datetime import date

import pytest

from spaceledger.core.config import Settings
from spaceledger.core.errors import SequenceConflict
from spaceledger.services.sequencer import InvoiceSequencer

APRIL = date(2025, 4, 1)


def test_fiscal_year_boundaries(db_session):
    sequencer = InvoiceSequencer(db_session)

    assert sequencer.fiscal_year(date(2025, 3, 31)).label == "2024-25"
    assert sequencer.fiscal_year(APRIL).label == "2025-26"
    assert sequencer.fiscal_year(date(2026, 1, 15)).label == "2025-26"
    assert sequencer.fiscal_year(date(2099, 12, 31)).label == "2099-00"

    calendar = InvoiceSequencer(db_session, config=Settings(fiscal_year_start_month=1, fiscal_year_start_day=1))
    assert calendar.fiscal_year(date(2025, 12, 31)).label == "2025"


def test_preview_is_read_only(db_session):
    sequencer = InvoiceSequencer(db_session)

    first = sequencer.preview(APRIL)
    second = sequencer.preview(date(2025, 9, 1))

    assert first == second
    assert first.invoice_number == "KS/2025-26/0001"
    assert sequencer.committed_numbers("2025-26") == []


def test_commit_advances_and_rejects_duplicates(db_session):
    sequencer = InvoiceSequencer(db_session)

    committed = sequencer.commit(APRIL, 1)
    assert committed.invoice_number == "KS/2025-26/0001"
    assert sequencer.preview(APRIL).sequence_number == 2

    with pytest.raises(SequenceConflict) as excinfo:
        sequencer.commit(date(2025, 6, 1), 1)

    details = excinfo.value.details
    assert details["fiscal_year"] == "2025-26"
    assert details["attempted_number"] == "1"
    assert details["last_committed"] == 1
    assert sequencer.committed_numbers("2025-26") == [1]


def test_gaps_are_rejected_unless_allowed(db_session):
    strict = InvoiceSequencer(db_session)
    strict.commit(APRIL, 1)

    with pytest.raises(SequenceConflict) as excinfo:
        strict.commit(APRIL, 3)
    assert "gap" in excinfo.value.details["reason"]
    assert strict.preview(APRIL).sequence_number == 2

    lenient = InvoiceSequencer(db_session, config=Settings(invoice_number_allow_gaps=True))
    lenient.commit(APRIL, 5)
    assert lenient.preview(APRIL).sequence_number == 6
    # filling an unused lower number does not move the counter back
    lenient.commit(APRIL, 3)
    assert lenient.committed_numbers("2025-26") == [1, 3, 5]
    assert lenient.preview(APRIL).sequence_number == 6


def test_formatted_and_invalid_numbers(db_session):
    sequencer = InvoiceSequencer(db_session)

    assert sequencer.commit(APRIL, "KS/2025-26/0001").sequence_number == 1
    assert sequencer.commit(APRIL, "2").invoice_number == "KS/2025-26/0002"

    for bad in ("KS/2024-25/0003", "INV-3", "XX/2025-26/0003", 0, -1):
        with pytest.raises(SequenceConflict):
            sequencer.commit(APRIL, bad)
    assert sequencer.committed_numbers("2025-26") == [1, 2]


def test_fiscal_years_are_numbered_independently(db_session):
    sequencer = InvoiceSequencer(db_session)

    sequencer.commit(date(2025, 3, 31), 1)
    sequencer.commit(APRIL, 1)

    assert sequencer.committed_numbers("2024-25") == [1]
    assert sequencer.committed_numbers("2025-26") == [1]
    assert sequencer.preview(date(2025, 3, 1)).invoice_number == "KS/2024-25/0002"


def test_concurrent_commits_of_the_same_number(db_session, session_factory):
    workers = 8

    def attempt(_):
        try:
            InvoiceSequencer(session_factory()).commit(APRIL, 1)
        except SequenceConflict:
            return False
        return True

    with ThreadPoolExecutor(max_workers=workers) as pool:
        results = list(pool.map(attempt, range(workers)))

    assert results.count(True) == 1
    assert InvoiceSequencer(db_session).committed_numbers("2025-26") == [1]


def test_concurrent_preview_then_commit_never_duplicates(db_session, session_factory):
    workers = 6

    def issue_one(_):
        sequencer = InvoiceSequencer(session_factory())
        for _attempt in range(50):
            candidate = sequencer.preview(APRIL)
            try:
                return sequencer.commit(APRIL, candidate.sequence_number).sequence_number
            except SequenceConflict:
                continue
        raise AssertionError("could not obtain a number")

    with ThreadPoolExecutor(max_workers=workers) as pool:
        numbers = list(pool.map(issue_one, range(workers)))

    assert sorted(numbers) == list(range(1, workers + 1))
    assert InvoiceSequencer(db_session).committed_numbers("2025-26") == list(range(1, workers + 1))
