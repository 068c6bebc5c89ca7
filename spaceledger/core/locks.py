from __future__ import annotations

from collections.abc import Hashable, Iterator
from contextlib import contextmanager
from threading import Lock, RLock


class KeyedLocks:
    """Per-key re-entrant locks.

    Locks are created on first use and dropped once no thread holds or waits on them,
    so the registry does not grow with the number of keys ever seen.
    """

    def __init__(self) -> None:
        self._guard = Lock()
        self._locks: dict[Hashable, RLock] = {}
        self._users: dict[Hashable, int] = {}

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = RLock()
            self._users[key] = self._users.get(key, 0) + 1
        lock.acquire()
        try:
            yield
        finally:
            lock.release()
            with self._guard:
                self._users[key] -= 1
                if self._users[key] == 0:
                    del self._users[key]
                    del self._locks[key]

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


# One registry per entity scope. Keys are namespaced tuples so scopes never collide.
ledger_locks = KeyedLocks()


def subscription_lock(subscription_id) -> tuple[str, str]:
    return ("subscription", str(subscription_id))


def fiscal_year_lock(fiscal_year: str) -> tuple[str, str]:
    return ("fiscal_year", fiscal_year)


def invoice_lock(invoice_id) -> tuple[str, str]:
    return ("invoice", str(invoice_id))
