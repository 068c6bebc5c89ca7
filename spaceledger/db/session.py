import os
import time
from typing import Any, Callable, Generator, TypeVar

from sqlalchemy.exc import OperationalError
from sqlmodel import Session, SQLModel, create_engine

from spaceledger.core.config import settings
from spaceledger.core.errors import StorageUnavailable
from spaceledger.core.logging_setup import logger

T = TypeVar("T")


def build_connect_args(database_url: str) -> dict[str, Any]:
    connect_args: dict[str, Any] = {}
    if database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
        connect_args["timeout"] = settings.sqlite_busy_timeout_seconds
    elif database_url.startswith("postgresql"):
        client_encoding = os.getenv("POSTGRES_CLIENT_ENCODING", "UTF8")
        connect_args["options"] = f"-c client_encoding={client_encoding}"
    return connect_args


engine = create_engine(
    settings.database_url,
    echo=settings.debug,
    future=True,
    connect_args=build_connect_args(settings.database_url),
)


def init_db() -> None:
    import spaceledger.db.base  # noqa: F401

    SQLModel.metadata.create_all(bind=engine)


def get_session() -> Generator[Session, None, None]:
    with Session(engine) as session:
        yield session


def _backoff_delay(attempt: int) -> float:
    """Exponential backoff: base, 2*base, 4*base... capped at two seconds."""
    return min(settings.storage_retry_backoff_seconds * (2 ** (attempt - 1)), 2.0)


def run_in_transaction(session: Session, work: Callable[[Session], T], *, operation: str) -> T:
    """Run ``work`` and commit it as one unit.

    Any failure rolls back every row written by ``work``. Transient store failures
    (``OperationalError``: lock timeouts, dropped connections) are retried with bounded
    backoff and reported as ``StorageUnavailable`` once the budget is spent. ``work`` must
    read what it needs from ``session`` itself, since a retry starts from a clean session.
    """
    attempts = max(settings.storage_retry_attempts, 1)
    for attempt in range(1, attempts + 1):
        try:
            result = work(session)
            session.commit()
            return result
        except OperationalError as exc:
            session.rollback()
            if attempt >= attempts:
                logger.error("%s failed after %s attempts: %s", operation, attempt, exc)
                raise StorageUnavailable(
                    f"Ledger store unavailable during {operation}",
                    details={"operation": operation, "attempts": attempt},
                ) from exc
            delay = _backoff_delay(attempt)
            logger.warning("%s hit a store error (attempt %s), retrying in %.2fs: %s", operation, attempt, delay, exc)
            time.sleep(delay)
        except BaseException:
            session.rollback()
            raise
    raise AssertionError("unreachable")  # pragma: no cover
