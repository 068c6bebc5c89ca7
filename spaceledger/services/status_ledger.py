from __future__ import annotations

from datetime import datetime
from typing import Callable, Iterator
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from spaceledger.core.errors import InvalidTransition, NotFound
from spaceledger.core.locks import KeyedLocks, ledger_locks, subscription_lock
from spaceledger.core.logging_setup import logger
from spaceledger.db.session import run_in_transaction
from spaceledger.models.audit import StatusLogEntry
from spaceledger.models.subscription import RubberStampStatus, Subscription, SubscriptionStatus

INITIAL_STATUS = SubscriptionStatus.ADVANCE_RECEIVED

# Forward-only workflow: each status maps to its single successor.
# Completed has no successor.
STATUS_TRANSITIONS: dict[SubscriptionStatus, SubscriptionStatus] = {
    SubscriptionStatus.ADVANCE_RECEIVED: SubscriptionStatus.PAPER_COLLECTED,
    SubscriptionStatus.PAPER_COLLECTED: SubscriptionStatus.DOCUMENTS_READY,
    SubscriptionStatus.DOCUMENTS_READY: SubscriptionStatus.SIGNED_AND_UPLOADED,
    SubscriptionStatus.SIGNED_AND_UPLOADED: SubscriptionStatus.COMPLETED,
}


def next_status(current: SubscriptionStatus) -> SubscriptionStatus | None:
    return STATUS_TRANSITIONS.get(current)


def lock_subscription(session: Session, subscription_id: UUID) -> Subscription:
    """Load a subscription with a row lock (no-op on SQLite) and fresh attributes."""
    subscription = session.exec(
        select(Subscription)
        .where(Subscription.id == subscription_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).first()
    if subscription is None:
        raise NotFound("Subscription", subscription_id)
    return subscription


class StatusHistory:
    """Status log of one subscription, oldest first.

    Iteration is lazy (rows are paged from the store) and restartable: every ``iter()``
    runs a fresh query, so entries appended in between are picked up.
    """

    def __init__(self, session: Session, subscription_id: UUID, page_size: int = 100) -> None:
        self.session = session
        self.subscription_id = subscription_id
        self.page_size = max(page_size, 1)

    def __iter__(self) -> Iterator[StatusLogEntry]:
        last_position = -1
        while True:
            page = self.session.exec(
                select(StatusLogEntry)
                .where(
                    StatusLogEntry.subscription_id == self.subscription_id,
                    StatusLogEntry.position > last_position,
                )
                .order_by(StatusLogEntry.position, StatusLogEntry.created_at)
                .limit(self.page_size)
            ).all()
            yield from page
            if len(page) < self.page_size:
                return
            last_position = page[-1].position


class StatusTransitionLedger:
    def __init__(self, session: Session, locks: KeyedLocks | None = None) -> None:
        self.session = session
        self.locks = locks or ledger_locks

    def create_with_initial_status(
        self,
        subscription: Subscription,
        actor_id: UUID | None = None,
        stage_extra: Callable[[Session, Subscription], None] | None = None,
    ) -> Subscription:
        """Insert the subscription and its genesis log entry as one unit of work.

        ``stage_extra`` lets the caller add rows (billing items, an advance payment) to the
        same transaction. If any write fails nothing is persisted, so a subscription never
        exists without its first log entry.
        """
        subscription.status = INITIAL_STATUS
        subscription.status_version = 0
        values = subscription.model_dump()

        def work(session: Session) -> UUID:
            row = Subscription.model_validate(values)
            session.add(row)
            session.flush()
            self.stage_log_entry(session, row.id, 0, None, INITIAL_STATUS, actor_id)
            if stage_extra is not None:
                stage_extra(session, row)
            session.flush()
            return row.id

        subscription_id = run_in_transaction(self.session, work, operation="create subscription")
        logger.info("Subscription %s created with status %s", subscription_id, INITIAL_STATUS.value)
        return self.session.get(Subscription, subscription_id)

    @staticmethod
    def stage_log_entry(
        session: Session,
        subscription_id: UUID,
        position: int,
        old_status: SubscriptionStatus | None,
        new_status: SubscriptionStatus,
        actor_id: UUID | None,
    ) -> StatusLogEntry:
        entry = StatusLogEntry(
            subscription_id=subscription_id,
            position=position,
            old_status=old_status,
            new_status=new_status,
            changed_by=actor_id,
        )
        session.add(entry)
        return entry

    def transition_status(
        self,
        subscription_id: UUID,
        new_status: SubscriptionStatus | str,
        actor_id: UUID | None = None,
    ) -> Subscription:
        try:
            target = SubscriptionStatus(new_status)
        except ValueError as exc:
            raise InvalidTransition(
                f"Unknown subscription status {new_status!r}",
                details={"subscription_id": str(subscription_id), "attempted_status": str(new_status)},
            ) from exc

        def work(session: Session) -> None:
            subscription = lock_subscription(session, subscription_id)
            current = subscription.status
            expected = next_status(current)
            if target != expected:
                raise InvalidTransition(
                    f"Cannot move subscription from {current.value!r} to {target.value!r}",
                    details={
                        "subscription_id": str(subscription_id),
                        "current_status": current.value,
                        "attempted_status": target.value,
                        "allowed_status": expected.value if expected else None,
                    },
                )
            version = subscription.status_version
            result = session.exec(
                update(Subscription)
                .where(
                    Subscription.id == subscription_id,
                    Subscription.status == current,
                    Subscription.status_version == version,
                )
                .values(status=target, status_version=version + 1, updated_at=datetime.utcnow())
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise InvalidTransition(
                    "Subscription status changed concurrently",
                    details={
                        "subscription_id": str(subscription_id),
                        "current_status": current.value,
                        "attempted_status": target.value,
                    },
                )
            self.stage_log_entry(session, subscription_id, version + 1, current, target, actor_id)
            try:
                session.flush()
            except IntegrityError as exc:
                raise InvalidTransition(
                    "Subscription status changed concurrently",
                    details={"subscription_id": str(subscription_id), "attempted_status": target.value},
                ) from exc
            logger.info(
                "Subscription %s moved %s -> %s by %s", subscription_id, current.value, target.value, actor_id
            )

        with self.locks.hold(subscription_lock(subscription_id)):
            run_in_transaction(self.session, work, operation="transition subscription status")
            return self._fresh(subscription_id)

    def get_history(self, subscription_id: UUID, page_size: int = 100) -> StatusHistory:
        if self.session.get(Subscription, subscription_id) is None:
            raise NotFound("Subscription", subscription_id)
        return StatusHistory(self.session, subscription_id, page_size=page_size)

    def update_rubber_stamp(
        self,
        subscription_id: UUID,
        value: RubberStampStatus | str,
        actor_id: UUID | None = None,
    ) -> Subscription:
        """Set the rubber stamp custody. Allowed at any status; reports filter on Completed."""
        stamp = RubberStampStatus(value)

        def work(session: Session) -> None:
            subscription = lock_subscription(session, subscription_id)
            previous = subscription.rubber_stamp
            subscription.rubber_stamp = stamp
            subscription.updated_at = datetime.utcnow()
            session.add(subscription)
            logger.info(
                "Subscription %s rubber stamp %s -> %s by %s", subscription_id, previous.value, stamp.value, actor_id
            )

        with self.locks.hold(subscription_lock(subscription_id)):
            run_in_transaction(self.session, work, operation="update rubber stamp")
            return self._fresh(subscription_id)

    def list_rubber_stamp_subscriptions(self, rubber_stamp: RubberStampStatus | None = None) -> list[Subscription]:
        query = select(Subscription).where(Subscription.status == SubscriptionStatus.COMPLETED)
        if rubber_stamp is not None:
            query = query.where(Subscription.rubber_stamp == RubberStampStatus(rubber_stamp))
        return self.session.exec(query.order_by(Subscription.created_at.desc())).all()

    def _fresh(self, subscription_id: UUID) -> Subscription:
        subscription = self.session.get(Subscription, subscription_id, populate_existing=True)
        if subscription is None:  # pragma: no cover
            raise NotFound("Subscription", subscription_id)
        return subscription
