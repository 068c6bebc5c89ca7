from __future__ import annotations

from uuid import UUID

from sqlalchemy import UniqueConstraint
from sqlmodel import Field

from spaceledger.models.base import TimestampedModel, UUIDModel
from spaceledger.models.subscription import SubscriptionStatus


class StatusLogEntry(UUIDModel, TimestampedModel, table=True):
    """Append-only audit row for one subscription status change."""

    __tablename__ = "subscription_status_logs"
    __table_args__ = (
        UniqueConstraint("subscription_id", "position", name="uq_status_log_position"),
    )

    subscription_id: UUID = Field(foreign_key="subscriptions.id", index=True)
    # 0 for the creation entry, then +1 per transition.
    position: int
    old_status: SubscriptionStatus | None = Field(default=None)
    new_status: SubscriptionStatus
    changed_by: UUID | None = Field(default=None)
