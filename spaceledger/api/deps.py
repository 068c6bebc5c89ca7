from typing import Annotated
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from sqlmodel import Session

from spaceledger.db.session import get_session
from spaceledger.services.billing import BillingFacade


def get_db() -> Session:
    yield from get_session()


def get_facade(session: Annotated[Session, Depends(get_db)]) -> BillingFacade:
    return BillingFacade(session)


def get_actor_id(x_actor_id: Annotated[str | None, Header()] = None) -> UUID | None:
    """Operator performing the change, as sent by the admin console. Optional."""
    if not x_actor_id:
        return None
    try:
        return UUID(x_actor_id.strip())
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid X-Actor-Id header") from exc
