"""Request Dependencies — caller identity and per-request lifecycle wiring.

Invariants:
    - Caller identity comes from the X-User-Id header set by the identity gateway
    - One AsyncSession per request, shared by every store and the unit of work
    - Plan tier is looked up once per request and passed into the lifecycle

Design Decisions:
    - Authentication itself is the gateway's job; a missing/invalid header is 401
    - Factories as FastAPI dependencies: tests override get_db only
"""

from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from cosnap.config import get_settings
from cosnap.core.domain_types import PlanTier, UserId
from cosnap.core.errors import NotFoundError
from cosnap.infrastructure.conversation_store import SqlConversationStore
from cosnap.infrastructure.database import SqlUnitOfWork, get_db
from cosnap.infrastructure.flag_store import SqlFlagStore
from cosnap.infrastructure.match_store import SqlMatchStore
from cosnap.infrastructure.notification_sink import SqlNotificationSink
from cosnap.infrastructure.offer_store import SqlOfferStore
from cosnap.infrastructure.profile_store import SqlProfileStore
from cosnap.services.flag_lifecycle import FlagLifecycle
from cosnap.services.offer_lifecycle import OfferLifecycle


def get_caller_id(
    x_user_id: str | None = Header(None, alias="X-User-Id"),
) -> UserId:
    """Authenticated caller, as asserted by the upstream identity gateway."""
    if not x_user_id:
        raise HTTPException(
            status.HTTP_401_UNAUTHORIZED,
            detail={"error": {
                "code": "UNAUTHENTICATED",
                "message": "Missing caller identity",
            }},
        )
    try:
        return UserId(UUID(x_user_id))
    except ValueError:
        raise HTTPException(
            status.HTTP_401_UNAUTHORIZED,
            detail={"error": {
                "code": "UNAUTHENTICATED",
                "message": "Malformed caller identity",
            }},
        )


async def get_caller_tier(
    caller_id: UserId = Depends(get_caller_id),
    db: AsyncSession = Depends(get_db),
) -> PlanTier:
    """Current plan tier of the caller, read fresh on every request."""
    tier = await SqlProfileStore(db).get_plan_tier(caller_id)
    if tier is None:
        raise NotFoundError("Profile", str(caller_id))
    return tier


def get_flag_lifecycle(db: AsyncSession = Depends(get_db)) -> FlagLifecycle:
    return FlagLifecycle(
        SqlFlagStore(db),
        SqlUnitOfWork(db),
        radius_km=get_settings().geo_privacy_radius_km,
    )


def get_offer_lifecycle(db: AsyncSession = Depends(get_db)) -> OfferLifecycle:
    return OfferLifecycle(
        offers=SqlOfferStore(db),
        matches=SqlMatchStore(db),
        conversations=SqlConversationStore(db),
        notifications=SqlNotificationSink(db),
        profiles=SqlProfileStore(db),
        flags=SqlFlagStore(db),
        uow=SqlUnitOfWork(db),
    )
