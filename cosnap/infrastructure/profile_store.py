"""SQL Profile Store — existence and plan-tier lookups against profiles."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cosnap.core.domain_types import PlanTier, UserId
from cosnap.core.plan_policy import coerce_tier
from cosnap.infrastructure.database import db_errors
from cosnap.models.profile import ProfileRow


class SqlProfileStore:
    """ProfileStore implementation for one request session."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def exists(self, user_id: UserId) -> bool:
        return await self._tier_value(user_id) is not None

    async def get_plan_tier(self, user_id: UserId) -> PlanTier | None:
        value = await self._tier_value(user_id)
        return coerce_tier(value) if value is not None else None

    async def _tier_value(self, user_id: UserId) -> str | None:
        async with db_errors("get profile"):
            result = await self.db.execute(
                select(ProfileRow.plan_tier).where(ProfileRow.id == user_id),
            )
        return result.scalar_one_or_none()
