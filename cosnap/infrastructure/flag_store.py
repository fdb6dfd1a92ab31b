"""SQL Flag Store — FlagStore over SQLAlchemy with a locked count-then-insert.

Invariants:
    - Every read/write is scoped by owner_id in the same WHERE as the id
    - insert/activate_owned lock the owner's profile row (SELECT ... FOR UPDATE)
      before counting, so two concurrent activations cannot share one quota slot
    - Active = visibility_status 'active' AND end_date >= as_of
    - Never commits: the request's UnitOfWork owns the transaction

Design Decisions:
    - Profile row as the lock target: covers the zero-flags case, where a
      FOR UPDATE on the flag set would lock nothing
    - On SQLite (tests) FOR UPDATE is omitted by the dialect; the single writer
      gives the same serialization
"""

import logging
from datetime import date
from enum import Enum
from typing import Any

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from cosnap.core.domain_types import (
    ExposurePolicy,
    Flag,
    FlagId,
    FlagType,
    PlanTier,
    UserId,
    VisibilityStatus,
)
from cosnap.core.errors import QuotaExceededError
from cosnap.infrastructure.database import as_utc, db_errors
from cosnap.models.flag import FlagRow
from cosnap.models.profile import ProfileRow

logger = logging.getLogger(__name__)


class SqlFlagStore:
    """FlagStore implementation for one request session."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def count_active(
        self, owner_id: UserId, *, as_of: date, exclude_id: FlagId | None = None,
    ) -> int:
        query = (
            select(func.count(FlagRow.id))
            .where(FlagRow.owner_id == owner_id)
            .where(FlagRow.visibility_status == VisibilityStatus.ACTIVE.value)
            .where(FlagRow.end_date >= as_of)
        )
        if exclude_id is not None:
            query = query.where(FlagRow.id != exclude_id)
        async with db_errors("count active flags"):
            result = await self.db.execute(query)
        return result.scalar_one()

    async def insert(self, flag: Flag, *, quota: int | None, as_of: date) -> Flag:
        async with db_errors("insert flag"):
            await self._enforce_quota(
                flag.owner_id, flag.source_plan_type, quota, as_of,
            )
            row = FlagRow(
                id=flag.id,
                owner_id=flag.owner_id,
                city=flag.city,
                country=flag.country,
                display_latitude=flag.display_latitude,
                display_longitude=flag.display_longitude,
                start_date=flag.start_date,
                end_date=flag.end_date,
                flag_type=flag.flag_type.value,
                note=flag.note,
                styles=list(flag.styles),
                languages=list(flag.languages),
                visibility_status=flag.visibility_status.value,
                source_plan_type=flag.source_plan_type.value,
                exposure_policy=flag.exposure_policy.value,
                created_at=flag.created_at,
                updated_at=flag.updated_at,
            )
            self.db.add(row)
            await self.db.flush()
        return _to_flag(row)

    async def get_owned(self, flag_id: FlagId, owner_id: UserId) -> Flag | None:
        async with db_errors("get flag"):
            result = await self.db.execute(
                select(FlagRow)
                .where(FlagRow.id == flag_id)
                .where(FlagRow.owner_id == owner_id)
                .execution_options(populate_existing=True),
            )
        row = result.scalar_one_or_none()
        return _to_flag(row) if row else None

    async def exists(self, flag_id: FlagId) -> bool:
        async with db_errors("check flag"):
            result = await self.db.execute(
                select(FlagRow.id).where(FlagRow.id == flag_id),
            )
        return result.scalar_one_or_none() is not None

    async def update_owned(
        self, flag_id: FlagId, owner_id: UserId, patch: dict[str, Any],
    ) -> Flag | None:
        values = {
            key: value.value if isinstance(value, Enum) else value
            for key, value in patch.items()
        }
        async with db_errors("update flag"):
            result = await self.db.execute(
                update(FlagRow)
                .where(FlagRow.id == flag_id)
                .where(FlagRow.owner_id == owner_id)
                .values(**values),
            )
        if result.rowcount == 0:
            return None
        return await self.get_owned(flag_id, owner_id)

    async def activate_owned(
        self,
        flag_id: FlagId,
        owner_id: UserId,
        *,
        tier: PlanTier,
        quota: int | None,
        as_of: date,
    ) -> Flag | None:
        if await self.get_owned(flag_id, owner_id) is None:
            return None
        async with db_errors("activate flag"):
            await self._enforce_quota(
                owner_id, tier, quota, as_of, exclude_id=flag_id,
            )
        return await self.update_owned(
            flag_id, owner_id,
            {"visibility_status": VisibilityStatus.ACTIVE},
        )

    async def delete_owned(self, flag_id: FlagId, owner_id: UserId) -> bool:
        async with db_errors("delete flag"):
            result = await self.db.execute(
                delete(FlagRow)
                .where(FlagRow.id == flag_id)
                .where(FlagRow.owner_id == owner_id),
            )
        return result.rowcount > 0

    async def _enforce_quota(
        self,
        owner_id: UserId,
        plan: PlanTier,
        quota: int | None,
        as_of: date,
        exclude_id: FlagId | None = None,
    ) -> None:
        """Lock the owner, then re-count inside the transaction."""
        if quota is None:
            return
        await self.db.execute(
            select(ProfileRow.id)
            .where(ProfileRow.id == owner_id)
            .with_for_update(),
        )
        count = await self.count_active(owner_id, as_of=as_of, exclude_id=exclude_id)
        if count >= quota:
            logger.warning(
                f"Quota re-check rejected a concurrent activation ({count}/{quota})",
                extra={"user_id": str(owner_id), "error_code": "QUOTA_EXCEEDED"},
            )
            raise QuotaExceededError(plan.value, quota, count)


def _to_flag(row: FlagRow) -> Flag:
    return Flag(
        id=FlagId(row.id),
        owner_id=UserId(row.owner_id),
        city=row.city,
        country=row.country,
        display_latitude=row.display_latitude,
        display_longitude=row.display_longitude,
        start_date=row.start_date,
        end_date=row.end_date,
        visibility_status=VisibilityStatus(row.visibility_status),
        source_plan_type=PlanTier(row.source_plan_type),
        exposure_policy=ExposurePolicy(row.exposure_policy),
        created_at=as_utc(row.created_at),
        updated_at=as_utc(row.updated_at),
        flag_type=FlagType(row.flag_type),
        note=row.note,
        styles=list(row.styles or []),
        languages=list(row.languages or []),
    )
