"""SQL Match Store — at most one match per offer, enforced by the database.

Invariants:
    - matches.offer_id is UNIQUE; insert_if_absent is INSERT ... ON CONFLICT DO NOTHING
      followed by a read, so a losing racer gets the winner's row, not an error
    - created is True only for the call whose INSERT affected a row

Design Decisions:
    - ON CONFLICT over catching IntegrityError: a failed statement would abort the
      surrounding transaction on PostgreSQL, taking the offer update down with it
    - Core insert on the Table: returns a plain CursorResult with a reliable rowcount
"""

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from cosnap.core.domain_types import (
    FlagId,
    Match,
    MatchId,
    MatchStatus,
    OfferId,
    UserId,
)
from cosnap.core.errors import DatabaseError
from cosnap.infrastructure.database import as_utc, db_errors
from cosnap.models.match import MatchRow

logger = logging.getLogger(__name__)

_DIALECT_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


class SqlMatchStore:
    """MatchStore implementation for one request session."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def insert_if_absent(
        self,
        offer_id: OfferId,
        user_a_id: UserId,
        user_b_id: UserId,
        flag_id: FlagId,
    ) -> tuple[Match, bool]:
        dialect = self.db.get_bind().dialect.name
        insert = _DIALECT_INSERTS.get(dialect)
        if insert is None:
            raise DatabaseError(f"unsupported dialect {dialect}", "insert match")

        now = datetime.now(timezone.utc)
        stmt = (
            insert(MatchRow.__table__)
            .values(
                id=uuid.uuid4(),
                offer_id=offer_id,
                user_a_id=user_a_id,
                user_b_id=user_b_id,
                flag_id=flag_id,
                status=MatchStatus.SCHEDULED.value,
                created_at=now,
                updated_at=now,
            )
            .on_conflict_do_nothing(index_elements=["offer_id"])
        )
        async with db_errors("insert match"):
            result = await self.db.execute(stmt)
        created = result.rowcount == 1

        match = await self.get_by_offer(offer_id)
        if match is None:
            raise DatabaseError("match vanished after insert", "insert match")
        if not created:
            logger.info(
                "Match already existed for offer",
                extra={"offer_id": str(offer_id), "match_id": str(match.id)},
            )
        return match, created

    async def get_by_offer(self, offer_id: OfferId) -> Match | None:
        async with db_errors("get match"):
            result = await self.db.execute(
                select(MatchRow)
                .where(MatchRow.offer_id == offer_id)
                .execution_options(populate_existing=True),
            )
        row = result.scalar_one_or_none()
        return _to_match(row) if row else None


def _to_match(row: MatchRow) -> Match:
    return Match(
        id=MatchId(row.id),
        offer_id=OfferId(row.offer_id),
        user_a_id=UserId(row.user_a_id),
        user_b_id=UserId(row.user_b_id),
        flag_id=FlagId(row.flag_id),
        status=MatchStatus(row.status),
        created_at=as_utc(row.created_at),
        updated_at=as_utc(row.updated_at),
    )
