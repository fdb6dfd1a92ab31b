"""SQL Conversation Store — find-or-create a thread for a user pair and offer.

Invariants:
    - The user pair is unordered: (a, b) and (b, a) find the same conversation
    - With an offer_id the lookup is scoped to that offer; without one, any
      conversation of the pair is reused
"""

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from cosnap.core.domain_types import ConversationId, FlagId, OfferId, UserId
from cosnap.infrastructure.database import db_errors
from cosnap.models.conversation import ConversationRow


class SqlConversationStore:
    """ConversationStore implementation for one request session."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_or_create(
        self,
        user_a: UserId,
        user_b: UserId,
        offer_id: OfferId | None,
        flag_id: FlagId | None,
    ) -> ConversationId:
        query = select(ConversationRow.id).where(
            or_(
                and_(
                    ConversationRow.user_a_id == user_a,
                    ConversationRow.user_b_id == user_b,
                ),
                and_(
                    ConversationRow.user_a_id == user_b,
                    ConversationRow.user_b_id == user_a,
                ),
            ),
        )
        if offer_id is not None:
            query = query.where(ConversationRow.offer_id == offer_id)

        async with db_errors("find conversation"):
            existing = (await self.db.execute(query.limit(1))).scalar_one_or_none()
            if existing is not None:
                return ConversationId(existing)

            row = ConversationRow(
                user_a_id=user_a, user_b_id=user_b,
                offer_id=offer_id, flag_id=flag_id,
            )
            self.db.add(row)
            await self.db.flush()
        return ConversationId(row.id)
