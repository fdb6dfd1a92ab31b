"""SQL Offer Store — OfferStore over SQLAlchemy with conditional status updates.

Invariants:
    - Reads are scoped by role: (id, receiver_id) or (id, sender_id)
    - Status changes are a single UPDATE ... WHERE id = :id AND status = :from;
      the rowcount is the only source of truth for "did this call win"
    - Transitions outside ALLOWED_TRANSITIONS are refused without touching the DB
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from cosnap.core.domain_types import FlagId, Offer, OfferId, OfferStatus, UserId
from cosnap.core.offer_transitions import can_transition
from cosnap.infrastructure.database import as_utc, db_errors
from cosnap.models.offer import OfferRow

logger = logging.getLogger(__name__)


class SqlOfferStore:
    """OfferStore implementation for one request session."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def insert(self, offer: Offer) -> Offer:
        row = OfferRow(
            id=offer.id,
            sender_id=offer.sender_id,
            receiver_id=offer.receiver_id,
            flag_id=offer.flag_id,
            message=offer.message,
            status=offer.status.value,
            sent_at=offer.sent_at,
            respond_by=offer.respond_by,
            created_at=offer.created_at,
            updated_at=offer.updated_at,
        )
        async with db_errors("insert offer"):
            self.db.add(row)
            await self.db.flush()
        return _to_offer(row)

    async def get_by_id_for_receiver(
        self, offer_id: OfferId, receiver_id: UserId,
    ) -> Offer | None:
        return await self._get(offer_id, OfferRow.receiver_id == receiver_id)

    async def get_by_id_for_sender(
        self, offer_id: OfferId, sender_id: UserId,
    ) -> Offer | None:
        return await self._get(offer_id, OfferRow.sender_id == sender_id)

    async def transition_if_status(
        self, offer_id: OfferId, from_status: OfferStatus, to_status: OfferStatus,
    ) -> bool:
        if not can_transition(from_status, to_status):
            logger.warning(
                f"Refused offer transition {from_status.value} -> {to_status.value}",
                extra={"offer_id": str(offer_id)},
            )
            return False
        async with db_errors("transition offer"):
            result = await self.db.execute(
                update(OfferRow)
                .where(OfferRow.id == offer_id)
                .where(OfferRow.status == OfferStatus(from_status).value)
                .values(
                    status=OfferStatus(to_status).value,
                    updated_at=datetime.now(timezone.utc),
                ),
            )
        return result.rowcount == 1

    async def update_message_if_pending(
        self, offer_id: OfferId, sender_id: UserId, message: str,
    ) -> bool:
        async with db_errors("update offer message"):
            result = await self.db.execute(
                update(OfferRow)
                .where(OfferRow.id == offer_id)
                .where(OfferRow.sender_id == sender_id)
                .where(OfferRow.status == OfferStatus.PENDING.value)
                .values(message=message, updated_at=datetime.now(timezone.utc)),
            )
        return result.rowcount == 1

    async def _get(self, offer_id: OfferId, role_clause) -> Offer | None:
        async with db_errors("get offer"):
            result = await self.db.execute(
                select(OfferRow)
                .where(OfferRow.id == offer_id)
                .where(role_clause)
                .execution_options(populate_existing=True),
            )
        row = result.scalar_one_or_none()
        return _to_offer(row) if row else None


def _to_offer(row: OfferRow) -> Offer:
    return Offer(
        id=OfferId(row.id),
        sender_id=UserId(row.sender_id),
        receiver_id=UserId(row.receiver_id),
        flag_id=FlagId(row.flag_id),
        message=row.message,
        status=OfferStatus(row.status),
        sent_at=as_utc(row.sent_at),
        created_at=as_utc(row.created_at),
        updated_at=as_utc(row.updated_at),
        respond_by=as_utc(row.respond_by),
    )
