"""Offer Lifecycle — offer creation and the pending -> terminal state machine.

Invariants:
    - sender_id != receiver_id; both profiles and the flag must exist before an
      offer is written
    - Status moves only pending -> {accepted, declined, expired, cancelled}, applied
      as a conditional update (WHERE status = 'pending') — never read-then-write
    - Only the receiver accepts/declines, only the sender cancels or edits
    - A match exists iff its offer is accepted; offer status and match commit together
    - A repeated/concurrent accept returns the existing match (already_accepted=True)
    - Conversation and notification failures never fail the primary operation

Design Decisions:
    - Side effects run AFTER the primary commit: a failed notification must not be
      able to roll back an accepted offer
    - Role mismatch reads as NotFound: existence is not leaked to other users
    - Lazy expiry: a stale pending offer is expired by whichever call touches it
"""

import logging
import uuid
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Callable

from cosnap.core.domain_types import (
    ConversationId,
    FlagId,
    Match,
    NotificationType,
    Offer,
    OfferId,
    OfferStatus,
    ReferenceType,
    UserId,
)
from cosnap.core.errors import (
    DependencyError,
    InvalidTransitionError,
    NotFoundError,
    ReceiverProfileMissingError,
    SelfOfferNotAllowedError,
    SenderProfileMissingError,
)
from cosnap.core.offer_transitions import effective_status, is_past_deadline
from cosnap.core.repository_protocols import (
    ConversationStore,
    FlagStore,
    MatchStore,
    NotificationSink,
    OfferStore,
    ProfileStore,
    UnitOfWork,
)
from cosnap.services.lifecycle_support import transaction, utc_now

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AcceptResult:
    """Outcome of accept. conversation_id is None when conversation setup failed."""
    match: Match
    conversation_id: ConversationId | None
    already_accepted: bool = False


class OfferLifecycle:
    """Orchestrates offer writes and their match/conversation/notification side effects."""

    def __init__(
        self,
        offers: OfferStore,
        matches: MatchStore,
        conversations: ConversationStore,
        notifications: NotificationSink,
        profiles: ProfileStore,
        flags: FlagStore,
        uow: UnitOfWork,
        *,
        now: Callable[[], datetime] = utc_now,
    ):
        self.offers = offers
        self.matches = matches
        self.conversations = conversations
        self.notifications = notifications
        self.profiles = profiles
        self.flags = flags
        self.uow = uow
        self._now = now

    # ─── create ──────────────────────────────────────────────────

    async def create(
        self,
        sender_id: UserId,
        receiver_id: UserId,
        flag_id: FlagId,
        message: str,
        respond_by: datetime | None = None,
    ) -> Offer:
        """Send a pending offer on flag_id and notify the receiver."""
        if sender_id == receiver_id:
            raise SelfOfferNotAllowedError()
        if not await self.profiles.exists(sender_id):
            raise SenderProfileMissingError(str(sender_id))
        if not await self.profiles.exists(receiver_id):
            raise ReceiverProfileMissingError(str(receiver_id))
        if not await self.flags.exists(flag_id):
            raise NotFoundError("Flag", str(flag_id))

        now = self._now()
        offer = Offer(
            id=OfferId(uuid.uuid4()),
            sender_id=sender_id,
            receiver_id=receiver_id,
            flag_id=flag_id,
            message=message,
            status=OfferStatus.PENDING,
            sent_at=now,
            created_at=now,
            updated_at=now,
            respond_by=respond_by,
        )
        async with transaction(self.uow):
            saved = await self.offers.insert(offer)

        logger.info(
            "Offer sent",
            extra={"offer_id": str(saved.id), "user_id": str(sender_id)},
        )
        await self._notify(
            receiver_id, sender_id, NotificationType.OFFER_RECEIVED,
            saved.id, ReferenceType.OFFER,
        )
        return saved

    # ─── sender-side transitions ─────────────────────────────────

    async def cancel(self, offer_id: OfferId, sender_id: UserId) -> Offer:
        offer = await self.offers.get_by_id_for_sender(offer_id, sender_id)
        if offer is None:
            raise NotFoundError("Offer", str(offer_id))
        cancelled = await self._transition(offer, OfferStatus.CANCELLED)
        await self._notify(
            offer.receiver_id, sender_id, NotificationType.OFFER_CANCELLED,
            offer.id, ReferenceType.OFFER,
        )
        return cancelled

    async def update_message(
        self, offer_id: OfferId, sender_id: UserId, message: str,
    ) -> Offer:
        """Edit the message of a still-pending offer."""
        offer = await self.offers.get_by_id_for_sender(offer_id, sender_id)
        if offer is None:
            raise NotFoundError("Offer", str(offer_id))
        await self._ensure_pending(offer, "edit")

        async with transaction(self.uow):
            updated = await self.offers.update_message_if_pending(
                offer_id, sender_id, message,
            )
        if not updated:
            raise await self._lost_race(offer, "edit")
        return await self._reload_for_sender(offer)

    # ─── lazy expiry ─────────────────────────────────────────────

    async def expire_if_due(self, offer: Offer) -> Offer:
        """Persist expiry of a pending offer whose respond_by has passed.

        Offers that are not pending, or still inside their window, come back
        unchanged. Losing the race to another transition returns the row as
        it now stands.
        """
        now = self._now()
        if offer.status is not OfferStatus.PENDING or not is_past_deadline(offer, now):
            return offer
        async with transaction(self.uow):
            moved = await self.offers.transition_if_status(
                offer.id, OfferStatus.PENDING, OfferStatus.EXPIRED,
            )
        if not moved:
            latest = await self.offers.get_by_id_for_sender(offer.id, offer.sender_id)
            return latest or offer
        logger.info(
            "Offer expired past its respond-by deadline",
            extra={"offer_id": str(offer.id)},
        )
        return _with_status(offer, OfferStatus.EXPIRED, now)

    # ─── receiver-side transitions ───────────────────────────────

    async def decline(self, offer_id: OfferId, receiver_id: UserId) -> Offer:
        offer = await self.offers.get_by_id_for_receiver(offer_id, receiver_id)
        if offer is None:
            raise NotFoundError("Offer", str(offer_id))
        declined = await self._transition(offer, OfferStatus.DECLINED)
        await self._notify(
            offer.sender_id, receiver_id, NotificationType.OFFER_DECLINED,
            offer.id, ReferenceType.OFFER,
        )
        return declined

    async def accept(self, offer_id: OfferId, receiver_id: UserId) -> AcceptResult:
        """Accept a pending offer: offer -> accepted, one match, conversation, notification."""
        offer = await self.offers.get_by_id_for_receiver(offer_id, receiver_id)
        if offer is None:
            raise NotFoundError("Offer", str(offer_id))

        if offer.status is OfferStatus.ACCEPTED:
            return await self._existing_acceptance(offer)
        await self._ensure_pending(offer, OfferStatus.ACCEPTED.value)

        async with transaction(self.uow):
            moved = await self.offers.transition_if_status(
                offer.id, OfferStatus.PENDING, OfferStatus.ACCEPTED,
            )
            if moved:
                match, created = await self.matches.insert_if_absent(
                    offer.id, offer.sender_id, offer.receiver_id, offer.flag_id,
                )

        if not moved:
            latest = await self.offers.get_by_id_for_receiver(offer.id, receiver_id)
            if latest is not None and latest.status is OfferStatus.ACCEPTED:
                return await self._existing_acceptance(latest)
            raise InvalidTransitionError(
                str(offer.id),
                (latest.status if latest else offer.status).value,
                OfferStatus.ACCEPTED.value,
            )

        if not created:
            logger.info(
                "Concurrent accept already created the match",
                extra={"offer_id": str(offer.id), "match_id": str(match.id)},
            )
            return await self._existing_acceptance(offer, match)

        logger.info(
            "Offer accepted",
            extra={
                "offer_id": str(offer.id),
                "match_id": str(match.id),
                "user_id": str(receiver_id),
            },
        )
        conversation_id = await self._open_conversation(offer)
        await self._notify(
            offer.sender_id, receiver_id, NotificationType.OFFER_ACCEPTED,
            offer.id, ReferenceType.OFFER,
        )
        return AcceptResult(match=match, conversation_id=conversation_id)

    # ─── helpers ─────────────────────────────────────────────────

    async def _transition(self, offer: Offer, target: OfferStatus) -> Offer:
        await self._ensure_pending(offer, target.value)
        async with transaction(self.uow):
            moved = await self.offers.transition_if_status(
                offer.id, OfferStatus.PENDING, target,
            )
        if not moved:
            raise await self._lost_race(offer, target.value)
        logger.info(
            f"Offer {target.value}",
            extra={"offer_id": str(offer.id)},
        )
        return _with_status(offer, target, self._now())

    async def _ensure_pending(self, offer: Offer, requested: str) -> None:
        """Raise InvalidTransition unless the offer is (effectively) pending."""
        offer = await self.expire_if_due(offer)
        status = effective_status(offer, self._now())
        if status is not OfferStatus.PENDING:
            raise InvalidTransitionError(str(offer.id), status.value, requested)

    async def _lost_race(self, offer: Offer, requested: str) -> InvalidTransitionError:
        """A conditional update matched nothing: someone else moved the offer first."""
        latest = await self.offers.get_by_id_for_sender(offer.id, offer.sender_id)
        current = latest.status.value if latest is not None else "deleted"
        return InvalidTransitionError(str(offer.id), current, requested)

    async def _reload_for_sender(self, offer: Offer) -> Offer:
        reloaded = await self.offers.get_by_id_for_sender(offer.id, offer.sender_id)
        if reloaded is None:
            raise NotFoundError("Offer", str(offer.id))
        return reloaded

    async def _existing_acceptance(
        self, offer: Offer, match: Match | None = None,
    ) -> AcceptResult:
        """Idempotent accept: hand back the match the first accept created."""
        match = match or await self.matches.get_by_offer(offer.id)
        if match is None:
            raise NotFoundError("Match", str(offer.id))
        conversation_id = await self._open_conversation(offer)
        return AcceptResult(
            match=match, conversation_id=conversation_id, already_accepted=True,
        )

    async def _open_conversation(self, offer: Offer) -> ConversationId | None:
        try:
            async with transaction(self.uow):
                return await self.conversations.find_or_create(
                    offer.sender_id, offer.receiver_id, offer.id, offer.flag_id,
                )
        except DependencyError as e:
            logger.warning(
                f"Conversation setup failed after accept: {e.message}",
                extra={"offer_id": str(offer.id), "error_code": e.code},
                exc_info=True,
            )
            return None

    async def _notify(
        self,
        recipient_id: UserId,
        sender_id: UserId | None,
        type: NotificationType,
        reference_id: Any,
        reference_type: ReferenceType,
    ) -> None:
        """Best-effort: a failed emit is logged, never propagated."""
        try:
            async with transaction(self.uow):
                await self.notifications.emit(
                    recipient_id, sender_id, type, reference_id, reference_type,
                )
        except DependencyError as e:
            logger.warning(
                f"Notification {type.value} not delivered: {e.message}",
                extra={"user_id": str(recipient_id), "error_code": e.code},
                exc_info=True,
            )


def _with_status(offer: Offer, status: OfferStatus, now: datetime) -> Offer:
    return replace(offer, status=status, updated_at=now)
