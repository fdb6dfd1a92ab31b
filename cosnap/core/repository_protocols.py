"""Boundary Protocols — contracts between the lifecycle engine and its collaborators.

Invariants:
    - Core NEVER imports from shell — dependency arrows point inward only
    - All IO operations accessed through Protocol types
    - Implementations provided by shell via dependency injection
    - Ownership and role checks are part of the store query (compound WHERE),
      never a read followed by an application-side comparison
    - Stores flush but do not commit; the UnitOfWork decides the transaction boundary

Design Decisions:
    - Protocol over ABC: structural subtyping, in-memory fakes need no inheritance
    - Async in Protocol: implementations do IO against the datastore
"""

from datetime import date
from typing import Any, Protocol

from cosnap.core.domain_types import (
    ConversationId,
    Flag,
    FlagId,
    Match,
    NotificationType,
    Offer,
    OfferId,
    OfferStatus,
    PlanTier,
    ReferenceType,
    UserId,
)


class FlagStore(Protocol):
    """Contract for flag persistence."""
    async def count_active(
        self, owner_id: UserId, *, as_of: date, exclude_id: FlagId | None = None,
    ) -> int: ...

    async def insert(self, flag: Flag, *, quota: int | None, as_of: date) -> Flag:
        """Insert under a transactional re-check of quota. Raises QuotaExceededError."""
        ...

    async def get_owned(self, flag_id: FlagId, owner_id: UserId) -> Flag | None: ...

    async def exists(self, flag_id: FlagId) -> bool:
        """Any owner. Offers reference flags they do not own."""
        ...

    async def update_owned(
        self, flag_id: FlagId, owner_id: UserId, patch: dict[str, Any],
    ) -> Flag | None: ...

    async def activate_owned(
        self,
        flag_id: FlagId,
        owner_id: UserId,
        *,
        tier: PlanTier,
        quota: int | None,
        as_of: date,
    ) -> Flag | None:
        """Set visibility to active under the same locked quota check as insert.

        tier is the caller's current plan; it is what QuotaExceededError reports.
        """
        ...

    async def delete_owned(self, flag_id: FlagId, owner_id: UserId) -> bool: ...


class OfferStore(Protocol):
    """Contract for offer persistence."""
    async def insert(self, offer: Offer) -> Offer: ...

    async def get_by_id_for_receiver(
        self, offer_id: OfferId, receiver_id: UserId,
    ) -> Offer | None: ...

    async def get_by_id_for_sender(
        self, offer_id: OfferId, sender_id: UserId,
    ) -> Offer | None: ...

    async def transition_if_status(
        self, offer_id: OfferId, from_status: OfferStatus, to_status: OfferStatus,
    ) -> bool: ...

    async def update_message_if_pending(
        self, offer_id: OfferId, sender_id: UserId, message: str,
    ) -> bool: ...


class MatchStore(Protocol):
    """Contract for match persistence — at most one match per offer."""
    async def insert_if_absent(
        self,
        offer_id: OfferId,
        user_a_id: UserId,
        user_b_id: UserId,
        flag_id: FlagId,
    ) -> tuple[Match, bool]: ...

    async def get_by_offer(self, offer_id: OfferId) -> Match | None: ...


class ConversationStore(Protocol):
    """Contract for the messaging collaborator — find-or-create only."""
    async def find_or_create(
        self,
        user_a: UserId,
        user_b: UserId,
        offer_id: OfferId | None,
        flag_id: FlagId | None,
    ) -> ConversationId: ...


class NotificationSink(Protocol):
    """Write-only notification feed. Failures raise NotificationError."""
    async def emit(
        self,
        recipient_id: UserId,
        sender_id: UserId | None,
        type: NotificationType,
        reference_id: Any,
        reference_type: ReferenceType,
    ) -> None: ...


class ProfileStore(Protocol):
    """Read-only view of the identity provider's profile records."""
    async def exists(self, user_id: UserId) -> bool: ...

    async def get_plan_tier(self, user_id: UserId) -> PlanTier | None: ...


class UnitOfWork(Protocol):
    """Transaction boundary shared by all stores of one request."""
    async def commit(self) -> None: ...

    async def rollback(self) -> None: ...
