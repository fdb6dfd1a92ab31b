"""Offer State Machine — the closed transition table for offers.

Invariants:
    - PENDING is the only state with outgoing transitions
    - accepted, declined, expired, cancelled are terminal (no resurrection)
    - Receiver may accept/decline; sender may cancel; anyone touching a stale
      pending offer may expire it
    - A pending offer whose respond_by has passed is effectively EXPIRED

Design Decisions:
    - Transition table as data: the store applies it as
      UPDATE ... WHERE status = :from, so table and SQL never disagree
"""

from datetime import datetime

from cosnap.core.domain_types import Offer, OfferStatus


ALLOWED_TRANSITIONS: dict[OfferStatus, frozenset[OfferStatus]] = {
    OfferStatus.PENDING: frozenset({
        OfferStatus.ACCEPTED,
        OfferStatus.DECLINED,
        OfferStatus.EXPIRED,
        OfferStatus.CANCELLED,
    }),
    OfferStatus.ACCEPTED: frozenset(),
    OfferStatus.DECLINED: frozenset(),
    OfferStatus.EXPIRED: frozenset(),
    OfferStatus.CANCELLED: frozenset(),
}

TERMINAL_STATUSES = frozenset(
    status for status, targets in ALLOWED_TRANSITIONS.items() if not targets
)


def can_transition(current: OfferStatus, target: OfferStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[OfferStatus(current)]


def is_terminal(status: OfferStatus) -> bool:
    return OfferStatus(status) in TERMINAL_STATUSES


def is_past_deadline(offer: Offer, now: datetime) -> bool:
    return offer.respond_by is not None and offer.respond_by < now


def effective_status(offer: Offer, now: datetime) -> OfferStatus:
    """Derived status: pending offers past respond_by read as expired."""
    if offer.status is OfferStatus.PENDING and is_past_deadline(offer, now):
        return OfferStatus.EXPIRED
    return offer.status
