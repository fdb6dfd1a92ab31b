"""Offer Schemas — Pydantic models for offer requests and responses.

Invariants:
    - OfferCreate.message: 1-2000 chars, stripped, non-empty
    - respond_by, when given, must be timezone-aware
    - Self-offers and profile existence are checked in the lifecycle, not here
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from cosnap.core.domain_types import MatchStatus, Offer, OfferStatus
from cosnap.services.offer_lifecycle import AcceptResult


class OfferCreate(BaseModel):
    """Offer creation — the caller (X-User-Id) is the sender."""
    receiver_id: UUID
    flag_id: UUID
    message: str = Field(min_length=1, max_length=2000)
    respond_by: datetime | None = None

    @field_validator("message")
    @classmethod
    def strip_message(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("message cannot be empty or whitespace")
        return v

    @field_validator("respond_by")
    @classmethod
    def require_timezone(cls, v: datetime | None) -> datetime | None:
        if v is not None and v.tzinfo is None:
            raise ValueError("respond_by must include a timezone offset")
        return v


class OfferMessageUpdate(BaseModel):
    message: str = Field(min_length=1, max_length=2000)

    @field_validator("message")
    @classmethod
    def strip_message(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("message cannot be empty or whitespace")
        return v


class OfferResponse(BaseModel):
    id: UUID
    sender_id: UUID
    receiver_id: UUID
    flag_id: UUID
    message: str
    status: OfferStatus
    sent_at: datetime
    respond_by: datetime | None

    @classmethod
    def from_offer(cls, offer: Offer) -> "OfferResponse":
        return cls(
            id=offer.id,
            sender_id=offer.sender_id,
            receiver_id=offer.receiver_id,
            flag_id=offer.flag_id,
            message=offer.message,
            status=offer.status,
            sent_at=offer.sent_at,
            respond_by=offer.respond_by,
        )


class MatchResponse(BaseModel):
    id: UUID
    offer_id: UUID
    user_a_id: UUID
    user_b_id: UUID
    flag_id: UUID
    status: MatchStatus


class AcceptResponse(BaseModel):
    """Accept outcome — already_accepted marks an idempotent repeat."""
    match: MatchResponse
    conversation_id: UUID | None
    already_accepted: bool

    @classmethod
    def from_result(cls, result: AcceptResult) -> "AcceptResponse":
        m = result.match
        return cls(
            match=MatchResponse(
                id=m.id, offer_id=m.offer_id, user_a_id=m.user_a_id,
                user_b_id=m.user_b_id, flag_id=m.flag_id, status=m.status,
            ),
            conversation_id=result.conversation_id,
            already_accepted=result.already_accepted,
        )
