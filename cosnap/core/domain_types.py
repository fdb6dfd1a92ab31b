"""Domain Types — identities, closed enums and records for flags, offers and matches.

Invariants:
    - UserId, FlagId, OfferId, MatchId, ConversationId wrap UUIDs
    - Every status column is a closed str Enum — no raw string matching
    - Flag never carries a true coordinate: only display_latitude/display_longitude
    - Records are frozen; lifecycles produce new records via dataclasses.replace

Design Decisions:
    - NewType over wrapper classes: zero runtime cost, type-checker support
    - str Enums: serialize to JSON and to VARCHAR columns without custom encoders
    - FlagInput/FlagPatch are explicit per-operation inputs (no loose dict payloads)
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import NewType
from uuid import UUID


# ─── Identity Types ──────────────────────────────────────────────

UserId = NewType("UserId", UUID)
FlagId = NewType("FlagId", UUID)
OfferId = NewType("OfferId", UUID)
MatchId = NewType("MatchId", UUID)
ConversationId = NewType("ConversationId", UUID)


# ─── Enums ───────────────────────────────────────────────────────

class PlanTier(str, Enum):
    """Subscription level of a user — governs quotas and exposure."""
    FREE = "free"
    PREMIUM = "premium"
    ADMIN = "admin"


class FlagType(str, Enum):
    """Flag sub-type — selects the maximum duration override."""
    TRAVEL = "travel"
    SERVICE_OFFER = "service_offer"


class VisibilityStatus(str, Enum):
    ACTIVE = "active"
    HIDDEN = "hidden"
    EXPIRED = "expired"


class ExposurePolicy(str, Enum):
    DEFAULT = "default"
    PREMIUM_PINNED = "premium_pinned"


class OfferStatus(str, Enum):
    """Offer states. PENDING is the only non-terminal state."""
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


class MatchStatus(str, Enum):
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    NO_SHOW = "no_show"
    CANCELLED = "cancelled"


class NotificationType(str, Enum):
    OFFER_RECEIVED = "offer_received"
    OFFER_ACCEPTED = "offer_accepted"
    OFFER_DECLINED = "offer_declined"
    OFFER_CANCELLED = "offer_cancelled"
    MATCH_SCHEDULED = "match_scheduled"
    MESSAGE_RECEIVED = "message_received"
    SYSTEM = "system"


class ReferenceType(str, Enum):
    OFFER = "offer"
    MATCH = "match"
    CONVERSATION = "conversation"


# ─── Records ─────────────────────────────────────────────────────

@dataclass(frozen=True)
class Flag:
    """A published travel flag. Coordinates are already privacy-displaced."""
    id: FlagId
    owner_id: UserId
    city: str
    country: str
    display_latitude: float
    display_longitude: float
    start_date: date
    end_date: date
    visibility_status: VisibilityStatus
    source_plan_type: PlanTier
    exposure_policy: ExposurePolicy
    created_at: datetime
    updated_at: datetime
    flag_type: FlagType = FlagType.TRAVEL
    note: str | None = None
    styles: list[str] = field(default_factory=list)
    languages: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class Offer:
    id: OfferId
    sender_id: UserId
    receiver_id: UserId
    flag_id: FlagId
    message: str
    status: OfferStatus
    sent_at: datetime
    created_at: datetime
    updated_at: datetime
    respond_by: datetime | None = None


@dataclass(frozen=True)
class Match:
    """Created exactly once, when its offer is accepted. user_a is the sender."""
    id: MatchId
    offer_id: OfferId
    user_a_id: UserId
    user_b_id: UserId
    flag_id: FlagId
    status: MatchStatus
    created_at: datetime
    updated_at: datetime


# ─── Operation Inputs ────────────────────────────────────────────

@dataclass(frozen=True)
class FlagInput:
    """Validated input for FlagLifecycle.create. Coordinates are the TRUE location."""
    city: str
    country: str
    start_date: date
    end_date: date
    latitude: float | None = None
    longitude: float | None = None
    flag_type: FlagType = FlagType.TRAVEL
    note: str | None = None
    styles: list[str] = field(default_factory=list)
    languages: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class FlagPatch:
    """Partial update for FlagLifecycle.update — None means "leave unchanged"."""
    city: str | None = None
    country: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    latitude: float | None = None
    longitude: float | None = None
    flag_type: FlagType | None = None
    note: str | None = None
    styles: list[str] | None = None
    languages: list[str] | None = None

    @property
    def has_coordinate(self) -> bool:
        return self.latitude is not None or self.longitude is not None
