"""Plan Policy — the only place quota, duration and exposure numbers live.

Invariants:
    - free: 1 active flag, premium: 5, admin: unlimited (UNLIMITED = None)
    - Default maximum flag duration is 3 days for every tier
    - FLAG_TYPE_DURATION_OVERRIDES wins over the tier default
    - exposure: free -> default, premium/admin -> premium_pinned
    - Pure lookups: tier is passed in, never fetched

Design Decisions:
    - Tables as module-level dicts: one diff to change pricing rules
    - Admin flags are stored with source plan "premium" (the column admits free|premium)
"""

from cosnap.core.domain_types import ExposurePolicy, FlagType, PlanTier
from cosnap.core.errors import ValidationError


UNLIMITED = None

ACTIVE_FLAG_QUOTA: dict[PlanTier, int | None] = {
    PlanTier.FREE: 1,
    PlanTier.PREMIUM: 5,
    PlanTier.ADMIN: UNLIMITED,
}

DEFAULT_MAX_DURATION_DAYS: dict[PlanTier, int] = {
    PlanTier.FREE: 3,
    PlanTier.PREMIUM: 3,
    PlanTier.ADMIN: 3,
}

# Per-flag-type override, applied to every tier
FLAG_TYPE_DURATION_OVERRIDES: dict[FlagType, int] = {
    FlagType.SERVICE_OFFER: 7,
}

EXPOSURE_POLICY: dict[PlanTier, ExposurePolicy] = {
    PlanTier.FREE: ExposurePolicy.DEFAULT,
    PlanTier.PREMIUM: ExposurePolicy.PREMIUM_PINNED,
    PlanTier.ADMIN: ExposurePolicy.PREMIUM_PINNED,
}


def coerce_tier(value: str | PlanTier) -> PlanTier:
    """Parse a stored/raw tier string, rejecting unknown values."""
    try:
        return PlanTier(value)
    except ValueError:
        raise ValidationError(
            f"Unknown plan tier: {value!r}", "plan_tier",
        ) from None


def active_flag_quota(tier: PlanTier) -> int | None:
    """Maximum number of active flags, or UNLIMITED (None)."""
    return ACTIVE_FLAG_QUOTA[coerce_tier(tier)]


def is_within_quota(tier: PlanTier, active_count: int) -> bool:
    """True if one more active flag fits under the tier's quota."""
    quota = active_flag_quota(tier)
    return quota is UNLIMITED or active_count < quota


def max_flag_duration_days(
    tier: PlanTier, flag_type: FlagType = FlagType.TRAVEL,
) -> int:
    override = FLAG_TYPE_DURATION_OVERRIDES.get(FlagType(flag_type))
    if override is not None:
        return override
    return DEFAULT_MAX_DURATION_DAYS[coerce_tier(tier)]


def exposure_policy_for(tier: PlanTier) -> ExposurePolicy:
    return EXPOSURE_POLICY[coerce_tier(tier)]


def source_plan_for(tier: PlanTier) -> PlanTier:
    """Plan recorded on a new flag — frozen at creation."""
    if coerce_tier(tier) is PlanTier.FREE:
        return PlanTier.FREE
    return PlanTier.PREMIUM
