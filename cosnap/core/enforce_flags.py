"""Flag Rule Enforcement — validates date ranges, durations and locations before any write.

Invariants:
    - All functions are PURE: no IO, no async, no DB, no side effects
    - check_* return a ValidationError on violation, None on success (caller raises)
    - validate_flag_dates chains all date checks — first error wins
    - Start date may be today; end date must be strictly after start date
    - Duration is (end_date - start_date).days, compared against PlanPolicy
    - A flag past its end_date is effectively expired whatever its stored status

Design Decisions:
    - Return errors instead of raising: checks compose with `or`, and tests assert
      on the returned object without pytest.raises boilerplate
    - "today" passed in explicitly: callers own the clock
"""

from datetime import date

from cosnap.core.domain_types import Flag, FlagType, PlanTier, VisibilityStatus
from cosnap.core.errors import LocationRequiredError, ValidationError
from cosnap.core.plan_policy import max_flag_duration_days


def check_start_not_past(start_date: date, today: date) -> ValidationError | None:
    if start_date < today:
        return ValidationError(
            "Start date must be today or later.", "start_date",
        )
    return None


def check_date_order(start_date: date, end_date: date) -> ValidationError | None:
    if end_date <= start_date:
        return ValidationError(
            "End date must be after the start date.", "end_date",
        )
    return None


def check_duration(
    start_date: date,
    end_date: date,
    tier: PlanTier,
    flag_type: FlagType = FlagType.TRAVEL,
) -> ValidationError | None:
    max_days = max_flag_duration_days(tier, flag_type)
    days = (end_date - start_date).days
    if days > max_days:
        return ValidationError(
            f"Flag duration of {days} days exceeds the {max_days}-day maximum.",
            "end_date",
        )
    return None


def check_location(
    latitude: float | None, longitude: float | None,
) -> ValidationError | None:
    """Both coordinates are required; a half coordinate is malformed."""
    if latitude is None and longitude is None:
        return LocationRequiredError()
    if latitude is None or longitude is None:
        return ValidationError(
            "Latitude and longitude must be supplied together.", "location",
        )
    if not -90.0 <= latitude <= 90.0:
        return ValidationError("Latitude must be within [-90, 90].", "latitude")
    if not -180.0 <= longitude <= 180.0:
        return ValidationError("Longitude must be within [-180, 180].", "longitude")
    return None


def validate_flag_dates(
    start_date: date,
    end_date: date,
    tier: PlanTier,
    flag_type: FlagType,
    today: date | None = None,
) -> ValidationError | None:
    """Chain all date checks. today=None skips the not-in-the-past rule (updates)."""
    return (
        (check_start_not_past(start_date, today) if today is not None else None)
        or check_date_order(start_date, end_date)
        or check_duration(start_date, end_date, tier, flag_type)
    )


def effective_visibility(flag: Flag, today: date) -> VisibilityStatus:
    """Derived status: stored value, except past-end flags read as expired."""
    if flag.end_date < today:
        return VisibilityStatus.EXPIRED
    return flag.visibility_status
