"""Flag Lifecycle — creates, updates, hides and deletes flags under plan quotas and geo privacy.

Invariants:
    - All validation runs before any write; a rejected call writes nothing
    - Active flag count never exceeds the quota of the caller's CURRENT tier at
      creation, re-activation, or when an update moves a lapsed active flag back
      into the future (pre-check here, authoritative re-check in the store)
    - True coordinates are displaced before they reach the store, on every change
    - Ownership is enforced by the store's compound WHERE; foreign flags read as NotFound
    - source_plan_type and exposure_policy are frozen at creation

Design Decisions:
    - Tier injected per call (looked up by the caller): lifecycle stays testable
      without a profile store
    - Re-displacement on coordinate change instead of nudging the previous point:
      successive displacements around the old point would leak the true location
    - Downgrades never delete existing flags; quota only gates new activations
"""

import logging
import uuid
from datetime import date, datetime
from typing import Any, Callable

from cosnap.core.domain_types import (
    Flag,
    FlagId,
    FlagInput,
    FlagPatch,
    PlanTier,
    UserId,
    VisibilityStatus,
)
from cosnap.core.enforce_flags import (
    check_location,
    effective_visibility,
    validate_flag_dates,
)
from cosnap.core.errors import NotFoundError, QuotaExceededError, ValidationError
from cosnap.core.geo_privacy import DEFAULT_RADIUS_KM, RandomSource, displace
from cosnap.core.plan_policy import (
    UNLIMITED,
    active_flag_quota,
    coerce_tier,
    exposure_policy_for,
    source_plan_for,
)
from cosnap.core.repository_protocols import FlagStore, UnitOfWork
from cosnap.services.lifecycle_support import transaction, utc_now, utc_today

logger = logging.getLogger(__name__)

_PLAIN_PATCH_FIELDS = ("city", "country", "note", "styles", "languages", "flag_type")


class FlagLifecycle:
    """Orchestrates flag writes: PlanPolicy + GeoPrivacy in-process, FlagStore for IO."""

    def __init__(
        self,
        flags: FlagStore,
        uow: UnitOfWork,
        *,
        radius_km: float = DEFAULT_RADIUS_KM,
        rng: RandomSource | None = None,
        today: Callable[[], date] = utc_today,
        now: Callable[[], datetime] = utc_now,
    ):
        self.flags = flags
        self.uow = uow
        self.radius_km = radius_km
        self.rng = rng
        self._today = today
        self._now = now

    async def create(
        self, owner_id: UserId, tier: PlanTier, data: FlagInput,
    ) -> Flag:
        """Publish a new active flag for owner_id."""
        tier = coerce_tier(tier)
        today = self._today()
        error = (
            validate_flag_dates(
                data.start_date, data.end_date, tier, data.flag_type, today,
            )
            or check_location(data.latitude, data.longitude)
        )
        if error:
            raise error

        quota = active_flag_quota(tier)
        await self._check_quota(owner_id, tier, quota, today)

        display_lat, display_lng = self._displace(data.latitude, data.longitude)
        now = self._now()
        flag = Flag(
            id=FlagId(uuid.uuid4()),
            owner_id=owner_id,
            city=data.city,
            country=data.country,
            display_latitude=display_lat,
            display_longitude=display_lng,
            start_date=data.start_date,
            end_date=data.end_date,
            visibility_status=VisibilityStatus.ACTIVE,
            source_plan_type=source_plan_for(tier),
            exposure_policy=exposure_policy_for(tier),
            created_at=now,
            updated_at=now,
            flag_type=data.flag_type,
            note=data.note,
            styles=list(data.styles),
            languages=list(data.languages),
        )
        async with transaction(self.uow):
            saved = await self.flags.insert(flag, quota=quota, as_of=today)

        logger.info(
            f"Flag created in {saved.city}",
            extra={"flag_id": str(saved.id), "user_id": str(owner_id)},
        )
        return saved

    async def update(
        self,
        flag_id: FlagId,
        owner_id: UserId,
        tier: PlanTier,
        patch: FlagPatch,
    ) -> Flag:
        """Apply a partial update; dates re-validated, coordinates re-displaced."""
        tier = coerce_tier(tier)
        today = self._today()
        current = await self.flags.get_owned(flag_id, owner_id)
        if current is None:
            raise NotFoundError("Flag", str(flag_id))

        changes: dict[str, Any] = {
            name: getattr(patch, name)
            for name in _PLAIN_PATCH_FIELDS
            if getattr(patch, name) is not None
        }

        if (
            patch.start_date is not None
            or patch.end_date is not None
            or patch.flag_type is not None
        ):
            start = patch.start_date or current.start_date
            end = patch.end_date or current.end_date
            # A moved start date must not land in the past; an untouched one may
            error = validate_flag_dates(
                start, end, tier, patch.flag_type or current.flag_type,
                today if patch.start_date is not None else None,
            )
            if error:
                raise error
            if patch.start_date is not None:
                changes["start_date"] = patch.start_date
            if patch.end_date is not None:
                changes["end_date"] = patch.end_date

        if patch.has_coordinate:
            error = check_location(patch.latitude, patch.longitude)
            if error:
                raise error
            lat, lng = self._displace(patch.latitude, patch.longitude)
            changes["display_latitude"] = lat
            changes["display_longitude"] = lng

        if not changes:
            return current

        # A lapsed but still-active flag moved back into the future takes a slot again
        revives = (
            current.visibility_status is VisibilityStatus.ACTIVE
            and effective_visibility(current, today) is VisibilityStatus.EXPIRED
            and changes.get("end_date", current.end_date) >= today
        )
        quota = active_flag_quota(tier)
        if revives:
            await self._check_quota(owner_id, tier, quota, today, exclude_id=flag_id)

        changes["updated_at"] = self._now()
        async with transaction(self.uow):
            if revives:
                claimed = await self.flags.activate_owned(
                    flag_id, owner_id, tier=tier, quota=quota, as_of=today,
                )
                if claimed is None:
                    raise NotFoundError("Flag", str(flag_id))
            updated = await self.flags.update_owned(flag_id, owner_id, changes)
            if updated is None:
                raise NotFoundError("Flag", str(flag_id))

        logger.info(
            f"Flag updated: {sorted(changes)}",
            extra={"flag_id": str(flag_id), "user_id": str(owner_id)},
        )
        return updated

    async def set_visibility(
        self,
        flag_id: FlagId,
        owner_id: UserId,
        tier: PlanTier,
        visibility: VisibilityStatus,
    ) -> Flag:
        """Hide, expire or re-activate a flag. Re-activation consumes a quota slot."""
        tier = coerce_tier(tier)
        visibility = VisibilityStatus(visibility)
        today = self._today()

        current = await self.flags.get_owned(flag_id, owner_id)
        if current is None:
            raise NotFoundError("Flag", str(flag_id))

        if visibility is not VisibilityStatus.ACTIVE:
            if current.visibility_status is visibility:
                return current
            async with transaction(self.uow):
                updated = await self.flags.update_owned(
                    flag_id, owner_id,
                    {"visibility_status": visibility, "updated_at": self._now()},
                )
                if updated is None:
                    raise NotFoundError("Flag", str(flag_id))
            return updated

        if effective_visibility(current, today) is VisibilityStatus.ACTIVE:
            return current
        if current.end_date < today:
            raise ValidationError(
                "A flag whose end date has passed cannot be re-activated.",
                "visibility_status",
            )

        quota = active_flag_quota(tier)
        await self._check_quota(owner_id, tier, quota, today, exclude_id=flag_id)
        async with transaction(self.uow):
            updated = await self.flags.activate_owned(
                flag_id, owner_id, tier=tier, quota=quota, as_of=today,
            )
            if updated is None:
                raise NotFoundError("Flag", str(flag_id))

        logger.info(
            "Flag re-activated",
            extra={"flag_id": str(flag_id), "user_id": str(owner_id)},
        )
        return updated

    async def delete(self, flag_id: FlagId, owner_id: UserId) -> None:
        """Hard delete scoped to the owner. Dependent rows cascade in the database."""
        async with transaction(self.uow):
            deleted = await self.flags.delete_owned(flag_id, owner_id)
            if not deleted:
                raise NotFoundError("Flag", str(flag_id))
        logger.info(
            "Flag deleted",
            extra={"flag_id": str(flag_id), "user_id": str(owner_id)},
        )

    # ─── helpers ─────────────────────────────────────────────────

    async def _check_quota(
        self,
        owner_id: UserId,
        tier: PlanTier,
        quota: int | None,
        today: date,
        exclude_id: FlagId | None = None,
    ) -> None:
        if quota is UNLIMITED:
            return
        count = await self.flags.count_active(
            owner_id, as_of=today, exclude_id=exclude_id,
        )
        if count >= quota:
            logger.info(
                f"Flag quota reached ({count}/{quota})",
                extra={"user_id": str(owner_id), "error_code": "QUOTA_EXCEEDED"},
            )
            raise QuotaExceededError(tier.value, quota, count)

    def _displace(self, lat: float, lng: float) -> tuple[float, float]:
        return displace(lat, lng, self.radius_km, self.rng)
