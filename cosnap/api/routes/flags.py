"""Flag Routes — thin HTTP shell over FlagLifecycle.

Invariants:
    - Caller is always the owner: every route is scoped by X-User-Id
    - Plan tier read per request (downgrades take effect immediately)
    - Business errors propagate as CoSnapError to the global handler
    - visibility_status in responses is derived for today, not the stored value
"""

from uuid import UUID

from fastapi import APIRouter, Depends, status

from cosnap.api.dependencies import (
    get_caller_id,
    get_caller_tier,
    get_flag_lifecycle,
)
from cosnap.core.domain_types import FlagId, PlanTier, UserId
from cosnap.schemas.flag import (
    FlagCreate,
    FlagResponse,
    FlagUpdate,
    FlagVisibilityUpdate,
)
from cosnap.services.flag_lifecycle import FlagLifecycle
from cosnap.services.lifecycle_support import utc_today

router = APIRouter(prefix="/api/v1/flags", tags=["flags"])


@router.post(
    "", response_model=FlagResponse, status_code=status.HTTP_201_CREATED,
)
async def create_flag(
    body: FlagCreate,
    caller_id: UserId = Depends(get_caller_id),
    tier: PlanTier = Depends(get_caller_tier),
    lifecycle: FlagLifecycle = Depends(get_flag_lifecycle),
):
    """Publish a flag; 403 QUOTA_EXCEEDED when the plan's active slots are used."""
    flag = await lifecycle.create(caller_id, tier, body.to_input())
    return FlagResponse.from_flag(flag, utc_today())


@router.patch("/{flag_id}", response_model=FlagResponse)
async def update_flag(
    flag_id: UUID,
    body: FlagUpdate,
    caller_id: UserId = Depends(get_caller_id),
    tier: PlanTier = Depends(get_caller_tier),
    lifecycle: FlagLifecycle = Depends(get_flag_lifecycle),
):
    flag = await lifecycle.update(FlagId(flag_id), caller_id, tier, body.to_patch())
    return FlagResponse.from_flag(flag, utc_today())


@router.post("/{flag_id}/visibility", response_model=FlagResponse)
async def set_flag_visibility(
    flag_id: UUID,
    body: FlagVisibilityUpdate,
    caller_id: UserId = Depends(get_caller_id),
    tier: PlanTier = Depends(get_caller_tier),
    lifecycle: FlagLifecycle = Depends(get_flag_lifecycle),
):
    """Hide or re-activate a flag (re-activation counts against the quota)."""
    flag = await lifecycle.set_visibility(
        FlagId(flag_id), caller_id, tier, body.visibility_status,
    )
    return FlagResponse.from_flag(flag, utc_today())


@router.delete("/{flag_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_flag(
    flag_id: UUID,
    caller_id: UserId = Depends(get_caller_id),
    lifecycle: FlagLifecycle = Depends(get_flag_lifecycle),
):
    await lifecycle.delete(FlagId(flag_id), caller_id)
