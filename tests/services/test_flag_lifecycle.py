"""Flag Lifecycle — verifies create/update/visibility/delete against in-memory stores.

Invariants:
    - Active flags per owner never exceed the tier quota, even under concurrent creates
    - Displayed coordinates lie within the privacy radius of the true location
    - Rejected calls write nothing and never commit
    - Flags past their end date neither count against the quota nor re-activate
"""

import asyncio
import random
from datetime import date

import pytest

from cosnap.core.domain_types import (
    ExposurePolicy,
    FlagInput,
    FlagPatch,
    FlagType,
    PlanTier,
    UserId,
    VisibilityStatus,
)
from cosnap.core.errors import (
    LocationRequiredError,
    NotFoundError,
    QuotaExceededError,
    ValidationError,
)
from cosnap.core.geo_privacy import haversine_km
from cosnap.services.flag_lifecycle import FlagLifecycle

from tests.services.fakes import NOW, TODAY, FakeProfileStore

SEOUL = (37.5665, 126.9780)
BUSAN = (35.1796, 129.0756)


def _lifecycle(flag_store, uow, today=TODAY) -> FlagLifecycle:
    return FlagLifecycle(
        flag_store, uow,
        radius_km=5.0,
        rng=random.Random(0),
        today=lambda: today,
        now=lambda: NOW,
    )


def _seoul(start=date(2024, 3, 1), end=date(2024, 3, 3), **kw) -> FlagInput:
    return FlagInput(
        city="Seoul", country="KR",
        start_date=start, end_date=end,
        latitude=SEOUL[0], longitude=SEOUL[1],
        **kw,
    )


@pytest.fixture
def owner():
    return FakeProfileStore().add(PlanTier.FREE)


# ─── create ──────────────────────────────────────────────────────

async def test_create_free_flag_is_active_and_displaced(flag_store, uow, owner):
    flag = await _lifecycle(flag_store, uow).create(owner, PlanTier.FREE, _seoul())

    assert flag.visibility_status is VisibilityStatus.ACTIVE
    assert flag.source_plan_type is PlanTier.FREE
    assert flag.exposure_policy is ExposurePolicy.DEFAULT
    distance = haversine_km(*SEOUL, flag.display_latitude, flag.display_longitude)
    assert 0 < distance <= 5.0 * 1.01
    assert flag_store.flags[flag.id] == flag
    assert uow.commits == 1


async def test_second_free_flag_exceeds_quota(flag_store, uow, owner):
    lifecycle = _lifecycle(flag_store, uow)
    await lifecycle.create(owner, PlanTier.FREE, _seoul())

    with pytest.raises(QuotaExceededError) as exc:
        await lifecycle.create(owner, PlanTier.FREE, _seoul())

    assert exc.value.details() == {"tier": "free", "limit": 1, "active_count": 1}
    assert len(flag_store.flags) == 1
    assert uow.commits == 1


async def test_premium_quota_is_five(flag_store, uow, owner):
    lifecycle = _lifecycle(flag_store, uow)
    for _ in range(5):
        await lifecycle.create(owner, PlanTier.PREMIUM, _seoul())
    with pytest.raises(QuotaExceededError):
        await lifecycle.create(owner, PlanTier.PREMIUM, _seoul())
    assert len(flag_store.flags) == 5


async def test_admin_is_unlimited_and_stored_as_premium(flag_store, uow, owner):
    lifecycle = _lifecycle(flag_store, uow)
    flags = [await lifecycle.create(owner, PlanTier.ADMIN, _seoul()) for _ in range(8)]
    assert len(flag_store.flags) == 8
    assert all(f.source_plan_type is PlanTier.PREMIUM for f in flags)
    assert all(f.exposure_policy is ExposurePolicy.PREMIUM_PINNED for f in flags)


async def test_quota_counts_only_one_owner(flag_store, uow, owner):
    lifecycle = _lifecycle(flag_store, uow)
    other = UserId(FakeProfileStore().add())
    await lifecycle.create(owner, PlanTier.FREE, _seoul())
    await lifecycle.create(other, PlanTier.FREE, _seoul())
    assert len(flag_store.flags) == 2


async def test_flag_past_end_date_frees_the_slot(flag_store, uow, owner):
    january = _lifecycle(flag_store, uow, today=date(2024, 1, 1))
    await january.create(
        owner, PlanTier.FREE, _seoul(date(2024, 1, 1), date(2024, 1, 3)),
    )

    flag = await _lifecycle(flag_store, uow).create(owner, PlanTier.FREE, _seoul())
    assert flag.visibility_status is VisibilityStatus.ACTIVE
    assert len(flag_store.flags) == 2


async def test_concurrent_creates_share_one_free_slot(flag_store, uow, owner):
    lifecycle = _lifecycle(flag_store, uow)
    results = await asyncio.gather(
        lifecycle.create(owner, PlanTier.FREE, _seoul()),
        lifecycle.create(owner, PlanTier.FREE, _seoul()),
        return_exceptions=True,
    )
    errors = [r for r in results if isinstance(r, QuotaExceededError)]
    assert len(errors) == 1
    assert len(flag_store.flags) == 1
    assert uow.rollbacks == 1


async def test_start_today_is_accepted(flag_store, uow, owner):
    flag = await _lifecycle(flag_store, uow).create(
        owner, PlanTier.FREE, _seoul(TODAY, date(2024, 2, 3)),
    )
    assert flag.start_date == TODAY


@pytest.mark.parametrize("start,end,field", [
    (date(2024, 1, 31), date(2024, 2, 2), "start_date"),
    (date(2024, 3, 3), date(2024, 3, 3), "end_date"),
    (date(2024, 3, 3), date(2024, 3, 1), "end_date"),
    (date(2024, 3, 1), date(2024, 3, 5), "end_date"),
])
async def test_invalid_dates_write_nothing(flag_store, uow, owner, start, end, field):
    with pytest.raises(ValidationError) as exc:
        await _lifecycle(flag_store, uow).create(
            owner, PlanTier.FREE, _seoul(start, end),
        )
    assert exc.value.field == field
    assert flag_store.flags == {}
    assert uow.commits == 0


async def test_service_offer_may_run_seven_days(flag_store, uow, owner):
    flag = await _lifecycle(flag_store, uow).create(
        owner, PlanTier.FREE,
        _seoul(date(2024, 3, 1), date(2024, 3, 8), flag_type=FlagType.SERVICE_OFFER),
    )
    assert flag.flag_type is FlagType.SERVICE_OFFER


async def test_missing_location_is_rejected(flag_store, uow, owner):
    data = FlagInput(
        city="Seoul", country="KR",
        start_date=date(2024, 3, 1), end_date=date(2024, 3, 3),
    )
    with pytest.raises(LocationRequiredError):
        await _lifecycle(flag_store, uow).create(owner, PlanTier.FREE, data)
    assert flag_store.flags == {}


async def test_unknown_tier_is_rejected(flag_store, uow, owner):
    with pytest.raises(ValidationError):
        await _lifecycle(flag_store, uow).create(owner, "gold", _seoul())


# ─── update ──────────────────────────────────────────────────────

async def test_update_plain_fields(flag_store, uow, owner):
    lifecycle = _lifecycle(flag_store, uow)
    flag = await lifecycle.create(owner, PlanTier.FREE, _seoul())

    updated = await lifecycle.update(
        flag.id, owner, PlanTier.FREE,
        FlagPatch(note="Hanbok shoot", styles=["portrait"]),
    )

    assert updated.note == "Hanbok shoot"
    assert updated.styles == ["portrait"]
    assert updated.display_latitude == flag.display_latitude


async def test_update_coordinate_is_redisplaced(flag_store, uow, owner):
    lifecycle = _lifecycle(flag_store, uow)
    flag = await lifecycle.create(owner, PlanTier.FREE, _seoul())

    updated = await lifecycle.update(
        flag.id, owner, PlanTier.FREE,
        FlagPatch(city="Busan", latitude=BUSAN[0], longitude=BUSAN[1]),
    )

    distance = haversine_km(*BUSAN, updated.display_latitude, updated.display_longitude)
    assert 0 < distance <= 5.0 * 1.01
    assert updated.city == "Busan"


async def test_update_half_coordinate_rejected(flag_store, uow, owner):
    lifecycle = _lifecycle(flag_store, uow)
    flag = await lifecycle.create(owner, PlanTier.FREE, _seoul())
    with pytest.raises(ValidationError):
        await lifecycle.update(flag.id, owner, PlanTier.FREE, FlagPatch(latitude=10.0))


async def test_update_end_date_checked_against_stored_start(flag_store, uow, owner):
    lifecycle = _lifecycle(flag_store, uow)
    flag = await lifecycle.create(owner, PlanTier.FREE, _seoul())
    with pytest.raises(ValidationError):
        await lifecycle.update(
            flag.id, owner, PlanTier.FREE, FlagPatch(end_date=date(2024, 3, 10)),
        )
    assert flag_store.flags[flag.id].end_date == date(2024, 3, 3)


async def test_update_keeps_started_flag_editable(flag_store, uow, owner):
    started = _lifecycle(flag_store, uow, today=date(2024, 1, 30))
    flag = await started.create(
        owner, PlanTier.FREE, _seoul(date(2024, 1, 30), date(2024, 2, 1)),
    )

    updated = await _lifecycle(flag_store, uow).update(
        flag.id, owner, PlanTier.FREE, FlagPatch(end_date=date(2024, 2, 2)),
    )
    assert updated.end_date == date(2024, 2, 2)


async def test_update_cannot_revive_lapsed_flag_past_quota(flag_store, uow, owner):
    january = _lifecycle(flag_store, uow, today=date(2024, 1, 1))
    old = await january.create(
        owner, PlanTier.FREE, _seoul(date(2024, 1, 1), date(2024, 1, 3)),
    )
    lifecycle = _lifecycle(flag_store, uow)
    await lifecycle.create(owner, PlanTier.FREE, _seoul())

    with pytest.raises(QuotaExceededError) as exc:
        await lifecycle.update(
            old.id, owner, PlanTier.FREE,
            FlagPatch(start_date=date(2024, 3, 5), end_date=date(2024, 3, 7)),
        )

    assert exc.value.details() == {"tier": "free", "limit": 1, "active_count": 1}
    assert flag_store.flags[old.id].end_date == date(2024, 1, 3)
    assert await flag_store.count_active(owner, as_of=TODAY) == 1


async def test_update_revives_lapsed_flag_when_a_slot_is_free(flag_store, uow, owner):
    january = _lifecycle(flag_store, uow, today=date(2024, 1, 1))
    old = await january.create(
        owner, PlanTier.FREE, _seoul(date(2024, 1, 1), date(2024, 1, 3)),
    )

    revived = await _lifecycle(flag_store, uow).update(
        old.id, owner, PlanTier.FREE,
        FlagPatch(start_date=date(2024, 3, 5), end_date=date(2024, 3, 7)),
    )

    assert revived.end_date == date(2024, 3, 7)
    assert revived.visibility_status is VisibilityStatus.ACTIVE
    assert await flag_store.count_active(owner, as_of=TODAY) == 1


async def test_update_of_lapsed_flag_that_stays_past_skips_quota(flag_store, uow, owner):
    january = _lifecycle(flag_store, uow, today=date(2024, 1, 1))
    old = await january.create(
        owner, PlanTier.FREE, _seoul(date(2024, 1, 1), date(2024, 1, 3)),
    )
    lifecycle = _lifecycle(flag_store, uow)
    await lifecycle.create(owner, PlanTier.FREE, _seoul())

    updated = await lifecycle.update(old.id, owner, PlanTier.FREE, FlagPatch(note="archive"))
    assert updated.note == "archive"


async def test_update_foreign_flag_is_not_found(flag_store, uow, owner):
    lifecycle = _lifecycle(flag_store, uow)
    flag = await lifecycle.create(owner, PlanTier.FREE, _seoul())
    stranger = FakeProfileStore().add()
    with pytest.raises(NotFoundError):
        await lifecycle.update(flag.id, stranger, PlanTier.FREE, FlagPatch(note="x"))
    assert flag_store.flags[flag.id].note is None


async def test_empty_patch_is_a_no_op(flag_store, uow, owner):
    lifecycle = _lifecycle(flag_store, uow)
    flag = await lifecycle.create(owner, PlanTier.FREE, _seoul())
    assert await lifecycle.update(flag.id, owner, PlanTier.FREE, FlagPatch()) == flag
    assert uow.commits == 1


# ─── visibility ──────────────────────────────────────────────────

async def test_hide_then_reactivate(flag_store, uow, owner):
    lifecycle = _lifecycle(flag_store, uow)
    flag = await lifecycle.create(owner, PlanTier.FREE, _seoul())

    hidden = await lifecycle.set_visibility(
        flag.id, owner, PlanTier.FREE, VisibilityStatus.HIDDEN,
    )
    assert hidden.visibility_status is VisibilityStatus.HIDDEN

    active = await lifecycle.set_visibility(
        flag.id, owner, PlanTier.FREE, VisibilityStatus.ACTIVE,
    )
    assert active.visibility_status is VisibilityStatus.ACTIVE


async def test_reactivation_respects_quota(flag_store, uow, owner):
    lifecycle = _lifecycle(flag_store, uow)
    first = await lifecycle.create(owner, PlanTier.FREE, _seoul())
    await lifecycle.set_visibility(first.id, owner, PlanTier.FREE, "hidden")
    await lifecycle.create(owner, PlanTier.FREE, _seoul())

    with pytest.raises(QuotaExceededError):
        await lifecycle.set_visibility(first.id, owner, PlanTier.FREE, "active")
    assert flag_store.flags[first.id].visibility_status is VisibilityStatus.HIDDEN


async def test_past_flag_cannot_be_reactivated(flag_store, uow, owner):
    january = _lifecycle(flag_store, uow, today=date(2024, 1, 1))
    flag = await january.create(
        owner, PlanTier.FREE, _seoul(date(2024, 1, 1), date(2024, 1, 3)),
    )
    await january.set_visibility(flag.id, owner, PlanTier.FREE, "hidden")

    with pytest.raises(ValidationError):
        await _lifecycle(flag_store, uow).set_visibility(
            flag.id, owner, PlanTier.FREE, VisibilityStatus.ACTIVE,
        )


async def test_downgrade_keeps_existing_flags(flag_store, uow, owner):
    lifecycle = _lifecycle(flag_store, uow)
    for _ in range(3):
        await lifecycle.create(owner, PlanTier.PREMIUM, _seoul())

    with pytest.raises(QuotaExceededError):
        await lifecycle.create(owner, PlanTier.FREE, _seoul())
    assert len(flag_store.flags) == 3


# ─── delete ──────────────────────────────────────────────────────

async def test_owner_deletes_flag(flag_store, uow, owner):
    lifecycle = _lifecycle(flag_store, uow)
    flag = await lifecycle.create(owner, PlanTier.FREE, _seoul())
    await lifecycle.delete(flag.id, owner)
    assert flag_store.flags == {}


async def test_delete_foreign_or_missing_flag_is_not_found(flag_store, uow, owner):
    lifecycle = _lifecycle(flag_store, uow)
    flag = await lifecycle.create(owner, PlanTier.FREE, _seoul())
    stranger = FakeProfileStore().add()

    with pytest.raises(NotFoundError):
        await lifecycle.delete(flag.id, stranger)
    assert flag.id in flag_store.flags
    assert uow.rollbacks == 1

    await lifecycle.delete(flag.id, owner)
    with pytest.raises(NotFoundError):
        await lifecycle.delete(flag.id, owner)
