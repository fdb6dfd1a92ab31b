"""Flag Routes — verifies the HTTP surface over FlagLifecycle with a SQLite backend.

Invariants:
    - Caller identity from X-User-Id; missing/malformed -> 401
    - Domain errors arrive in the {"error": {...}} envelope with their HTTP status
    - Responses expose only displaced coordinates
    - Flags past their end date read as expired, whatever the stored status
"""

from datetime import timedelta
from uuid import UUID, uuid4

from sqlalchemy import update

import cosnap.infrastructure.database as db_module
from cosnap.core.geo_privacy import haversine_km
from cosnap.models.flag import FlagRow
from cosnap.services.lifecycle_support import utc_today

from tests.services.fakes import caller

SEOUL = (37.5665, 126.9780)


def _flag_body(**overrides) -> dict:
    start = utc_today() + timedelta(days=7)
    body = {
        "city": "Seoul",
        "country": "KR",
        "start_date": start.isoformat(),
        "end_date": (start + timedelta(days=2)).isoformat(),
        "latitude": SEOUL[0],
        "longitude": SEOUL[1],
        "styles": ["street", "night"],
        "languages": ["ko", "en"],
    }
    body.update(overrides)
    return body


async def _create(client, user_id, **overrides):
    return await client.post(
        "/api/v1/flags", json=_flag_body(**overrides), headers=caller(user_id),
    )


# ─── health ──────────────────────────────────────────────────────

async def test_liveness(client):
    res = await client.get("/api/v1/health/")
    assert res.status_code == 200
    assert res.json() == {
        "status": "healthy", "service": "CoSnap Lifecycle API", "version": "1.0.0",
    }


async def test_readiness_uses_database(client):
    res = await client.get("/api/v1/health/ready")
    assert res.status_code == 200
    assert res.json()["checks"]["database"] == "healthy"


async def test_readiness_is_503_without_database(client, monkeypatch):
    monkeypatch.setattr(db_module, "db_manager", None)
    res = await client.get("/api/v1/health/ready")
    assert res.status_code == 503
    assert res.json()["checks"] == {"database": "unavailable"}


# ─── identity ────────────────────────────────────────────────────

async def test_missing_caller_is_401(client, profiles):
    res = await client.post("/api/v1/flags", json=_flag_body())
    assert res.status_code == 401
    assert res.json()["detail"]["error"]["code"] == "UNAUTHENTICATED"


async def test_malformed_caller_is_401(client, profiles):
    res = await client.post(
        "/api/v1/flags", json=_flag_body(), headers={"X-User-Id": "not-a-uuid"},
    )
    assert res.status_code == 401


async def test_unknown_profile_is_404(client, profiles):
    res = await _create(client, uuid4())
    assert res.status_code == 404
    assert res.json()["error"]["code"] == "RESOURCE_NOT_FOUND"


# ─── create ──────────────────────────────────────────────────────

async def test_create_flag_returns_displaced_location(client, profiles):
    res = await _create(client, profiles["alice"])

    assert res.status_code == 201
    data = res.json()
    assert data["visibility_status"] == "active"
    assert data["source_plan_type"] == "free"
    assert data["exposure_policy"] == "default"
    assert data["styles"] == ["street", "night"]
    distance = haversine_km(*SEOUL, data["latitude"], data["longitude"])
    assert 0 < distance <= 5.0 * 1.01


async def test_second_free_flag_is_403_with_quota_details(client, profiles):
    await _create(client, profiles["alice"])
    res = await _create(client, profiles["alice"])

    assert res.status_code == 403
    error = res.json()["error"]
    assert error["code"] == "QUOTA_EXCEEDED"
    assert error["details"] == {"tier": "free", "limit": 1, "active_count": 1}


async def test_premium_gets_pinned_exposure(client, profiles):
    res = await _create(client, profiles["paula"])
    assert res.json()["exposure_policy"] == "premium_pinned"
    assert res.json()["source_plan_type"] == "premium"


async def test_missing_location_is_400(client, profiles):
    res = await _create(client, profiles["alice"], latitude=None, longitude=None)
    assert res.status_code == 400
    assert res.json()["error"]["code"] == "LOCATION_REQUIRED"


async def test_too_long_flag_is_400(client, profiles):
    start = utc_today() + timedelta(days=1)
    res = await _create(
        client, profiles["alice"],
        start_date=start.isoformat(),
        end_date=(start + timedelta(days=4)).isoformat(),
    )
    assert res.status_code == 400
    assert res.json()["error"]["details"] == {"field": "end_date"}


async def test_past_start_is_400(client, profiles):
    yesterday = utc_today() - timedelta(days=1)
    res = await _create(
        client, profiles["alice"],
        start_date=yesterday.isoformat(),
        end_date=(yesterday + timedelta(days=2)).isoformat(),
    )
    assert res.status_code == 400
    assert res.json()["error"]["details"] == {"field": "start_date"}


async def test_schema_violation_is_400_with_field_details(client, profiles):
    res = await _create(client, profiles["alice"], city="   ", latitude=123.0)
    assert res.status_code == 400
    error = res.json()["error"]
    assert error["code"] == "VALIDATION_ERROR"
    fields = {d["field"] for d in error["details"]}
    assert "body.city" in fields
    assert "body.latitude" in fields


# ─── update / visibility / delete ────────────────────────────────

async def test_owner_updates_note(client, profiles):
    flag = (await _create(client, profiles["alice"])).json()
    res = await client.patch(
        f"/api/v1/flags/{flag['id']}",
        json={"note": "Cherry blossoms"},
        headers=caller(profiles["alice"]),
    )
    assert res.status_code == 200
    assert res.json()["note"] == "Cherry blossoms"
    assert res.json()["latitude"] == flag["latitude"]


async def test_blank_city_update_is_400(client, profiles):
    flag = (await _create(client, profiles["alice"])).json()
    res = await client.patch(
        f"/api/v1/flags/{flag['id']}",
        json={"city": "   "},
        headers=caller(profiles["alice"]),
    )
    assert res.status_code == 400
    assert {d["field"] for d in res.json()["error"]["details"]} == {"body.city"}


async def test_lapsed_flag_reads_as_expired(client, profiles, test_db):
    flag = (await _create(client, profiles["alice"])).json()
    yesterday = utc_today() - timedelta(days=1)
    await test_db.execute(
        update(FlagRow)
        .where(FlagRow.id == UUID(flag["id"]))
        .values(start_date=yesterday - timedelta(days=2), end_date=yesterday),
    )
    await test_db.commit()

    res = await client.patch(
        f"/api/v1/flags/{flag['id']}",
        json={"note": "rainy week"},
        headers=caller(profiles["alice"]),
    )

    assert res.status_code == 200
    assert res.json()["visibility_status"] == "expired"


async def test_foreign_update_is_404(client, profiles):
    flag = (await _create(client, profiles["alice"])).json()
    res = await client.patch(
        f"/api/v1/flags/{flag['id']}",
        json={"note": "mine now"},
        headers=caller(profiles["bob"]),
    )
    assert res.status_code == 404


async def test_half_coordinate_update_is_400(client, profiles):
    flag = (await _create(client, profiles["alice"])).json()
    res = await client.patch(
        f"/api/v1/flags/{flag['id']}",
        json={"latitude": 35.0},
        headers=caller(profiles["alice"]),
    )
    assert res.status_code == 400


async def test_hide_frees_the_free_slot(client, profiles):
    alice = profiles["alice"]
    flag = (await _create(client, alice)).json()

    res = await client.post(
        f"/api/v1/flags/{flag['id']}/visibility",
        json={"visibility_status": "hidden"},
        headers=caller(alice),
    )
    assert res.status_code == 200
    assert res.json()["visibility_status"] == "hidden"

    assert (await _create(client, alice)).status_code == 201

    res = await client.post(
        f"/api/v1/flags/{flag['id']}/visibility",
        json={"visibility_status": "active"},
        headers=caller(alice),
    )
    assert res.status_code == 403


async def test_delete_then_delete_again(client, profiles):
    alice = profiles["alice"]
    flag = (await _create(client, alice)).json()

    res = await client.delete(f"/api/v1/flags/{flag['id']}", headers=caller(alice))
    assert res.status_code == 204

    res = await client.delete(f"/api/v1/flags/{flag['id']}", headers=caller(alice))
    assert res.status_code == 404
