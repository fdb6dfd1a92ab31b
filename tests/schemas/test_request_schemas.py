"""Request Schemas — verifies boundary validation of flag and offer payloads.

Tests:
    - Text fields are stripped; blank text rejected
    - Coordinates range-checked; FlagUpdate needs both coordinates or neither
    - Offer message length bounds; respond_by must carry a timezone
    - FlagUpdate.to_patch leaves omitted fields as None
"""

from datetime import date, datetime, timezone
from uuid import uuid4

import pytest
from pydantic import ValidationError

from cosnap.core.domain_types import FlagType
from cosnap.schemas.flag import FlagCreate, FlagUpdate
from cosnap.schemas.offer import OfferCreate, OfferMessageUpdate


def _flag(**overrides) -> dict:
    body = {
        "city": " Seoul ",
        "country": "KR",
        "start_date": date(2024, 3, 1),
        "end_date": date(2024, 3, 3),
        "latitude": 37.5665,
        "longitude": 126.9780,
    }
    body.update(overrides)
    return body


def test_flag_create_strips_and_converts():
    data = FlagCreate(**_flag()).to_input()
    assert data.city == "Seoul"
    assert data.flag_type is FlagType.TRAVEL
    assert data.styles == []


def test_flag_create_rejects_blank_city():
    with pytest.raises(ValidationError):
        FlagCreate(**_flag(city="   "))


@pytest.mark.parametrize("field,value", [("latitude", 90.5), ("longitude", -180.5)])
def test_flag_create_rejects_out_of_range(field, value):
    with pytest.raises(ValidationError):
        FlagCreate(**_flag(**{field: value}))


def test_flag_create_allows_missing_location():
    """Missing coordinates surface later as LOCATION_REQUIRED."""
    data = FlagCreate(**_flag(latitude=None, longitude=None)).to_input()
    assert data.latitude is None


def test_flag_update_requires_coordinate_pair():
    with pytest.raises(ValidationError):
        FlagUpdate(latitude=10.0)
    patch = FlagUpdate(latitude=10.0, longitude=20.0).to_patch()
    assert patch.has_coordinate


def test_flag_update_patch_leaves_omitted_fields_unset():
    patch = FlagUpdate(note="sunset").to_patch()
    assert patch.note == "sunset"
    assert patch.city is None
    assert patch.end_date is None
    assert not patch.has_coordinate


@pytest.mark.parametrize("field", ["city", "country"])
def test_flag_update_rejects_blank_text(field):
    with pytest.raises(ValidationError):
        FlagUpdate(**{field: "   "})


def test_flag_update_strips_text():
    assert FlagUpdate(city=" Busan ").to_patch().city == "Busan"


def test_offer_message_stripped_and_bounded():
    body = OfferCreate(receiver_id=uuid4(), flag_id=uuid4(), message="  hello  ")
    assert body.message == "hello"
    with pytest.raises(ValidationError):
        OfferCreate(receiver_id=uuid4(), flag_id=uuid4(), message="   ")
    with pytest.raises(ValidationError):
        OfferMessageUpdate(message="x" * 2001)


def test_offer_respond_by_needs_timezone():
    with pytest.raises(ValidationError):
        OfferCreate(
            receiver_id=uuid4(), flag_id=uuid4(), message="hi",
            respond_by=datetime(2030, 1, 1, 12),
        )
    body = OfferCreate(
        receiver_id=uuid4(), flag_id=uuid4(), message="hi",
        respond_by=datetime(2030, 1, 1, 12, tzinfo=timezone.utc),
    )
    assert body.respond_by.tzinfo is not None
