"""Flag Schemas — Pydantic models for flag requests and responses.

Invariants:
    - FlagCreate requires city, country, both dates and both coordinates
    - Text fields stripped; city/country 1-100 chars, note <= 500 chars
    - Coordinates range-checked here; date/duration/quota rules live in core/
    - FlagResponse never exposes a true coordinate (there is none to expose)
    - FlagResponse reports the derived visibility: past-end flags read as expired
"""

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, Field, field_validator, model_validator

from cosnap.core.domain_types import (
    ExposurePolicy,
    Flag,
    FlagInput,
    FlagPatch,
    FlagType,
    PlanTier,
    VisibilityStatus,
)
from cosnap.core.enforce_flags import effective_visibility


def _non_blank(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("cannot be empty or whitespace")
    return value


class FlagCreate(BaseModel):
    """Flag creation — true coordinate in, displaced coordinate stored."""
    city: str = Field(min_length=1, max_length=100)
    country: str = Field(min_length=1, max_length=100)
    start_date: date
    end_date: date
    latitude: float | None = Field(None, ge=-90, le=90)
    longitude: float | None = Field(None, ge=-180, le=180)
    flag_type: FlagType = FlagType.TRAVEL
    note: str | None = Field(None, max_length=500)
    styles: list[str] = Field(default_factory=list, max_length=20)
    languages: list[str] = Field(default_factory=list, max_length=20)

    @field_validator("city", "country")
    @classmethod
    def strip_text(cls, v: str) -> str:
        return _non_blank(v)

    def to_input(self) -> FlagInput:
        return FlagInput(
            city=self.city,
            country=self.country,
            start_date=self.start_date,
            end_date=self.end_date,
            latitude=self.latitude,
            longitude=self.longitude,
            flag_type=self.flag_type,
            note=self.note,
            styles=list(self.styles),
            languages=list(self.languages),
        )


class FlagUpdate(BaseModel):
    """Partial flag update — omitted fields stay unchanged."""
    city: str | None = Field(None, min_length=1, max_length=100)
    country: str | None = Field(None, min_length=1, max_length=100)
    start_date: date | None = None
    end_date: date | None = None
    latitude: float | None = Field(None, ge=-90, le=90)
    longitude: float | None = Field(None, ge=-180, le=180)
    flag_type: FlagType | None = None
    note: str | None = Field(None, max_length=500)
    styles: list[str] | None = Field(None, max_length=20)
    languages: list[str] | None = Field(None, max_length=20)

    @field_validator("city", "country")
    @classmethod
    def strip_text(cls, v: str | None) -> str | None:
        return None if v is None else _non_blank(v)

    @model_validator(mode="after")
    def coordinates_together(self):
        if (self.latitude is None) != (self.longitude is None):
            raise ValueError("latitude and longitude must be supplied together")
        return self

    def to_patch(self) -> FlagPatch:
        return FlagPatch(**self.model_dump())


class FlagVisibilityUpdate(BaseModel):
    visibility_status: VisibilityStatus


class FlagResponse(BaseModel):
    """Flag response — public-facing flag data."""
    id: UUID
    owner_id: UUID
    city: str
    country: str
    latitude: float
    longitude: float
    start_date: date
    end_date: date
    flag_type: FlagType
    note: str | None
    styles: list[str]
    languages: list[str]
    visibility_status: VisibilityStatus
    source_plan_type: PlanTier
    exposure_policy: ExposurePolicy
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_flag(cls, flag: Flag, today: date) -> "FlagResponse":
        return cls(
            id=flag.id,
            owner_id=flag.owner_id,
            city=flag.city,
            country=flag.country,
            latitude=flag.display_latitude,
            longitude=flag.display_longitude,
            start_date=flag.start_date,
            end_date=flag.end_date,
            flag_type=flag.flag_type,
            note=flag.note,
            styles=flag.styles,
            languages=flag.languages,
            visibility_status=effective_visibility(flag, today),
            source_plan_type=flag.source_plan_type,
            exposure_policy=flag.exposure_policy,
            created_at=flag.created_at,
            updated_at=flag.updated_at,
        )
