"""Settings — every tunable of the lifecycle API, read from the environment or .env.

Invariants:
    - No credentials in code; the default database_url only targets the local compose stack
    - get_settings() builds Settings once per process
    - geo_privacy_radius_km is the R of the displacement disk (5 km)
    - log_format is "json" or "text"
"""

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from typing import Literal


def normalize_database_url(url: str) -> str:
    """Hosted Postgres URLs say postgresql:// but asyncpg needs postgresql+asyncpg://."""
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


class Settings(BaseSettings):
    """Environment variable names are the field names, case-insensitive."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # Database
    database_url: str = (
        "postgresql+asyncpg://cosnap:cosnap@db:5432/cosnap"
    )

    @field_validator("database_url", mode="before")
    @classmethod
    def convert_postgres_url(cls, v: str) -> str:
        return normalize_database_url(v) if isinstance(v, str) else v

    database_pool_size: int = 20
    database_max_overflow: int = 10

    # Geo privacy
    geo_privacy_radius_km: float = Field(5.0, gt=0, le=50)

    # API
    cors_origins: list[str] = ["http://localhost:5173"]

    # Observability
    log_level: str = "INFO"
    log_format: Literal["json", "text"] = "json"


@lru_cache
def get_settings() -> Settings:
    return Settings()
