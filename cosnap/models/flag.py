"""Flag ORM — persists a published travel flag.

Invariants:
    - Only privacy-displaced coordinates are stored (display_latitude/longitude)
    - visibility_status is one of: active, hidden, expired
    - source_plan_type (free|premium) and exposure_policy are frozen at creation
    - Deleting the owner profile cascades to flags; deleting a flag cascades to offers

Design Decisions:
    - JSON for styles/languages: portable across PostgreSQL and the SQLite test DB
    - Composite index (owner_id, visibility_status): the quota count query
"""

import uuid
from datetime import date, datetime, timezone

from sqlalchemy import String, Text, Float, Date, DateTime, JSON, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

from cosnap.db.base import Base


class FlagRow(Base):
    """Flag entity — a user's travel plan with a displaced location."""
    __tablename__ = "flags"
    __table_args__ = (
        Index("ix_flags_owner_visibility", "owner_id", "visibility_status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    owner_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
    )
    city: Mapped[str] = mapped_column(String(100), nullable=False)
    country: Mapped[str] = mapped_column(String(100), nullable=False)
    display_latitude: Mapped[float] = mapped_column(Float, nullable=False)
    display_longitude: Mapped[float] = mapped_column(Float, nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    flag_type: Mapped[str] = mapped_column(
        String(20), nullable=False, default="travel",
    )
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    styles: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    languages: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    visibility_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="active",
    )
    source_plan_type: Mapped[str] = mapped_column(
        String(20), nullable=False, default="free",
    )
    exposure_policy: Mapped[str] = mapped_column(
        String(20), nullable=False, default="default",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
