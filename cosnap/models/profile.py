"""Profile ORM — the identity provider's user record, read by the engine.

Invariants:
    - id is the identity provider's user id (no server default)
    - plan_tier is one of: free, premium, admin
    - The engine never writes profiles; it reads tier/existence and row-locks
      a profile to serialize that user's flag activations

Design Decisions:
    - Lock target is the profile row, not the flag set: locking a parent row
      also covers the "zero flags yet" case where there is nothing to lock
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String, DateTime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

from cosnap.db.base import Base


class ProfileRow(Base):
    """Profile entity — user identity and subscription tier."""
    __tablename__ = "profiles"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True)
    username: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    plan_tier: Mapped[str] = mapped_column(
        String(20), nullable=False, default="free",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
