"""Profile ORM — persisted user profile with metering counters and a concurrency token.

Invariants:
    - id is the identity provider's subject id (string primary key, never generated here)
    - username is unique across all profiles
    - version starts at 1 on first write and increments on every successful write
    - counters stored under their camelCase keys (messagesToday, anonymousThisWeek, groupsCreated)

Design Decisions:
    - JSON columns for settings/counters: the mapping form of ProfileSettings/ProfileCounters
      round-trips unchanged, new keys need no migration (ADR: flexible settings)
    - version column instead of row locks: compare-and-swap metering works the same
      on PostgreSQL and SQLite (ADR: no lost increments)
"""

from datetime import datetime, timezone

from sqlalchemy import String, Integer, DateTime, JSON
from sqlalchemy.orm import Mapped, mapped_column

from chatly.db.base import Base


class ProfileRecord(Base):
    """One row per authenticated subject."""
    __tablename__ = "profiles"

    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    username: Mapped[str] = mapped_column(
        String(20), nullable=False, unique=True, index=True,
    )
    email: Mapped[str] = mapped_column(String(320), nullable=False, default="")
    phone: Mapped[str | None] = mapped_column(String(32), nullable=True)
    tier: Mapped[str] = mapped_column(String(10), nullable=False, default="free")
    settings: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    counters: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    last_seen_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
