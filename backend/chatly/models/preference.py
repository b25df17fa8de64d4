"""Preference ORM — string key/value client preferences, one namespace per client.

Invariants:
    - (scope, key) is unique; set() replaces the previous value
    - Values are plain strings ("true"/"false" for flags)
"""

from datetime import datetime, timezone

from sqlalchemy import String, Text, DateTime
from sqlalchemy.orm import Mapped, mapped_column

from chatly.db.base import Base


class PreferenceRecord(Base):
    __tablename__ = "preferences"

    scope: Mapped[str] = mapped_column(String(128), primary_key=True)
    key: Mapped[str] = mapped_column(String(64), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
