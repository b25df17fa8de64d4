"""SQL Profile Store — ProfileStore implementation over the profiles table.

Invariants:
    - compare_and_swap is a single conditional UPDATE (WHERE id AND version = expected):
      zero rows touched means another writer won, reported as None
    - Every successful write increments version by exactly one
    - Datetimes read back are timezone-aware (SQLite drops tzinfo; UTC is assumed)

Design Decisions:
    - Conditional UPDATE over SELECT ... FOR UPDATE: the swap is atomic on every
      dialect and never holds a row lock across an await (ADR: no lost increments)
    - Manager injected, not imported: tests swap in an in-memory SQLite manager
"""

import logging
from dataclasses import replace
from datetime import datetime, timezone

from sqlalchemy import select, update

from chatly.core.domain_types import ProfileId
from chatly.core.profile import Profile, ProfileCounters, ProfileSettings
from chatly.infrastructure.database import DatabaseSessionManager
from chatly.models.profile import ProfileRecord

logger = logging.getLogger(__name__)


def _aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def record_to_profile(record: ProfileRecord) -> Profile:
    return Profile(
        id=ProfileId(record.id),
        username=record.username,
        email=record.email or "",
        phone=record.phone,
        tier=record.tier,
        created_at=_aware(record.created_at),
        last_seen_at=_aware(record.last_seen_at),
        settings=ProfileSettings.from_mapping(record.settings),
        counters=ProfileCounters.from_mapping(record.counters),
        version=record.version,
    )


def _columns(profile: Profile) -> dict:
    return {
        "username": profile.username,
        "email": profile.email,
        "phone": profile.phone,
        "tier": profile.tier.value,
        "settings": profile.settings.to_mapping(),
        "counters": profile.counters.to_mapping(),
        "last_seen_at": profile.last_seen_at,
    }


class SqlProfileStore:
    """Profile persistence with optimistic concurrency on the version column."""

    def __init__(self, manager: DatabaseSessionManager):
        self.manager = manager

    async def get(self, profile_id: str) -> Profile | None:
        async with self.manager.session() as db:
            record = await db.get(ProfileRecord, profile_id)
            return record_to_profile(record) if record else None

    async def put(self, profile: Profile) -> Profile:
        """Create or replace unconditionally. Returns the stored profile."""
        async with self.manager.session() as db:
            record = await db.get(ProfileRecord, profile.id)
            if record is None:
                record = ProfileRecord(
                    id=profile.id, created_at=profile.created_at, version=1,
                    **_columns(profile),
                )
                db.add(record)
            else:
                for name, value in _columns(profile).items():
                    setattr(record, name, value)
                record.version = record.version + 1
            await db.commit()
            await db.refresh(record)
            return record_to_profile(record)

    async def compare_and_swap(
        self, profile: Profile, expected_version: int,
    ) -> Profile | None:
        async with self.manager.session() as db:
            result = await db.execute(
                update(ProfileRecord)
                .where(
                    ProfileRecord.id == profile.id,
                    ProfileRecord.version == expected_version,
                )
                .values(version=ProfileRecord.version + 1, **_columns(profile))
                .execution_options(synchronize_session=False)
            )
            await db.commit()
        if result.rowcount != 1:
            logger.info(
                f"Profile swap lost at version {expected_version}",
                extra={"user_id": profile.id},
            )
            return None
        return replace(profile, version=expected_version + 1)

    async def username_exists(self, username: str) -> bool:
        async with self.manager.session() as db:
            result = await db.execute(
                select(ProfileRecord.id)
                .where(ProfileRecord.username == username)
                .limit(1)
            )
            return result.scalar_one_or_none() is not None
