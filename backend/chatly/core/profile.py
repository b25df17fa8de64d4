"""Profile Model — immutable user profile with typed settings and metering counters.

Invariants:
    - Profile.tier is always a Tier (unknown input normalizes to FREE on construction)
    - ProfileCounters fields are never negative; missing/negative/garbage values read as 0
    - Profile.version is the optimistic-concurrency token — only the store increments it
    - merge_profile_update never copies counters, id, created_at or version from the update

Design Decisions:
    - Frozen dataclasses + dataclasses.replace: mutators return new values so callers
      own persistence ordering (ADR: compare-and-swap metering)
    - Typed records over string-keyed maps: named fields with documented defaults,
      to_mapping()/from_mapping() keep the flexible dict form for storage and the API
"""

import re
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from typing import Any, Mapping

from chatly.core.domain_types import CounterName, ProfileId, Tier
from chatly.core.tier_catalog import is_theme_available, limits_for, normalize_tier


DEFAULT_RETENTION_DAYS: int = 7
DELETION_GRACE_PERIOD: timedelta = timedelta(days=30)

_EMAIL_RE = re.compile(r"^[\w\-.+]+@([\w-]+\.)+[\w-]{2,}$")


# ─── Identity & Credentials ──────────────────────────────────────

@dataclass(frozen=True)
class Identity:
    """Authenticated subject as issued by the identity provider."""
    subject_id: str
    email: str | None = None
    phone: str | None = None


@dataclass(frozen=True)
class Credential:
    email: str
    password: str = field(repr=False)


# ─── Typed Records ───────────────────────────────────────────────

def _as_count(value: Any) -> int:
    try:
        count = int(value)
    except (TypeError, ValueError):
        return 0
    return max(count, 0)


def _as_bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    return str(value).strip().lower() == "true"


@dataclass(frozen=True)
class ProfileCounters:
    messages_today: int = 0
    anonymous_this_week: int = 0
    groups_created: int = 0

    def __post_init__(self):
        for name in ("messages_today", "anonymous_this_week", "groups_created"):
            object.__setattr__(self, name, _as_count(getattr(self, name)))

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> "ProfileCounters":
        data = data or {}
        return cls(
            messages_today=_as_count(data.get(CounterName.MESSAGES_TODAY.value)),
            anonymous_this_week=_as_count(data.get(CounterName.ANONYMOUS_THIS_WEEK.value)),
            groups_created=_as_count(data.get(CounterName.GROUPS_CREATED.value)),
        )

    def to_mapping(self) -> dict[str, int]:
        return {
            CounterName.MESSAGES_TODAY.value: self.messages_today,
            CounterName.ANONYMOUS_THIS_WEEK.value: self.anonymous_this_week,
            CounterName.GROUPS_CREATED.value: self.groups_created,
        }


@dataclass(frozen=True)
class ProfileSettings:
    theme: str = "light"
    font_size: float = 16.0
    retention_days: int = DEFAULT_RETENTION_DAYS
    show_online_status: bool = True
    allow_contacts_sync: bool = False
    last_seen_visibility: str = "everyone"
    profile_photo_visibility: str = "everyone"

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> "ProfileSettings":
        data = data or {}
        defaults = cls()
        try:
            font_size = float(data.get("fontSize", defaults.font_size))
        except (TypeError, ValueError):
            font_size = defaults.font_size
        retention = _as_count(data.get("retentionDays", defaults.retention_days))
        return cls(
            theme=str(data.get("theme") or defaults.theme),
            font_size=font_size,
            retention_days=retention or defaults.retention_days,
            show_online_status=_as_bool(
                data.get("showOnlineStatus"), defaults.show_online_status,
            ),
            allow_contacts_sync=_as_bool(
                data.get("allowContactsSync"), defaults.allow_contacts_sync,
            ),
            last_seen_visibility=str(
                data.get("lastSeenVisibility") or defaults.last_seen_visibility
            ),
            profile_photo_visibility=str(
                data.get("profilePhotoVisibility") or defaults.profile_photo_visibility
            ),
        )

    def to_mapping(self) -> dict[str, str]:
        return {
            "theme": self.theme,
            "fontSize": str(self.font_size),
            "retentionDays": str(self.retention_days),
            "showOnlineStatus": str(self.show_online_status).lower(),
            "allowContactsSync": str(self.allow_contacts_sync).lower(),
            "lastSeenVisibility": self.last_seen_visibility,
            "profilePhotoVisibility": self.profile_photo_visibility,
        }


# ─── Profile ─────────────────────────────────────────────────────

@dataclass(frozen=True)
class Profile:
    id: ProfileId
    username: str
    email: str
    tier: Tier
    created_at: datetime
    last_seen_at: datetime
    settings: ProfileSettings = field(default_factory=ProfileSettings)
    counters: ProfileCounters = field(default_factory=ProfileCounters)
    phone: str | None = None
    version: int = 0

    def __post_init__(self):
        object.__setattr__(self, "tier", normalize_tier(self.tier))


def new_profile(identity: Identity, username: str, now: datetime) -> Profile:
    """Default profile for a first sign-in: free tier, zero counters, default settings."""
    return Profile(
        id=ProfileId(identity.subject_id),
        username=username,
        email=identity.email or "",
        phone=identity.phone,
        tier=Tier.FREE,
        created_at=now,
        last_seen_at=now,
    )


def merge_profile_update(stored: Profile, update: Profile) -> Profile:
    """Apply user-editable fields from update onto the stored profile.

    Counters are owned by the quota ledger, so a profile update (tier downgrade
    included) can never reset usage.
    """
    return replace(
        stored,
        username=update.username,
        email=update.email,
        phone=update.phone,
        tier=update.tier,
        settings=update.settings,
        last_seen_at=max(stored.last_seen_at, update.last_seen_at),
    )


def validate_username(username: str) -> list[str]:
    errors = []
    if len(username) < 3 or len(username) > 20:
        errors.append("Username must be between 3-20 characters")
    if not re.fullmatch(r"[A-Za-z0-9_]+", username or ""):
        errors.append("Username can only contain letters, numbers, and underscores")
    return errors


def validate_profile(profile: Profile) -> list[str]:
    """All reasons this profile cannot be saved. Empty list means valid."""
    errors = validate_username(profile.username)
    if profile.email and not _EMAIL_RE.match(profile.email):
        errors.append("Invalid email format")
    if not is_theme_available(profile.tier, profile.settings.theme):
        errors.append(
            f"Theme '{profile.settings.theme}' is not available on the "
            f"{profile.tier.value} tier"
        )
    return errors


def message_retention_days(profile: Profile) -> int:
    if not limits_for(profile.tier).custom_retention:
        return DEFAULT_RETENTION_DAYS
    return profile.settings.retention_days


# ─── Account Deletion ────────────────────────────────────────────

@dataclass(frozen=True)
class DeletionRequest:
    """Signal that an account should be purged once the grace period ends."""
    profile_id: ProfileId
    requested_at: datetime
    purge_after: datetime


def request_deletion(
    profile: Profile, now: datetime, grace_period: timedelta = DELETION_GRACE_PERIOD,
) -> DeletionRequest:
    return DeletionRequest(
        profile_id=profile.id, requested_at=now, purge_after=now + grace_period,
    )
