"""Domain Types — rich types that replace bare strings across the engine.

Invariants:
    - ProfileId wraps the identity provider's subject id — never a bare str in domain logic
    - Tier is a closed set (free, plus, pro); unknown input normalizes to FREE
    - All valid states encoded as Enums — no raw string matching

Design Decisions:
    - NewType over dataclass wrappers: zero runtime cost, full type-checker support
    - str Enums: serialize to JSON without custom encoders (ADR: API envelopes are JSON)
"""

from enum import Enum
from typing import NewType


# ─── Identity Types ──────────────────────────────────────────────

ProfileId = NewType("ProfileId", str)
VerificationHandle = NewType("VerificationHandle", str)


# ─── Enums ───────────────────────────────────────────────────────

class Tier(str, Enum):
    """Subscription level — controls quotas and capabilities."""
    FREE = "free"
    PLUS = "plus"
    PRO = "pro"


class AuthState(str, Enum):
    """AuthSession lifecycle states."""
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"
    UNAUTHENTICATED = "unauthenticated"


class AuthErrorCode(str, Enum):
    """Closed error taxonomy surfaced to callers — raw provider codes never leak."""
    INVALID_CREDENTIAL = "invalid_credential"
    ACCOUNT_DISABLED = "account_disabled"
    ALREADY_IN_USE = "already_in_use"
    WEAK_CREDENTIAL = "weak_credential"
    RATE_LIMITED = "rate_limited"
    VERIFICATION_EXPIRED = "verification_expired"
    OPERATION_NOT_PERMITTED = "operation_not_permitted"
    UNKNOWN = "unknown"


class QuotaError(str, Enum):
    """Reasons a metered action is refused. Returned as values, never raised."""
    WEEKLY_LIMIT_EXCEEDED = "weekly_limit_exceeded"
    CHAR_LIMIT_EXCEEDED = "char_limit_exceeded"
    DAILY_LIMIT_EXCEEDED = "daily_limit_exceeded"
    GROUP_LIMIT_REACHED = "group_limit_reached"


class CounterName(str, Enum):
    """Persisted counter keys — the mapping form of ProfileCounters."""
    MESSAGES_TODAY = "messagesToday"
    ANONYMOUS_THIS_WEEK = "anonymousThisWeek"
    GROUPS_CREATED = "groupsCreated"


class Priority(str, Enum):
    """Notification priority — HIGH bypasses preference gating and smart timing."""
    NORMAL = "normal"
    HIGH = "high"


class DeliveryKind(str, Enum):
    """Scheduler verdict for a notification job."""
    IMMEDIATE = "immediate"
    DEFERRED = "deferred"
    SUPPRESSED = "suppressed"


class PreferenceKey(str, Enum):
    """Keys understood by the preference store. No schema beyond string keys."""
    SESSION_USER_ID = "session_user_id"
    SESSION_STARTED_AT = "session_start_time"
    THEME = "theme_preference"
    SMART_NOTIFICATIONS = "enable_smart_notifications"
    SMART_NOTIFICATIONS_OVERRIDDEN = "smart_notifications_user_override"
    ONBOARDING_COMPLETE = "onboarding_complete"
