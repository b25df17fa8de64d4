"""Quota Ledger — pure policy evaluation of per-user counters against the tier catalog.

Invariants:
    - Evaluators (can_*) are side-effect free and return values, never raise
    - Mutators (record_*/reset_*) return a NEW Profile; the input is never mutated
    - Mutators never touch Profile.version — the store bumps it on a successful swap
    - UNLIMITED (-1) weekly anonymous limit short-circuits before any comparison
    - max_groups == 0 makes can_create_group False regardless of the counter

Design Decisions:
    - Pure functions over (Profile, TierLimits), not a stateful service: the caller
      applies compare-and-swap against the persisted counter (ADR: no lost increments)
    - Resets are driven by an external daily/weekly boundary trigger, not by the ledger
"""

from dataclasses import dataclass, replace

from chatly.core.domain_types import QuotaError
from chatly.core.profile import Profile
from chatly.core.tier_catalog import UNLIMITED, limits_for


@dataclass(frozen=True)
class QuotaCheck:
    """Outcome of a quota evaluation: allowed, or refused with a reason."""
    allowed: bool
    reason: QuotaError | None = None

    @classmethod
    def ok(cls) -> "QuotaCheck":
        return cls(allowed=True)

    @classmethod
    def refused(cls, reason: QuotaError) -> "QuotaCheck":
        return cls(allowed=False, reason=reason)


# ─── Messages (daily) ────────────────────────────────────────────

def can_send_message(profile: Profile) -> bool:
    return profile.counters.messages_today < limits_for(profile.tier).daily_message_limit


def check_send_message(profile: Profile) -> QuotaCheck:
    if can_send_message(profile):
        return QuotaCheck.ok()
    return QuotaCheck.refused(QuotaError.DAILY_LIMIT_EXCEEDED)


def record_message_sent(profile: Profile) -> Profile:
    counters = profile.counters
    return replace(
        profile,
        counters=replace(counters, messages_today=counters.messages_today + 1),
    )


def reset_daily_counters(profile: Profile) -> Profile:
    """Zero messages_today. Idempotent."""
    return replace(profile, counters=replace(profile.counters, messages_today=0))


# ─── Anonymous posts (weekly) ────────────────────────────────────

def can_post_anonymous(profile: Profile, char_count: int) -> QuotaCheck:
    limits = limits_for(profile.tier)
    if (
        limits.weekly_anonymous_limit != UNLIMITED
        and profile.counters.anonymous_this_week >= limits.weekly_anonymous_limit
    ):
        return QuotaCheck.refused(QuotaError.WEEKLY_LIMIT_EXCEEDED)
    if char_count > limits.anonymous_max_chars:
        return QuotaCheck.refused(QuotaError.CHAR_LIMIT_EXCEEDED)
    return QuotaCheck.ok()


def record_anonymous_post(profile: Profile) -> Profile:
    counters = profile.counters
    return replace(
        profile,
        counters=replace(counters, anonymous_this_week=counters.anonymous_this_week + 1),
    )


def reset_weekly_counters(profile: Profile) -> Profile:
    return replace(profile, counters=replace(profile.counters, anonymous_this_week=0))


# ─── Groups (lifetime) ───────────────────────────────────────────

def can_create_group(profile: Profile) -> bool:
    max_groups = limits_for(profile.tier).max_groups
    if max_groups <= 0:
        return False
    return profile.counters.groups_created < max_groups


def check_create_group(profile: Profile) -> QuotaCheck:
    if can_create_group(profile):
        return QuotaCheck.ok()
    return QuotaCheck.refused(QuotaError.GROUP_LIMIT_REACHED)


def record_group_created(profile: Profile) -> Profile:
    counters = profile.counters
    return replace(
        profile,
        counters=replace(counters, groups_created=counters.groups_created + 1),
    )


# ─── Reporting ───────────────────────────────────────────────────

def usage_summary(profile: Profile) -> dict:
    """Counters next to their limits. Remaining is None where unlimited."""
    limits = limits_for(profile.tier)
    counters = profile.counters
    weekly = limits.weekly_anonymous_limit
    return {
        "tier": profile.tier.value,
        "messages": {
            "used": counters.messages_today,
            "limit": limits.daily_message_limit,
            "remaining": max(limits.daily_message_limit - counters.messages_today, 0),
        },
        "anonymous_posts": {
            "used": counters.anonymous_this_week,
            "limit": None if weekly == UNLIMITED else weekly,
            "remaining": (
                None if weekly == UNLIMITED
                else max(weekly - counters.anonymous_this_week, 0)
            ),
            "max_chars": limits.anonymous_max_chars,
        },
        "groups": {
            "used": counters.groups_created,
            "limit": limits.max_groups,
            "remaining": max(limits.max_groups - counters.groups_created, 0),
        },
    }
