"""Tier Catalog — single policy table mapping a tier to its quotas and capabilities.

Invariants:
    - limits_for is total over any input: unknown/invalid tiers normalize to FREE
    - UNLIMITED (-1) is the only sentinel for "no weekly anonymous cap"
    - TierLimits is frozen — callers cannot drift the table at runtime
"""

from dataclasses import dataclass

from chatly.core.domain_types import Tier


UNLIMITED: int = -1

BASE_THEMES: frozenset[str] = frozenset({"light", "dark", "amoled"})
PLUS_THEMES: frozenset[str] = BASE_THEMES | {"ocean", "forest", "sunset", "midnight", "rose"}


@dataclass(frozen=True)
class TierLimits:
    daily_message_limit: int
    weekly_anonymous_limit: int
    anonymous_max_chars: int
    max_groups: int
    smart_notifications_enabled_by_default: bool
    themes: frozenset[str] | None = BASE_THEMES  # None: every theme
    custom_retention: bool = False


TIER_LIMITS: dict[Tier, TierLimits] = {
    Tier.FREE: TierLimits(
        daily_message_limit=200,
        weekly_anonymous_limit=3,
        anonymous_max_chars=100,
        max_groups=0,
        smart_notifications_enabled_by_default=False,
    ),
    Tier.PLUS: TierLimits(
        daily_message_limit=500,
        weekly_anonymous_limit=10,
        anonymous_max_chars=250,
        max_groups=1,
        smart_notifications_enabled_by_default=True,
        themes=PLUS_THEMES,
        custom_retention=True,
    ),
    Tier.PRO: TierLimits(
        daily_message_limit=1000,
        weekly_anonymous_limit=UNLIMITED,
        anonymous_max_chars=500,
        max_groups=2,
        smart_notifications_enabled_by_default=True,
        themes=None,
        custom_retention=True,
    ),
}


def normalize_tier(value: Tier | str | None) -> Tier:
    """Case-insensitive tier parse. Anything outside the closed set is FREE."""
    if isinstance(value, Tier):
        return value
    try:
        return Tier((value or "").strip().lower())
    except ValueError:
        return Tier.FREE


def limits_for(tier: Tier | str | None) -> TierLimits:
    return TIER_LIMITS[normalize_tier(tier)]


def is_theme_available(tier: Tier | str | None, theme: str) -> bool:
    themes = limits_for(tier).themes
    return themes is None or theme in themes


def smart_notifications_default(tier: Tier | str | None) -> bool:
    """Free defaults to off, paid tiers to on. A default only — users may override."""
    return limits_for(tier).smart_notifications_enabled_by_default
