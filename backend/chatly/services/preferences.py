"""Preference Service — typed access to the client's key/value preferences.

Invariants:
    - Preference writes are non-critical: failures are logged and reported as False,
      never raised into the auth flow
    - A user's explicit smart-notification choice (override marker) always wins over
      the tier default
    - Flags are stored as "true"/"false"

Design Decisions:
    - The smart-notification flag lives in the preference store, not in ProfileSettings:
      it is a device choice that must survive sign-out
"""

import logging
from datetime import datetime

from chatly.core.domain_types import PreferenceKey, Tier
from chatly.core.repository_protocols import PreferenceStore
from chatly.core.tier_catalog import smart_notifications_default

logger = logging.getLogger(__name__)


def _flag(value: bool) -> str:
    return "true" if value else "false"


class PreferenceService:
    """Wraps a PreferenceStore with the keys the engine knows about."""

    def __init__(self, store: PreferenceStore):
        self.store = store

    async def _write(self, key: PreferenceKey, value: str) -> bool:
        try:
            await self.store.set(key.value, value)
            return True
        except Exception as e:
            logger.warning(f"Preference write failed for {key.value}: {e}")
            return False

    async def _remove(self, key: PreferenceKey) -> bool:
        try:
            await self.store.delete(key.value)
            return True
        except Exception as e:
            logger.warning(f"Preference delete failed for {key.value}: {e}")
            return False

    async def _read(self, key: PreferenceKey) -> str | None:
        try:
            return await self.store.get(key.value)
        except Exception as e:
            logger.warning(f"Preference read failed for {key.value}: {e}")
            return None

    # ─── Session marker ──────────────────────────────────────────

    async def save_session_marker(self, user_id: str, started_at: datetime) -> bool:
        saved = await self._write(PreferenceKey.SESSION_USER_ID, user_id)
        return await self._write(
            PreferenceKey.SESSION_STARTED_AT, started_at.isoformat(),
        ) and saved

    async def clear_session_marker(self) -> bool:
        cleared = await self._remove(PreferenceKey.SESSION_USER_ID)
        return await self._remove(PreferenceKey.SESSION_STARTED_AT) and cleared

    async def session_user_id(self) -> str | None:
        return await self._read(PreferenceKey.SESSION_USER_ID)

    # ─── Theme & onboarding ──────────────────────────────────────

    async def theme(self) -> str | None:
        return await self._read(PreferenceKey.THEME)

    async def set_theme(self, theme: str) -> bool:
        return await self._write(PreferenceKey.THEME, theme)

    async def onboarding_complete(self) -> bool:
        return await self._read(PreferenceKey.ONBOARDING_COMPLETE) == "true"

    async def set_onboarding_complete(self, complete: bool = True) -> bool:
        return await self._write(PreferenceKey.ONBOARDING_COMPLETE, _flag(complete))

    # ─── Smart notifications ─────────────────────────────────────

    async def smart_notifications_enabled(self, tier: Tier) -> bool:
        """Stored flag if any, otherwise the tier default."""
        stored = await self._read(PreferenceKey.SMART_NOTIFICATIONS)
        if stored is None:
            return smart_notifications_default(tier)
        return stored == "true"

    async def smart_notifications_overridden(self) -> bool:
        return await self._read(PreferenceKey.SMART_NOTIFICATIONS_OVERRIDDEN) == "true"

    async def set_smart_notifications(self, enabled: bool) -> bool:
        """Explicit user choice. Marks the flag as overridden."""
        saved = await self._write(PreferenceKey.SMART_NOTIFICATIONS, _flag(enabled))
        return await self._write(
            PreferenceKey.SMART_NOTIFICATIONS_OVERRIDDEN, "true",
        ) and saved

    async def apply_tier_default(self, tier: Tier) -> bool:
        """Write the tier's default unless the user has chosen explicitly."""
        if await self.smart_notifications_overridden():
            return False
        return await self._write(
            PreferenceKey.SMART_NOTIFICATIONS, _flag(smart_notifications_default(tier)),
        )
