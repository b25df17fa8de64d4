"""Quota Service — applies the pure ledger to persisted profiles with compare-and-swap.

Invariants:
    - read -> evaluate -> mutate -> compare_and_swap; a lost swap re-reads and re-evaluates
    - No increment is ever lost: the stored counter equals the number of committed actions
    - A refused action never writes
    - Retries are bounded (max_attempts); exhaustion raises ConcurrencyError

Design Decisions:
    - Refusals come back as QuotaOutcome values (allowed=False, reason); the HTTP layer
      decides to raise QuotaExceededError
    - Resets are plain methods for an external daily/weekly trigger, no internal timer
"""

import logging
from dataclasses import dataclass
from typing import Callable

from chatly.core.domain_types import QuotaError
from chatly.core.errors import ConcurrencyError, ResourceNotFoundError
from chatly.core.profile import Profile
from chatly.core.quota_ledger import (
    QuotaCheck, can_post_anonymous, check_create_group, check_send_message,
    record_anonymous_post, record_group_created, record_message_sent,
    reset_daily_counters, reset_weekly_counters,
)
from chatly.core.repository_protocols import ProfileStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QuotaOutcome:
    allowed: bool
    profile: Profile
    reason: QuotaError | None = None


class QuotaService:
    """Metering entry point for messages, anonymous posts and group creation."""

    def __init__(self, store: ProfileStore, max_attempts: int = 5):
        self.store = store
        self.max_attempts = max_attempts

    async def _meter(
        self,
        profile_id: str,
        check: Callable[[Profile], QuotaCheck],
        mutate: Callable[[Profile], Profile],
    ) -> QuotaOutcome:
        for attempt in range(self.max_attempts):
            stored = await self.store.get(profile_id)
            if stored is None:
                raise ResourceNotFoundError("Profile", profile_id)
            verdict = check(stored)
            if not verdict.allowed:
                logger.info(
                    f"Quota refused: {verdict.reason.value}",
                    extra={"user_id": profile_id, "tier": stored.tier.value},
                )
                return QuotaOutcome(allowed=False, profile=stored, reason=verdict.reason)
            committed = await self.store.compare_and_swap(mutate(stored), stored.version)
            if committed is not None:
                return QuotaOutcome(allowed=True, profile=committed)
            logger.debug(
                "Quota swap conflict, retrying",
                extra={"user_id": profile_id, "attempt": attempt + 1},
            )
        raise ConcurrencyError(
            f"Quota update for '{profile_id}' lost {self.max_attempts} races",
        )

    async def send_message(self, profile_id: str) -> QuotaOutcome:
        return await self._meter(profile_id, check_send_message, record_message_sent)

    async def post_anonymous(self, profile_id: str, char_count: int) -> QuotaOutcome:
        return await self._meter(
            profile_id,
            lambda profile: can_post_anonymous(profile, char_count),
            record_anonymous_post,
        )

    async def create_group(self, profile_id: str) -> QuotaOutcome:
        return await self._meter(profile_id, check_create_group, record_group_created)

    async def reset_daily(self, profile_id: str) -> Profile:
        outcome = await self._meter(
            profile_id, lambda profile: QuotaCheck.ok(), reset_daily_counters,
        )
        return outcome.profile

    async def reset_weekly(self, profile_id: str) -> Profile:
        outcome = await self._meter(
            profile_id, lambda profile: QuotaCheck.ok(), reset_weekly_counters,
        )
        return outcome.profile
