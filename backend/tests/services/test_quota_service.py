"""QuotaService tests — compare-and-swap metering against a shared profile store.

Tests cover:
    - Allowed actions commit and bump version
    - Refusals never write
    - Concurrent sends lose no increments
    - Bounded retries raise ConcurrencyError
    - Resets for the external daily/weekly trigger
"""

import asyncio
from dataclasses import replace
from datetime import datetime, timezone

import pytest

from chatly.core.domain_types import QuotaError, Tier
from chatly.core.errors import ConcurrencyError, ResourceNotFoundError
from chatly.core.profile import Identity, ProfileCounters, new_profile
from chatly.services.quota_service import QuotaService

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
async def seeded(profile_store):
    async def _seed(tier=Tier.FREE, **counters):
        profile = replace(
            new_profile(Identity("uid-1"), "alice", NOW),
            tier=tier, counters=ProfileCounters(**counters),
        )
        return await profile_store.put(profile)
    return _seed


async def test_send_message_commits(profile_store, seeded):
    await seeded()
    outcome = await QuotaService(profile_store).send_message("uid-1")
    assert outcome.allowed
    assert outcome.profile.counters.messages_today == 1
    assert outcome.profile.version == 2


async def test_send_message_refused_at_limit_does_not_write(profile_store, seeded):
    await seeded(messages_today=200)
    outcome = await QuotaService(profile_store).send_message("uid-1")
    assert not outcome.allowed
    assert outcome.reason == QuotaError.DAILY_LIMIT_EXCEEDED
    assert profile_store.swap_calls == 0


async def test_concurrent_sends_lose_no_increments(profile_store, seeded):
    await seeded()
    service = QuotaService(profile_store, max_attempts=50)
    outcomes = await asyncio.gather(*(service.send_message("uid-1") for _ in range(20)))
    assert all(o.allowed for o in outcomes)
    stored = profile_store.profiles["uid-1"]
    assert stored.counters.messages_today == 20
    assert stored.version == 21


async def test_concurrent_sends_near_limit_never_exceed_it(profile_store, seeded):
    await seeded(messages_today=195)
    service = QuotaService(profile_store, max_attempts=50)
    outcomes = await asyncio.gather(*(service.send_message("uid-1") for _ in range(10)))
    assert sum(o.allowed for o in outcomes) == 5
    assert profile_store.profiles["uid-1"].counters.messages_today == 200


async def test_anonymous_post_char_limit(profile_store, seeded):
    await seeded(tier=Tier.PLUS)
    service = QuotaService(profile_store)
    assert (await service.post_anonymous("uid-1", 250)).allowed
    refused = await service.post_anonymous("uid-1", 251)
    assert refused.reason == QuotaError.CHAR_LIMIT_EXCEEDED
    assert profile_store.profiles["uid-1"].counters.anonymous_this_week == 1


async def test_group_creation_on_free_is_refused(profile_store, seeded):
    await seeded()
    outcome = await QuotaService(profile_store).create_group("uid-1")
    assert outcome.reason == QuotaError.GROUP_LIMIT_REACHED


async def test_exhausted_retries_raise(profile_store, seeded):
    await seeded()
    profile_store.conflicts_to_inject = 3
    with pytest.raises(ConcurrencyError):
        await QuotaService(profile_store, max_attempts=3).send_message("uid-1")
    assert profile_store.profiles["uid-1"].counters.messages_today == 0


async def test_missing_profile_raises(profile_store):
    with pytest.raises(ResourceNotFoundError):
        await QuotaService(profile_store).send_message("ghost")


async def test_resets_are_idempotent(profile_store, seeded):
    await seeded(messages_today=50, anonymous_this_week=3)
    service = QuotaService(profile_store)
    daily = await service.reset_daily("uid-1")
    assert daily.counters.messages_today == 0
    assert daily.counters.anonymous_this_week == 3
    again = await service.reset_daily("uid-1")
    assert again.counters == daily.counters
    weekly = await service.reset_weekly("uid-1")
    assert weekly.counters.anonymous_this_week == 0
