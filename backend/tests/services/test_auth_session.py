"""AuthSession tests — lifecycle, failure rollback, bootstrap and profile updates.

Tests cover:
    - initialize() with and without an existing provider session
    - Sign-in/up success and mapped failures (never left authenticating)
    - Failed re-authentication while signed in keeps the previous profile
    - Default profile synthesized and put exactly once
    - Phone verification handle lifecycle
    - update_profile validation, counter preservation and conflict retry
    - Smart-notification default applied per tier, user override respected
    - Temporary username collision handling, deletion signal, sign-out
    - apply_entitlement changes only the tier
"""

from dataclasses import replace
from datetime import datetime, timezone

import pytest

from chatly.core.domain_types import AuthErrorCode, AuthState, PreferenceKey, Tier
from chatly.core.errors import (
    NotAuthenticatedError, ProfileValidationError, ProviderError, SessionTransitionError,
)
from chatly.core.profile import Credential, Identity, ProfileCounters, new_profile
from chatly.services.auth_session import AuthSession

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def deletions():
    return []


@pytest.fixture
def auth(identity_provider, profile_store, preference_store, deletions):
    return AuthSession(
        identity_provider, profile_store, preference_store,
        clock=lambda: NOW, on_deletion_requested=deletions.append,
    )


@pytest.fixture
async def signed_in(auth, identity_provider):
    identity_provider.add_account("alice@example.com", "s3cret!", "alice12345678")
    await auth.initialize()
    assert await auth.sign_in_with_credential(Credential("alice@example.com", "s3cret!"))
    return auth


# --- initialize ---------------------------------------------------------------

async def test_initialize_without_provider_session(auth):
    await auth.initialize()
    assert auth.state == AuthState.UNAUTHENTICATED
    assert auth.profile is None


async def test_initialize_restores_provider_session(auth, identity_provider, profile_store):
    identity_provider.current = Identity("restored99", email="r@example.com")
    await auth.initialize()
    assert auth.state == AuthState.AUTHENTICATED
    assert auth.profile.id == "restored99"
    assert profile_store.put_calls == 1


async def test_initialize_provider_failure_falls_back(auth, identity_provider):
    identity_provider.fail_next("current_identity", RuntimeError("offline"))
    await auth.initialize()
    assert auth.state == AuthState.UNAUTHENTICATED


async def test_initialize_twice_raises(auth):
    await auth.initialize()
    with pytest.raises(SessionTransitionError):
        await auth.initialize()


async def test_sign_in_before_initialize_raises(auth):
    with pytest.raises(SessionTransitionError):
        await auth.sign_in_with_credential(Credential("a@example.com", "x"))


# --- sign in / sign up --------------------------------------------------------

async def test_first_sign_in_synthesizes_default_profile_once(signed_in, profile_store):
    profile = signed_in.profile
    assert signed_in.state == AuthState.AUTHENTICATED
    assert profile.tier == Tier.FREE
    assert profile.counters == ProfileCounters()
    assert profile.username == "user_alice123"
    assert profile_store.put_calls == 1


async def test_second_sign_in_reuses_stored_profile(signed_in, profile_store):
    await signed_in.sign_out()
    assert await signed_in.sign_in_with_credential(Credential("alice@example.com", "s3cret!"))
    assert profile_store.put_calls == 1


async def test_default_username_collision_gets_suffix(auth, identity_provider, profile_store):
    taken = new_profile(Identity("other"), "user_alice123", NOW)
    await profile_store.put(taken)
    identity_provider.add_account("alice@example.com", "pw1234", "alice12345678")
    await auth.initialize()
    assert await auth.sign_in_with_credential(Credential("alice@example.com", "pw1234"))
    assert auth.profile.username == "user_alice123_1"


async def test_sign_in_bootstrap_writes_session_marker(signed_in, preference_store):
    assert preference_store.values[PreferenceKey.SESSION_USER_ID.value] == "alice12345678"
    assert PreferenceKey.SESSION_STARTED_AT.value in preference_store.values


async def test_wrong_password_maps_to_invalid_credential(auth, identity_provider):
    identity_provider.add_account("bob@example.com", "right")
    await auth.initialize()
    ok = await auth.sign_in_with_credential(Credential("bob@example.com", "wrong"))
    assert not ok
    assert auth.state == AuthState.UNAUTHENTICATED
    assert auth.last_error == AuthErrorCode.INVALID_CREDENTIAL


async def test_disabled_account(auth, identity_provider):
    await auth.initialize()
    identity_provider.fail_next("authenticate", "USER_DISABLED")
    assert not await auth.sign_in_with_credential(Credential("a@example.com", "x"))
    assert auth.last_error == AuthErrorCode.ACCOUNT_DISABLED


async def test_unmapped_provider_code_is_unknown(auth, identity_provider):
    await auth.initialize()
    identity_provider.fail_next("authenticate", ProviderError("brand-new-code"))
    assert not await auth.sign_in_with_credential(Credential("a@example.com", "x"))
    assert auth.last_error == AuthErrorCode.UNKNOWN


async def test_store_failure_during_bootstrap_is_unknown(auth, identity_provider, profile_store):
    identity_provider.add_account("c@example.com", "pw1234")
    await auth.initialize()
    profile_store.fail_writes = True
    assert not await auth.sign_in_with_credential(Credential("c@example.com", "pw1234"))
    assert auth.state == AuthState.UNAUTHENTICATED
    assert auth.last_error == AuthErrorCode.UNKNOWN


async def test_sign_up_with_chosen_username(auth, profile_store):
    await auth.initialize()
    ok = await auth.sign_up_with_credential(Credential("new@example.com", "longpass"), "newbie")
    assert ok
    assert auth.profile.username == "newbie"
    assert profile_store.put_calls == 1


async def test_sign_up_invalid_username(auth, identity_provider):
    await auth.initialize()
    ok = await auth.sign_up_with_credential(Credential("n@example.com", "longpass"), "no spaces!")
    assert not ok
    assert auth.last_error == AuthErrorCode.INVALID_CREDENTIAL
    assert "register" not in identity_provider.calls


async def test_sign_up_taken_username(signed_in, identity_provider):
    await signed_in.sign_out()
    ok = await signed_in.sign_up_with_credential(
        Credential("n@example.com", "longpass"), "user_alice123",
    )
    assert not ok
    assert signed_in.last_error == AuthErrorCode.ALREADY_IN_USE


async def test_sign_up_weak_password(auth):
    await auth.initialize()
    assert not await auth.sign_up_with_credential(Credential("w@example.com", "123"), "weakling")
    assert auth.last_error == AuthErrorCode.WEAK_CREDENTIAL


# --- phone verification -------------------------------------------------------

async def test_phone_verification_flow(auth):
    await auth.initialize()
    assert await auth.start_phone_verification("+1 555 0100")
    assert auth.state == AuthState.UNAUTHENTICATED
    assert auth.verification_pending
    assert await auth.verify_otp("123456")
    assert auth.state == AuthState.AUTHENTICATED
    assert auth.profile.phone == "+1 555 0100"
    assert not auth.verification_pending


async def test_verify_without_handle_is_expired(auth):
    await auth.initialize()
    assert not await auth.verify_otp("123456")
    assert auth.last_error == AuthErrorCode.VERIFICATION_EXPIRED


async def test_wrong_code_keeps_handle_for_retry(auth):
    await auth.initialize()
    await auth.start_phone_verification("+15550100")
    assert not await auth.verify_otp("000000")
    assert auth.last_error == AuthErrorCode.INVALID_CREDENTIAL
    assert auth.verification_pending
    assert await auth.verify_otp("123456")


async def test_expired_verification_clears_handle(auth, identity_provider):
    await auth.initialize()
    await auth.start_phone_verification("+15550100")
    identity_provider.expired_handles.add("vh-1")
    assert not await auth.verify_otp("123456")
    assert auth.last_error == AuthErrorCode.VERIFICATION_EXPIRED
    assert not auth.verification_pending


async def test_start_verification_failure_rolls_back(signed_in, identity_provider):
    before = signed_in.profile
    identity_provider.fail_next("start_verification", "TOO_MANY_REQUESTS")
    assert not await signed_in.start_phone_verification("+15550100")
    assert signed_in.state == AuthState.AUTHENTICATED
    assert signed_in.profile == before
    assert signed_in.last_error == AuthErrorCode.RATE_LIMITED


async def test_wrong_password_while_signed_in_keeps_profile(signed_in):
    before = signed_in.profile
    identity = signed_in.identity
    assert not await signed_in.sign_in_with_credential(
        Credential("alice@example.com", "wrong-pw"),
    )
    assert signed_in.state == AuthState.AUTHENTICATED
    assert signed_in.profile == before
    assert signed_in.identity == identity
    assert signed_in.last_error == AuthErrorCode.INVALID_CREDENTIAL


async def test_verify_without_handle_while_signed_in_keeps_profile(signed_in):
    before = signed_in.profile
    assert not await signed_in.verify_otp("123456")
    assert signed_in.state == AuthState.AUTHENTICATED
    assert signed_in.profile == before
    assert signed_in.last_error == AuthErrorCode.VERIFICATION_EXPIRED


async def test_failed_sign_up_while_signed_in_keeps_profile(signed_in):
    before = signed_in.profile
    ok = await signed_in.sign_up_with_credential(
        Credential("n@example.com", "longpass"), "user_alice123",
    )
    assert not ok
    assert signed_in.is_authenticated
    assert signed_in.profile == before
    assert signed_in.last_error == AuthErrorCode.ALREADY_IN_USE


# --- sign out -----------------------------------------------------------------

async def test_sign_out_clears_session_and_marker(signed_in, preference_store):
    await signed_in.sign_out()
    assert signed_in.state == AuthState.UNAUTHENTICATED
    assert signed_in.profile is None
    assert PreferenceKey.SESSION_USER_ID.value not in preference_store.values


async def test_sign_out_survives_provider_failure(signed_in, identity_provider):
    identity_provider.fail_next("sign_out", RuntimeError("network"))
    await signed_in.sign_out()
    assert signed_in.state == AuthState.UNAUTHENTICATED


# --- update_profile -----------------------------------------------------------

async def test_update_profile_requires_authentication(auth):
    await auth.initialize()
    with pytest.raises(NotAuthenticatedError):
        await auth.update_profile(None)


async def test_update_profile_persists_and_bumps_version(signed_in, profile_store):
    before = signed_in.profile
    assert await signed_in.update_profile(replace(before, username="alice"))
    assert signed_in.profile.username == "alice"
    assert signed_in.profile.version == before.version + 1
    assert profile_store.profiles[before.id].username == "alice"


async def test_update_profile_rejects_wrong_id(signed_in):
    with pytest.raises(ProfileValidationError):
        await signed_in.update_profile(replace(signed_in.profile, id="someone-else"))


async def test_update_profile_rejects_locked_theme(signed_in):
    profile = signed_in.profile
    with pytest.raises(ProfileValidationError) as exc_info:
        await signed_in.update_profile(
            replace(profile, settings=replace(profile.settings, theme="sunset")),
        )
    assert "sunset" in exc_info.value.message


async def test_update_profile_rejects_taken_username(signed_in, profile_store):
    await profile_store.put(new_profile(Identity("x"), "taken_name", NOW))
    with pytest.raises(ProfileValidationError):
        await signed_in.update_profile(replace(signed_in.profile, username="taken_name"))


async def test_tier_downgrade_never_resets_counters(signed_in, profile_store):
    stored = profile_store.profiles[signed_in.profile.id]
    profile_store.profiles[stored.id] = replace(
        stored, tier=Tier.PLUS, counters=ProfileCounters(messages_today=400),
    )
    stale = replace(signed_in.profile, tier=Tier.FREE, counters=ProfileCounters())
    assert await signed_in.update_profile(stale)
    assert signed_in.profile.counters.messages_today == 400
    assert profile_store.profiles[stored.id].counters.messages_today == 400


async def test_update_profile_retries_after_conflict(signed_in, profile_store):
    profile_store.conflicts_to_inject = 1
    assert await signed_in.update_profile(replace(signed_in.profile, username="retried"))
    assert signed_in.profile.username == "retried"


async def test_update_profile_store_failure_keeps_previous(signed_in, profile_store):
    before = signed_in.profile
    profile_store.fail_writes = True
    assert not await signed_in.update_profile(replace(before, username="never_saved"))
    assert signed_in.state == AuthState.AUTHENTICATED
    assert signed_in.profile == before
    assert signed_in.last_error == AuthErrorCode.UNKNOWN


async def test_upgrade_enables_smart_notifications(signed_in, preference_store):
    key = PreferenceKey.SMART_NOTIFICATIONS.value
    assert preference_store.values[key] == "false"
    assert await signed_in.update_profile(replace(signed_in.profile, tier=Tier.PLUS))
    assert preference_store.values[key] == "true"


async def test_tier_change_respects_user_override(signed_in, preference_store):
    await signed_in.preferences.set_smart_notifications(False)
    assert await signed_in.update_profile(replace(signed_in.profile, tier=Tier.PRO))
    assert preference_store.values[PreferenceKey.SMART_NOTIFICATIONS.value] == "false"


# --- other profile operations -------------------------------------------------

async def test_skip_username_setup_assigns_temporary_name(signed_in):
    assert await signed_in.skip_username_setup()
    assert signed_in.profile.username.startswith("user_")
    assert signed_in.profile.username != "user_alice123"


async def test_skip_username_setup_avoids_collision(signed_in, profile_store):
    from chatly.core.usernames import temporary_username
    await profile_store.put(new_profile(Identity("y"), temporary_username(NOW), NOW))
    assert await signed_in.skip_username_setup()
    assert signed_in.profile.username == f"{temporary_username(NOW)}_1"


async def test_username_availability(signed_in):
    assert not await signed_in.is_username_available("user_alice123")
    assert await signed_in.is_username_available("free_name")
    assert not await signed_in.is_username_available("x")


async def test_username_availability_store_failure_is_false(signed_in, profile_store):
    profile_store.fail_reads = True
    assert not await signed_in.is_username_available("free_name")


async def test_update_last_seen_non_critical(signed_in, profile_store):
    assert await signed_in.update_last_seen()
    profile_store.fail_writes = True
    assert not await signed_in.update_last_seen()
    assert signed_in.state == AuthState.AUTHENTICATED


async def test_adopt_profile_only_takes_newer_snapshot(signed_in):
    current = signed_in.profile
    assert signed_in.adopt_profile(replace(current, version=current.version + 1))
    assert not signed_in.adopt_profile(replace(current, version=0))
    assert not signed_in.adopt_profile(replace(current, id="other", version=99))


async def test_account_deletion_emits_request_and_signs_out(signed_in, deletions):
    profile_id = signed_in.profile.id
    deletion = await signed_in.request_account_deletion()
    assert deletions == [deletion]
    assert deletion.profile_id == profile_id
    assert signed_in.state == AuthState.UNAUTHENTICATED


async def test_preference_failures_do_not_break_sign_in(auth, identity_provider, preference_store):
    identity_provider.add_account("d@example.com", "pw1234")
    await auth.initialize()
    preference_store.fail_writes = True
    assert await auth.sign_in_with_credential(Credential("d@example.com", "pw1234"))


# --- entitlement --------------------------------------------------------------

async def test_apply_entitlement_changes_only_tier(signed_in, profile_store, preference_store):
    stored = profile_store.profiles[signed_in.profile.id]
    profile_store.profiles[stored.id] = replace(
        stored, counters=ProfileCounters(messages_today=12), version=stored.version + 1,
    )
    assert await signed_in.apply_entitlement(Tier.PRO)
    assert signed_in.profile.tier == Tier.PRO
    assert signed_in.profile.counters.messages_today == 12
    assert signed_in.profile.username == stored.username
    assert preference_store.values[PreferenceKey.SMART_NOTIFICATIONS.value] == "true"


async def test_apply_entitlement_requires_authentication(auth):
    await auth.initialize()
    with pytest.raises(NotAuthenticatedError):
        await auth.apply_entitlement(Tier.PLUS)


async def test_apply_entitlement_store_failure_keeps_previous(signed_in, profile_store):
    before = signed_in.profile
    profile_store.fail_writes = True
    assert not await signed_in.apply_entitlement(Tier.PLUS)
    assert signed_in.profile == before
    assert signed_in.last_error == AuthErrorCode.UNKNOWN
