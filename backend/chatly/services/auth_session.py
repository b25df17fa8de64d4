"""Auth Session — per-client authentication lifecycle and profile bootstrap.

Invariants:
    - Every state change goes through check_transition (session_machine.py)
    - Auth failures are RETURNED (False + last_error), never raised; only programming
      errors (illegal transition, update while signed out, invalid profile input) raise
    - Never left in AUTHENTICATING: failures roll back to the snapshot taken when the
      attempt began (a signed-in user stays signed in after a wrong password)
    - Raw provider codes never leave this module: ProviderError -> AuthErrorCode
    - A missing profile is synthesized and put exactly once per bootstrap
    - Profile writes go through compare-and-swap; counters always come from the store

Design Decisions:
    - Snapshot swapping (frozen Session) over mutable fields: readers never see a
      half-applied transition (ADR: rollback on failure)
    - One shared _authenticate path for sign-in, sign-up and OTP: the three flows
      differ only in the provider call and the username they bootstrap with
    - Deletion is a signal (DeletionRequest callback), not a purge: the host owns the
      grace-period job
"""

import logging
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable

from chatly.core.domain_types import AuthErrorCode, AuthState, Tier, VerificationHandle
from chatly.core.errors import (
    ConcurrencyError, NotAuthenticatedError, ProfileValidationError, ProviderError,
    ResourceNotFoundError, UsernameUnavailableError,
)
from chatly.core.profile import (
    DELETION_GRACE_PERIOD, Credential, DeletionRequest, Identity, Profile,
    merge_profile_update, new_profile, request_deletion, validate_profile,
    validate_username,
)
from chatly.core.provider_errors import map_provider_error
from chatly.core.repository_protocols import (
    IdentityProvider, PreferenceStore, ProfileStore,
)
from chatly.core.session_machine import Session, check_transition
from chatly.core.usernames import default_username, temporary_username, username_candidate
from chatly.services.preferences import PreferenceService

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AuthSession:
    """Owns one client's Session snapshot and drives it through the auth flows."""

    def __init__(
        self,
        identity_provider: IdentityProvider,
        profile_store: ProfileStore,
        preference_store: PreferenceStore,
        *,
        clock: Clock = utc_now,
        client_id: str | None = None,
        max_username_attempts: int = 5,
        cas_attempts: int = 3,
        deletion_grace_period: timedelta = DELETION_GRACE_PERIOD,
        on_deletion_requested: Callable[[DeletionRequest], None] | None = None,
    ):
        self.identity_provider = identity_provider
        self.profile_store = profile_store
        self.preferences = PreferenceService(preference_store)
        self.clock = clock
        self.client_id = client_id
        self.max_username_attempts = max_username_attempts
        self.cas_attempts = cas_attempts
        self.deletion_grace_period = deletion_grace_period
        self.on_deletion_requested = on_deletion_requested
        self._session = Session()
        self._rollback: Session | None = None
        self._verification_handle: VerificationHandle | None = None

    # ─── Read-only view ──────────────────────────────────────────

    @property
    def session(self) -> Session:
        return self._session

    @property
    def state(self) -> AuthState:
        return self._session.state

    @property
    def identity(self) -> Identity | None:
        return self._session.identity

    @property
    def profile(self) -> Profile | None:
        return self._session.profile

    @property
    def last_error(self) -> AuthErrorCode | None:
        return self._session.last_error

    @property
    def is_authenticated(self) -> bool:
        return self._session.is_authenticated

    @property
    def verification_pending(self) -> bool:
        return self._verification_handle is not None

    # ─── Transitions ─────────────────────────────────────────────

    def _log_extra(self, **extra) -> dict:
        profile = self._session.profile
        return {
            "client_id": self.client_id,
            "user_id": profile.id if profile else None,
            "auth_state": self._session.state.value,
            **extra,
        }

    def _move(self, target: AuthState, **changes) -> None:
        check_transition(self._session.state, target)
        self._session = replace(self._session, state=target, **changes)

    def _begin_authenticating(self) -> None:
        self._rollback = self._session
        self._move(AuthState.AUTHENTICATING, last_error=None)

    def _roll_back(self, last_error: AuthErrorCode | None) -> None:
        """Return to the snapshot taken by _begin_authenticating."""
        previous, self._rollback = self._rollback, None
        if previous is not None and previous.is_authenticated:
            self._move(
                AuthState.AUTHENTICATED, identity=previous.identity,
                profile=previous.profile, last_error=last_error,
            )
        else:
            self._move(
                AuthState.UNAUTHENTICATED, identity=None, profile=None,
                last_error=last_error,
            )

    def _fail(self, code: AuthErrorCode, exc: Exception | None = None) -> bool:
        logger.warning(
            f"Authentication failed: {code.value} ({exc})",
            extra=self._log_extra(error_code=code.value),
        )
        self._roll_back(code)
        return False

    def _require_authenticated(self) -> Profile:
        if not self._session.is_authenticated:
            raise NotAuthenticatedError()
        return self._session.profile

    # ─── Lifecycle ───────────────────────────────────────────────

    async def initialize(self) -> None:
        """Restore an existing provider session, if any. Enters INITIALIZING once."""
        self._move(AuthState.INITIALIZING)
        try:
            identity = await self.identity_provider.current_identity()
        except Exception as e:
            logger.warning(
                f"Could not restore provider session: {e}", extra=self._log_extra(),
            )
            self._move(AuthState.UNAUTHENTICATED)
            return
        if identity is None:
            self._move(AuthState.UNAUTHENTICATED)
            return
        try:
            profile = await self._bootstrap_profile(identity)
        except Exception as e:
            self._fail(AuthErrorCode.UNKNOWN, e)
            return
        self._move(
            AuthState.AUTHENTICATED, identity=identity, profile=profile, last_error=None,
        )
        logger.info("Session restored", extra=self._log_extra())

    async def sign_in_with_credential(self, credential: Credential) -> bool:
        self._begin_authenticating()
        return await self._authenticate(
            lambda: self.identity_provider.authenticate(credential),
        )

    async def sign_up_with_credential(self, credential: Credential, username: str) -> bool:
        self._begin_authenticating()
        if validate_username(username):
            return self._fail(AuthErrorCode.INVALID_CREDENTIAL)
        try:
            taken = await self.profile_store.username_exists(username)
        except Exception as e:
            return self._fail(AuthErrorCode.UNKNOWN, e)
        if taken:
            return self._fail(AuthErrorCode.ALREADY_IN_USE)
        return await self._authenticate(
            lambda: self.identity_provider.register(credential), username=username,
        )

    async def start_phone_verification(self, phone_number: str) -> bool:
        """Request an OTP. Success or failure, the session returns to its previous state."""
        self._begin_authenticating()
        try:
            handle = await self.identity_provider.start_verification(phone_number)
        except ProviderError as e:
            return self._fail(map_provider_error(e.code), e)
        except Exception as e:
            return self._fail(AuthErrorCode.UNKNOWN, e)
        self._verification_handle = VerificationHandle(handle)
        self._roll_back(None)
        return True

    async def verify_otp(self, code: str) -> bool:
        handle = self._verification_handle
        self._begin_authenticating()
        if handle is None:
            return self._fail(AuthErrorCode.VERIFICATION_EXPIRED)
        ok = await self._authenticate(
            lambda: self.identity_provider.confirm_verification(handle, code),
        )
        if ok or self.last_error == AuthErrorCode.VERIFICATION_EXPIRED:
            self._verification_handle = None
        return ok

    async def sign_out(self) -> None:
        """Best-effort provider sign-out. Always ends UNAUTHENTICATED."""
        try:
            await self.identity_provider.sign_out()
        except Exception as e:
            logger.warning(f"Provider sign-out failed: {e}", extra=self._log_extra())
        await self.preferences.clear_session_marker()
        self._verification_handle = None
        logger.info("Signed out", extra=self._log_extra())
        self._move(
            AuthState.UNAUTHENTICATED, identity=None, profile=None, last_error=None,
        )

    async def _authenticate(
        self,
        provider_call: Callable[[], Awaitable[Identity]],
        username: str | None = None,
    ) -> bool:
        try:
            identity = await provider_call()
        except ProviderError as e:
            return self._fail(map_provider_error(e.code), e)
        except Exception as e:
            return self._fail(AuthErrorCode.UNKNOWN, e)
        try:
            profile = await self._bootstrap_profile(identity, username)
        except Exception as e:
            return self._fail(AuthErrorCode.UNKNOWN, e)
        self._move(
            AuthState.AUTHENTICATED, identity=identity, profile=profile, last_error=None,
        )
        self._rollback = None
        logger.info("Signed in", extra=self._log_extra(tier=profile.tier.value))
        return True

    # ─── Profile bootstrap ───────────────────────────────────────

    async def _bootstrap_profile(
        self, identity: Identity, username: str | None = None,
    ) -> Profile:
        """Load or synthesize the profile, then record tier default and session marker."""
        now = self.clock()
        profile = await self.profile_store.get(identity.subject_id)
        if profile is None:
            if username is None:
                username = await self._allocate_username(
                    default_username(identity.subject_id),
                )
            profile = await self.profile_store.put(
                new_profile(identity, username, now),
            )
            logger.info(
                f"Created profile '{profile.username}'",
                extra={"user_id": profile.id, "client_id": self.client_id},
            )
        await self.preferences.apply_tier_default(profile.tier)
        await self.preferences.save_session_marker(profile.id, now)
        return profile

    async def _allocate_username(self, base: str) -> str:
        for attempt in range(self.max_username_attempts):
            candidate = username_candidate(base, attempt)
            if not await self.profile_store.username_exists(candidate):
                return candidate
        raise UsernameUnavailableError(base, self.max_username_attempts)

    async def _commit(self, transform: Callable[[Profile], Profile]) -> Profile:
        """Re-read, transform and compare-and-swap until the write lands."""
        profile_id = self._session.profile.id
        for attempt in range(self.cas_attempts):
            stored = await self.profile_store.get(profile_id)
            if stored is None:
                raise ResourceNotFoundError("Profile", profile_id)
            committed = await self.profile_store.compare_and_swap(
                transform(stored), stored.version,
            )
            if committed is not None:
                return committed
            logger.info(
                "Profile write conflict, retrying",
                extra=self._log_extra(attempt=attempt + 1),
            )
        raise ConcurrencyError(
            f"Profile '{profile_id}' changed {self.cas_attempts} times during update",
        )

    def _keep_profile(self, profile: Profile) -> None:
        self._move(AuthState.AUTHENTICATED, profile=profile, last_error=None)

    def _write_failed(self, action: str, exc: Exception) -> bool:
        logger.error(
            f"{action} failed: {exc}",
            extra=self._log_extra(error_code=AuthErrorCode.UNKNOWN.value),
        )
        self._session = replace(self._session, last_error=AuthErrorCode.UNKNOWN)
        return False

    # ─── Profile operations ──────────────────────────────────────

    async def update_profile(self, updated: Profile) -> bool:
        """Validate and persist user-editable fields. Invalid input raises."""
        current = self._require_authenticated()
        errors = []
        if updated.id != current.id:
            errors.append("Profile id does not match the signed-in user")
        errors.extend(validate_profile(updated))
        if not errors and updated.username != current.username:
            try:
                taken = await self.profile_store.username_exists(updated.username)
            except Exception as e:
                return self._write_failed("Username lookup", e)
            if taken:
                errors.append("Username is already taken")
        if errors:
            raise ProfileValidationError(errors)

        try:
            committed = await self._commit(
                lambda stored: merge_profile_update(stored, updated),
            )
        except Exception as e:
            return self._write_failed("Profile update", e)
        self._keep_profile(committed)
        if committed.tier != current.tier:
            await self.preferences.apply_tier_default(committed.tier)
        return True

    async def apply_entitlement(self, tier: Tier) -> bool:
        """Set the tier from a verified purchase. Counters and other fields are untouched."""
        current = self._require_authenticated()
        try:
            committed = await self._commit(lambda stored: replace(stored, tier=tier))
        except Exception as e:
            return self._write_failed("Entitlement update", e)
        self._keep_profile(committed)
        logger.info(
            f"Entitlement applied: {current.tier.value} -> {committed.tier.value}",
            extra=self._log_extra(tier=committed.tier.value),
        )
        if committed.tier != current.tier:
            await self.preferences.apply_tier_default(committed.tier)
        return True

    async def update_last_seen(self) -> bool:
        """Non-critical: failures are logged and leave the session untouched."""
        if not self._session.is_authenticated:
            return False
        now = self.clock()
        try:
            committed = await self._commit(
                lambda stored: replace(
                    stored, last_seen_at=max(stored.last_seen_at, now),
                ),
            )
        except Exception as e:
            logger.warning(f"Last-seen update failed: {e}", extra=self._log_extra())
            return False
        self._keep_profile(committed)
        return True

    async def skip_username_setup(self) -> bool:
        """Replace the username with a collision-checked temporary one."""
        self._require_authenticated()
        try:
            username = await self._allocate_username(temporary_username(self.clock()))
            committed = await self._commit(
                lambda stored: replace(stored, username=username),
            )
        except Exception as e:
            return self._write_failed("Temporary username", e)
        self._keep_profile(committed)
        return True

    async def is_username_available(self, username: str) -> bool:
        if validate_username(username):
            return False
        try:
            return not await self.profile_store.username_exists(username)
        except Exception as e:
            logger.warning(f"Username availability check failed: {e}")
            return False

    def adopt_profile(self, profile: Profile) -> bool:
        """Take a newer committed snapshot of the signed-in profile (e.g. after metering)."""
        current = self._session.profile
        if (
            not self._session.is_authenticated
            or profile.id != current.id
            or profile.version < current.version
        ):
            return False
        self._keep_profile(profile)
        return True

    async def request_account_deletion(self) -> DeletionRequest:
        """Emit a deletion signal for the signed-in account, then sign out."""
        profile = self._require_authenticated()
        deletion = request_deletion(profile, self.clock(), self.deletion_grace_period)
        logger.info(
            f"Account deletion requested, purge after {deletion.purge_after.isoformat()}",
            extra=self._log_extra(),
        )
        if self.on_deletion_requested is not None:
            self.on_deletion_requested(deletion)
        await self.sign_out()
        return deletion
