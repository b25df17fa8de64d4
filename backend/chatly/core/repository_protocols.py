"""Boundary Protocols — contracts between core and the external collaborators.

Invariants:
    - Core NEVER imports from shell — dependency arrows point inward only
    - All IO operations accessed through Protocol types
    - Implementations provided by the host via dependency injection

Design Decisions:
    - Protocol over ABC: structural subtyping, test fakes need no inheritance
    - Async in Protocol: boundary methods are async because implementations do IO,
      but core pure functions that USE these results are never async themselves —
      the services layer orchestrates the async calls around the pure logic
    - IdentityProvider raises ProviderError(code) instead of returning a Result:
      the AuthSession maps codes to AuthErrorCode at its boundary
"""

from typing import Protocol

from chatly.core.domain_types import Tier
from chatly.core.profile import Credential, Identity, Profile
from chatly.core.smart_timing import NotificationJob


class IdentityProvider(Protocol):
    """Contract for the external identity provider (email/password, phone/OTP)."""
    async def current_identity(self) -> Identity | None: ...
    async def authenticate(self, credential: Credential) -> Identity: ...
    async def register(self, credential: Credential) -> Identity: ...
    async def start_verification(self, phone_number: str) -> str: ...
    async def confirm_verification(self, handle: str, code: str) -> Identity: ...
    async def sign_out(self) -> None: ...


class ProfileStore(Protocol):
    """Contract for profile persistence.

    put() creates or replaces unconditionally (used for bootstrap);
    compare_and_swap() writes only if the stored version still equals
    expected_version and returns the stored profile (version bumped),
    or None when another writer got there first.
    """
    async def get(self, profile_id: str) -> Profile | None: ...
    async def put(self, profile: Profile) -> Profile: ...
    async def compare_and_swap(
        self, profile: Profile, expected_version: int,
    ) -> Profile | None: ...
    async def username_exists(self, username: str) -> bool: ...


class PreferenceStore(Protocol):
    """Contract for simple string key/value client preferences."""
    async def get(self, key: str) -> str | None: ...
    async def set(self, key: str, value: str) -> None: ...
    async def delete(self, key: str) -> None: ...


class NotificationRenderer(Protocol):
    """Contract for the platform notification renderer — fire and forget."""
    async def render(self, job: NotificationJob) -> None: ...


class EntitlementVerifier(Protocol):
    """Contract for the payment flow: turns a purchase receipt into a verified tier.

    Raises EntitlementRejectedError when the receipt does not verify.
    """
    async def verify(self, profile_id: str, receipt: str) -> Tier: ...
