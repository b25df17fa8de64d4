"""Auth Schemas — request/response models for the session and profile endpoints.

Invariants:
    - Passwords accepted on input only, never echoed in a response
    - Usernames validated against [A-Za-z0-9_]{3,20} at the boundary
    - SessionView never carries a raw provider error code, only AuthErrorCode
    - The tier is never client-editable: ProfileUpdate forbids it, EntitlementRequest
      carries a receipt for the host's verifier instead

Design Decisions:
    - ProfileUpdate fields all optional: PATCH semantics, the route overlays them onto
      the signed-in profile before AuthSession validates the whole result
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from chatly.core.domain_types import AuthErrorCode, AuthState, Tier
from chatly.core.profile import Profile, message_retention_days

USERNAME_PATTERN = r"^[A-Za-z0-9_]{3,20}$"


class CredentialRequest(BaseModel):
    email: str = Field(min_length=3, max_length=320)
    password: str = Field(min_length=1, max_length=256)

    @field_validator("email")
    @classmethod
    def strip_email(cls, v: str) -> str:
        return v.strip()


class SignUpRequest(CredentialRequest):
    username: str = Field(pattern=USERNAME_PATTERN)


class PhoneStartRequest(BaseModel):
    phone_number: str = Field(pattern=r"^\+?[0-9 ()-]{6,32}$")


class PhoneVerifyRequest(BaseModel):
    code: str = Field(min_length=4, max_length=10)


class ProfileSettingsUpdate(BaseModel):
    theme: str | None = None
    font_size: float | None = Field(None, ge=8, le=48)
    retention_days: int | None = Field(None, ge=1, le=3650)
    show_online_status: bool | None = None
    allow_contacts_sync: bool | None = None
    last_seen_visibility: str | None = None
    profile_photo_visibility: str | None = None


class ProfileUpdate(BaseModel):
    """User-editable fields only. Unknown fields (tier, counters) are rejected."""
    model_config = ConfigDict(extra="forbid")

    username: str | None = None
    email: str | None = None
    phone: str | None = None
    settings: ProfileSettingsUpdate | None = None


class EntitlementRequest(BaseModel):
    """Receipt from the payment flow; the tier comes from its verification, not the client."""
    receipt: str = Field(min_length=1, max_length=4096)


class ProfileView(BaseModel):
    """Public-facing profile data with counters in their stored (camelCase) form."""
    id: str
    username: str
    email: str
    phone: str | None
    tier: Tier
    created_at: datetime
    last_seen_at: datetime
    settings: dict[str, str]
    counters: dict[str, int]
    version: int
    effective_retention_days: int

    @classmethod
    def from_profile(cls, profile: Profile) -> "ProfileView":
        return cls(
            id=profile.id,
            username=profile.username,
            email=profile.email,
            phone=profile.phone,
            tier=profile.tier,
            created_at=profile.created_at,
            last_seen_at=profile.last_seen_at,
            settings=profile.settings.to_mapping(),
            counters=profile.counters.to_mapping(),
            version=profile.version,
            effective_retention_days=message_retention_days(profile),
        )


class SessionView(BaseModel):
    state: AuthState
    is_authenticated: bool
    last_error: AuthErrorCode | None = None
    verification_pending: bool = False
    profile: ProfileView | None = None


class UsernameAvailability(BaseModel):
    username: str
    available: bool


class DeletionView(BaseModel):
    profile_id: str
    requested_at: datetime
    purge_after: datetime
