"""Auth Routes — session lifecycle, profile editing and account endpoints.

Invariants:
    - Failed sign-in/up/verify → AuthenticationError (401) carrying the mapped
      AuthErrorCode and its user-facing message, never a raw provider code
    - Successful sign-in/up/verify rotates the client's session token (X-Session-Token)
    - Sign-out and account deletion release the client: pending notifications cancelled
    - Profile PATCH overlays the request onto the signed-in profile; AuthSession validates
      and persists the result (tier and counters are never taken from the request)
    - Tier changes only through POST /entitlement, verified by the host's payment collaborator
    - Passwords never appear in a response or a log line

Design Decisions:
    - Routes stay thin: every decision lives in AuthSession (ADR: ExMA impureim sandwich)
"""

import logging
from dataclasses import replace

from fastapi import APIRouter, Depends, Query, Response, status

from chatly.api.dependencies import (
    ClientServices, get_auth_session, get_client_services, get_entitlement_verifier,
    issue_session_token, release_client, require_authenticated,
)
from chatly.core.domain_types import AuthErrorCode
from chatly.core.errors import AuthenticationError, ChatlyError, ErrorCategory, ErrorContext
from chatly.core.profile import Credential, Profile
from chatly.core.provider_errors import auth_error_message
from chatly.core.repository_protocols import EntitlementVerifier
from chatly.schemas.auth import (
    CredentialRequest, DeletionView, EntitlementRequest, PhoneStartRequest,
    PhoneVerifyRequest, ProfileUpdate, ProfileView, SessionView, SignUpRequest,
    UsernameAvailability,
)
from chatly.services.auth_session import AuthSession

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/auth", tags=["auth"])


def session_view(auth: AuthSession) -> SessionView:
    profile = auth.profile
    return SessionView(
        state=auth.state,
        is_authenticated=auth.is_authenticated,
        last_error=auth.last_error,
        verification_pending=auth.verification_pending,
        profile=ProfileView.from_profile(profile) if profile else None,
    )


def _auth_failed(auth: AuthSession) -> AuthenticationError:
    code = auth.last_error or AuthErrorCode.UNKNOWN
    return AuthenticationError(
        code, f"Authentication failed: {code.value}",
        ErrorContext(client_id=auth.client_id, user_message=auth_error_message(code)),
    )


def _overlay(profile: Profile, body: ProfileUpdate) -> Profile:
    changes = body.model_dump(exclude_unset=True, exclude_none=True, exclude={"settings"})
    updated = replace(profile, **changes)
    if body.settings is not None:
        settings_changes = body.settings.model_dump(exclude_unset=True, exclude_none=True)
        updated = replace(
            updated, settings=replace(profile.settings, **settings_changes),
        )
    return updated


def _signed_in(entry: ClientServices, response: Response) -> SessionView:
    issue_session_token(entry, response)
    return session_view(entry.auth)


def _save_failed(message: str) -> ChatlyError:
    return ChatlyError(
        message, "PROFILE_SAVE_FAILED",
        ErrorCategory.DATABASE, http_status=status.HTTP_503_SERVICE_UNAVAILABLE,
    )


# ─── Session lifecycle ───────────────────────────────────────────

@router.get("/session", response_model=SessionView)
async def get_session(auth: AuthSession = Depends(get_auth_session)):
    return session_view(auth)


@router.post("/sign-in", response_model=SessionView)
async def sign_in(
    body: CredentialRequest,
    response: Response,
    entry: ClientServices = Depends(get_client_services),
):
    if not await entry.auth.sign_in_with_credential(Credential(body.email, body.password)):
        raise _auth_failed(entry.auth)
    return _signed_in(entry, response)


@router.post(
    "/sign-up", response_model=SessionView, status_code=status.HTTP_201_CREATED,
)
async def sign_up(
    body: SignUpRequest,
    response: Response,
    entry: ClientServices = Depends(get_client_services),
):
    ok = await entry.auth.sign_up_with_credential(
        Credential(body.email, body.password), body.username,
    )
    if not ok:
        raise _auth_failed(entry.auth)
    return _signed_in(entry, response)


@router.post("/phone/start", status_code=status.HTTP_202_ACCEPTED)
async def start_phone_verification(
    body: PhoneStartRequest, auth: AuthSession = Depends(get_auth_session),
):
    if not await auth.start_phone_verification(body.phone_number):
        raise _auth_failed(auth)
    return {"verification_pending": True}


@router.post("/phone/verify", response_model=SessionView)
async def verify_phone(
    body: PhoneVerifyRequest,
    response: Response,
    entry: ClientServices = Depends(get_client_services),
):
    if not await entry.auth.verify_otp(body.code):
        raise _auth_failed(entry.auth)
    return _signed_in(entry, response)


@router.post("/sign-out", response_model=SessionView)
async def sign_out(auth: AuthSession = Depends(get_auth_session)):
    await auth.sign_out()
    await release_client(auth.client_id)
    return session_view(auth)


# ─── Profile ─────────────────────────────────────────────────────

@router.patch("/profile", response_model=ProfileView)
async def update_profile(
    body: ProfileUpdate,
    profile: Profile = Depends(require_authenticated),
    auth: AuthSession = Depends(get_auth_session),
):
    if not await auth.update_profile(_overlay(profile, body)):
        raise _save_failed("Profile could not be saved")
    return ProfileView.from_profile(auth.profile)


@router.post("/entitlement", response_model=ProfileView)
async def apply_entitlement(
    body: EntitlementRequest,
    profile: Profile = Depends(require_authenticated),
    auth: AuthSession = Depends(get_auth_session),
    verifier: EntitlementVerifier = Depends(get_entitlement_verifier),
):
    """Apply the tier the payment collaborator verified for this receipt."""
    tier = await verifier.verify(profile.id, body.receipt)
    if not await auth.apply_entitlement(tier):
        raise _save_failed("Entitlement could not be saved")
    return ProfileView.from_profile(auth.profile)


@router.get("/username-available", response_model=UsernameAvailability)
async def username_available(
    username: str = Query(..., min_length=1, max_length=64),
    auth: AuthSession = Depends(get_auth_session),
):
    return UsernameAvailability(
        username=username, available=await auth.is_username_available(username),
    )


@router.post("/username/skip", response_model=ProfileView)
async def skip_username_setup(
    profile: Profile = Depends(require_authenticated),
    auth: AuthSession = Depends(get_auth_session),
):
    if not await auth.skip_username_setup():
        raise _save_failed("Temporary username could not be assigned")
    return ProfileView.from_profile(auth.profile)


@router.post(
    "/account/deletion", response_model=DeletionView,
    status_code=status.HTTP_202_ACCEPTED,
)
async def request_account_deletion(
    profile: Profile = Depends(require_authenticated),
    auth: AuthSession = Depends(get_auth_session),
):
    deletion = await auth.request_account_deletion()
    await release_client(auth.client_id)
    return DeletionView(
        profile_id=deletion.profile_id,
        requested_at=deletion.requested_at,
        purge_after=deletion.purge_after,
    )
