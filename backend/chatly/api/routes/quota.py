"""Quota Routes — usage report and metered actions for the signed-in profile.

Invariants:
    - Every metered action goes through QuotaService (compare-and-swap, no lost increments)
    - A refused action → QuotaExceededError (429) with the QuotaError as code
    - After a committed action the client's AuthSession adopts the new profile snapshot
"""

import logging

from fastapi import APIRouter, Depends

from chatly.api.dependencies import get_auth_session, get_quota_service, require_authenticated
from chatly.core.errors import ErrorContext, QuotaExceededError
from chatly.core.profile import Profile
from chatly.core.quota_ledger import usage_summary
from chatly.schemas.quota import AnonymousPostRequest, QuotaOutcomeView, UsageView
from chatly.services.auth_session import AuthSession
from chatly.services.quota_service import QuotaOutcome, QuotaService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/quota", tags=["quota"])


def _committed(outcome: QuotaOutcome, auth: AuthSession) -> QuotaOutcomeView:
    if not outcome.allowed:
        raise QuotaExceededError(
            outcome.reason, ErrorContext(user_id=outcome.profile.id, client_id=auth.client_id),
        )
    auth.adopt_profile(outcome.profile)
    return QuotaOutcomeView(
        allowed=True, usage=UsageView(**usage_summary(outcome.profile)),
    )


@router.get("/me", response_model=UsageView)
async def get_usage(
    profile: Profile = Depends(require_authenticated),
    quota: QuotaService = Depends(get_quota_service),
):
    """Usage read from the store, not the session snapshot: other clients may have metered."""
    stored = await quota.store.get(profile.id)
    return UsageView(**usage_summary(stored or profile))


@router.post("/messages", response_model=QuotaOutcomeView)
async def send_message(
    profile: Profile = Depends(require_authenticated),
    auth: AuthSession = Depends(get_auth_session),
    quota: QuotaService = Depends(get_quota_service),
):
    return _committed(await quota.send_message(profile.id), auth)


@router.post("/anonymous-posts", response_model=QuotaOutcomeView)
async def post_anonymous(
    body: AnonymousPostRequest,
    profile: Profile = Depends(require_authenticated),
    auth: AuthSession = Depends(get_auth_session),
    quota: QuotaService = Depends(get_quota_service),
):
    return _committed(await quota.post_anonymous(profile.id, body.char_count), auth)


@router.post("/groups", response_model=QuotaOutcomeView)
async def create_group(
    profile: Profile = Depends(require_authenticated),
    auth: AuthSession = Depends(get_auth_session),
    quota: QuotaService = Depends(get_quota_service),
):
    return _committed(await quota.create_group(profile.id), auth)
