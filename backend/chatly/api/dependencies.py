"""API Dependencies — FastAPI providers for stores, collaborators and per-client services.

Invariants:
    - Every client is identified by the X-Client-Id header; no header -> 400
    - One ClientServices entry (AuthSession + NotificationScheduler) per client id
    - A new AuthSession is initialized (provider session restore) before first use
    - Once a client is signed in, every request must carry its server-issued session
      token (Authorization: Bearer); knowing the client id alone is not enough
    - Tokens are issued on sign-in, sign-up, OTP verification and session restore,
      and returned in the X-Session-Token response header
    - Sign-out and account deletion release the entry: pending notifications are
      cancelled and the token dies with it
    - Idle entries without pending notifications are evicted after
      client_idle_timeout_minutes
    - require_authenticated raises NotAuthenticatedError (401) for signed-out clients

Design Decisions:
    - _clients as a module-level dict: deliberate exception to the no-global-state rule
      (ADR: single-process uvicorn, sessions are transient and lost on restart, like the
      in-memory state registry elsewhere)
    - Client id scopes the device (provider, preferences, scheduler); the token proves
      ownership of the signed-in session
    - Stores built per request from the current db_manager: tests patch the manager
"""

import logging
import secrets
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

from fastapi import Depends, Header, Response

from chatly.config import get_settings
from chatly.core.errors import ErrorContext, InvalidSessionTokenError, NotAuthenticatedError
from chatly.core.profile import Profile
from chatly.core.repository_protocols import (
    EntitlementVerifier, IdentityProvider, PreferenceStore, ProfileStore,
)
from chatly.infrastructure import collaborators
from chatly.infrastructure.preference_repository import SqlPreferenceStore
from chatly.infrastructure.profile_repository import SqlProfileStore
from chatly.services.auth_session import AuthSession
from chatly.services.notification_scheduler import NotificationScheduler
from chatly.services.quota_service import QuotaService
import chatly.infrastructure.database as db_module

logger = logging.getLogger(__name__)

SESSION_TOKEN_HEADER = "X-Session-Token"


@dataclass
class ClientServices:
    """In-memory services for one client id."""
    auth: AuthSession
    scheduler: NotificationScheduler | None = None
    token: str | None = None
    last_used: float = field(default_factory=time.monotonic)

    def has_pending(self) -> bool:
        return self.scheduler is not None and bool(self.scheduler.pending_keys)

    async def close(self) -> None:
        if self.scheduler is not None:
            await self.scheduler.shutdown()


_clients: dict[str, ClientServices] = {}


async def get_client_id(
    x_client_id: str = Header(..., min_length=1, max_length=128),
) -> str:
    return x_client_id


async def get_session_token(
    authorization: str | None = Header(None),
) -> str | None:
    if not authorization or not authorization.startswith("Bearer "):
        return None
    return authorization.split(" ", 1)[1].strip() or None


# ─── Stores & collaborators ──────────────────────────────────────

async def get_profile_store() -> ProfileStore:
    return SqlProfileStore(db_module.get_db_manager())


async def get_preference_store(
    client_id: str = Depends(get_client_id),
) -> PreferenceStore:
    return SqlPreferenceStore(db_module.get_db_manager(), client_id)


async def get_identity_provider(
    client_id: str = Depends(get_client_id),
) -> IdentityProvider:
    return collaborators.identity_provider_for(client_id)


async def get_entitlement_verifier() -> EntitlementVerifier:
    return collaborators.entitlement_verifier()


async def get_quota_service(
    store: ProfileStore = Depends(get_profile_store),
) -> QuotaService:
    return QuotaService(store, max_attempts=get_settings().quota_max_cas_attempts)


# ─── Per-client services ─────────────────────────────────────────

def issue_session_token(entry: ClientServices, response: Response) -> str:
    """Rotate the client's session token and hand it back in the response header."""
    entry.token = secrets.token_urlsafe(32)
    response.headers[SESSION_TOKEN_HEADER] = entry.token
    return entry.token


async def release_client(client_id: str) -> None:
    """Forget a client: cancel its pending notifications and drop its token."""
    entry = _clients.pop(client_id, None)
    if entry is None:
        return
    await entry.close()
    logger.info("Client services released", extra={"client_id": client_id})


async def _evict_idle() -> None:
    cutoff = time.monotonic() - get_settings().client_idle_timeout_minutes * 60
    for client_id, entry in list(_clients.items()):
        if entry.last_used < cutoff and not entry.has_pending():
            await release_client(client_id)


async def get_client_services(
    response: Response,
    client_id: str = Depends(get_client_id),
    token: str | None = Depends(get_session_token),
    identity_provider: IdentityProvider = Depends(get_identity_provider),
    profile_store: ProfileStore = Depends(get_profile_store),
    preference_store: PreferenceStore = Depends(get_preference_store),
) -> ClientServices:
    await _evict_idle()
    entry = _clients.get(client_id)
    if entry is None:
        settings = get_settings()
        auth = AuthSession(
            identity_provider, profile_store, preference_store,
            client_id=client_id,
            max_username_attempts=settings.username_max_attempts,
            cas_attempts=settings.quota_max_cas_attempts,
            deletion_grace_period=timedelta(days=settings.deletion_grace_period_days),
            on_deletion_requested=collaborators.deletion_hook(),
        )
        entry = ClientServices(auth)
        _clients[client_id] = entry
        await auth.initialize()
        if auth.is_authenticated:
            issue_session_token(entry, response)
        logger.info(
            "Client services created",
            extra={"client_id": client_id, "auth_state": auth.state.value},
        )
    elif entry.token is not None and (
        token is None
        or not secrets.compare_digest(token.encode(), entry.token.encode())
    ):
        logger.warning(
            "Rejected request without a valid session token",
            extra={"client_id": client_id, "auth_state": entry.auth.state.value},
        )
        raise InvalidSessionTokenError(ErrorContext(client_id=client_id))
    entry.last_used = time.monotonic()
    return entry


async def get_auth_session(
    entry: ClientServices = Depends(get_client_services),
) -> AuthSession:
    return entry.auth


async def require_authenticated(
    auth: AuthSession = Depends(get_auth_session),
) -> Profile:
    if not auth.is_authenticated:
        raise NotAuthenticatedError()
    return auth.profile


def _local_clock():
    tz = ZoneInfo(get_settings().notification_timezone)
    return lambda: datetime.now(tz)


async def get_notification_scheduler(
    entry: ClientServices = Depends(get_client_services),
) -> NotificationScheduler:
    if entry.scheduler is None:
        entry.scheduler = NotificationScheduler(
            collaborators.notification_renderer(),
            policy=get_settings().smart_timing_policy(),
            clock=_local_clock(),
        )
    return entry.scheduler


async def shutdown_client_services() -> None:
    """Cancel pending notifications and forget all client sessions."""
    for entry in list(_clients.values()):
        await entry.close()
    _clients.clear()
