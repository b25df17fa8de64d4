"""External Collaborators — host-injected identity provider, renderer, entitlement
verifier and deletion hook.

Invariants:
    - The engine ships no identity provider, platform renderer or payment client of its own
    - Getters raise CollaboratorNotConfiguredError (503) until the host configures them
    - The identity provider factory is called once per client id, so providers that hold
      a signed-in user per device stay isolated
    - Tier changes over HTTP only come from the entitlement verifier, never from the client
    - The deletion hook is optional: without one, deletion requests are only logged

Design Decisions:
    - Module-level registry set at startup, mirroring db_manager: FastAPI dependencies
      read it at request time, tests call configure_collaborators with fakes
"""

import logging
from typing import Callable

from chatly.core.errors import CollaboratorNotConfiguredError
from chatly.core.profile import DeletionRequest
from chatly.core.repository_protocols import (
    EntitlementVerifier, IdentityProvider, NotificationRenderer,
)

logger = logging.getLogger(__name__)

IdentityProviderFactory = Callable[[str], IdentityProvider]
DeletionHook = Callable[[DeletionRequest], None]

_identity_provider_factory: IdentityProviderFactory | None = None
_notification_renderer: NotificationRenderer | None = None
_entitlement_verifier: EntitlementVerifier | None = None
_deletion_hook: DeletionHook | None = None


def configure_collaborators(
    identity_provider_factory: IdentityProviderFactory | None = None,
    notification_renderer: NotificationRenderer | None = None,
    deletion_hook: DeletionHook | None = None,
    entitlement_verifier: EntitlementVerifier | None = None,
):
    global _identity_provider_factory, _notification_renderer, _deletion_hook
    global _entitlement_verifier
    _identity_provider_factory = identity_provider_factory
    _notification_renderer = notification_renderer
    _deletion_hook = deletion_hook
    _entitlement_verifier = entitlement_verifier
    logger.info(
        f"Collaborators configured: identity_provider={identity_provider_factory is not None} "
        f"renderer={notification_renderer is not None} "
        f"entitlement_verifier={entitlement_verifier is not None} "
        f"deletion_hook={deletion_hook is not None}",
    )


def identity_provider_for(client_id: str) -> IdentityProvider:
    if _identity_provider_factory is None:
        raise CollaboratorNotConfiguredError("identity_provider")
    return _identity_provider_factory(client_id)


def notification_renderer() -> NotificationRenderer:
    if _notification_renderer is None:
        raise CollaboratorNotConfiguredError("notification_renderer")
    return _notification_renderer


def entitlement_verifier() -> EntitlementVerifier:
    if _entitlement_verifier is None:
        raise CollaboratorNotConfiguredError("entitlement_verifier")
    return _entitlement_verifier


def deletion_hook() -> DeletionHook | None:
    return _deletion_hook
