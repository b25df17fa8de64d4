"""Session State Machine — transition table and immutable session snapshot.

Invariants:
    - INITIALIZING is reachable only from UNINITIALIZED (entered exactly once per run)
    - AUTHENTICATING is a sub-state of AUTHENTICATED/UNAUTHENTICATED and always leaves
      to one of them — never to INITIALIZING or UNINITIALIZED
    - A snapshot in AUTHENTICATED always carries identity and profile; any other state
      that is not a rollback target carries neither
    - check_transition is pure: returns None or raises, never mutates

Design Decisions:
    - Explicit edge table over ad-hoc booleans (isLoading/isAuthenticated): an
      undefined session state is unrepresentable (ADR: rollback on failure)
    - Session is frozen: AuthSession swaps whole snapshots, so readers never observe
      a half-applied transition
"""

from dataclasses import dataclass

from chatly.core.domain_types import AuthErrorCode, AuthState
from chatly.core.errors import SessionTransitionError
from chatly.core.profile import Identity, Profile


ALLOWED_TRANSITIONS: dict[AuthState, frozenset[AuthState]] = {
    AuthState.UNINITIALIZED: frozenset({
        AuthState.INITIALIZING, AuthState.UNAUTHENTICATED,
    }),
    AuthState.INITIALIZING: frozenset({
        AuthState.AUTHENTICATED, AuthState.UNAUTHENTICATED,
    }),
    AuthState.AUTHENTICATED: frozenset({
        AuthState.AUTHENTICATING, AuthState.AUTHENTICATED, AuthState.UNAUTHENTICATED,
    }),
    AuthState.UNAUTHENTICATED: frozenset({
        AuthState.AUTHENTICATING, AuthState.UNAUTHENTICATED,
    }),
    AuthState.AUTHENTICATING: frozenset({
        AuthState.AUTHENTICATED, AuthState.UNAUTHENTICATED,
    }),
}


@dataclass(frozen=True)
class Session:
    """Transient per-client session. Never persisted as a whole."""
    state: AuthState = AuthState.UNINITIALIZED
    identity: Identity | None = None
    profile: Profile | None = None
    last_error: AuthErrorCode | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.state == AuthState.AUTHENTICATED and self.profile is not None


def can_transition(current: AuthState, target: AuthState) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


def check_transition(current: AuthState, target: AuthState) -> None:
    if not can_transition(current, target):
        raise SessionTransitionError(current, target)
