"""Session State Machine tests — transition table and snapshot properties."""

import pytest

from chatly.core.domain_types import AuthState
from chatly.core.errors import SessionTransitionError
from chatly.core.session_machine import Session, can_transition, check_transition


def test_new_session_is_uninitialized_and_signed_out():
    session = Session()
    assert session.state == AuthState.UNINITIALIZED
    assert not session.is_authenticated


@pytest.mark.parametrize("current, target", [
    (AuthState.UNINITIALIZED, AuthState.INITIALIZING),
    (AuthState.INITIALIZING, AuthState.AUTHENTICATED),
    (AuthState.INITIALIZING, AuthState.UNAUTHENTICATED),
    (AuthState.UNAUTHENTICATED, AuthState.AUTHENTICATING),
    (AuthState.AUTHENTICATED, AuthState.AUTHENTICATING),
    (AuthState.AUTHENTICATING, AuthState.AUTHENTICATED),
    (AuthState.AUTHENTICATING, AuthState.UNAUTHENTICATED),
    (AuthState.AUTHENTICATED, AuthState.UNAUTHENTICATED),
])
def test_allowed_transitions(current, target):
    assert can_transition(current, target)
    check_transition(current, target)


@pytest.mark.parametrize("current, target", [
    (AuthState.UNINITIALIZED, AuthState.AUTHENTICATING),
    (AuthState.AUTHENTICATED, AuthState.INITIALIZING),
    (AuthState.UNAUTHENTICATED, AuthState.INITIALIZING),
    (AuthState.AUTHENTICATING, AuthState.AUTHENTICATING),
    (AuthState.AUTHENTICATING, AuthState.INITIALIZING),
    (AuthState.UNAUTHENTICATED, AuthState.UNINITIALIZED),
])
def test_forbidden_transitions_raise(current, target):
    assert not can_transition(current, target)
    with pytest.raises(SessionTransitionError) as exc_info:
        check_transition(current, target)
    assert exc_info.value.http_status == 409
    assert exc_info.value.current == current


def test_authenticated_without_profile_is_not_authenticated():
    assert not Session(state=AuthState.AUTHENTICATED).is_authenticated
