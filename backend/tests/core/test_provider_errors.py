"""Provider error mapping tests — raw provider codes to AuthErrorCode."""

import pytest

from chatly.core.domain_types import AuthErrorCode
from chatly.core.provider_errors import (
    AUTH_ERROR_MESSAGES, auth_error_message, map_provider_error, normalize_provider_code,
)


@pytest.mark.parametrize("code, expected", [
    ("EMAIL_EXISTS", AuthErrorCode.ALREADY_IN_USE),
    ("email-already-in-use", AuthErrorCode.ALREADY_IN_USE),
    ("auth/user-disabled", AuthErrorCode.ACCOUNT_DISABLED),
    ("WEAK_PASSWORD", AuthErrorCode.WEAK_CREDENTIAL),
    ("TOO_MANY_ATTEMPTS_TRY_LATER", AuthErrorCode.RATE_LIMITED),
    ("session-expired", AuthErrorCode.VERIFICATION_EXPIRED),
    ("INVALID_PASSWORD", AuthErrorCode.INVALID_CREDENTIAL),
    ("operation-not-allowed", AuthErrorCode.OPERATION_NOT_PERMITTED),
])
def test_known_codes_map(code, expected):
    assert map_provider_error(code) == expected


@pytest.mark.parametrize("code", ["", None, "SOMETHING_NEW", "network-request-failed"])
def test_unknown_codes_map_to_unknown(code):
    assert map_provider_error(code) == AuthErrorCode.UNKNOWN


def test_normalization_equates_spellings():
    assert normalize_provider_code("EMAIL_EXISTS") == normalize_provider_code("email-exists")


def test_every_error_code_has_a_message():
    assert set(AUTH_ERROR_MESSAGES) == set(AuthErrorCode)
    assert "disabled" in auth_error_message(AuthErrorCode.ACCOUNT_DISABLED)
