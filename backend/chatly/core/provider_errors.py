"""Provider Error Mapping — raw identity-provider codes to the closed AuthErrorCode set.

Invariants:
    - map_provider_error is total: any unrecognized code maps to UNKNOWN
    - Codes are normalized first, so "EMAIL_EXISTS" and "email-exists" are the same code
    - AUTH_ERROR_MESSAGES has one user-facing message per AuthErrorCode
"""

from chatly.core.domain_types import AuthErrorCode


_PROVIDER_CODES: dict[str, AuthErrorCode] = {
    "wrong-password": AuthErrorCode.INVALID_CREDENTIAL,
    "invalid-password": AuthErrorCode.INVALID_CREDENTIAL,
    "invalid-email": AuthErrorCode.INVALID_CREDENTIAL,
    "user-not-found": AuthErrorCode.INVALID_CREDENTIAL,
    "email-not-found": AuthErrorCode.INVALID_CREDENTIAL,
    "invalid-credential": AuthErrorCode.INVALID_CREDENTIAL,
    "invalid-login-credentials": AuthErrorCode.INVALID_CREDENTIAL,
    "invalid-verification-code": AuthErrorCode.INVALID_CREDENTIAL,
    "invalid-code": AuthErrorCode.INVALID_CREDENTIAL,
    "user-disabled": AuthErrorCode.ACCOUNT_DISABLED,
    "email-already-in-use": AuthErrorCode.ALREADY_IN_USE,
    "email-exists": AuthErrorCode.ALREADY_IN_USE,
    "credential-already-in-use": AuthErrorCode.ALREADY_IN_USE,
    "phone-number-already-exists": AuthErrorCode.ALREADY_IN_USE,
    "weak-password": AuthErrorCode.WEAK_CREDENTIAL,
    "too-many-requests": AuthErrorCode.RATE_LIMITED,
    "too-many-attempts-try-later": AuthErrorCode.RATE_LIMITED,
    "quota-exceeded": AuthErrorCode.RATE_LIMITED,
    "invalid-verification-id": AuthErrorCode.VERIFICATION_EXPIRED,
    "invalid-session-info": AuthErrorCode.VERIFICATION_EXPIRED,
    "session-expired": AuthErrorCode.VERIFICATION_EXPIRED,
    "code-expired": AuthErrorCode.VERIFICATION_EXPIRED,
    "operation-not-allowed": AuthErrorCode.OPERATION_NOT_PERMITTED,
    "admin-restricted-operation": AuthErrorCode.OPERATION_NOT_PERMITTED,
}


AUTH_ERROR_MESSAGES: dict[AuthErrorCode, str] = {
    AuthErrorCode.INVALID_CREDENTIAL: "Incorrect credentials. Please check and try again.",
    AuthErrorCode.ACCOUNT_DISABLED: "This account has been disabled.",
    AuthErrorCode.ALREADY_IN_USE: "This account or username is already registered.",
    AuthErrorCode.WEAK_CREDENTIAL: "Password must be at least 8 characters long.",
    AuthErrorCode.RATE_LIMITED: "Too many attempts. Please try again later.",
    AuthErrorCode.VERIFICATION_EXPIRED: "Verification session expired. Please start again.",
    AuthErrorCode.OPERATION_NOT_PERMITTED: "This sign-in method is disabled.",
    AuthErrorCode.UNKNOWN: "Authentication failed. Please try again.",
}


def normalize_provider_code(code: str | None) -> str:
    normalized = (code or "").strip().lower().replace("_", "-")
    # Some providers prefix codes with a namespace ("auth/user-disabled")
    return normalized.rsplit("/", 1)[-1]


def map_provider_error(code: str | None) -> AuthErrorCode:
    return _PROVIDER_CODES.get(normalize_provider_code(code), AuthErrorCode.UNKNOWN)


def auth_error_message(error: AuthErrorCode) -> str:
    return AUTH_ERROR_MESSAGES[error]
