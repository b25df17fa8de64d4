"""Error Hierarchy — typed, categorized exceptions for all Chatly engine failure modes.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - Domain errors (400-level) are recoverable; infrastructure errors (500-level) are critical
    - to_response() produces the REST envelope
    - ProviderError carries a raw identity-provider code and never crosses the AuthSession boundary

Design Decisions:
    - Single hierarchy with ChatlyError base: FastAPI global handler catches all (ADR: uniform error shape)
    - ErrorContext as dataclass: rich observability without coupling to logging framework
    - ProviderError is NOT a ChatlyError: it is the contract for collaborator implementations,
      mapped to AuthErrorCode before anything user-facing sees it
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from datetime import datetime, timezone

from chatly.core.domain_types import AuthErrorCode, AuthState, QuotaError


class ErrorSeverity(str, Enum):
    """Error severity for observability and client handling."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    """High-level error categories for routing and handling."""
    VALIDATION = "validation"
    AUTHENTICATION = "authentication"
    BUSINESS_RULE = "business_rule"
    QUOTA = "quota"
    RESOURCE_NOT_FOUND = "resource_not_found"
    DATABASE = "database"
    EXTERNAL_API = "external_api"
    INTERNAL = "internal"
    CONFLICT = "conflict"


@dataclass
class ErrorContext:
    """Rich context for error observability and debugging."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    user_id: str | None = None
    client_id: str | None = None
    user_message: str | None = None
    debug_info: dict[str, Any] | None = None


class ChatlyError(Exception):
    """Base exception for all Chatly engine errors."""

    def __init__(
        self,
        message: str,
        code: str,
        category: ErrorCategory,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: ErrorContext | None = None,
        http_status: int = 500,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()
        self.http_status = http_status

    def to_response(self) -> dict:
        """Convert to standardized REST error response."""
        return {
            "error": {
                "code": self.code,
                "message": self.context.user_message or self.message,
                "category": self.category.value,
                "severity": self.severity.value,
                "timestamp": self.context.timestamp.isoformat(),
            }
        }


# ─── Collaborator Boundary ──────────────────────────────────────

class ProviderError(Exception):
    """Raised by IdentityProvider implementations with the provider's own error code."""

    def __init__(self, code: str, message: str = ""):
        super().__init__(message or code)
        self.code = code
        self.message = message or code


# ─── Domain Errors (400-level) ──────────────────────────────────

class AuthenticationError(ChatlyError):
    """Sign-in/up/verification failed — carries the mapped AuthErrorCode only."""
    def __init__(self, error_code: AuthErrorCode, message: str, context: ErrorContext | None = None):
        super().__init__(
            message, error_code.value.upper(), ErrorCategory.AUTHENTICATION,
            ErrorSeverity.WARNING, context, 401,
        )
        self.error_code = error_code


class NotAuthenticatedError(ChatlyError):
    """Operation requires an authenticated session."""
    def __init__(self, context: ErrorContext | None = None):
        super().__init__(
            "An authenticated session is required",
            "NOT_AUTHENTICATED", ErrorCategory.AUTHENTICATION,
            ErrorSeverity.WARNING, context, 401,
        )


class InvalidSessionTokenError(ChatlyError):
    """Client session is signed in but the request did not prove it owns it."""
    def __init__(self, context: ErrorContext | None = None):
        super().__init__(
            "Session token missing or invalid",
            "INVALID_SESSION_TOKEN", ErrorCategory.AUTHENTICATION,
            ErrorSeverity.WARNING, context, 401,
        )


class EntitlementRejectedError(ChatlyError):
    """Purchase receipt did not verify; the tier is left unchanged."""
    def __init__(self, reason: str, context: ErrorContext | None = None):
        super().__init__(
            f"Entitlement rejected: {reason}",
            "ENTITLEMENT_REJECTED", ErrorCategory.BUSINESS_RULE,
            ErrorSeverity.WARNING, context, 402,
        )
        self.reason = reason


class SessionTransitionError(ChatlyError):
    """AuthSession asked to move along an edge the state machine does not have."""
    def __init__(self, current: AuthState, target: AuthState, context: ErrorContext | None = None):
        super().__init__(
            f"Invalid session transition: {current.value} -> {target.value}",
            "INVALID_SESSION_TRANSITION", ErrorCategory.BUSINESS_RULE,
            ErrorSeverity.ERROR, context, 409,
        )
        self.current = current
        self.target = target


class ProfileValidationError(ChatlyError):
    """Profile update input failed validation."""
    def __init__(self, errors: list[str], context: ErrorContext | None = None):
        super().__init__(
            "; ".join(errors), "PROFILE_VALIDATION_ERROR", ErrorCategory.VALIDATION,
            ErrorSeverity.ERROR, context, 400,
        )
        self.errors = errors


class UsernameUnavailableError(ChatlyError):
    """No collision-free username could be allocated from a base name."""
    def __init__(self, base: str, attempts: int, context: ErrorContext | None = None):
        super().__init__(
            f"No free username derived from '{base}' after {attempts} attempts",
            "USERNAME_UNAVAILABLE", ErrorCategory.CONFLICT,
            ErrorSeverity.ERROR, context, 409,
        )
        self.base = base


class QuotaExceededError(ChatlyError):
    """Metered action refused by the tier policy."""
    def __init__(self, reason: QuotaError, context: ErrorContext | None = None):
        super().__init__(
            f"Quota check failed: {reason.value}",
            reason.value.upper(), ErrorCategory.QUOTA,
            ErrorSeverity.WARNING, context, 429,
        )
        self.reason = reason


class ResourceNotFoundError(ChatlyError):
    """Requested resource does not exist."""
    def __init__(
        self, resource_type: str, resource_id: str, context: ErrorContext | None = None,
    ):
        super().__init__(
            f"{resource_type} '{resource_id}' not found",
            "RESOURCE_NOT_FOUND", ErrorCategory.RESOURCE_NOT_FOUND,
            ErrorSeverity.ERROR, context, 404,
        )


# ─── Infrastructure Errors (500-level) ──────────────────────────

class DatabaseError(ChatlyError):
    """Database operation failed."""
    def __init__(self, message: str, operation: str, context: ErrorContext | None = None):
        super().__init__(
            f"Database {operation} failed: {message}",
            "DATABASE_ERROR", ErrorCategory.DATABASE,
            ErrorSeverity.CRITICAL, context, 503,
        )
        self.operation = operation


class ConcurrencyError(ChatlyError):
    """Compare-and-swap kept losing against concurrent writers."""
    def __init__(self, message: str, context: ErrorContext | None = None):
        super().__init__(
            message, "CONCURRENCY_CONFLICT", ErrorCategory.CONFLICT,
            ErrorSeverity.ERROR, context, 409,
        )


class CollaboratorNotConfiguredError(ChatlyError):
    """Host did not inject a required external collaborator."""
    def __init__(self, collaborator: str, context: ErrorContext | None = None):
        super().__init__(
            f"External collaborator not configured: {collaborator}",
            "COLLABORATOR_NOT_CONFIGURED", ErrorCategory.EXTERNAL_API,
            ErrorSeverity.CRITICAL, context, 503,
        )
        self.collaborator = collaborator
