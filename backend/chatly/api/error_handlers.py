"""Error Handlers — global exception handlers for the Chatly API.

Invariants:
    - ChatlyError → structured JSON with error code, message, severity
    - RequestValidationError → field-level error details (400)
    - Exception (catch-all) → never leaks internal details
    - Log level follows the error's severity: expected refusals (quota, bad password)
      are not logged as errors

Design Decisions:
    - Three-layer handler: domain (ChatlyError), validation (Pydantic), catch-all (Exception)
    - Extracted from main.py (ADR: ExMA import fan-out < 10)
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError

from chatly.core.errors import ChatlyError, ErrorSeverity, ProfileValidationError

logger = logging.getLogger(__name__)

_LOG_LEVELS = {
    ErrorSeverity.INFO: logging.INFO,
    ErrorSeverity.WARNING: logging.WARNING,
    ErrorSeverity.ERROR: logging.ERROR,
    ErrorSeverity.CRITICAL: logging.CRITICAL,
}


def register_error_handlers(app: FastAPI) -> None:
    """Register all global error handlers on the FastAPI app."""
    _register_chatly_error_handler(app)
    _register_validation_error_handler(app)
    _register_generic_error_handler(app)


def _register_chatly_error_handler(app: FastAPI) -> None:

    @app.exception_handler(ChatlyError)
    async def chatly_error_handler(request: Request, exc: ChatlyError):
        """Handle all Chatly domain/infrastructure errors."""
        logger.log(
            _LOG_LEVELS[exc.severity],
            f"ChatlyError: {exc.message}",
            extra={
                "error_code": exc.code,
                "path": request.url.path,
                "client_id": request.headers.get("x-client-id"),
            },
        )
        content = exc.to_response()
        if isinstance(exc, ProfileValidationError):
            content["error"]["details"] = [
                {"field": "profile", "message": message, "type": "value_error"}
                for message in exc.errors
            ]
        return JSONResponse(status_code=exc.http_status, content=content)


def _register_validation_error_handler(app: FastAPI) -> None:

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError,
    ):
        logger.warning(
            f"Validation error on {request.url.path}: {exc.errors()}",
        )
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=_build_validation_error_response(exc),
        )


def _register_generic_error_handler(app: FastAPI) -> None:

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception):
        """Catch-all — never leaks internal details."""
        logger.error(
            f"Unhandled exception on {request.url.path}: {exc}",
            exc_info=True,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": {
                    "code": "INTERNAL_ERROR",
                    "message": "An unexpected error occurred",
                    "category": "internal",
                    "severity": ErrorSeverity.CRITICAL.value,
                },
            },
        )


def _build_validation_error_response(exc: RequestValidationError) -> dict:
    return {
        "error": {
            "code": "VALIDATION_ERROR",
            "message": "Invalid request data",
            "category": "validation",
            "severity": ErrorSeverity.ERROR.value,
            "details": [
                {
                    "field": ".".join(str(loc) for loc in e["loc"]),
                    "message": e["msg"],
                    "type": e["type"],
                }
                for e in exc.errors()
            ],
        },
    }
