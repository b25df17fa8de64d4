"""Structured Logging — JSON log records for the Chatly API and its per-client services.

Invariants:
    - Every record carries timestamp, level, logger, service and message
    - Client-scoped extras (client_id, user_id, auth_state, error_code, tier, topic,
      delivery, attempt, path) are surfaced only when the caller set them
    - Credentials and session tokens are never passed as extras (Credential.password is
      excluded from repr; tokens only travel in headers)
    - setup_logging is idempotent: a second call replaces the handler it installed

Design Decisions:
    - JSONFormatter over third-party libs: zero dependencies, full control
    - Chatty library loggers (uvicorn access lines, SQLAlchemy engine echo) capped at
      WARNING so per-request client logs stay readable
"""

import logging
import json
from datetime import datetime, timezone

SERVICE_NAME = "chatly-api"

_EXTRA_FIELDS = (
    "user_id", "client_id", "auth_state", "error_code", "tier",
    "topic", "delivery", "attempt", "path",
)
_QUIET_LOGGERS = ("uvicorn.access", "sqlalchemy.engine")


class JSONFormatter(logging.Formatter):
    """One JSON object per record, client-scoped extras included when present."""

    def format(self, record: logging.LogRecord) -> str:
        log = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "service": SERVICE_NAME,
            "message": record.getMessage(),
        }
        log.update({
            key: record.__dict__[key]
            for key in _EXTRA_FIELDS
            if record.__dict__.get(key) is not None
        })
        if record.exc_info:
            log["exception"] = self.formatException(record.exc_info)
        return json.dumps(log, ensure_ascii=False, default=str)


_handler: logging.Handler | None = None


def setup_logging(level: str = "INFO", fmt: str = "json"):
    """Install the Chatly handler on the root logger (replacing a previous one)."""
    global _handler
    handler = logging.StreamHandler()
    if fmt == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s [%(client_id)s] — %(message)s",
            defaults={"client_id": "-"},
        ))
    if _handler is not None:
        logging.root.removeHandler(_handler)
    _handler = handler
    logging.root.addHandler(handler)
    logging.root.setLevel(getattr(logging, level.upper(), logging.INFO))
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
