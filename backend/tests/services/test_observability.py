"""Logging tests — JSON records and idempotent setup."""

import json
import logging

from chatly.infrastructure.observability import JSONFormatter, setup_logging


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord(
        "chatly.services.auth_session", logging.WARNING, __file__, 1,
        "Authentication failed", None, None,
    )
    record.__dict__.update(extra)
    return record


def test_json_record_includes_client_extras():
    line = JSONFormatter().format(_record(client_id="device-1", error_code="rate_limited"))
    log = json.loads(line)
    assert log["service"] == "chatly-api"
    assert log["level"] == "WARNING"
    assert log["client_id"] == "device-1"
    assert log["error_code"] == "rate_limited"
    assert "user_id" not in log


def test_unknown_extras_are_not_serialized():
    log = json.loads(JSONFormatter().format(_record(password="hunter2", user_id=None)))
    assert "password" not in log
    assert "user_id" not in log


def test_setup_logging_replaces_its_own_handler():
    before = list(logging.root.handlers)
    level = logging.root.level
    try:
        setup_logging("DEBUG", "json")
        setup_logging("INFO", "text")
        added = [h for h in logging.root.handlers if h not in before]
        assert len(added) == 1
        assert not isinstance(added[0].formatter, JSONFormatter)
        assert logging.root.level == logging.INFO
        assert logging.getLogger("uvicorn.access").level == logging.WARNING
    finally:
        for handler in logging.root.handlers[:]:
            if handler not in before:
                logging.root.removeHandler(handler)
        logging.root.setLevel(level)
