"""Root conftest — shared test configuration."""

import os

# Tests never reach a real database or a managed host's settings
os.environ.setdefault(
    "DATABASE_URL",
    "sqlite+aiosqlite:///test.db",
)
os.environ.setdefault("LOG_FORMAT", "text")
os.environ.setdefault("NOTIFICATION_TIMEZONE", "UTC")
