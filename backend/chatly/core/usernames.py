"""Username Candidates — pure generators for default and temporary usernames.

Invariants:
    - Every candidate matches [A-Za-z0-9_]{3,20}
    - Generators never assume uniqueness: the shell checks each candidate against the store

Design Decisions:
    - Attempt-indexed suffixes (base, base_1, base_2, ...) keep collision retries deterministic
"""

import re
from datetime import datetime


MAX_USERNAME_LENGTH: int = 20


def default_username(subject_id: str) -> str:
    """user_<first 8 word characters of the provider subject id>."""
    stem = re.sub(r"[^A-Za-z0-9_]", "", subject_id)[:8] or "member"
    return f"user_{stem}"


def temporary_username(now: datetime) -> str:
    """Timestamp-derived name used when a user skips username setup."""
    millis = str(int(now.timestamp() * 1000))
    return f"user_{millis[8:] or millis}"


def username_candidate(base: str, attempt: int) -> str:
    if attempt == 0:
        return base[:MAX_USERNAME_LENGTH]
    suffix = f"_{attempt}"
    return base[:MAX_USERNAME_LENGTH - len(suffix)] + suffix
