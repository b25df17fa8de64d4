"""ORM Models — SQLAlchemy declarative models for persisted Chatly state.

Invariants:
    - All models inherit from Base (db/base.py)
    - Only profiles and client preferences are persisted; sessions are transient

Design Decisions:
    - One file per entity for locality (ADR: ExMA max 3-4 files to understand a feature)
    - All models imported here so Base.metadata is complete before create_all/alembic
"""

from chatly.models.profile import ProfileRecord  # noqa: F401
from chatly.models.preference import PreferenceRecord  # noqa: F401
