"""Database Session Manager — async engine for the profile and preference stores.

Invariants:
    - Every session rolls back on exception (a failed compare-and-swap or profile put
      never leaves a partial write behind)
    - All SQLAlchemy exceptions mapped to DatabaseError (core/errors.py); the first
      matching entry in _ERROR_MAP wins, so subclasses precede DBAPIError
    - Postgres pools use pool_pre_ping; SQLite URLs (local runs, tests) skip pool sizing

Design Decisions:
    - Singleton db_manager initialized on startup: FastAPI lifespan manages lifecycle,
      dependencies read it at request time (ADR: no global import side effects)
    - expire_on_commit=False: stores convert records to frozen Profiles after commit
    - Mapping table over stacked except blocks: one place to read which driver failure
      becomes which DatabaseError operation
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncSession, create_async_engine, async_sessionmaker,
)
from sqlalchemy.exc import (
    IntegrityError, OperationalError, DBAPIError, SQLAlchemyError,
)
from sqlalchemy import text

from chatly.core.errors import DatabaseError

logger = logging.getLogger(__name__)

_ERROR_MAP: tuple[tuple[type[SQLAlchemyError], str, str], ...] = (
    (IntegrityError, "Integrity constraint violated", "commit"),
    (OperationalError, "Connection or operational error", "execute"),
    (DBAPIError, "Database driver error", "query"),
    (SQLAlchemyError, "Database operation failed", "unknown"),
)


def map_database_error(exc: SQLAlchemyError) -> DatabaseError:
    for exc_type, message, operation in _ERROR_MAP:
        if isinstance(exc, exc_type):
            return DatabaseError(message, operation)
    return DatabaseError(str(exc), "unknown")


class DatabaseSessionManager:
    """Async engine plus session factory; sessions roll back and map errors."""

    def __init__(
        self, database_url: str, pool_size: int = 20, max_overflow: int = 10,
    ):
        engine_kwargs = {"pool_pre_ping": True}
        if not database_url.startswith("sqlite"):
            engine_kwargs.update(
                pool_size=pool_size, max_overflow=max_overflow, pool_recycle=3600,
            )
        self.engine = create_async_engine(database_url, **engine_kwargs)
        self._session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        session = self._session_factory()
        try:
            yield session
        except SQLAlchemyError as e:
            await session.rollback()
            error = map_database_error(e)
            logger.error(f"{error.message}: {e}")
            raise error from e
        finally:
            await session.close()

    async def health_check(self) -> bool:
        """SELECT 1 for the readiness probe."""
        try:
            async with self.session() as db:
                await db.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.error(f"DB health check failed: {e}")
            return False

    async def dispose(self) -> None:
        await self.engine.dispose()


# Singleton (initialized on startup)
db_manager: DatabaseSessionManager | None = None


def init_db(database_url: str, **kwargs):
    global db_manager
    db_manager = DatabaseSessionManager(database_url, **kwargs)


def get_db_manager() -> DatabaseSessionManager:
    if not db_manager:
        raise RuntimeError("Database not initialized")
    return db_manager
