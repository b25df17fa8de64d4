"""Service test fixtures — async DB, in-memory fakes and FastAPI test client.

Invariants:
    - Every test gets a fresh in-memory SQLite database
    - db_manager patched so the SQL stores built per request use the test DB
    - Collaborators configured with fakes: one FakeIdentityProvider per client id,
      one shared RecordingRenderer, one FakeEntitlementVerifier
    - Per-client services (auth sessions, schedulers, tokens) cleared after each test

Design Decisions:
    - SQLite in-memory with StaticPool: every session shares the one connection,
      so data written by one request is visible to the next
    - db_manager patched, not get_db overridden: stores take the manager directly
"""

import pytest
from sqlalchemy.ext.asyncio import (
    AsyncSession, create_async_engine, async_sessionmaker,
)
from sqlalchemy.pool import StaticPool
from httpx import ASGITransport, AsyncClient

from chatly.api import dependencies
from chatly.db.base import Base
from chatly.infrastructure.collaborators import configure_collaborators
from chatly.infrastructure.database import DatabaseSessionManager
import chatly.infrastructure.database as db_module
import chatly.models  # noqa: F401
from chatly.main import app
from tests.services.fakes import (
    FakeEntitlementVerifier, FakeIdentityProvider, InMemoryPreferenceStore,
    InMemoryProfileStore, RecordingRenderer,
)


@pytest.fixture
async def test_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:", echo=False, poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def test_session_factory(test_engine):
    return async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False,
    )


@pytest.fixture
async def test_db_manager(test_engine, test_session_factory):
    manager = DatabaseSessionManager.__new__(DatabaseSessionManager)
    manager.engine = test_engine
    manager._session_factory = test_session_factory
    return manager


@pytest.fixture
def identity_provider():
    return FakeIdentityProvider()


@pytest.fixture
def profile_store():
    return InMemoryProfileStore()


@pytest.fixture
def preference_store():
    return InMemoryPreferenceStore()


@pytest.fixture
def renderer():
    return RecordingRenderer()


@pytest.fixture
def entitlements():
    return FakeEntitlementVerifier()


@pytest.fixture
def providers():
    """Fake identity providers by client id, created on first use."""
    return {}


@pytest.fixture
async def client(test_db_manager, providers, renderer, entitlements):
    """FastAPI test client wired to the test DB and fake collaborators."""
    original_manager = db_module.db_manager
    db_module.db_manager = test_db_manager

    def provider_for(client_id):
        return providers.setdefault(client_id, FakeIdentityProvider())

    configure_collaborators(
        identity_provider_factory=provider_for, notification_renderer=renderer,
        entitlement_verifier=entitlements,
    )

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test",
    ) as c:
        yield c

    await dependencies.shutdown_client_services()
    configure_collaborators()
    app.dependency_overrides.clear()
    db_module.db_manager = original_manager
