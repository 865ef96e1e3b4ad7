"""Service test fixtures — async DB, fake side-effect backends, FastAPI test client.

Invariants:
    - Every test gets a fresh in-memory SQLite database
    - The client fixture wires the real pipeline (SqlEntityStore, SubscriberRegistry,
      WriteOrchestrator) onto app.state with FakeCache and FakeRevalidationClient
    - app.state.db points at a manager bound to the test engine (readiness probe)

Design Decisions:
    - SQLite in-memory: fast, no external dependency, sufficient for pipeline tests
      (PostgreSQL-specific features not exercised here)
    - ASGITransport does not run the lifespan, so attach_collaborators() is called
      directly with the fakes
"""

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncSession, async_sessionmaker, create_async_engine,
)

import couponhub.models  # noqa: F401
from couponhub.config import get_settings
from couponhub.db.base import Base
from couponhub.infrastructure.database import DatabaseSessionManager
from couponhub.infrastructure.entity_store import SqlEntityStore
from couponhub.main import app, attach_collaborators

from tests.services.fake_backends import FakeCache, FakeRevalidationClient


@pytest.fixture
async def test_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:", echo=False,
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
async def test_db(test_session_factory):
    async with test_session_factory() as session:
        yield session


@pytest.fixture
def entity_store(test_session_factory):
    return SqlEntityStore(test_session_factory)


@pytest.fixture
def fake_cache():
    return FakeCache()


@pytest.fixture
def fake_revalidation():
    return FakeRevalidationClient()


@pytest.fixture
async def client(test_engine, test_session_factory, fake_cache, fake_revalidation):
    """FastAPI test client with the write pipeline wired to test backends."""
    attach_collaborators(
        app, get_settings(), test_session_factory, fake_cache, fake_revalidation,
    )
    fake_manager = DatabaseSessionManager.__new__(DatabaseSessionManager)
    fake_manager.engine = test_engine
    fake_manager._session_factory = test_session_factory
    app.state.db = fake_manager

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test",
    ) as c:
        yield c


@pytest.fixture
def registry(client):
    return app.state.registry
