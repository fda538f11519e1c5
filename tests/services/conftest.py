"""Service test fixtures — async DB, FastAPI test client, in-memory repository.

Invariants:
    - Every test gets a fresh in-memory SQLite database
    - get_db dependency overridden to use test DB session
    - db_manager initialized for the readiness probe
    - Clock-dependent services get a FixedClock; nothing reads the wall clock

Design Decisions:
    - SQLite in-memory: fast, no external dependency, sufficient for route tests
      (PostgreSQL-specific features not exercised here)
    - Concurrency properties run against FakeEnvelopeRepository: a single shared
      SQLite connection cannot host truly concurrent transactions
"""

import pytest
from sqlalchemy.ext.asyncio import (
    AsyncSession, create_async_engine, async_sessionmaker,
)
from httpx import ASGITransport, AsyncClient

from lucky_money.db.base import Base
from lucky_money.infrastructure.database import get_db, DatabaseSessionManager
import lucky_money.infrastructure.database as db_module
import lucky_money.models  # noqa: F401
from lucky_money.main import app
from tests.services.fake_envelope_repository import (
    T0, FakeEnvelopeRepository, FixedClock, SequentialTokens,
)


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
async def client(test_engine, test_session_factory):
    """FastAPI test client with DB dependency overridden."""
    async def override_get_db():
        async with test_session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db

    original_manager = db_module.db_manager
    fake_manager = DatabaseSessionManager.__new__(DatabaseSessionManager)
    fake_manager.engine = test_engine
    fake_manager._session_factory = test_session_factory
    db_module.db_manager = fake_manager

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()
    db_module.db_manager = original_manager


@pytest.fixture
def clock():
    return FixedClock(T0)


@pytest.fixture
def tokens():
    return SequentialTokens()


@pytest.fixture
def fake_repo():
    return FakeEnvelopeRepository()
