"""Service test fixtures — async DB, FastAPI test client and in-memory collaborators.

Invariants:
    - Every test gets a fresh in-memory SQLite database
    - get_db dependency overridden to use test DB session
    - db_manager patched so the readiness probe sees the test engine
    - Lifecycle tests run against fakes.py; store/route tests against SQLite

Design Decisions:
    - SQLite in-memory with StaticPool: one shared connection, so the schema
      created by the fixture is visible to every session
    - Profiles seeded directly: the engine never writes them
"""

from uuid import UUID, uuid4

import pytest
from sqlalchemy.ext.asyncio import (
    AsyncSession, create_async_engine, async_sessionmaker,
)
from sqlalchemy.pool import StaticPool
from httpx import ASGITransport, AsyncClient

from cosnap.db.base import Base
from cosnap.infrastructure.database import get_db, DatabaseSessionManager
import cosnap.infrastructure.database as db_module
from cosnap.main import app
from cosnap.models.profile import ProfileRow

from tests.services.fakes import (
    FakeConversationStore,
    FakeFlagStore,
    FakeMatchStore,
    FakeNotificationSink,
    FakeOfferStore,
    FakeProfileStore,
    FakeUnitOfWork,
)


@pytest.fixture
async def test_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
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
            try:
                yield session
            except BaseException:
                await session.rollback()
                raise

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


async def _seed_profile(session: AsyncSession, username: str, tier: str) -> UUID:
    profile = ProfileRow(id=uuid4(), username=username, plan_tier=tier)
    session.add(profile)
    await session.commit()
    return profile.id


@pytest.fixture
async def profiles(test_db):
    """One profile per tier plus a second free user, keyed by name."""
    return {
        "alice": await _seed_profile(test_db, "alice", "free"),
        "bob": await _seed_profile(test_db, "bob", "free"),
        "paula": await _seed_profile(test_db, "paula", "premium"),
        "root": await _seed_profile(test_db, "root", "admin"),
    }


# ─── in-memory collaborators ─────────────────────────────────────

@pytest.fixture
def uow():
    return FakeUnitOfWork()


@pytest.fixture
def flag_store():
    return FakeFlagStore()


@pytest.fixture
def offer_store():
    return FakeOfferStore()


@pytest.fixture
def match_store():
    return FakeMatchStore()


@pytest.fixture
def conversation_store():
    return FakeConversationStore()


@pytest.fixture
def notification_sink():
    return FakeNotificationSink()


@pytest.fixture
def profile_store():
    return FakeProfileStore()
