"""Service test fixtures — async DB, seeded wallets, and FastAPI test client.

Invariants:
    - Every test gets a fresh in-memory SQLite database
    - get_db dependency overridden to use test DB session
    - db_manager patched for notification delivery, which bypasses get_db
    - Seeded wallets start with the 200 SKL registration grant

Design Decisions:
    - SQLite in-memory: fast, no external dependency; the guarded UPDATE statements
      behave the same as on PostgreSQL for sequential calls
    - Services exercised directly against test_db; routes exercised through client
"""

import pytest
from sqlalchemy.ext.asyncio import (
    AsyncSession, create_async_engine, async_sessionmaker,
)
from httpx import ASGITransport, AsyncClient

from skillloop.core.notification_events import EventOutbox
from skillloop.db.base import Base
from skillloop.infrastructure.database import get_db, DatabaseSessionManager
import skillloop.infrastructure.database as db_module
import skillloop.models  # noqa: F401
from skillloop.main import app
from skillloop.services.users import UserDirectory
from tests.services.factories import (
    INITIAL_BALANCE, LEARNER, OTHER_TUTOR, OUTSIDER, TUTOR,
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
def outbox():
    return EventOutbox()


@pytest.fixture
async def wallets(test_db):
    """Register learner, two tutors and an outsider with the initial grant."""
    directory = UserDirectory(test_db)
    for address, name in (
        (LEARNER, "learner"), (TUTOR, "tutor"),
        (OTHER_TUTOR, "tutor2"), (OUTSIDER, "outsider"),
    ):
        await directory.register(address, name, INITIAL_BALANCE)
    return {"learner": LEARNER, "tutor": TUTOR, "other": OTHER_TUTOR, "outsider": OUTSIDER}


@pytest.fixture
async def fake_manager(test_engine, test_session_factory):
    """db_manager replacement bound to the test engine (used by background delivery)."""
    original_manager = db_module.db_manager
    manager = DatabaseSessionManager.__new__(DatabaseSessionManager)
    manager.engine = test_engine
    manager._session_factory = test_session_factory
    db_module.db_manager = manager
    yield manager
    db_module.db_manager = original_manager


@pytest.fixture
async def client(test_session_factory, fake_manager):
    """FastAPI test client with DB dependency overridden."""
    async def override_get_db():
        async with test_session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture
async def race_factory(tmp_path):
    """Sessions on a file-backed SQLite database, one connection each, wallets seeded.

    Writers serialize on the database lock the way competing transactions serialize on
    row locks in PostgreSQL. The in-memory engine shares a single connection, so its
    sessions cannot race.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'race.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as db:
        directory = UserDirectory(db)
        for address in (LEARNER, TUTOR, OTHER_TUTOR):
            await directory.register(address, None, INITIAL_BALANCE)
    yield factory
    await engine.dispose()
