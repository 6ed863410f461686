"""Database Session Manager — async engine, per-request sessions, and the unit of work.

Invariants:
    - A session that raises a SQLAlchemy error is rolled back and the error surfaces as
      DatabaseError (core/errors.py, 503); domain errors pass through untouched
    - atomic() commits a unit of work exactly once, or rolls all of it back
    - Sessions never expire loaded rows on commit: services return ORM objects to the
      route layer after their unit of work has committed

Design Decisions:
    - Module-level db_manager set by init_db() in the FastAPI lifespan; tests patch it
    - Pool sizing only for server databases: SQLite (tests, local dev) keeps its own pool class
    - Failure mapping is an ordered table: most specific SQLAlchemy class first
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.exc import (
    DBAPIError, IntegrityError, OperationalError, SQLAlchemyError,
)
from sqlalchemy.ext.asyncio import (
    AsyncSession, async_sessionmaker, create_async_engine,
)

from skillloop.core.errors import DatabaseError

logger = logging.getLogger(__name__)

_FAILURES: tuple[tuple[type[SQLAlchemyError], str, str], ...] = (
    (IntegrityError, "Integrity constraint violated", "commit"),
    (OperationalError, "Store unreachable or timed out", "execute"),
    (DBAPIError, "Database driver error", "query"),
    (SQLAlchemyError, "Database operation failed", "unknown"),
)


def _translate(exc: SQLAlchemyError) -> DatabaseError:
    for kind, message, operation in _FAILURES:
        if isinstance(exc, kind):
            return DatabaseError(message, operation)
    return DatabaseError("Database operation failed", "unknown")


class DatabaseSessionManager:
    """Owns the engine and hands out request-scoped sessions."""

    def __init__(
        self, database_url: str, pool_size: int = 20, max_overflow: int = 10,
    ):
        options: dict = {"pool_pre_ping": True}
        if not database_url.startswith("sqlite"):
            options.update(
                pool_size=pool_size, max_overflow=max_overflow, pool_recycle=3600,
            )
        self.engine = create_async_engine(database_url, **options)
        self._session_factory = async_sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False,
        )

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        session = self._session_factory()
        try:
            yield session
        except SQLAlchemyError as e:
            await session.rollback()
            logger.error(f"{type(e).__name__} rolled back: {e}")
            raise _translate(e) from e
        finally:
            await session.close()

    async def health_check(self) -> bool:
        """True when a trivial query round-trips (readiness probe)."""
        try:
            async with self.session() as db:
                await db.execute(text("SELECT 1"))
        except Exception as e:
            logger.error(f"Readiness query failed: {e}")
            return False
        return True

    async def dispose(self) -> None:
        await self.engine.dispose()


@asynccontextmanager
async def atomic(db: AsyncSession) -> AsyncGenerator[AsyncSession, None]:
    """One unit of work: commit on success, roll back everything on any error."""
    try:
        yield db
        await db.commit()
    except Exception:
        await db.rollback()
        raise


db_manager: DatabaseSessionManager | None = None


def init_db(database_url: str, **kwargs) -> None:
    global db_manager
    db_manager = DatabaseSessionManager(database_url, **kwargs)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: one session per request."""
    if not db_manager:
        raise RuntimeError("Database not initialized")
    async with db_manager.session() as session:
        yield session
