"""Database Session Manager — async connection pool with automatic rollback and health checks.

Invariants:
    - Every session auto-rolls-back on exception (no partial commits leak)
    - Connection pool uses pool_pre_ping for stale connection detection
    - All SQLAlchemy exceptions mapped to DatabaseError (core/errors.py)
    - One AsyncSession per request, shared by every store of that request

Design Decisions:
    - Singleton db_manager initialized on startup: FastAPI lifespan manages lifecycle
    - expire_on_commit=False: prevents lazy-load issues in async context
    - SqlUnitOfWork wraps the request session so services never see SQLAlchemy
"""

import logging
from datetime import datetime, timezone
from contextlib import asynccontextmanager
from typing import AsyncGenerator, AsyncIterator

from sqlalchemy.ext.asyncio import (
    AsyncSession, create_async_engine, async_sessionmaker,
)
from sqlalchemy.exc import (
    IntegrityError, OperationalError, DBAPIError, SQLAlchemyError,
)
from sqlalchemy import text

from cosnap.core.errors import DatabaseError

logger = logging.getLogger(__name__)


class DatabaseSessionManager:
    """Manages async database sessions with pooling, rollback, and health checks."""

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
        """Provide session with auto-rollback on exception."""
        session = self._session_factory()
        try:
            yield session
        except SQLAlchemyError as e:
            await session.rollback()
            raise map_db_error(e, "session")
        except BaseException:
            await session.rollback()
            raise
        finally:
            await session.close()

    async def health_check(self) -> bool:
        """Check database connectivity (for readiness probes)."""
        try:
            async with self.session() as db:
                await db.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.error(f"DB health check failed: {e}")
            return False

    async def dispose(self) -> None:
        await self.engine.dispose()


def map_db_error(e: SQLAlchemyError, operation: str) -> DatabaseError:
    """Translate a SQLAlchemy exception to the domain DatabaseError."""
    if isinstance(e, IntegrityError):
        logger.error(f"DB integrity error: {e}")
        return DatabaseError("Integrity constraint violated", operation)
    if isinstance(e, OperationalError):
        logger.error(f"DB operational error: {e}")
        return DatabaseError("Connection or operational error", operation)
    if isinstance(e, DBAPIError):
        logger.error(f"DB driver error: {e}")
        return DatabaseError("Database driver error", operation)
    logger.error(f"SQLAlchemy error: {e}")
    return DatabaseError("Database operation failed", operation)


@asynccontextmanager
async def db_errors(operation: str) -> AsyncIterator[None]:
    """Store-method guard: SQLAlchemy exceptions leave as DatabaseError."""
    try:
        yield
    except SQLAlchemyError as e:
        raise map_db_error(e, operation) from e


class SqlUnitOfWork:
    """UnitOfWork over one AsyncSession."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def commit(self) -> None:
        async with db_errors("commit"):
            await self.db.commit()

    async def rollback(self) -> None:
        async with db_errors("rollback"):
            await self.db.rollback()


# Singleton (initialized on startup)
db_manager: DatabaseSessionManager | None = None


def init_db(database_url: str, **kwargs):
    global db_manager
    db_manager = DatabaseSessionManager(database_url, **kwargs)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency for database sessions."""
    if not db_manager:
        raise RuntimeError("Database not initialized")
    async with db_manager.session() as session:
        yield session


def as_utc(value: datetime | None) -> datetime | None:
    """SQLite drops tzinfo on round-trip; stored values are always UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
