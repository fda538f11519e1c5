"""Database Engine — one async engine per process, one session per request.

Invariants:
    - A request session that escapes with a SQLAlchemyError is rolled back and
      the failure surfaces as DatabaseError, original exception chained
    - Lost compare-and-set races never reach here; the repository reports them
      as False before they can escape the request
    - SQLite URLs (local runs, tests) get no pool sizing; PostgreSQL gets a
      pre-pinged, recycled pool

Design Decisions:
    - Singleton db_manager initialized on startup: FastAPI lifespan manages lifecycle
    - expire_on_commit=False: a claim's rows stay readable after its commit
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncSession, create_async_engine, async_sessionmaker,
)

from lucky_money.core.errors import DatabaseError

logger = logging.getLogger(__name__)


def engine_options(database_url: str, pool_size: int, max_overflow: int) -> dict:
    """Pool arguments suited to the backend behind `database_url`."""
    if database_url.startswith("sqlite"):
        return {}
    return {
        "pool_size": pool_size,
        "max_overflow": max_overflow,
        "pool_pre_ping": True,
        "pool_recycle": 3600,
    }


class DatabaseSessionManager:
    """Owns the engine behind the envelope store and hands out request sessions."""

    def __init__(
        self, database_url: str, pool_size: int = 20, max_overflow: int = 10,
    ):
        self.engine = create_async_engine(
            database_url, **engine_options(database_url, pool_size, max_overflow),
        )
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
        except OperationalError as e:
            await session.rollback()
            logger.error(f"Envelope store unreachable: {e}")
            raise DatabaseError("Envelope store unavailable", "connect") from e
        except SQLAlchemyError as e:
            await session.rollback()
            logger.error(f"Envelope store request failed: {e}")
            raise DatabaseError("Envelope store request failed", "request") from e
        finally:
            await session.close()

    async def health_check(self) -> bool:
        """Ping the envelope store (readiness probe)."""
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as e:
            logger.error(f"DB health check failed: {e}")
            return False

    async def dispose(self) -> None:
        await self.engine.dispose()


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
