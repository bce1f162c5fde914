"""Database Session Manager — async connection pool with automatic rollback and health checks.

Invariants:
    - Every session auto-rolls-back on exception (no partial commits leak)
    - Connection pool uses pool_pre_ping for stale connection detection
    - SQLAlchemy exceptions escaping a session map to StorageError (core/errors.py)
    - PostgreSQL connections run with the configured isolation level, lock_timeout and
      statement_timeout

Design Decisions:
    - Singleton db_manager initialized on startup: FastAPI lifespan manages lifecycle
      (no global import side effects)
    - expire_on_commit=False: prevents lazy-load issues in async context
    - CfpError passes through untouched: domain errors are not storage failures
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

from cfp.core.errors import StorageError

logger = logging.getLogger(__name__)


def _engine_options(
    database_url: str,
    pool_size: int,
    max_overflow: int,
    isolation_level: str | None,
    lock_timeout_ms: int | None,
    statement_timeout_ms: int | None,
) -> dict:
    """Dialect-specific engine kwargs. SQLite gets none of the pool/server settings."""
    if database_url.startswith("sqlite"):
        return {}
    options: dict = {
        "pool_size": pool_size,
        "max_overflow": max_overflow,
        "pool_pre_ping": True,
        "pool_recycle": 3600,
    }
    if isolation_level:
        options["isolation_level"] = isolation_level
    server_settings = {}
    if lock_timeout_ms:
        server_settings["lock_timeout"] = str(lock_timeout_ms)
    if statement_timeout_ms:
        server_settings["statement_timeout"] = str(statement_timeout_ms)
    if server_settings and "asyncpg" in database_url:
        options["connect_args"] = {"server_settings": server_settings}
    return options


class DatabaseSessionManager:
    """Manages async database sessions with pooling, rollback, and health checks."""

    def __init__(
        self,
        database_url: str,
        pool_size: int = 20,
        max_overflow: int = 10,
        isolation_level: str | None = None,
        lock_timeout_ms: int | None = None,
        statement_timeout_ms: int | None = None,
    ):
        self.engine = create_async_engine(
            database_url,
            **_engine_options(
                database_url, pool_size, max_overflow,
                isolation_level, lock_timeout_ms, statement_timeout_ms,
            ),
        )
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
        except IntegrityError as e:
            await session.rollback()
            logger.error(f"DB integrity error: {e}")
            raise StorageError("Integrity constraint violated", "commit")
        except OperationalError as e:
            await session.rollback()
            logger.error(f"DB operational error: {e}")
            raise StorageError("Connection or operational error", "execute")
        except DBAPIError as e:
            await session.rollback()
            logger.error(f"DB driver error: {e}")
            raise StorageError("Database driver error", "query")
        except SQLAlchemyError as e:
            await session.rollback()
            logger.error(f"SQLAlchemy error: {e}")
            raise StorageError("Database operation failed", "unknown")
        except BaseException:
            # request cancelled or domain error: nothing from this session persists
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


# Singleton (initialized on startup)
db_manager: DatabaseSessionManager | None = None


def init_db(database_url: str, **kwargs) -> DatabaseSessionManager:
    global db_manager
    db_manager = DatabaseSessionManager(database_url, **kwargs)
    return db_manager


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency for database sessions."""
    if not db_manager:
        raise RuntimeError("Database not initialized")
    async with db_manager.session() as session:
        yield session
