"""Database Session Manager — async connection pool with automatic rollback and health checks.

Invariants:
    - Every session auto-rolls-back on exception (no partial commits leak)
    - Connection pool uses pool_pre_ping for stale connection detection
    - SQLAlchemy exceptions mapped to PersistenceError subclasses (core/errors.py):
      integrity → EntityValidationError, stale version → ConcurrencyError,
      everything else → StoreUnavailableError

Design Decisions:
    - Singleton db_manager initialized on startup: FastAPI lifespan manages lifecycle
    - expire_on_commit=False: snapshots are built after commit without lazy loads
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
from sqlalchemy.orm.exc import StaleDataError

from couponhub.core.errors import (
    ConcurrencyError, EntityValidationError, StoreUnavailableError,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def guarded_session(
    factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Session scope that rolls back and maps driver errors onto the persistence taxonomy."""
    session = factory()
    try:
        yield session
    except IntegrityError as e:
        await session.rollback()
        logger.error(f"DB integrity error: {e}")
        raise EntityValidationError("Integrity constraint violated")
    except StaleDataError as e:
        await session.rollback()
        logger.warning(f"DB stale version: {e}")
        raise ConcurrencyError("Entity was modified concurrently")
    except OperationalError as e:
        await session.rollback()
        logger.error(f"DB operational error: {e}")
        raise StoreUnavailableError("Connection or operational error", "execute")
    except DBAPIError as e:
        await session.rollback()
        logger.error(f"DB driver error: {e}")
        raise StoreUnavailableError("Database driver error", "query")
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error(f"SQLAlchemy error: {e}")
        raise StoreUnavailableError("Database operation failed", "unknown")
    finally:
        await session.close()


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

    @property
    def session_factory(self) -> async_sessionmaker[AsyncSession]:
        return self._session_factory

    def session(self):
        """Provide session with auto-rollback on exception."""
        return guarded_session(self._session_factory)

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
