"""
Database session management and transaction scope.
"""

import asyncio
from typing import AsyncGenerator
from contextlib import asynccontextmanager
from sqlalchemy.exc import (
    DBAPIError,
    IntegrityError,
    InterfaceError,
    OperationalError,
    TimeoutError as PoolTimeoutError,
)
from sqlalchemy.ext.asyncio import AsyncSession

from telecare.core.errors import UpstreamFailure
from telecare.core.logging import get_logger
from telecare.db.base import AsyncSessionLocal

logger = get_logger(__name__)

# Driver errors that mean the store is unreachable, slow or broken.
UPSTREAM_ERRORS = (OperationalError, InterfaceError, PoolTimeoutError, asyncio.TimeoutError)


@asynccontextmanager
async def transaction(session: AsyncSession) -> AsyncGenerator[AsyncSession, None]:
    """
    Run a unit of work: commit on success, roll back on any failure.

    Connectivity and timeout errors surface as UpstreamFailure.
    IntegrityError is re-raised untouched so callers can map it onto their
    own domain error.
    """
    try:
        yield session
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise
    except UPSTREAM_ERRORS as e:
        await _safe_rollback(session)
        logger.error("Database unavailable", error=str(e))
        raise UpstreamFailure("Scheduling store is unavailable, try again later") from e
    except DBAPIError as e:
        await _safe_rollback(session)
        logger.error("Database error", error=str(e))
        raise UpstreamFailure("Scheduling store rejected the operation") from e
    except BaseException:
        await session.rollback()
        raise


async def _safe_rollback(session: AsyncSession):
    # Connection may already be closed.
    try:
        await session.rollback()
    except UPSTREAM_ERRORS + (DBAPIError,) as e:
        logger.warning("Rollback failed", error=str(e))


class DatabaseManager:
    """Database connection and session management."""

    def __init__(self, session_factory=AsyncSessionLocal):
        self.session_factory = session_factory

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """Get database session with automatic cleanup."""
        async with self.session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise
            finally:
                await session.close()


# Global database manager
db_manager = DatabaseManager()


# FastAPI dependency
async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency for database sessions."""
    async with db_manager.get_session() as session:
        yield session
