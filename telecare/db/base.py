"""
Database engine configuration and session factories.
"""

from typing import Any, Dict, Optional
from sqlmodel import SQLModel
from sqlalchemy import event, text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from telecare.core.clock import utc_now
from telecare.core.config import settings


def _configure_sqlite(engine: AsyncEngine):
    """
    SQLite is used for local development and tests.

    Transactions start with BEGIN IMMEDIATE so concurrent writers queue on
    the database lock instead of failing mid-transaction, and foreign keys
    are enforced like they are on PostgreSQL.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # Let SQLAlchemy emit BEGIN itself.
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(database_url: Optional[str] = None) -> AsyncEngine:
    """Create the async engine with timeouts taken from settings."""
    url = make_url(database_url or settings.database_url)

    if url.get_backend_name() == "sqlite":
        engine = create_async_engine(
            url,
            echo=settings.debug,
            connect_args={"timeout": settings.database_timeout_seconds},
        )
        _configure_sqlite(engine)
        return engine

    connect_args: Dict[str, Any] = {}
    if url.get_driver_name() == "asyncpg":
        connect_args = {
            "timeout": settings.database_timeout_seconds,
            "command_timeout": settings.database_command_timeout_seconds,
        }

    return create_async_engine(
        url,
        echo=settings.debug,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
        pool_pre_ping=True,
        pool_recycle=3600,
        pool_timeout=settings.database_timeout_seconds,
        connect_args=connect_args,
    )


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    """Session factory; objects stay readable after commit."""
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


# Create async engine
async_engine = build_engine()

# Session maker
AsyncSessionLocal = build_session_factory(async_engine)


async def init_models(engine: Optional[AsyncEngine] = None):
    """Create all tables that do not exist yet."""
    # Register table models on the metadata.
    from telecare.models import database  # noqa: F401

    async with (engine or async_engine).begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


# Health check utilities
async def check_database_health(session: Optional[AsyncSession] = None) -> Dict[str, Any]:
    """Check database connectivity and health."""
    try:
        if session is not None:
            await session.execute(text("SELECT 1"))
            await session.rollback()
        else:
            async with AsyncSessionLocal() as own_session:
                await own_session.execute(text("SELECT 1"))
        return {
            "status": "healthy",
            "database": "connected",
            "timestamp": utc_now().isoformat()
        }
    except Exception as e:
        return {
            "status": "unhealthy",
            "database": "disconnected",
            "error": str(e),
            "timestamp": utc_now().isoformat()
        }
