# fragrance_hub/database.py
"""
Database connections for Fragrance Hub.

Uses SQLAlchemy 2.0 async. Two identities are configured: the restricted
one (DATABASE_URL, subject to row-level security) and an optional elevated
one (ELEVATED_DATABASE_URL). Both live only in the server process.
"""
from __future__ import annotations
from typing import AsyncGenerator, Optional
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    AsyncEngine,
    create_async_engine,
    async_sessionmaker,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy import event, text

from fragrance_hub.settings import settings

# ============================================================================
# Base class for all ORM models
# ============================================================================

class Base(DeclarativeBase):
    """Base class for all database models."""
    pass


# ============================================================================
# Engines and Session Factories
# ============================================================================

_engine: AsyncEngine | None = None
_async_session_factory: async_sessionmaker[AsyncSession] | None = None
_elevated_engine: AsyncEngine | None = None
_elevated_session_factory: async_sessionmaker[AsyncSession] | None = None


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(url: str) -> AsyncEngine:
    """Create an async engine; SQLite gets FK enforcement instead of pool tuning."""
    if url.startswith("sqlite"):
        engine = create_async_engine(url, echo=settings.DB_ECHO)
        event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
        return engine
    return create_async_engine(
        url,
        echo=settings.DB_ECHO,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_pre_ping=True,  # Verify connections before use
    )


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def init_db() -> None:
    """Initialize both engines and session factories."""
    global _engine, _async_session_factory, _elevated_engine, _elevated_session_factory

    if _engine is not None:
        return  # Already initialized

    _engine = build_engine(settings.DATABASE_URL)
    _async_session_factory = build_session_factory(_engine)

    if settings.ELEVATED_DATABASE_URL:
        _elevated_engine = build_engine(settings.ELEVATED_DATABASE_URL)
        _elevated_session_factory = build_session_factory(_elevated_engine)


async def close_db() -> None:
    """Close database connections."""
    global _engine, _async_session_factory, _elevated_engine, _elevated_session_factory

    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _async_session_factory = None
    if _elevated_engine is not None:
        await _elevated_engine.dispose()
        _elevated_engine = None
        _elevated_session_factory = None


async def create_all(engine: Optional[AsyncEngine] = None) -> None:
    """Create all tables (development and tests; production uses migrations)."""
    # models must be registered on Base.metadata
    from fragrance_hub import db_models  # noqa: F401

    target = engine or _elevated_engine or _engine
    async with target.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


def get_session_factories() -> tuple[
    async_sessionmaker[AsyncSession], Optional[async_sessionmaker[AsyncSession]]
]:
    if _async_session_factory is None:
        raise RuntimeError("Database not initialized; call init_db() first")
    return _async_session_factory, _elevated_session_factory


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency for FastAPI - provides a restricted-identity session.

    Usage:
        @router.get("/products/raw")
        async def raw_products(db: AsyncSession = Depends(get_session)):
            ...
    """
    async with get_session_context() as session:
        yield session


@asynccontextmanager
async def get_session_context() -> AsyncGenerator[AsyncSession, None]:
    """
    Context manager for database session (for use outside FastAPI).

    Usage:
        async with get_session_context() as db:
            result = await db.execute(...)
    """
    if _async_session_factory is None:
        await init_db()

    async with _async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


# ============================================================================
# Health Check
# ============================================================================

async def check_db_health() -> dict:
    """Check database connectivity and return status."""
    try:
        async with get_session_context() as db:
            result = await db.execute(text("SELECT 1"))
            result.scalar()
        return {
            "status": "healthy",
            "database": "connected",
            "elevated_configured": _elevated_session_factory is not None,
        }
    except Exception as e:
        return {"status": "unhealthy", "database": "disconnected", "error": str(e)}


# ============================================================================
# Transaction Helpers
# ============================================================================

@asynccontextmanager
async def transaction(session: AsyncSession):
    """
    Explicit transaction context for multi-row effects.

    Usage:
        async with transaction(db):
            await db.execute(...)
            await db.execute(...)
        # Commits on success, rolls back on exception
    """
    try:
        yield
        await session.commit()
    except Exception:
        await session.rollback()
        raise
