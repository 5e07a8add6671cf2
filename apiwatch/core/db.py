"""
Database connection and session management.

SQLAlchemy 2.0 async pattern:
- Engine: manages the connection pool
- AsyncSessionLocal: factory for creating database sessions
- Base: parent class for all our ORM models

The background sweeps open their own sessions from the factory (one per
unit of work); request handlers get one through the `get_db` dependency.
"""

from datetime import datetime, timezone
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from apiwatch.core.config import settings


# =============================================================================
# DATABASE ENGINE
# =============================================================================
# - echo=settings.debug: logs all SQL statements when debugging
# - pool_pre_ping=True: tests connections before using them (stale connections)

engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    pool_pre_ping=True,
)


# =============================================================================
# SESSION FACTORY
# =============================================================================
# expire_on_commit=False: objects remain usable after commit, which the
# sweeps rely on when they hand a freshly committed Alert to the dispatcher.

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


# =============================================================================
# BASE MODEL CLASS
# =============================================================================


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy ORM models."""
    pass


def utcnow() -> datetime:
    """
    Current UTC time as a naive datetime.

    All timestamp columns store naive UTC so comparisons behave the same on
    PostgreSQL and SQLite.
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


# =============================================================================
# DEPENDENCY: GET DATABASE SESSION
# =============================================================================


async def get_db() -> AsyncIterator[AsyncSession]:
    """
    Dependency that provides a database session.

    Usage in a route:
        @router.get("/alerts")
        async def list_alerts(db: AsyncSession = Depends(get_db)):
            ...
    """
    async with AsyncSessionLocal() as session:
        yield session
