"""Async engine and session plumbing for the API and the CLI."""

import threading
from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from ticketing.core.config import settings

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None
_lock = threading.Lock()


def build_engine(pooled: bool = True) -> AsyncEngine:
    """Engine for DATABASE_URL. An unpooled engine opens a connection per checkout."""
    if not pooled:
        return create_async_engine(settings.DATABASE_URL, echo=settings.DATABASE_ECHO, poolclass=NullPool)
    return create_async_engine(
        settings.DATABASE_URL,
        echo=settings.DATABASE_ECHO,
        pool_size=settings.DATABASE_POOL_SIZE,
        max_overflow=settings.DATABASE_MAX_OVERFLOW,
        pool_pre_ping=True,
    )


def session_factory_for(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # Services hand ORM rows back after committing
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


def get_engine() -> AsyncEngine:
    """
    The process engine, built on first use.

    Built lazily so each forked uvicorn worker gets one bound to its own
    event loop. DEBUG runs unpooled.
    """
    global _engine  # noqa: PLW0603
    with _lock:
        if _engine is None:
            _engine = build_engine(pooled=not settings.DEBUG)
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    global _session_factory  # noqa: PLW0603
    if _session_factory is None:
        _session_factory = session_factory_for(get_engine())
    return _session_factory


async def get_db() -> AsyncGenerator[AsyncSession]:
    """Request-scoped session dependency."""
    async with get_session_factory()() as session:
        yield session


async def create_tables() -> None:
    """Create any missing tables. Existing tables are left untouched."""
    from ticketing.models import Base  # noqa: PLC0415

    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
