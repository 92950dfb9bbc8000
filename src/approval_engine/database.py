"""Database connection and session management."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from approval_engine.models import Base

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

    from approval_engine.config import Settings


def create_engine(settings: Settings) -> AsyncEngine:
    """Create async database engine."""
    options: dict[str, Any] = {"echo": False, "pool_pre_ping": True}
    if settings.database_url.startswith("sqlite"):
        if ":memory:" in settings.database_url:
            # An in-memory database lives on a single connection
            options.update(poolclass=StaticPool, connect_args={"check_same_thread": False})
    else:
        options.update(pool_size=10, max_overflow=20)
    return create_async_engine(settings.database_url, **options)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Build the session factory used for one application instance."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def create_all(engine: AsyncEngine) -> None:
    """Create all tables that do not exist yet."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
