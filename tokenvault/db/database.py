"""Async SQLAlchemy engine and session factory."""

from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine


def build_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    return create_async_engine(database_url, echo=echo, pool_pre_ping=not database_url.startswith("sqlite"))


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind, class_=AsyncSession, expire_on_commit=False)


async def init_db(bind: AsyncEngine):
    """Create all tables. Called at startup and by the CLI."""
    from tokenvault.db.models import Base
    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


@asynccontextmanager
async def session_scope(database_url: str, echo: bool = False) -> AsyncIterator[AsyncSession]:
    """One-off engine + session for CLI commands. Disposes the engine on exit."""
    engine = build_engine(database_url, echo=echo)
    try:
        await init_db(engine)
        async with build_session_factory(engine)() as session:
            yield session
    finally:
        await engine.dispose()
