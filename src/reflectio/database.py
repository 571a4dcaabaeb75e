"""Async SQLAlchemy engine shared by the API and the expiration worker.

The API hands out one session per request through ``get_session``. The
worker, which has no request scope, opens sessions with ``session_scope``.
"""

from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

_engine: AsyncEngine | None = None
_sessions: async_sessionmaker[AsyncSession] | None = None


async def init_db(url: str, *, pool_size: int = 10, max_overflow: int = 5) -> None:
    global _engine, _sessions  # noqa: PLW0603
    _engine = create_async_engine(
        url,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_pre_ping=True,
        # Transaction poolers (pgbouncer, Supabase) reject prepared statements
        connect_args={"statement_cache_size": 0},
    )
    _sessions = async_sessionmaker(_engine, class_=AsyncSession, expire_on_commit=False)


async def close_db() -> None:
    global _engine, _sessions  # noqa: PLW0603
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _sessions = None


def _session_factory() -> async_sessionmaker[AsyncSession]:
    if _sessions is None:
        msg = "Database not initialized. Call init_db() first."
        raise RuntimeError(msg)
    return _sessions


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: one session per request."""
    async with _session_factory()() as session:
        yield session


@asynccontextmanager
async def session_scope() -> AsyncIterator[AsyncSession]:
    """Session for background jobs, closed on exit."""
    async with _session_factory()() as session:
        yield session
