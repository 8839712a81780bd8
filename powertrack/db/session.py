"""
Async engine and session factory shared by the API, the ingestion daemon
and the report scheduler.

The engine is created lazily on first use from Settings.database_url and
kept for the life of the process. Every connection runs with
``timezone=UTC`` so ``date_trunc`` buckets align to UTC whatever the server
default is.

CHANGELOG:
- 2026-04-05: Pin session timezone to UTC for bucket alignment (STORY-007)
- 2026-04-02: Initial creation (STORY-001)

TODO:
- None
"""

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from powertrack.config import get_settings

_UTC_CONNECT_ARGS = {"server_settings": {"timezone": "UTC"}}

async_engine: AsyncEngine | None = None
async_session_factory: async_sessionmaker[AsyncSession] | None = None


def build_engine(database_url: str) -> AsyncEngine:
    return create_async_engine(
        database_url,
        pool_pre_ping=True,
        connect_args=_UTC_CONNECT_ARGS,
    )


def init_engine() -> async_sessionmaker[AsyncSession]:
    """Return the process-wide session factory, creating it on first call.

    Returns:
        async_sessionmaker: Factory producing sessions that keep attributes
            loaded after commit.
    """
    global async_engine, async_session_factory  # noqa: PLW0603
    if async_session_factory is None:
        async_engine = build_engine(get_settings().database_url)
        async_session_factory = async_sessionmaker(
            async_engine, class_=AsyncSession, expire_on_commit=False
        )
    return async_session_factory


async def dispose_engine() -> None:
    """Close pooled connections and forget the engine."""
    global async_engine, async_session_factory  # noqa: PLW0603
    engine, async_engine, async_session_factory = async_engine, None, None
    if engine is not None:
        await engine.dispose()


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    async with init_engine()() as session:
        yield session
