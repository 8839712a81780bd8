"""
FastAPI dependency injection providers.

Provides database sessions and settings for use with FastAPI's Depends()
mechanism.

CHANGELOG:
- 2026-04-09: Add settings dependency (STORY-014)
- 2026-04-02: Initial creation (STORY-001)
"""

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from powertrack.config import Settings, get_settings
from powertrack.db.session import get_async_session


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async database session.

    Route handlers depend on this function so tests can override it with
    ``app.dependency_overrides[get_db]``.

    Yields:
        AsyncSession: An async SQLAlchemy session.
    """
    async for session in get_async_session():
        yield session


DbSession = Annotated[AsyncSession, Depends(get_db)]
SettingsDep = Annotated[Settings, Depends(get_settings)]
