"""
Alembic environment for the PowerTrack schema.

Migrations run on an asyncpg engine built from the same Settings as
powertrack/db/session.py, with the session timezone pinned to UTC so that
seeded timestamps and hypertable chunk boundaries line up with the API.
TimescaleDB internal schemas are excluded from autogenerate.

CHANGELOG:
- 2026-04-05: Pin migration session timezone to UTC (STORY-007)
- 2026-04-02: Initial creation (STORY-001)

TODO:
- None
"""

import asyncio
from logging.config import fileConfig

from alembic import context
from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import create_async_engine

from powertrack.config import get_settings
from powertrack.db.models import Base

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata

_TIMESCALE_SCHEMAS = {"_timescaledb_catalog", "_timescaledb_internal", "timescaledb_information"}


def include_object(obj, name, type_, reflected, compare_to) -> bool:
    """Skip objects owned by the TimescaleDB extension."""
    schema = getattr(obj, "schema", None)
    return schema not in _TIMESCALE_SCHEMAS


def _configure(**kwargs) -> None:
    context.configure(
        target_metadata=target_metadata,
        include_object=include_object,
        compare_type=True,
        **kwargs,
    )


def run_migrations_offline() -> None:
    """Emit migration SQL to the script output without a connection."""
    _configure(
        url=get_settings().database_url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def _run_sync(connection: Connection) -> None:
    _configure(connection=connection)
    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    """Apply migrations over a single asyncpg connection."""
    engine = create_async_engine(
        get_settings().database_url,
        poolclass=pool.NullPool,
        connect_args={"server_settings": {"timezone": "UTC"}},
    )
    try:
        async with engine.connect() as connection:
            await connection.run_sync(_run_sync)
    finally:
        await engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
