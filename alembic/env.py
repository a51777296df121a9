"""Alembic environment for the recommender schema.

Migrations run through the same async engine setup as the application
(asyncpg on PostgreSQL, pgvector for embeddings).
"""

from __future__ import annotations

import asyncio
import os
from logging.config import fileConfig

from alembic import context
from dotenv import load_dotenv
from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import async_engine_from_config

from polymarket_recommender.storage.database import _normalize_async_database_url
from polymarket_recommender.storage.models import Base

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# Same .env the application Settings read, so `alembic upgrade head` needs no exports.
load_dotenv(override=False)

target_metadata = Base.metadata

_url = os.environ.get("SQLALCHEMY_DATABASE_URL") or os.environ.get("DATABASE_URL")
if _url:
    config.set_main_option(
        "sqlalchemy.url", _normalize_async_database_url(os.path.expandvars(_url))
    )


def _configure(**kwargs: object) -> None:
    # Vector columns are declared without a dimension on the models; the
    # migrations pin it, so type comparison would flag every embedding column.
    context.configure(target_metadata=target_metadata, compare_type=False, **kwargs)


def run_migrations_offline() -> None:
    """Emit SQL to stdout instead of connecting."""
    _configure(
        url=config.get_main_option("sqlalchemy.url"),
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
    engine = async_engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
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
