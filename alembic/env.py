"""Alembic environment for the impression schema (async engines only)."""

from __future__ import annotations

import asyncio
import os
from logging.config import fileConfig

from alembic import context
from dotenv import load_dotenv
from sqlalchemy import pool
from sqlalchemy.ext.asyncio import async_engine_from_config

from base_impression.storage.database import normalize_async_database_url
from base_impression.storage.models import Base

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

load_dotenv(override=False)
target_metadata = Base.metadata

if os.environ.get("DATABASE_URL"):
    config.set_main_option(
        "sqlalchemy.url", normalize_async_database_url(os.environ["DATABASE_URL"])
    )


def _configure(**kwargs: object) -> None:
    # SQLite requires batch mode for ALTER TABLE.
    context.configure(target_metadata=target_metadata, render_as_batch=True, **kwargs)
    with context.begin_transaction():
        context.run_migrations()


async def _run_online() -> None:
    engine = async_engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    async with engine.connect() as connection:
        await connection.run_sync(lambda conn: _configure(connection=conn))
    await engine.dispose()


if context.is_offline_mode():
    _configure(
        url=config.get_main_option("sqlalchemy.url"),
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
else:
    asyncio.run(_run_online())
