"""Alembic environment for the volleyscout schema.

Migrations always run through the async engine; ``DATABASE_URL`` is normalised
the same way the application does so plain ``postgresql://`` URLs work too.
"""

import asyncio
import os
import sys
from logging.config import fileConfig

from alembic import context
from sqlalchemy import pool
from sqlalchemy.ext.asyncio import create_async_engine

# backend/ holds the volleyscout package
sys.path.append(os.path.dirname(os.path.dirname(__file__)))

from volleyscout.db import Base, _normalise_url  # noqa: E402
from volleyscout import models  # noqa: F401,E402

config = context.config
if config.config_file_name and os.path.exists(config.config_file_name):
    fileConfig(config.config_file_name, disable_existing_loggers=False)

target_metadata = Base.metadata


def _database_url() -> str:
    url = os.getenv("DATABASE_URL") or config.get_main_option("sqlalchemy.url")
    if not url:
        raise RuntimeError("DATABASE_URL environment variable is required")
    return _normalise_url(url)


def _configure_options(url: str) -> dict:
    # sqlite cannot ALTER most constraints in place
    return {
        "target_metadata": target_metadata,
        "compare_type": True,
        "render_as_batch": url.startswith("sqlite"),
    }


def run_migrations_offline(url: str) -> None:
    context.configure(url=url, literal_binds=True, **_configure_options(url))
    with context.begin_transaction():
        context.run_migrations()


def _migrate(connection, url: str) -> None:
    context.configure(connection=connection, **_configure_options(url))
    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online(url: str) -> None:
    engine = create_async_engine(url, poolclass=pool.NullPool)
    try:
        async with engine.connect() as connection:
            await connection.run_sync(_migrate, url)
    finally:
        await engine.dispose()


_url = _database_url()
if context.is_offline_mode():
    run_migrations_offline(_url)
else:
    asyncio.run(run_migrations_online(_url))
