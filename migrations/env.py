"""
Entorno de alembic para miGestor.

La URL sale de config.settings salvo que se pase `-x url=...`. Online se
migra con el mismo driver async que la aplicación.
"""

import asyncio
from logging.config import fileConfig

from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import create_async_engine

from alembic import context

from config.settings import settings
from src.database.connection import Base
from src.database import models  # noqa: F401 registra las tablas en Base.metadata

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)


def _database_url(async_driver: bool) -> str:
    override = context.get_x_argument(as_dictionary=True).get("url")
    if override:
        return override
    return settings.get_async_database_url() if async_driver else settings.get_sync_database_url()


def _configure(**kwargs) -> None:
    context.configure(target_metadata=Base.metadata, compare_type=True, **kwargs)


def run_migrations_offline() -> None:
    """Genera el SQL sin conectar."""
    _configure(
        url=_database_url(async_driver=False),
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        render_as_batch=True,
    )
    with context.begin_transaction():
        context.run_migrations()


def _migrate(connection: Connection) -> None:
    # ALTER TABLE limitado en SQLite: modo batch
    _configure(connection=connection, render_as_batch=connection.dialect.name == "sqlite")
    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    engine = create_async_engine(_database_url(async_driver=True), poolclass=pool.NullPool)
    try:
        async with engine.connect() as connection:
            await connection.run_sync(_migrate)
    finally:
        await engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
