"""
Alembic environment for the bakery orders schema.

The database URL always comes from the application settings, converted to
its async driver. Online migrations run through an async engine; offline
mode renders SQL only.
"""

import asyncio
from logging.config import fileConfig

from alembic import context
from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import async_engine_from_config

from bakery_orders.core.config import get_settings
from bakery_orders.core.logging import get_logger
from bakery_orders.database.base import Base
from bakery_orders.database.connection import _convert_database_url_to_async

# Registers every table on Base.metadata
import bakery_orders.database.models  # noqa: F401

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

logger = get_logger(__name__)
target_metadata = Base.metadata

database_url = _convert_database_url_to_async(get_settings().database_url)
config.set_main_option("sqlalchemy.url", database_url)


def run_migrations_offline() -> None:
    """Render migration SQL for ``database_url`` without connecting."""
    logger.info("Rendering migrations offline", driver=database_url.split("://")[0])

    context.configure(
        url=database_url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
    )

    with context.begin_transaction():
        context.run_migrations()


def apply_migrations(connection: Connection) -> None:
    context.configure(
        connection=connection,
        target_metadata=target_metadata,
        compare_type=True,
        transaction_per_migration=True,
    )

    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    """Apply migrations through an async engine with no pooling."""
    engine = async_engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    try:
        async with engine.connect() as connection:
            await connection.run_sync(apply_migrations)
    except Exception as e:
        logger.error(
            "Migration failed",
            error=str(e),
            error_type=type(e).__name__,
        )
        raise
    finally:
        await engine.dispose()

    logger.info("Migrations applied", driver=database_url.split("://")[0])


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
