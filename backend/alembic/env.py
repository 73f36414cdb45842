"""
Alembic Migration Environment
===============================

What:  Runs migrations for the `subscribers` table.
How:   Online mode goes through newsletter.database.Database, so migrations
       use the same URL and engine options as the running service.
       Offline mode renders SQL for review.
"""

import asyncio
from logging.config import fileConfig

from alembic import context

from newsletter.config import settings
from newsletter.database import Base, Database
from newsletter.models.subscriber import Subscriber  # noqa: F401

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def run_migrations_offline() -> None:
    context.configure(
        url=settings.database_url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
    )
    with context.begin_transaction():
        context.run_migrations()


def _migrate(connection) -> None:
    context.configure(
        connection=connection,
        target_metadata=target_metadata,
        compare_type=True,
    )
    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    database = Database(settings.database_url, echo=False)
    await database.connect()
    try:
        async with database.engine.connect() as connection:
            await connection.run_sync(_migrate)
    finally:
        await database.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
