"""Alembic 迁移环境（异步引擎）"""
import asyncio

from alembic import context
from sqlalchemy.ext.asyncio import create_async_engine

from core.config import settings
from infrastructure.database import to_async_url
from infrastructure.models import metadata


config = context.config
target_metadata = metadata


def run_migrations_offline() -> None:
    context.configure(
        url=to_async_url(settings.database.url),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
    )
    with context.begin_transaction():
        context.run_migrations()


def _do_run_migrations(connection) -> None:
    context.configure(connection=connection, target_metadata=target_metadata, compare_type=True)
    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    engine = create_async_engine(to_async_url(settings.database.url))
    async with engine.connect() as connection:
        await connection.run_sync(_do_run_migrations)
    await engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
