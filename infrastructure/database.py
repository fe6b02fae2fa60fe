"""
数据库引擎与会话工厂

PostgreSQL（asyncpg）为生产方言；SQLite（aiosqlite）用于本地与测试。
Repository 依赖 SAVEPOINT（begin_nested）吸收唯一约束冲突，SQLite 需要由
SQLAlchemy 自己发出 BEGIN 才能正确支持。
"""
from typing import Any

from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine

from core.config import settings
from infrastructure.models import Base


_ASYNC_DRIVERS = {
    "postgresql": "postgresql+asyncpg",
    "postgres": "postgresql+asyncpg",
    "sqlite": "sqlite+aiosqlite",
}


def to_async_url(database_url: str) -> str:
    """postgresql:// -> postgresql+asyncpg://，已带驱动的 URL 原样返回"""
    url = make_url(database_url)
    if "+" in url.drivername:
        return database_url
    if url.drivername not in _ASYNC_DRIVERS:
        raise ValueError(f"Unsupported database driver: {url.drivername}")
    return url.set(drivername=_ASYNC_DRIVERS[url.drivername]).render_as_string(hide_password=False)


def _enable_sqlite_savepoints(async_engine: AsyncEngine, begin: str) -> None:
    sync_engine = async_engine.sync_engine

    @event.listens_for(sync_engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(sync_engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql(begin)


def build_engine(database_url: str, *, sqlite_begin: str = "BEGIN", **kwargs: Any) -> AsyncEngine:
    """sqlite_begin 可设为 "BEGIN IMMEDIATE"，让写事务在开始时就拿到写锁"""
    url = to_async_url(database_url)
    if make_url(url).get_backend_name() == "sqlite":
        async_engine = create_async_engine(url, **kwargs)
        _enable_sqlite_savepoints(async_engine, sqlite_begin)
        return async_engine
    kwargs.setdefault("pool_pre_ping", True)
    return create_async_engine(url, **kwargs)


engine = build_engine(settings.database.url, echo=settings.DEBUG)

AsyncSessionLocal = async_sessionmaker(bind=engine, expire_on_commit=False)


async def create_tables(target: AsyncEngine = engine) -> None:
    """仅开发环境使用；生产走 Alembic 迁移"""
    async with target.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def drop_tables(target: AsyncEngine = engine) -> None:
    async with target.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
