"""PostgreSQL engine, schema bootstrap and session factory for history persistence."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from sqlalchemy import URL, text
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine

from src.constants import DB_SCHEMA
from src.session.models import Base

if TYPE_CHECKING:
    from src.config.settings import DatabaseSettings

logger = structlog.get_logger()


def database_url(settings: DatabaseSettings, *, driver: str = "asyncpg") -> URL:
    """Connection URL for the given driver; asyncpg for the app, psycopg for alembic."""
    return URL.create(
        f"postgresql+{driver}",
        username=settings.user,
        password=settings.password or None,
        host=settings.host,
        port=settings.port,
        database=settings.name,
    )


async def create_db_engine(settings: DatabaseSettings) -> AsyncEngine:
    engine = create_async_engine(
        database_url(settings),
        pool_size=settings.pool_size,
        max_overflow=settings.max_overflow,
        pool_pre_ping=True,
        connect_args={"server_settings": {"search_path": f"{settings.schema_}, public"}},
    )
    logger.info(
        "db_engine_created",
        host=settings.host,
        database=settings.name,
        pool_size=settings.pool_size,
    )
    return engine


async def ensure_schema(engine: AsyncEngine, schema: str = DB_SCHEMA) -> None:
    """Create the schema and any missing history tables. Existing tables are left as is."""
    async with engine.begin() as conn:
        await conn.execute(text(f"CREATE SCHEMA IF NOT EXISTS {schema}"))
        await conn.run_sync(Base.metadata.create_all, checkfirst=True)

    logger.info("db_schema_ensured", schema=schema, tables=sorted(Base.metadata.tables))


def make_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(engine, expire_on_commit=False)
