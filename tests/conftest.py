"""Shared pytest fixtures for TaskPilot tests.

Integration tests get PostgreSQL from one of two places:
1. TEST_DATABASE_HOST (plus optional TEST_DATABASE_PORT/USER/PASSWORD/NAME) → an
   existing server, as in CI
2. otherwise a throwaway testcontainers PostgreSQL (needs Docker)

When neither is reachable the integration tests are skipped. The target
database name must contain '_test' because tables are truncated between tests.
"""

from __future__ import annotations

import os
from collections.abc import Iterator

import pytest
import pytest_asyncio
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from src.agent.context import TenantRef
from src.config.settings import DatabaseSettings
from src.constants import DB_SCHEMA
from src.session.database import database_url, ensure_schema, make_session_factory
from src.session.models import Base


def _require_test_database(name: str) -> None:
    if "_test" not in name.lower():
        raise RuntimeError(
            f"Refusing to run tests against database '{name}': "
            "the name must contain '_test'. Set TEST_DATABASE_NAME."
        )


def _external_database() -> DatabaseSettings | None:
    host = os.getenv("TEST_DATABASE_HOST")
    if host is None:
        return None
    return DatabaseSettings(
        host=host,
        port=int(os.getenv("TEST_DATABASE_PORT", "5432")),
        user=os.getenv("TEST_DATABASE_USER", "postgres"),
        password=os.getenv("TEST_DATABASE_PASSWORD", ""),
        name=os.getenv("TEST_DATABASE_NAME", "taskpilot_test"),
    )


@pytest.fixture(scope="session")
def pg_url() -> Iterator[str]:
    """Async URL of the integration database; the container lives for the session."""
    external = _external_database()
    if external is not None:
        _require_test_database(external.name)
        yield database_url(external).render_as_string(hide_password=False)
        return

    from testcontainers.postgres import PostgresContainer

    container = PostgresContainer("postgres:16", dbname="taskpilot_test")
    try:
        container.start()
    except Exception as e:  # no Docker daemon reachable
        pytest.skip(f"PostgreSQL unavailable (set TEST_DATABASE_HOST or start Docker): {e}")

    settings = DatabaseSettings(
        host=container.get_container_host_ip(),
        port=int(container.get_exposed_port(5432)),
        user=container.username,
        password=container.password,
        name=container.dbname,
    )
    _require_test_database(settings.name)
    try:
        yield database_url(settings).render_as_string(hide_password=False)
    finally:
        container.stop()


@pytest_asyncio.fixture(scope="session", loop_scope="session")
async def db_engine(pg_url: str):
    engine = create_async_engine(pg_url)
    await ensure_schema(engine)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.execute(text(f"DROP SCHEMA IF EXISTS {DB_SCHEMA} CASCADE"))
    await engine.dispose()


@pytest_asyncio.fixture(scope="session", loop_scope="session")
async def db_session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    return make_session_factory(db_engine)


@pytest_asyncio.fixture(loop_scope="session")
async def clean_db(db_session_factory: async_sessionmaker[AsyncSession]):
    """Session factory for one test; history rows are truncated afterwards."""
    yield db_session_factory
    async with db_session_factory() as db_session:
        await db_session.execute(
            text(f"TRUNCATE {DB_SCHEMA}.conversation_messages RESTART IDENTITY")
        )
        await db_session.commit()


@pytest.fixture()
def tenant() -> TenantRef:
    return TenantRef(id="proj-1", name="Apollo")
