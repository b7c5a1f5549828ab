from logging.config import fileConfig

from sqlalchemy import create_engine, pool, text
from sqlalchemy.engine import Connection

from alembic import context
from src.config.settings import DatabaseSettings
from src.constants import DB_SCHEMA
from src.session.database import database_url
from src.session.models import Base

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def _url():
    """An explicit sqlalchemy.url wins; otherwise DATABASE_* settings via psycopg."""
    return config.get_main_option("sqlalchemy.url") or database_url(
        DatabaseSettings(), driver="psycopg"
    )


def _only_app_schema(name, type_, parent_names) -> bool:
    return name == DB_SCHEMA if type_ == "schema" else True


def _migration_options() -> dict:
    return {
        "target_metadata": target_metadata,
        "version_table_schema": DB_SCHEMA,
        "include_schemas": True,
        "include_name": _only_app_schema,
    }


def _emit_sql() -> None:
    context.configure(
        url=_url(),
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **_migration_options(),
    )
    with context.begin_transaction():
        context.run_migrations()


def _apply(connection: Connection) -> None:
    connection.execute(text(f"CREATE SCHEMA IF NOT EXISTS {DB_SCHEMA}"))
    connection.commit()
    context.configure(connection=connection, **_migration_options())
    with context.begin_transaction():
        context.run_migrations()


if context.is_offline_mode():
    _emit_sql()
else:
    with create_engine(_url(), poolclass=pool.NullPool).connect() as connection:
        _apply(connection)
