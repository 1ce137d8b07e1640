"""Alembic migration environment.

The database URL comes from the application settings unless the caller set
``sqlalchemy.url`` explicitly. A caller may also hand over an open
connection through ``config.attributes["connection"]``.
"""

from __future__ import annotations

import sys
from logging.config import fileConfig
from pathlib import Path

from alembic import context
from sqlalchemy import create_engine, pool
from sqlalchemy.engine import Connection

sys.path.append(str(Path(__file__).resolve().parents[1] / "src"))

from config import settings  # noqa: E402
from models import Base  # noqa: E402

alembic_config = context.config

if alembic_config.config_file_name is not None and not alembic_config.attributes.get(
    "skip_logging_config"
):
    fileConfig(alembic_config.config_file_name, disable_existing_loggers=False)


def _database_url() -> str:
    return alembic_config.get_main_option("sqlalchemy.url") or settings.database.url


def _configure(connection: Connection) -> None:
    context.configure(
        connection=connection,
        target_metadata=Base.metadata,
        compare_type=True,
        # SQLite needs table rebuilds for ALTER operations.
        render_as_batch=connection.dialect.name == "sqlite",
    )
    with context.begin_transaction():
        context.run_migrations()


def run_offline() -> None:
    """Emit migration SQL without a database connection."""
    context.configure(
        url=_database_url(),
        target_metadata=Base.metadata,
        literal_binds=True,
        compare_type=True,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_online() -> None:
    """Apply migrations over a provided or freshly opened connection."""
    connection = alembic_config.attributes.get("connection")
    if connection is not None:
        _configure(connection)
        return

    engine = create_engine(_database_url(), poolclass=pool.NullPool)
    try:
        with engine.connect() as connection:
            _configure(connection)
    finally:
        engine.dispose()


if context.is_offline_mode():
    run_offline()
else:
    run_online()
