"""
Alembic environment for the apiwatch schema.

Both modes share one set of configure() options: column type changes are
compared during autogenerate (JSON and numeric precision matter to the
alert payloads), and an autogenerate run that finds no changes does not
write an empty revision file.
"""

import logging
from logging.config import fileConfig
from typing import Any

from alembic import context
from sqlalchemy import create_engine, pool

# apiwatch.models must be imported so every table is on Base.metadata
from apiwatch.core.config import settings
from apiwatch.core.db import Base
import apiwatch.models  # noqa: F401

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

logger = logging.getLogger("alembic.env")

target_metadata = Base.metadata


def get_url() -> str:
    """
    Database URL from application settings.

    psycopg 3 serves both the async app engine and this sync engine with
    the same postgresql+psycopg URL.
    """
    return settings.database_url


def skip_empty_revisions(context_, revision, directives) -> None:
    if getattr(config.cmd_opts, "autogenerate", False):
        script = directives[0]
        if script.upgrade_ops.is_empty():
            directives[:] = []
            logger.info("No schema changes detected; no revision written")


def configure_options() -> dict[str, Any]:
    return {
        "target_metadata": target_metadata,
        "compare_type": True,
        "process_revision_directives": skip_empty_revisions,
    }


# =============================================================================
# MIGRATION FUNCTIONS
# =============================================================================


def run_migrations_offline() -> None:
    """
    Emit SQL without a connection.

    Usage: alembic upgrade head --sql > migration.sql
    """
    context.configure(
        url=get_url(),
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **configure_options(),
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """
    Run migrations against the database.

    Alembic's runner is synchronous, so this uses a plain engine without a
    connection pool rather than the app's async engine.
    """
    engine = create_engine(get_url(), poolclass=pool.NullPool)

    with engine.connect() as connection:
        context.configure(connection=connection, **configure_options())

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
