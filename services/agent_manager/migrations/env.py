"""Alembic environment for the agent-manager database.

Uses the connection handed over by ``shared.db.run_migrations`` when
present; otherwise connects to DATABASE_URL (``alembic`` CLI usage).
"""
from __future__ import annotations

import os

from sqlalchemy import create_engine, pool
from sqlalchemy.engine import Connection

from alembic import context
from services.agent_manager import models as _models  # noqa: F401
from services.agent_manager.models import Base

config = context.config
target_metadata = Base.metadata

VERSION_TABLE = "agent_manager_alembic_version"


def do_run_migrations(connection: Connection) -> None:
    """Configure context and run migrations within a connection scope."""
    context.configure(
        connection=connection,
        target_metadata=target_metadata,
        version_table=VERSION_TABLE,
        render_as_batch=True,
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode (SQL script generation)."""
    url: str = config.get_main_option("sqlalchemy.url") or os.environ.get("DATABASE_URL", "")
    context.configure(
        url=url,
        target_metadata=target_metadata,
        version_table=VERSION_TABLE,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connection: Connection | None = config.attributes.get("connection")
    if connection is not None:
        do_run_migrations(connection)
        return

    url: str = config.get_main_option("sqlalchemy.url") or os.environ["DATABASE_URL"]
    connectable = create_engine(url, poolclass=pool.NullPool)
    with connectable.connect() as conn:
        do_run_migrations(conn)
    connectable.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
