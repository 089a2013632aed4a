"""Programmatic Alembic runner.

Each service ships its migration scripts inside its package; this module
points Alembic at them and shares the engine's connection so that tests
and the application lifespan run migrations without an ``alembic.ini``.
"""
from __future__ import annotations

import logging
from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy.engine import Engine

logger: logging.Logger = logging.getLogger(__name__)


def _alembic_config(script_location: Path | str, connection) -> Config:
    cfg = Config()
    cfg.set_main_option("script_location", str(script_location))
    cfg.attributes["connection"] = connection
    return cfg


def run_migrations(script_location: Path | str, engine: Engine, revision: str = "head") -> None:
    """Upgrade the database behind ``engine`` to ``revision``.

    Args:
        script_location: Directory holding ``env.py`` and ``versions/``.
        engine: Engine of the target database.
        revision: Alembic revision identifier, ``head`` by default.
    """
    with engine.begin() as connection:
        command.upgrade(_alembic_config(script_location, connection), revision)
    logger.info("Database migrated to %s (%s)", revision, Path(script_location).parent.name)


def downgrade_migrations(script_location: Path | str, engine: Engine, revision: str = "base") -> None:
    """Downgrade the database behind ``engine`` to ``revision``."""
    with engine.begin() as connection:
        command.downgrade(_alembic_config(script_location, connection), revision)
    logger.info("Database downgraded to %s (%s)", revision, Path(script_location).parent.name)
