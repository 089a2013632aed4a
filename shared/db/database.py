"""SQLAlchemy engine and session factory for a service database.

A ``Database`` is built once per application from ``DATABASE_URL`` and is
kept on ``app.state``. Tests build their own against in-memory SQLite.
"""
from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

logger: logging.Logger = logging.getLogger(__name__)


class Database:
    """Owns the engine and session factory for one database URL."""

    def __init__(self, url: str, echo: bool = False) -> None:
        self.url = url
        self.engine: Engine = _create_engine(url, echo)
        self.session_factory: sessionmaker[Session] = sessionmaker(
            bind=self.engine,
            expire_on_commit=False,
        )
        logger.info("Created engine for %s", _redact_url(url))

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Yield a session for a unit of work, committing on success.

        Usage::

            with database.session() as session:
                session.add(...)

        On exception the session is rolled back automatically.
        """
        session: Session = self.session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def dispose(self) -> None:
        self.engine.dispose()
        logger.info("Disposed engine")


def _create_engine(url: str, echo: bool) -> Engine:
    if url.startswith("sqlite"):
        kwargs: dict = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in url or url in ("sqlite://", "sqlite:///"):
            kwargs["poolclass"] = StaticPool
        engine = create_engine(url, echo=echo, **kwargs)
        # SQLite needs foreign keys switched on per connection for cascades
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
        return engine
    return create_engine(url, echo=echo, pool_pre_ping=True)


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _redact_url(url: str) -> str:
    """Redact password from a database URL for safe logging."""
    try:
        at_idx: int = url.index("@")
        schema_end: int = url.index("://") + 3
        return url[:schema_end] + "***@" + url[at_idx + 1 :]
    except ValueError:
        return url
