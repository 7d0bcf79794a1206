"""Database session configuration and the transactional store."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import Engine, Select, create_engine, event, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from cerca.core.errors import StorageError
from cerca.core.settings import settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Declarative base shared by all ORM models."""


# Ensure model modules are imported so that metadata is populated when create_all runs.
import cerca.models  # noqa: E402,F401


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:  # pragma: no cover - driver hook
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(url: str, **kwargs) -> Engine:
    """Create an engine; SQLite connections enforce foreign keys."""
    engine = create_engine(url, **kwargs)
    if engine.dialect.name == "sqlite":
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    return engine


class Store:
    """Transactional handle over a SQLAlchemy engine.

    Each call to :meth:`transaction` runs its statements atomically: the
    session commits when the block exits normally and rolls back on any
    exception, so no partial writes escape.
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        self._session_factory = sessionmaker(
            bind=engine,
            autoflush=False,
            expire_on_commit=False,
        )

    @contextmanager
    def transaction(self, environ: str) -> Iterator[Session]:
        """Yield a session inside a transaction tagged with ``environ``."""
        session = self._session_factory()
        try:
            with session.begin():
                yield session
        except SQLAlchemyError as exc:
            logger.warning("%s: %s, rolling back", environ, exc.__class__.__name__)
            raise StorageError(
                f"transaction failed ({exc.__class__.__name__})", environ=environ
            ) from exc
        except Exception as exc:
            logger.warning("%s: %s, rolling back", environ, exc)
            raise
        finally:
            session.close()

    @staticmethod
    def exists(db: Session, stmt: Select) -> bool:
        """Return True when ``stmt`` yields at least one row."""
        return bool(db.scalar(select(stmt.exists())))

    def create_tables(self) -> None:
        """Create all database tables."""
        Base.metadata.create_all(bind=self.engine)

    def drop_tables(self) -> None:
        """Drop all database tables."""
        Base.metadata.drop_all(bind=self.engine)


def create_store(url: str | None = None, **engine_kwargs) -> Store:
    """Return a :class:`Store` for ``url`` (defaults to the configured database)."""
    engine_kwargs.setdefault("echo", settings.sql_debug)
    return Store(build_engine(url or settings.database_url, **engine_kwargs))
