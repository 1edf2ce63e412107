"""
Database session management for the Lending Library.

Sessions are short-lived: each library operation opens one through
``DatabaseManager.session_scope()`` and commits every store round-trip
explicitly, so that the checkout and return protocols can compensate a
completed write when a later one fails.
"""

import json
import logging
from collections.abc import Generator
from contextlib import contextmanager
from functools import partial

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ..config import get_config
from .schema import Base

logger = logging.getLogger(__name__)

# keep non-ASCII author names searchable as stored text
_json_serializer = partial(json.dumps, ensure_ascii=False)


def _unicode_lower(value: str | None) -> str | None:
    return value.lower() if isinstance(value, str) else value


def _configure_sqlite_connection(dbapi_connection, connection_record) -> None:  # noqa: ARG001
    """Enforce foreign keys and make ``lower()`` (and so ILIKE) Unicode-aware."""
    dbapi_connection.create_function("lower", 1, _unicode_lower, deterministic=True)
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_library_engine(database_url: str) -> Engine:
    """
    Create the engine for ``database_url``.

    SQLite engines share one connection (StaticPool) across threads.
    """
    if not database_url.startswith("sqlite"):
        return create_engine(database_url, pool_pre_ping=True, json_serializer=_json_serializer)

    engine = create_engine(
        database_url,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
        json_serializer=_json_serializer,
    )
    event.listen(engine, "connect", _configure_sqlite_connection)
    return engine


class DatabaseManager:
    """
    Owns the engine and hands out sessions for one library database.

    Args:
        database_url: SQLAlchemy database URL. If None, the configured
            ``database_url`` or ``database_path`` is used.
    """

    def __init__(self, database_url: str | None = None):
        self.database_url = database_url or get_config().get_database_url()
        self._engine: Engine | None = None
        self._session_factory: sessionmaker | None = None

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            self._engine = create_library_engine(self.database_url)
            logger.info("Database engine created: %s", self._engine.url)
        return self._engine

    def create_session(self) -> Session:
        """Create a new session; the caller must close it."""
        if self._session_factory is None:
            self._session_factory = sessionmaker(
                bind=self.engine, autoflush=False, expire_on_commit=False
            )
        return self._session_factory()

    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        """
        Provide a session for one library operation.

        Anything left pending is committed on exit and rolled back on error.
        """
        session = self.create_session()
        try:
            yield session
            session.commit()
        except SQLAlchemyError:
            logger.exception("Database error, rolling back")
            session.rollback()
            raise
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def init_database(self) -> None:
        """
        Create the tables together with their unique keys.

        This establishes the uniqueness of books.isbn, patrons.id and
        (patron_id, isbn) holds before any request is served.
        """
        Base.metadata.create_all(bind=self.engine)
        logger.info("Database tables ready at %s", self.engine.url)

    def close(self) -> None:
        """Dispose of the engine and its connections."""
        if self._engine is not None:
            self._engine.dispose()
            logger.info("Database engine disposed")
        self._engine = None
        self._session_factory = None
