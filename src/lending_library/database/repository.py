"""
Repository base classes and store error handling for the Lending Library.

Repositories are the only code that talks to SQLAlchemy. Every store fault
(connectivity loss, constraint violation, failed write) is wrapped into a
StoreError so that callers never see SQLAlchemy's exception types; business
outcomes discovered by querying the store use the other RepositoryException
subclasses.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Generic, TypeVar

from pydantic import BaseModel
from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .schema import Base

logger = logging.getLogger(__name__)

ModelType = TypeVar("ModelType", bound=Base)
ResponseSchemaType = TypeVar("ResponseSchemaType", bound=BaseModel)
T = TypeVar("T")


class RepositoryException(Exception):
    """Base exception for repository operations.

    Args:
        message: Description of the failure
        field: Request field the failure relates to, if any
    """

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field


class StoreError(RepositoryException):
    """Raised when the underlying store fails."""


class NotFoundError(RepositoryException):
    """Raised when an entity is not found."""


class DuplicateError(RepositoryException):
    """Raised when a patron already holds the book being checked out."""


class UnavailableError(RepositoryException):
    """Raised when no copies of a book are left to check out."""


class InconsistentBookError(RepositoryException):
    """Raised when a re-added ISBN disagrees with the stored catalog entry."""

    def __init__(self, isbn: str, field: str):
        super().__init__(f"book {isbn} is already in the library with a different {field}", field)
        self.isbn = isbn


class CopyLimitError(RepositoryException):
    """Raised when adding copies would overflow a book's copy count."""

    def __init__(self, isbn: str):
        super().__init__(f"book {isbn} cannot hold that many more copies", "nCopies")
        self.isbn = isbn


def store_query(session: Session, query_func: Callable[[Session], T], error_msg: str) -> T:
    """
    Run a store round-trip, wrapping any database fault.

    Raises:
        StoreError: If the query fails; the session is rolled back
    """
    try:
        return query_func(session)
    except (SQLAlchemyError, OverflowError) as e:
        logger.exception("Query failed")
        session.rollback()
        raise StoreError(f"{error_msg}: {e!s}") from e


def store_commit(session: Session, operation: str) -> None:
    """
    Commit the session, wrapping any database fault.

    Raises:
        StoreError: If the commit fails; the session is rolled back
    """
    try:
        session.commit()
    except (SQLAlchemyError, OverflowError) as e:
        session.rollback()
        raise StoreError(f"Database operation '{operation}' failed: {e!s}") from e


class BaseRepository(ABC, Generic[ModelType, ResponseSchemaType]):
    """
    Abstract base repository for one collection.

    Subclasses name the SQLAlchemy model and the Pydantic schema returned to
    callers; rows never escape a repository unconverted.
    """

    def __init__(self, session: Session):
        self.session = session

    @property
    @abstractmethod
    def model_class(self) -> type[ModelType]:
        """Return the SQLAlchemy model class."""

    @property
    @abstractmethod
    def response_schema(self) -> type[ResponseSchemaType]:
        """Return the Pydantic response schema."""

    def _to_response_model(self, db_obj: ModelType) -> ResponseSchemaType:
        return self.response_schema.model_validate(db_obj, from_attributes=True)

    def _get_row(self, key: str) -> ModelType | None:
        """Load a row by primary key, bypassing stale identity-map state."""
        return store_query(
            self.session,
            lambda s: s.get(self.model_class, key, populate_existing=True),
            f"Failed to get {self.model_class.__name__}",
        )

    def get(self, key: str) -> ResponseSchemaType | None:
        """Get an entity by primary key, or None if absent."""
        db_obj = self._get_row(key)
        if db_obj is None:
            return None
        return self._to_response_model(db_obj)

    def count(self) -> int:
        query = select(func.count()).select_from(self.model_class)
        return (
            store_query(
                self.session,
                lambda s: s.execute(query).scalar(),
                f"Failed to count {self.model_class.__name__}",
            )
            or 0
        )

    def delete_all(self) -> int:
        """Delete every row of this collection and return how many went."""
        result = store_query(
            self.session,
            lambda s: s.execute(delete(self.model_class)),
            f"Failed to clear {self.model_class.__tablename__}",
        )
        store_commit(self.session, f"clear {self.model_class.__tablename__}")
        return result.rowcount
