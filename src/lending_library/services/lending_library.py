"""
Catalog and lending service.

LendingLibrary is the entry point for every library operation. Each method
takes a plain field bag, validates it into a typed request record, runs the
store operations in one session, and reclassifies repository outcomes:

- StoreError                  -> DB
- any other repository error  -> BAD_REQ (business rule violated by state)

Validation failures are raised before the store is touched.
"""

import logging
from collections.abc import Generator, Mapping
from contextlib import contextmanager
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import get_config
from ..database.book_repository import BookRepository
from ..database.circulation_repository import CirculationRepository
from ..database.patron_repository import PatronRepository
from ..database.repository import RepositoryException, StoreError
from ..database.session import DatabaseManager
from ..errors import ErrorCode, LibraryError
from ..models.book import Book
from ..models.patron import Patron
from ..models.requests import AddBookRequest, FindBooksRequest, LendingRequest

logger = logging.getLogger(__name__)

DEFAULT_COUNT = 5


class LendingLibrary:
    """
    Lending library operations over a database.

    Args:
        db_manager: Database the catalog and patrons live in
        default_count: Page size for find_books when a request gives none
    """

    def __init__(self, db_manager: DatabaseManager, default_count: int = DEFAULT_COUNT):
        self.db_manager = db_manager
        self.default_count = default_count

    @contextmanager
    def _store(self, operation: str) -> Generator[Session, None, None]:
        """Open a session and translate repository failures into LibraryErrors."""
        try:
            with self.db_manager.session_scope() as session:
                yield session
        except StoreError as e:
            logger.error("%s failed: %s", operation, e)
            raise LibraryError(str(e), ErrorCode.DB, widget=e.field) from e
        except RepositoryException as e:
            logger.info("%s rejected: %s", operation, e)
            raise LibraryError(str(e), ErrorCode.BAD_REQ, widget=e.field) from e
        except SQLAlchemyError as e:
            logger.error("%s failed: %s", operation, e)
            raise LibraryError(f"{operation} failed: {e!s}", ErrorCode.DB) from e

    def clear(self) -> None:
        """Remove every book and patron from the library."""
        with self._store("clear") as session:
            CirculationRepository(session).clear_all()

    def add_book(self, req: Mapping[str, Any]) -> Book:
        """
        Add one or more copies of the book described by ``req``.

        If the ISBN is already catalogued with the same metadata, its copy
        count grows by ``req['nCopies']``.

        Errors:
            MISSING: a required field is missing
            BAD_TYPE: a field has the wrong type
            BAD_REQ: a field is invalid, or the ISBN is catalogued with
                different title, authors, pages, year or publisher, or its
                copy count would overflow
            DB: database error
        """
        book = AddBookRequest.parse(req).to_book()
        with self._store("add_book") as session:
            BookRepository(session).add_or_increment(book)
        return book

    def find_books(self, req: Mapping[str, Any]) -> list[Book]:
        """
        Return books whose title or authors contain every word of ``req['search']``.

        A word is a run of two or more word characters, matched
        case-insensitively. Results are sorted by title and sliced to
        ``[index, index + count)`` by the database.

        Errors:
            MISSING: search is missing or not a string
            BAD_TYPE: index or count is not a number
            BAD_REQ: search has no words, index or count negative or fractional
            DB: database error
        """
        request = FindBooksRequest.parse(req)
        index = request.index if request.index is not None else 0
        count = request.count if request.count is not None else self.default_count
        with self._store("find_books") as session:
            return BookRepository(session).search_paginated(request.words, index, count)

    def checkout_book(self, req: Mapping[str, Any]) -> None:
        """
        Check out book ``req['isbn']`` to patron ``req['patronId']``.

        Errors:
            MISSING: patronId or isbn is missing
            BAD_TYPE: patronId or isbn is not a string
            BAD_REQ: unknown isbn, no copies available, or the patron already
                holds a copy of the book
            DB: database error
        """
        request = LendingRequest.parse(req)
        with self._store("checkout_book") as session:
            CirculationRepository(session).checkout_book(request.patron_id, request.isbn)

    def return_book(self, req: Mapping[str, Any]) -> None:
        """
        Return book ``req['isbn']`` checked out by patron ``req['patronId']``.

        Errors:
            MISSING: patronId or isbn is missing
            BAD_TYPE: patronId or isbn is not a string
            BAD_REQ: the patron has no checkout of the book
            DB: database error
        """
        request = LendingRequest.parse(req)
        with self._store("return_book") as session:
            CirculationRepository(session).return_book(request.patron_id, request.isbn)

    def get_book(self, isbn: str) -> Book:
        """Return the stored catalog entry for ``isbn``."""
        with self._store("get_book") as session:
            book = BookRepository(session).get_by_isbn(isbn)
        if book is None:
            raise LibraryError(f"unknown book isbn {isbn}", ErrorCode.BAD_REQ, widget="isbn")
        return book

    def get_patron(self, patron_id: str) -> Patron:
        """Return patron ``patron_id`` and the books they hold."""
        with self._store("get_patron") as session:
            patron = PatronRepository(session).get_by_id(patron_id)
        if patron is None:
            raise LibraryError(
                f"unknown patron {patron_id}", ErrorCode.BAD_REQ, widget="patronId"
            )
        return patron


def make_lending_library(database_url: str | None = None) -> LendingLibrary:
    """
    Build a LendingLibrary over ``database_url`` (or the configured database).

    Creates the tables and unique keys before returning.

    Raises:
        LibraryError: DB if the database cannot be initialised
    """
    config = get_config()
    db_manager = DatabaseManager(database_url)
    try:
        db_manager.init_database()
    except SQLAlchemyError as e:
        logger.exception("Failed to initialise database %s", db_manager.database_url)
        raise LibraryError(f"cannot initialise database: {e!s}", ErrorCode.DB) from e
    return LendingLibrary(db_manager, default_count=config.default_search_count)


class _LibraryStore:
    """Internal storage for the library singleton."""

    _instance: LendingLibrary | None = None


def get_library() -> LendingLibrary:
    """Get or create the process-wide LendingLibrary."""
    if _LibraryStore._instance is None:  # type: ignore[reportPrivateUsage]
        _LibraryStore._instance = make_lending_library()  # type: ignore[reportPrivateUsage]
    return _LibraryStore._instance  # type: ignore[reportPrivateUsage]
