"""
Circulation repository for the Lending Library.

Checkout and return each move two records: the book's copy count and the
patron's hold. The store only guarantees single-row atomicity, so both
operations follow a write-then-compensate protocol:

- checkout: guarded decrement of the book first, then add-if-absent of the
  hold; if the hold cannot be added the copy is put back
- return: guarded removal of the hold first, then increment of the book;
  if the increment fails the hold is restored

The guarded first write is what serializes concurrent requests: only one of
two racing checkouts of the last copy can decrement it, and only one of two
racing returns can delete the hold.
"""

import logging
from collections.abc import Callable

from sqlalchemy.orm import Session

from .book_repository import BookRepository
from .patron_repository import PatronRepository
from .repository import (
    DuplicateError,
    NotFoundError,
    RepositoryException,
    StoreError,
    UnavailableError,
)

logger = logging.getLogger(__name__)


class CirculationRepository:
    """
    Repository for operations spanning books and patrons.

    Args:
        session: Session shared by the book and patron repositories
    """

    def __init__(self, session: Session):
        self.session = session
        self.book_repo = BookRepository(session)
        self.patron_repo = PatronRepository(session)

    def checkout_book(self, patron_id: str, isbn: str) -> None:
        """
        Check out one copy of ``isbn`` to ``patron_id``.

        Rules are checked in order: the book exists, a copy is available,
        the patron does not already hold the book.

        Raises:
            NotFoundError: If no book has this ISBN
            UnavailableError: If no copies are available
            DuplicateError: If the patron already holds this ISBN
            StoreError: On database errors
        """
        book = self.book_repo.get_by_isbn(isbn)
        if book is None:
            raise NotFoundError(f"unknown book isbn {isbn}", field="isbn")
        if not book.is_available:
            raise UnavailableError(f"no copies of book {isbn} are available", field="isbn")
        if self.patron_repo.has_hold(patron_id, isbn):
            raise DuplicateError(
                f"patron {patron_id} already has book {isbn} checked out", field="isbn"
            )

        if not self.book_repo.decrement_on_checkout(isbn):
            # the last copy went to a concurrent checkout
            raise UnavailableError(f"no copies of book {isbn} are available", field="isbn")

        try:
            self.patron_repo.add_patron_hold(patron_id, isbn)
        except RepositoryException:
            logger.warning("Checkout of %s by %s not recorded, restoring copy", isbn, patron_id)
            self._compensate(
                lambda: self.book_repo.increment_on_return(isbn),
                f"restore copy of {isbn}",
            )
            raise

        logger.info("Patron %s checked out %s", patron_id, isbn)

    def return_book(self, patron_id: str, isbn: str) -> None:
        """
        Return the copy of ``isbn`` held by ``patron_id``.

        Raises:
            NotFoundError: If the patron does not hold this ISBN
            StoreError: On database errors
        """
        if not self.patron_repo.remove_patron_hold(patron_id, isbn):
            raise NotFoundError(
                f"no checkout of book {isbn} by patron {patron_id}", field="isbn"
            )

        try:
            self.book_repo.increment_on_return(isbn)
        except RepositoryException:
            logger.warning("Return of %s by %s not applied, restoring hold", isbn, patron_id)
            self._compensate(
                lambda: self.patron_repo.add_patron_hold(patron_id, isbn),
                f"restore hold of {isbn} by {patron_id}",
            )
            raise

        logger.info("Patron %s returned %s", patron_id, isbn)

    def clear_all(self) -> None:
        """
        Delete every hold, patron and book.

        Each collection is attempted even if an earlier one fails; the first
        failure is raised once all have been tried.
        """
        # holds reference both patrons and books, so they go first
        steps: list[tuple[str, Callable[[], int]]] = [
            ("patron_holds", self.patron_repo.clear_holds),
            ("patrons", self.patron_repo.delete_all),
            ("books", self.book_repo.delete_all),
        ]
        failure: StoreError | None = None
        for table, clear in steps:
            try:
                deleted = clear()
                logger.info("Cleared %d rows from %s", deleted, table)
            except StoreError as e:
                logger.error("Failed to clear %s: %s", table, e)
                failure = failure or e
        if failure is not None:
            raise failure

    def _compensate(self, action: Callable[[], None], description: str) -> None:
        """Run a compensating write; a failure here leaves the store inconsistent."""
        try:
            action()
        except RepositoryException as e:
            logger.exception("Compensation failed: %s", description)
            raise StoreError(f"Failed to {description}: {e!s}") from e
