"""
Book repository for the Lending Library.

Store-native operations on the books collection:

1. **add_or_increment**: insert a new ISBN or add copies to a known one
2. **search_paginated**: multi-word title/author search, sorted and sliced
   by the database
3. **decrement_on_checkout / increment_on_return**: single-statement
   counter updates, the decrement guarded by ``n_copies > 0``
"""

import logging
from collections.abc import Sequence

from sqlalchemy import String, and_, cast, func, or_, select, update

from ..database.schema import Book as BookDB
from ..models.book import MAX_INTEGER
from ..models.book import Book as BookModel
from .repository import (
    BaseRepository,
    CopyLimitError,
    InconsistentBookError,
    StoreError,
    store_commit,
    store_query,
)

logger = logging.getLogger(__name__)

LIKE_ESCAPE = "\\"


def like_pattern(word: str) -> str:
    """Build a substring LIKE pattern matching ``word`` literally."""
    escaped = (
        word.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )
    return f"%{escaped}%"


class BookRepository(BaseRepository[BookDB, BookModel]):
    """Repository for the books collection."""

    @property
    def model_class(self):
        return BookDB

    @property
    def response_schema(self):
        return BookModel

    def get_by_isbn(self, isbn: str) -> BookModel | None:
        return self.get(isbn)

    def add_or_increment(self, book: BookModel) -> None:
        """
        Add ``book`` to the catalog, or add its copies to the stored entry.

        The lookup and the write are separate round-trips. A concurrent
        insert of the same new ISBN in between violates the primary key and
        surfaces as a StoreError; it is not retried. The increment only
        applies while the total stays within MAX_INTEGER.

        Raises:
            InconsistentBookError: If the stored entry has different metadata
            CopyLimitError: If the total number of copies would overflow
            StoreError: On database errors
        """
        existing = self._get_row(book.isbn)

        if existing is None:
            self.session.add(
                BookDB(
                    isbn=book.isbn,
                    title=book.title,
                    authors=list(book.authors),
                    publisher=book.publisher,
                    pages=book.pages,
                    year=book.year,
                    n_copies=book.n_copies,
                )
            )
            store_commit(self.session, f"insert book {book.isbn}")
            logger.info("Added book %s with %d copies", book.isbn, book.n_copies)
            return

        mismatch = self._to_response_model(existing).first_mismatch(book)
        if mismatch is not None:
            raise InconsistentBookError(book.isbn, mismatch)
        if existing.n_copies > MAX_INTEGER - book.n_copies:
            raise CopyLimitError(book.isbn)

        stmt = (
            update(BookDB)
            .where(BookDB.isbn == book.isbn, BookDB.n_copies <= MAX_INTEGER - book.n_copies)
            .values(n_copies=BookDB.n_copies + book.n_copies, updated_at=func.now())
            .execution_options(synchronize_session=False)
        )
        result = store_query(
            self.session, lambda s: s.execute(stmt), "Failed to update book copies"
        )
        if result.rowcount != 1:
            # removed, or pushed to the limit by a concurrent add
            self.session.rollback()
            raise StoreError(f"Failed to update copies of book {book.isbn}")
        store_commit(self.session, f"add copies of book {book.isbn}")
        logger.info("Added %d copies of book %s", book.n_copies, book.isbn)

    def search_paginated(self, words: Sequence[str], index: int, count: int) -> list[BookModel]:
        """
        Return one page of books matching every word in ``words``.

        A word matches when it occurs, case-insensitively, in the title or in
        the authors. Matches are ordered by title then ISBN, and the database
        applies the offset and limit, so only the requested page is loaded.
        """
        authors_text = cast(BookDB.authors, String)
        filters = []
        for word in words:
            pattern = like_pattern(word)
            filters.append(
                or_(
                    BookDB.title.ilike(pattern, escape=LIKE_ESCAPE),
                    authors_text.ilike(pattern, escape=LIKE_ESCAPE),
                )
            )

        query = (
            select(BookDB)
            .where(and_(*filters))
            .order_by(BookDB.title.asc(), BookDB.isbn.asc())
            .offset(index)
            .limit(count)
        )
        results = store_query(
            self.session,
            lambda s: s.execute(query).scalars().all(),
            "Failed to search books",
        )
        return [self._to_response_model(book) for book in results]

    def decrement_on_checkout(self, isbn: str) -> bool:
        """
        Take one copy of ``isbn`` off the shelf if any is left.

        Returns:
            True if a copy was taken, False if the book is missing or has
            no copies
        """
        stmt = (
            update(BookDB)
            .where(BookDB.isbn == isbn, BookDB.n_copies > 0)
            .values(n_copies=BookDB.n_copies - 1, updated_at=func.now())
            .execution_options(synchronize_session=False)
        )
        result = store_query(self.session, lambda s: s.execute(stmt), "Failed to check out copy")
        store_commit(self.session, f"check out copy of {isbn}")
        return result.rowcount == 1

    def increment_on_return(self, isbn: str) -> None:
        """
        Put one copy of ``isbn`` back on the shelf.

        Raises:
            StoreError: If the book row could not be updated
        """
        stmt = (
            update(BookDB)
            .where(BookDB.isbn == isbn)
            .values(n_copies=BookDB.n_copies + 1, updated_at=func.now())
            .execution_options(synchronize_session=False)
        )
        result = store_query(self.session, lambda s: s.execute(stmt), "Failed to return copy")
        if result.rowcount != 1:
            self.session.rollback()
            raise StoreError(f"Failed to return copy of book {isbn}: no such book row")
        store_commit(self.session, f"return copy of {isbn}")
