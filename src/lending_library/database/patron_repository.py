"""
Patron repository for the Lending Library.

A patron's checkedOutBooks set lives in the patron_holds table, so set-add
and set-remove are single INSERT and DELETE statements. The unique
(patron_id, isbn) key turns set-add into add-if-absent: a second hold on
the same ISBN fails at the store instead of being recorded.
"""

import logging

from sqlalchemy import delete, exists, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..database.schema import Patron as PatronDB
from ..database.schema import PatronHold
from ..models.patron import Patron as PatronModel
from .repository import (
    BaseRepository,
    DuplicateError,
    StoreError,
    store_commit,
    store_query,
)

logger = logging.getLogger(__name__)


class PatronRepository(BaseRepository[PatronDB, PatronModel]):
    """Repository for patrons and the books they hold."""

    @property
    def model_class(self):
        return PatronDB

    @property
    def response_schema(self):
        return PatronModel

    def _to_response_model(self, db_obj: PatronDB) -> PatronModel:
        return PatronModel(id=db_obj.id, checked_out_books=db_obj.checked_out_books)

    def get_by_id(self, patron_id: str) -> PatronModel | None:
        return self.get(patron_id)

    def has_hold(self, patron_id: str, isbn: str) -> bool:
        """Check whether ``patron_id`` currently holds ``isbn``."""
        query = select(
            exists().where(PatronHold.patron_id == patron_id, PatronHold.isbn == isbn)
        )
        return bool(
            store_query(
                self.session,
                lambda s: s.execute(query).scalar(),
                "Failed to check patron hold",
            )
        )

    def ensure_patron(self, patron_id: str) -> None:
        """Create the patron row unless it already exists."""
        if self._get_row(patron_id) is not None:
            return

        self.session.add(PatronDB(id=patron_id))
        try:
            self.session.commit()
            logger.info("Created patron %s", patron_id)
        except IntegrityError:
            # created by a concurrent checkout in the meantime
            self.session.rollback()
            if self._get_row(patron_id) is None:
                raise StoreError(f"Failed to create patron {patron_id}") from None
        except SQLAlchemyError as e:
            self.session.rollback()
            raise StoreError(f"Failed to create patron {patron_id}: {e!s}") from e

    def add_patron_hold(self, patron_id: str, isbn: str) -> None:
        """
        Record that ``patron_id`` holds ``isbn``, creating the patron if needed.

        Raises:
            DuplicateError: If the patron already holds ``isbn``
            StoreError: On database errors
        """
        self.ensure_patron(patron_id)

        self.session.add(PatronHold(patron_id=patron_id, isbn=isbn))
        try:
            self.session.commit()
        except IntegrityError as e:
            self.session.rollback()
            if self.has_hold(patron_id, isbn):
                raise DuplicateError(
                    f"patron {patron_id} already has book {isbn} checked out", field="isbn"
                ) from e
            raise StoreError(f"Failed to record checkout of {isbn} by {patron_id}: {e!s}") from e
        except SQLAlchemyError as e:
            self.session.rollback()
            raise StoreError(f"Failed to record checkout of {isbn} by {patron_id}: {e!s}") from e

    def remove_patron_hold(self, patron_id: str, isbn: str) -> bool:
        """
        Remove ``isbn`` from the books held by ``patron_id``.

        Returns:
            True if a hold was removed, False if there was none
        """
        stmt = delete(PatronHold).where(
            PatronHold.patron_id == patron_id, PatronHold.isbn == isbn
        )
        result = store_query(self.session, lambda s: s.execute(stmt), "Failed to remove hold")
        store_commit(self.session, f"return {isbn} from {patron_id}")
        return result.rowcount == 1

    def clear_holds(self) -> int:
        """Delete every hold of every patron."""
        result = store_query(
            self.session, lambda s: s.execute(delete(PatronHold)), "Failed to clear holds"
        )
        store_commit(self.session, "clear patron_holds")
        return result.rowcount
