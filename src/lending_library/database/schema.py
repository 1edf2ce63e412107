"""
SQLAlchemy database schema for the Lending Library.

Two collections back the catalog:

- books: one row per ISBN holding the catalog metadata and the copy count
- patrons: one row per patron id, with the set of held ISBNs kept in
  patron_holds

The primary keys and the (patron_id, isbn) unique constraint are the
uniqueness guarantees the lending rules rely on: a racing insert of the same
new ISBN fails instead of duplicating the book, and adding a hold a patron
already has fails instead of recording a second copy.
"""

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()


class Book(Base):
    """
    Books table - the library catalog.

    n_copies is the number of copies on the shelf: decremented by checkout,
    incremented by return and by re-adding the same ISBN.
    """

    __tablename__ = "books"

    # ddd-ddd-ddd-d
    isbn = Column(String(13), primary_key=True)
    title = Column(String(500), nullable=False)
    authors = Column(JSON, nullable=False)
    publisher = Column(String(200), nullable=False)
    pages = Column(Integer, nullable=False)
    year = Column(Integer, nullable=False)
    n_copies = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, nullable=False, default=func.now())
    updated_at = Column(DateTime, nullable=True, default=func.now(), onupdate=func.now())

    holds = relationship("PatronHold", back_populates="book")

    __table_args__ = (
        # search results are ordered by (title, isbn)
        Index("idx_book_title_isbn", "title", "isbn"),
        CheckConstraint("n_copies >= 0", name="check_n_copies_non_negative"),
        CheckConstraint("pages > 0", name="check_pages_positive"),
        CheckConstraint("year >= 1448", name="check_year_valid"),
    )


class Patron(Base):
    """Patrons table - created on a patron's first checkout."""

    __tablename__ = "patrons"

    id = Column(String(255), primary_key=True)
    created_at = Column(DateTime, nullable=False, default=func.now())

    holds = relationship(
        "PatronHold",
        back_populates="patron",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @property
    def checked_out_books(self) -> list[str]:
        return sorted(hold.isbn for hold in self.holds)


class PatronHold(Base):
    """
    Patron holds table - the checkedOutBooks set of each patron.

    One row per (patron, isbn) currently checked out.
    """

    __tablename__ = "patron_holds"

    id = Column(Integer, primary_key=True, autoincrement=True)
    patron_id = Column(String(255), ForeignKey("patrons.id"), nullable=False)
    isbn = Column(String(13), ForeignKey("books.isbn"), nullable=False)
    checkout_date = Column(DateTime, nullable=False, default=func.now())

    patron = relationship("Patron", back_populates="holds")
    book = relationship("Book", back_populates="holds")

    __table_args__ = (
        UniqueConstraint("patron_id", "isbn", name="unique_patron_hold"),
        Index("idx_hold_isbn", "isbn"),
    )
