"""
Storage access layer for the Lending Library.

This package provides:
- SQLAlchemy schema definitions (schema.py)
- Session management and connection handling (session.py)
- Repositories exposing the store-native operations the lending rules
  are built on (book, patron and circulation repositories)
"""

from .book_repository import BookRepository
from .circulation_repository import CirculationRepository
from .patron_repository import PatronRepository
from .repository import (
    BaseRepository,
    CopyLimitError,
    DuplicateError,
    InconsistentBookError,
    NotFoundError,
    RepositoryException,
    StoreError,
    UnavailableError,
)
from .schema import Base, Book, Patron, PatronHold
from .session import DatabaseManager

__all__ = [
    "Base",
    "BaseRepository",
    "Book",
    "BookRepository",
    "CirculationRepository",
    "CopyLimitError",
    "DatabaseManager",
    "DuplicateError",
    "InconsistentBookError",
    "NotFoundError",
    "Patron",
    "PatronHold",
    "PatronRepository",
    "RepositoryException",
    "StoreError",
    "UnavailableError",
]
