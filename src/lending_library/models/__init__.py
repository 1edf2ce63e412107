"""
Lending Library Models.

Pydantic models for the catalog entities and for the request records that
operations validate their input into:
- Book: catalog entry keyed by ISBN
- Patron: library member and the ISBNs they currently hold
- AddBookRequest, FindBooksRequest, LendingRequest: typed request records
"""

from .book import EARLIEST_YEAR, ISBN_PATTERN, MAX_INTEGER, Book
from .patron import Patron
from .requests import (
    AddBookRequest,
    FindBooksRequest,
    LendingRequest,
    LibraryRequest,
    search_words,
)

__all__ = [
    "EARLIEST_YEAR",
    "ISBN_PATTERN",
    "MAX_INTEGER",
    "AddBookRequest",
    "Book",
    "FindBooksRequest",
    "LendingRequest",
    "LibraryRequest",
    "Patron",
    "search_words",
]
