"""
Lending Library.

A small lending-library backend: validates and persists book catalog
entries and tracks which patrons hold which books.

Key Components:
- models: Pydantic models for books, patrons and request records
- database: SQLAlchemy schema, sessions and repositories
- services: the LendingLibrary operations (add, find, checkout, return, clear)
- tools: MCP tools over the LendingLibrary
- config: Configuration management with Pydantic v2
"""

__version__ = "0.1.0"

from .errors import ErrorCode, LibraryError
from .services import LendingLibrary, make_lending_library

__all__ = [
    "ErrorCode",
    "LendingLibrary",
    "LibraryError",
    "__version__",
    "make_lending_library",
]
