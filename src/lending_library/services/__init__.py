"""Catalog and lending service layer."""

from .lending_library import (
    DEFAULT_COUNT,
    LendingLibrary,
    get_library,
    make_lending_library,
)

__all__ = [
    "DEFAULT_COUNT",
    "LendingLibrary",
    "get_library",
    "make_lending_library",
]
