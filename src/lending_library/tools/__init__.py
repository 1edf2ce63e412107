"""
Tools exposing the lending library operations.

Each tool is a dictionary with a name, a description and an async handler;
the server registers every entry of ``all_tools``.
"""

from .lending import add_book, checkout_book, clear_library, find_books, return_book

all_tools = [
    add_book,
    find_books,
    checkout_book,
    return_book,
    clear_library,
]

__all__ = [
    "add_book",
    "all_tools",
    "checkout_book",
    "clear_library",
    "find_books",
    "return_book",
]
