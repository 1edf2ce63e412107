"""
Lending library tools.

Each tool takes the operation's request fields as ``arguments``, calls the
LendingLibrary, and returns a structured response:

- success: ``{"content": [{"type": "text", "text": ...}], "data": {...}}``
- failure: ``{"isError": True, "content": [...], "error": {code, message, widget}}``

The tools hold no business logic of their own.
"""

import logging
from typing import Any

from ..errors import LibraryError
from ..services.lending_library import get_library

logger = logging.getLogger(__name__)


def _text_response(text: str, data: dict[str, Any] | None = None) -> dict[str, Any]:
    response: dict[str, Any] = {"content": [{"type": "text", "text": text}]}
    if data is not None:
        response["data"] = data
    return response


def _error_response(error: LibraryError) -> dict[str, Any]:
    return {
        "isError": True,
        "content": [{"type": "text", "text": f"{error.code.value}: {error.message}"}],
        "error": error.to_dict(),
    }


async def add_book_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    """Add copies of a book to the catalog."""
    try:
        book = get_library().add_book(arguments)
    except LibraryError as e:
        logger.info("add_book failed: %r", e)
        return _error_response(e)

    return _text_response(
        f"Added {book.n_copies} copies of '{book.title}' ({book.isbn})",
        {"book": book.to_document()},
    )


async def find_books_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    """Search the catalog by title and author words."""
    try:
        books = get_library().find_books(arguments)
    except LibraryError as e:
        logger.info("find_books failed: %r", e)
        return _error_response(e)

    if books:
        lines = [f"- {book.title} by {', '.join(book.authors)} ({book.isbn})" for book in books]
        text = f"Found {len(books)} books:\n" + "\n".join(lines)
    else:
        text = "No books matched the search"
    return _text_response(text, {"books": [book.to_document() for book in books]})


async def checkout_book_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    """Check out a book to a patron."""
    try:
        get_library().checkout_book(arguments)
    except LibraryError as e:
        logger.info("checkout_book failed: %r", e)
        return _error_response(e)

    return _text_response(
        f"Checked out book {arguments['isbn']} to patron {arguments['patronId']}"
    )


async def return_book_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    """Return a book checked out by a patron."""
    try:
        get_library().return_book(arguments)
    except LibraryError as e:
        logger.info("return_book failed: %r", e)
        return _error_response(e)

    return _text_response(
        f"Patron {arguments['patronId']} returned book {arguments['isbn']}"
    )


async def clear_library_handler(arguments: dict[str, Any] | None = None) -> dict[str, Any]:  # noqa: ARG001
    """Remove every book and patron."""
    try:
        get_library().clear()
    except LibraryError as e:
        logger.error("clear_library failed: %r", e)
        return _error_response(e)

    return _text_response("Library cleared")


add_book = {
    "name": "add_book",
    "description": (
        "Add copies of a book to the catalog. Requires isbn (ddd-ddd-ddd-d), title, "
        "authors, publisher, pages, year and nCopies. Re-adding a catalogued ISBN adds "
        "to its copies and fails if the other fields differ."
    ),
    "handler": add_book_handler,
}

find_books = {
    "name": "find_books",
    "description": (
        "Find books whose title or authors contain every word of 'search'. Results are "
        "sorted by title; optional 'index' (default 0) and 'count' (default 5) select a page."
    ),
    "handler": find_books_handler,
}

checkout_book = {
    "name": "checkout_book",
    "description": (
        "Check out book 'isbn' to patron 'patronId'. Fails if the book is unknown, has no "
        "copies available, or the patron already has a copy checked out."
    ),
    "handler": checkout_book_handler,
}

return_book = {
    "name": "return_book",
    "description": "Return book 'isbn' checked out by patron 'patronId'.",
    "handler": return_book_handler,
}

clear_library = {
    "name": "clear_library",
    "description": "Remove every book and patron from the library. Destructive.",
    "handler": clear_library_handler,
}
