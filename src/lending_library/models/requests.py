"""
Request parsing for lending library operations.

Requests arrive as untyped field bags. Each is validated into a typed
Pydantic record before the store is touched. Validation problems are
classified in three tiers and the highest tier wins:

1. MISSING  - a required field is absent
2. BAD_TYPE - a field is present with the wrong shape
3. BAD_REQ  - a field is well-typed but semantically invalid

Within a tier the first field in declaration order is reported.
"""

import re
from collections.abc import Mapping
from datetime import datetime
from typing import Any, ClassVar

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    ValidationInfo,
    field_validator,
    model_validator,
)

from ..errors import ErrorCode, LibraryError
from .book import EARLIEST_YEAR, MAX_INTEGER, Book

ISBN_RE = re.compile(r"\d{3}-\d{3}-\d{3}-\d", re.ASCII)

# a search word is a maximal run of word characters of length > 1
WORD_RE = re.compile(r"\w{2,}")

_TIERS = (ErrorCode.MISSING, ErrorCode.BAD_TYPE, ErrorCode.BAD_REQ)


def _as_integer(value: int | float) -> int | None:
    """Return ``value`` as an int when it is integral, else None."""
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    return value


def search_words(text: str) -> list[str]:
    """Split search text into the words used for matching."""
    return WORD_RE.findall(text)


class LibraryRequest(BaseModel):
    """Base class for request records.

    Strict mode keeps JSON-ish coercions out: "12" is not a number and
    True is not an integer.
    """

    model_config = ConfigDict(strict=True, populate_by_name=True)

    # fields whose wrong type is reported as MISSING rather than BAD_TYPE
    untyped_as_missing: ClassVar[frozenset[str]] = frozenset()

    @classmethod
    def parse(cls, request: Any):
        """Validate ``request`` into an instance of this class.

        Raises:
            LibraryError: classified by the MISSING/BAD_TYPE/BAD_REQ tiers
        """
        if not isinstance(request, Mapping):
            raise LibraryError(
                f"request must be a mapping of fields, got {type(request).__name__}",
                ErrorCode.BAD_TYPE,
            )
        try:
            return cls.model_validate(dict(request))
        except ValidationError as e:
            raise cls._classify(e) from None

    @classmethod
    def _classify(cls, error: ValidationError) -> LibraryError:
        found: dict[ErrorCode, LibraryError] = {}
        for detail in error.errors():
            field = str(detail["loc"][0]) if detail["loc"] else None
            if detail["type"] == "missing":
                code = ErrorCode.MISSING
                message = f"missing required field '{field}'"
            else:
                if detail["type"].endswith("_type"):
                    code = ErrorCode.BAD_TYPE
                    if field in cls.untyped_as_missing:
                        code = ErrorCode.MISSING
                else:
                    code = ErrorCode.BAD_REQ
                reason = detail["msg"].removeprefix("Value error, ")
                message = f"invalid field '{field}': {reason}"
            found.setdefault(code, LibraryError(message, code, widget=field))
        for code in _TIERS:
            if code in found:
                return found[code]
        return LibraryError(str(error), ErrorCode.BAD_REQ)


class AddBookRequest(LibraryRequest):
    """Fields required to add copies of a book to the catalog."""

    isbn: str
    title: str
    pages: int | float
    authors: list[str]
    publisher: str
    year: int | float
    n_copies: int | float = Field(alias="nCopies")

    @field_validator("isbn")
    @classmethod
    def validate_isbn(cls, v: str) -> str:
        if not ISBN_RE.fullmatch(v):
            raise ValueError("isbn must be in ISBN-10 format ddd-ddd-ddd-d")
        return v

    @field_validator("title", "publisher")
    @classmethod
    def validate_not_blank(cls, v: str, info: ValidationInfo) -> str:
        if not v.strip():
            raise ValueError(f"{info.field_name} must not be empty")
        return v

    @field_validator("authors")
    @classmethod
    def validate_authors(cls, v: list[str]) -> list[str]:
        if not v:
            raise ValueError("authors must not be empty")
        if any(not author.strip() for author in v):
            raise ValueError("authors must not contain an empty author")
        return v

    @field_validator("pages", "n_copies")
    @classmethod
    def validate_positive_integer(cls, v: int | float, info: ValidationInfo) -> int:
        value = _as_integer(v)
        if value is None or not 0 < value <= MAX_INTEGER:
            raise ValueError(f"{info.field_name} must be a positive integer up to {MAX_INTEGER}")
        return value

    @field_validator("year")
    @classmethod
    def validate_year(cls, v: int | float) -> int:
        current_year = datetime.now().year
        value = _as_integer(v)
        if value is None or not EARLIEST_YEAR <= value <= current_year:
            raise ValueError(f"year must be an integer in [{EARLIEST_YEAR}, {current_year}]")
        return value

    def to_book(self) -> Book:
        return Book(
            isbn=self.isbn,
            title=self.title,
            authors=list(self.authors),
            publisher=self.publisher,
            pages=self.pages,
            year=self.year,
            n_copies=self.n_copies,
        )


class FindBooksRequest(LibraryRequest):
    """Search text plus optional pagination window."""

    untyped_as_missing: ClassVar[frozenset[str]] = frozenset({"search"})

    search: str
    index: int | float | None = None
    count: int | float | None = None

    @field_validator("search")
    @classmethod
    def validate_search(cls, v: str) -> str:
        if not search_words(v):
            raise ValueError("search must contain at least one word of 2 or more characters")
        return v

    @field_validator("index", "count")
    @classmethod
    def validate_non_negative_integer(cls, v: int | float | None, info: ValidationInfo) -> int | None:
        if v is None:
            return None
        value = _as_integer(v)
        if value is None or not 0 <= value <= MAX_INTEGER:
            raise ValueError(
                f"{info.field_name} must be a non-negative integer up to {MAX_INTEGER}"
            )
        return value

    @property
    def words(self) -> list[str]:
        return search_words(self.search)


class LendingRequest(LibraryRequest):
    """Patron/book pair used by checkout and return."""

    patron_id: str = Field(alias="patronId")
    isbn: str

    @model_validator(mode="before")
    @classmethod
    def drop_blank_identifiers(cls, data: Any) -> Any:
        """Treat null or blank identifiers as absent."""
        if isinstance(data, dict):
            data = dict(data)
            for key in ("patronId", "patron_id", "isbn"):
                value = data.get(key)
                if value is None or (isinstance(value, str) and not value.strip()):
                    data.pop(key, None)
        return data
