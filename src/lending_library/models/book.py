"""
Book model for the Lending Library.

A book is identified by its ISBN (``ddd-ddd-ddd-d``). The catalog keeps a
single record per ISBN; adding more copies of a known ISBN only bumps its
copy count, which is why the record can compare itself against an incoming
copy and report the first field on which they disagree.
"""

from pydantic import BaseModel, ConfigDict, Field

ISBN_PATTERN = r"^[0-9]{3}-[0-9]{3}-[0-9]{3}-[0-9]$"

# Gutenberg's press
EARLIEST_YEAR = 1448

# largest value a SQLite INTEGER column holds
MAX_INTEGER = 2**63 - 1


class Book(BaseModel):
    """A catalog entry as persisted in the books collection."""

    isbn: str = Field(
        ...,
        description="ISBN-10 in the form ddd-ddd-ddd-d",
        pattern=ISBN_PATTERN,
        examples=["123-456-789-0"],
    )

    title: str = Field(
        ...,
        description="The title of the book",
        min_length=1,
        examples=["The Hobbit"],
    )

    authors: list[str] = Field(
        ...,
        description="Ordered list of author names",
        min_length=1,
        examples=[["J.R.R. Tolkien"]],
    )

    publisher: str = Field(
        ...,
        description="Publisher name",
        min_length=1,
        examples=["Allen & Unwin"],
    )

    pages: int = Field(..., description="Number of pages", gt=0, le=MAX_INTEGER, examples=[310])

    year: int = Field(
        ...,
        description="Year of publication",
        ge=EARLIEST_YEAR,
        examples=[1937],
    )

    n_copies: int = Field(
        ...,
        alias="nCopies",
        description="Number of copies currently on the shelf",
        ge=0,
        le=MAX_INTEGER,
        examples=[3],
    )

    model_config = ConfigDict(
        populate_by_name=True,
        from_attributes=True,
        json_schema_extra={
            "example": {
                "isbn": "123-456-789-0",
                "title": "The Hobbit",
                "authors": ["J.R.R. Tolkien"],
                "publisher": "Allen & Unwin",
                "pages": 310,
                "year": 1937,
                "nCopies": 3,
            }
        },
    )

    @property
    def is_available(self) -> bool:
        return self.n_copies > 0

    def first_mismatch(self, other: "Book") -> str | None:
        """Return the first catalog field on which ``other`` differs from this book.

        Fields are compared in priority order title, authors, pages, year,
        publisher. Copy counts are not compared.
        """
        if self.title != other.title:
            return "title"
        if self.authors != other.authors:
            return "authors"
        if self.pages != other.pages:
            return "pages"
        if self.year != other.year:
            return "year"
        if self.publisher != other.publisher:
            return "publisher"
        return None

    def to_document(self) -> dict:
        """Serialize using the persisted field names (``nCopies``)."""
        return self.model_dump(by_alias=True)
