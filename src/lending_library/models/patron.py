"""Patron model for the Lending Library."""

from pydantic import BaseModel, ConfigDict, Field


class Patron(BaseModel):
    """A library patron and the set of ISBNs they currently hold.

    Patrons are never created directly; a record appears the first time a
    checkout is granted to a new patron id.
    """

    id: str = Field(..., description="Patron identifier", min_length=1)

    checked_out_books: list[str] = Field(
        default_factory=list,
        alias="checkedOutBooks",
        description="ISBNs of books the patron currently holds (no duplicates)",
    )

    model_config = ConfigDict(populate_by_name=True)

    def holds(self, isbn: str) -> bool:
        return isbn in self.checked_out_books

    def to_document(self) -> dict:
        return self.model_dump(by_alias=True)
