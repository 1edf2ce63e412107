"""
Error taxonomy for the Lending Library.

Every operation either succeeds or raises a LibraryError carrying one of
four codes:

- MISSING: a required request field is absent
- BAD_TYPE: a request field is present but has the wrong shape
- BAD_REQ: the request is well-formed but violates a business rule
- DB: the underlying store failed (connectivity, constraints, write errors)

DB is reserved for infrastructure faults and never masks a business-rule
violation.
"""

import enum
from typing import Any


class ErrorCode(str, enum.Enum):
    """Classification of a failed library operation."""

    MISSING = "MISSING"
    BAD_TYPE = "BAD_TYPE"
    BAD_REQ = "BAD_REQ"
    DB = "DB"


class LibraryError(Exception):
    """A classified failure returned to callers of the lending library.

    Args:
        message: Human-readable description of the failure
        code: Error classification
        widget: Name of the request field responsible, when there is one
    """

    def __init__(self, message: str, code: ErrorCode, widget: str | None = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.widget = widget

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"message": self.message, "code": self.code.value}
        if self.widget is not None:
            result["widget"] = self.widget
        return result

    def __repr__(self) -> str:
        return f"LibraryError(code={self.code.value}, message={self.message!r}, widget={self.widget!r})"
