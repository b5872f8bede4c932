from __future__ import annotations

from typing import Any


class RecordError(Exception):
    """Base class for failures reported by the record controllers."""

    kind = "Internal"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidArgument(RecordError):
    kind = "InvalidArgument"


class ValidationFailed(RecordError):
    kind = "ValidationFailed"

    def __init__(self, details: list[dict[str, Any]], message: str = "Validation failed") -> None:
        super().__init__(message)
        self.details = details


class NotFound(RecordError):
    kind = "NotFound"


class DuplicateEntry(RecordError):
    kind = "DuplicateEntry"

    def __init__(self, field: str, message: str | None = None) -> None:
        super().__init__(message or f"Duplicate entry: {field} already exists")
        self.field = field


class InternalError(RecordError):
    kind = "Internal"

    def __init__(self, message: str, *, detail: str | None = None) -> None:
        super().__init__(message)
        self.detail = detail
