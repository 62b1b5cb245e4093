"""Exception hierarchy for the extraction pipeline and the record store."""

from __future__ import annotations

from typing import Any


class ExtractionError(Exception):
    """Base exception for all pipeline errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class UploadError(ExtractionError):
    """No usable file was provided. Raised before any remote call."""


class ModelError(ExtractionError):
    """Both the primary and the fallback model call failed."""


class ParseError(ExtractionError):
    """Model output was not valid JSON (or not a list/object of records)."""

    def __init__(
        self,
        message: str,
        raw_text: str = "",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.raw_text = raw_text


class PersistenceError(ExtractionError):
    """Stored snapshot could not be read or validated."""


class BatchInProgressError(ExtractionError):
    """A batch was submitted while another one is still running."""


class RecordNotFoundError(ExtractionError):
    """No record with the given id exists in the canonical sequence."""
