"""Extraction API schemas and orchestrator result types."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from pydantic import BaseModel, Field

from app.core.errors import UploadError
from app.modules.records.schemas import Record

BatchState = Literal["idle", "running"]

ACCEPTED_MIME_PREFIXES: tuple[str, ...] = ("image/",)
ACCEPTED_MIME_TYPES: frozenset[str] = frozenset({"application/pdf"})


def is_accepted_mime_type(mime_type: str | None) -> bool:
    if not mime_type:
        return False
    mime_type = mime_type.lower()
    return mime_type in ACCEPTED_MIME_TYPES or mime_type.startswith(ACCEPTED_MIME_PREFIXES)


@dataclass(frozen=True)
class SourceDocument:
    """One uploaded file, read fully into memory."""

    file_name: str
    mime_type: str
    content: bytes


def check_document(document: SourceDocument) -> None:
    """Reject unsupported or empty files before any model call. Raises UploadError."""
    if not is_accepted_mime_type(document.mime_type):
        raise UploadError(
            f"Only images or PDF files are accepted. Got: {document.mime_type or 'unknown'}",
            {"file": document.file_name},
        )
    if not document.content:
        raise UploadError(
            f"Uploaded file is empty: {document.file_name}", {"file": document.file_name}
        )


# ---------------------------------------------------------------------------
# Orchestrator results
# ---------------------------------------------------------------------------


class FileResult(BaseModel):
    """Outcome for one file of a batch."""

    filename: str
    success: bool
    records_added: int = 0
    record_ids: list[str] = []
    model: str | None = Field(None, description="Model that produced the records")
    error: str | None = None


class BatchResult(BaseModel):
    files: list[FileResult]
    records_added: int = 0
    successful_count: int = 0
    failed_count: int = 0
    elapsed_seconds: float = 0.0


class BatchStatus(BaseModel):
    state: BatchState = "idle"
    elapsed_seconds: float = 0.0
    files_total: int = 0
    files_done: int = 0


# ---------------------------------------------------------------------------
# API responses
# ---------------------------------------------------------------------------


class ExtractionResponse(BaseModel):
    """Response envelope for POST /extraction/extract (candidates, not stored)."""

    success: bool
    records: list[Record] = []
    error: str | None = None
    processing_time_ms: int = 0
    model: str | None = Field(None, description="Model that produced the final result")
    fallback_used: bool = False


class BatchExtractionResponse(BaseModel):
    """Response envelope for POST /extraction/extract-batch."""

    success: bool
    results: list[FileResult]
    records_added: int = 0
    successful_count: int = 0
    failed_count: int = 0
    total_processing_time_ms: int = 0
