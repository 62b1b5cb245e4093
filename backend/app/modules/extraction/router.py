"""Extraction API — /extraction/ endpoints.

  - /extract        — one file -> candidate records (not stored)
  - /extract-batch  — files processed sequentially, records appended to the store
  - /status         — orchestrator state and elapsed time of the running batch
"""

from __future__ import annotations

import time

import structlog
from fastapi import APIRouter, Depends, File, HTTPException, UploadFile

from app.core.config import settings
from app.core.errors import BatchInProgressError, ModelError, ParseError, UploadError
from app.core.state import AppState, get_state
from app.modules.extraction.schemas import (
    BatchExtractionResponse,
    BatchStatus,
    ExtractionResponse,
    SourceDocument,
    check_document,
)

logger = structlog.get_logger()

router = APIRouter(prefix="/extraction", tags=["extraction"])


async def _read_upload(upload: UploadFile) -> SourceDocument:
    """Read one upload into memory. Validation is left to ``check_document``."""
    return SourceDocument(
        file_name=upload.filename or "upload",
        mime_type=upload.content_type or "",
        content=await upload.read(),
    )


@router.post("/extract", response_model=ExtractionResponse)
async def extract_document(
    file: UploadFile | None = File(None, description="Application form (image or PDF)"),
    state: AppState = Depends(get_state),
) -> ExtractionResponse:
    """Upload one document and return its candidate records without storing them."""
    start = time.monotonic()

    try:
        if file is None:
            raise UploadError("No file uploaded")
        document = await _read_upload(file)
        check_document(document)
    except UploadError as e:
        raise HTTPException(status_code=400, detail=e.message)

    logger.info(
        "Extraction request",
        filename=document.file_name,
        mime_type=document.mime_type,
        size_bytes=len(document.content),
    )

    try:
        candidates, response = await state.orchestrator.extract_candidates(document)
    except (ModelError, ParseError) as e:
        elapsed_ms = int((time.monotonic() - start) * 1000)
        logger.error("Extraction failed", filename=document.file_name, error=str(e))
        return ExtractionResponse(success=False, error=e.message, processing_time_ms=elapsed_ms)

    return ExtractionResponse(
        success=True,
        records=candidates,
        processing_time_ms=int((time.monotonic() - start) * 1000),
        model=response.model,
        fallback_used=response.fallback_used,
    )


@router.post("/extract-batch", response_model=BatchExtractionResponse)
async def extract_batch(
    files: list[UploadFile] | None = File(None, description="Application forms (images or PDFs)"),
    state: AppState = Depends(get_state),
) -> BatchExtractionResponse:
    """Upload several documents; each is processed in turn and its records stored.

    A failing file (including an unsupported or empty one) does not stop the
    batch. Per-file outcomes are returned.
    """
    start = time.monotonic()

    if not files:
        raise HTTPException(status_code=400, detail="No file uploaded")
    if len(files) > settings.max_batch_files:
        raise HTTPException(
            status_code=400,
            detail=f"Too many files: {len(files)} (max {settings.max_batch_files}).",
        )

    # Unsupported or empty files become failed per-file results in the batch.
    documents = [await _read_upload(upload) for upload in files]

    logger.info("Batch extraction request", file_count=len(documents))

    try:
        batch = await state.orchestrator.run_batch(documents)
    except BatchInProgressError as e:
        raise HTTPException(status_code=409, detail=e.message)

    return BatchExtractionResponse(
        success=batch.successful_count > 0,
        results=batch.files,
        records_added=batch.records_added,
        successful_count=batch.successful_count,
        failed_count=batch.failed_count,
        total_processing_time_ms=int((time.monotonic() - start) * 1000),
    )


@router.get("/status", response_model=BatchStatus)
async def batch_status(state: AppState = Depends(get_state)) -> BatchStatus:
    return state.orchestrator.status()
