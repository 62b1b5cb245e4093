"""Extraction Orchestrator — sequential batch pipeline.

No LLM logic of its own. For each submitted file, in order:

    file -> ModelClient (primary, then fallback) -> parse_response
         -> SourceRegistry (blob) -> RecordStore.append

A file that fails (UploadError / ModelError / ParseError / PersistenceError)
is logged and skipped; the batch always runs over every submitted file. Model
calls, including single-file extractions, are serialized by one lock.
Records of a successful file are appended as soon as that file completes.
"""

from __future__ import annotations

import asyncio

import structlog

from app.core.config import settings
from app.core.errors import (
    BatchInProgressError,
    ModelError,
    ParseError,
    PersistenceError,
    UploadError,
)
from app.modules.extraction.model_client import ModelClient, ModelResponse
from app.modules.extraction.parser import parse_response
from app.modules.extraction.schemas import (
    BatchResult,
    BatchState,
    BatchStatus,
    FileResult,
    SourceDocument,
    check_document,
)
from app.modules.extraction.timer import ElapsedTimer
from app.modules.records.schemas import Record
from app.modules.records.sources import SourceRegistry
from app.modules.records.store import RecordStore

logger = structlog.get_logger()


class ExtractionOrchestrator:
    """Drives one batch at a time: idle -> running -> idle."""

    def __init__(
        self,
        model_client: ModelClient,
        store: RecordStore,
        sources: SourceRegistry | None = None,
        *,
        tick_interval_s: float | None = None,
    ) -> None:
        self.model_client = model_client
        self.store = store
        self.sources = sources or SourceRegistry()
        self.tick_interval_s = tick_interval_s or settings.elapsed_tick_interval_s

        self._state: BatchState = "idle"
        self._timer: ElapsedTimer | None = None
        self._files_total = 0
        self._files_done = 0
        # One Model Client call in flight, whether from a batch or /extract.
        self._model_lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> BatchState:
        return self._state

    def status(self) -> BatchStatus:
        return BatchStatus(
            state=self._state,
            elapsed_seconds=round(self._timer.elapsed, 1) if self._timer else 0.0,
            files_total=self._files_total,
            files_done=self._files_done,
        )

    # ------------------------------------------------------------------
    # Single file (no store access)
    # ------------------------------------------------------------------

    async def extract_candidates(
        self, document: SourceDocument
    ) -> tuple[list[Record], ModelResponse]:
        """Model call + parse for one file. Raises UploadError / ModelError / ParseError."""
        check_document(document)

        async with self._model_lock:
            response = await self.model_client.generate(
                document.content, document.mime_type, file_name=document.file_name
            )
        candidates = parse_response(response.text)
        logger.info(
            "Candidates parsed",
            file=document.file_name,
            model=response.model,
            count=len(candidates),
        )
        return candidates, response

    # ------------------------------------------------------------------
    # Batch
    # ------------------------------------------------------------------

    async def run_batch(self, documents: list[SourceDocument]) -> BatchResult:
        """Process files sequentially, appending each file's records on completion."""
        if not documents:
            raise UploadError("No file uploaded")
        if self._state == "running":
            raise BatchInProgressError(
                "A batch is already running",
                {"files_total": self._files_total, "files_done": self._files_done},
            )

        self._state = "running"
        self._files_total = len(documents)
        self._files_done = 0
        self._timer = ElapsedTimer(self.tick_interval_s)
        results: list[FileResult] = []

        logger.info("Batch started", file_count=len(documents))
        try:
            async with self._timer:
                for document in documents:
                    results.append(await self._process_file(document))
                    self._files_done += 1
        finally:
            self._state = "idle"

        successful = sum(1 for r in results if r.success)
        batch = BatchResult(
            files=results,
            records_added=sum(r.records_added for r in results),
            successful_count=successful,
            failed_count=len(results) - successful,
            elapsed_seconds=round(self._timer.elapsed, 3),
        )
        logger.info(
            "Batch finished",
            successful=batch.successful_count,
            failed=batch.failed_count,
            records_added=batch.records_added,
            elapsed_s=batch.elapsed_seconds,
        )
        return batch

    async def _process_file(self, document: SourceDocument) -> FileResult:
        logger.info(
            "Processing file",
            file=document.file_name,
            mime_type=document.mime_type,
            size_bytes=len(document.content),
        )
        try:
            candidates, response = await self.extract_candidates(document)
        except (ModelError, ParseError, UploadError) as e:
            logger.error("Error processing file", file=document.file_name, error=str(e))
            return FileResult(filename=document.file_name, success=False, error=e.message)

        reference = self.sources.register(
            document.content, document.mime_type, file_name=document.file_name
        )
        try:
            appended = await asyncio.to_thread(
                self.store.append,
                candidates,
                source_reference=reference,
                source_kind=document.mime_type,
            )
        except PersistenceError as e:
            self.sources.discard(reference)
            logger.error("Failed to save records", file=document.file_name, error=str(e))
            return FileResult(filename=document.file_name, success=False, error=e.message)

        return FileResult(
            filename=document.file_name,
            success=True,
            records_added=len(appended),
            record_ids=[r.id for r in appended],
            model=response.model,
        )
