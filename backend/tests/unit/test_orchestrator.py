"""Unit tests for the batch orchestrator and the elapsed-time counter."""

from __future__ import annotations

import asyncio
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from app.core.errors import BatchInProgressError, ModelError, UploadError
from app.modules.extraction.model_client import ModelClient, ModelResponse
from app.modules.extraction.orchestrator import ExtractionOrchestrator
from app.modules.extraction.schemas import SourceDocument
from app.modules.extraction.timer import ElapsedTimer
from app.modules.records.persistence import SnapshotStorage
from app.modules.records.sources import SourceRegistry
from app.modules.records.store import RecordStore


def _doc(name: str, mime_type: str = "application/pdf") -> SourceDocument:
    return SourceDocument(file_name=name, mime_type=mime_type, content=f"bytes:{name}".encode())


def _response(text: str, model: str = "primary-model") -> ModelResponse:
    return ModelResponse(text=text, model=model, duration_ms=1)


@pytest.fixture
def orchestrator(model_client: ModelClient) -> ExtractionOrchestrator:
    return ExtractionOrchestrator(model_client, RecordStore(), SourceRegistry(), tick_interval_s=0.01)


async def test_failed_file_is_skipped_and_batch_continues(
    orchestrator: ExtractionOrchestrator,
) -> None:
    orchestrator.model_client.generate = AsyncMock(side_effect=[
        _response('[{"name": "File1-A"}, {"name": "File1-B"}]'),
        ModelError("Both primary and fallback model calls failed"),
        _response('{"name": "File3"}'),
    ])

    batch = await orchestrator.run_batch([_doc("1.pdf"), _doc("2.pdf"), _doc("3.pdf")])

    assert [r.name for r in orchestrator.store.records()] == ["File1-A", "File1-B", "File3"]
    assert [f.success for f in batch.files] == [True, False, True]
    assert batch.files[1].error == "Both primary and fallback model calls failed"
    assert (batch.successful_count, batch.failed_count, batch.records_added) == (2, 1, 3)
    assert orchestrator.state == "idle"


async def test_parse_error_is_skipped_like_model_error(
    orchestrator: ExtractionOrchestrator,
) -> None:
    orchestrator.model_client.generate = AsyncMock(side_effect=[
        _response("Sorry, I cannot read this form."),
        _response('[{"name": "OK"}]'),
    ])

    batch = await orchestrator.run_batch([_doc("bad.png", "image/png"), _doc("good.pdf")])

    assert [f.success for f in batch.files] == [False, True]
    assert [r.name for r in orchestrator.store.records()] == ["OK"]


async def test_records_carry_file_provenance(orchestrator: ExtractionOrchestrator) -> None:
    orchestrator.model_client.generate = AsyncMock(side_effect=[
        _response('[{"name": "A"}, {"name": "B"}]'),
        _response('[{"name": "C"}]'),
    ])

    await orchestrator.run_batch([_doc("scan.pdf"), _doc("photo.jpg", "image/jpeg")])

    a, b, c = orchestrator.store.records()
    assert a.source_reference == b.source_reference != c.source_reference
    assert (a.source_kind, c.source_kind) == ("application/pdf", "image/jpeg")
    blob = orchestrator.sources.get(c.source_reference)
    assert blob is not None and blob.content == b"bytes:photo.jpg"


async def test_files_are_processed_sequentially_in_order(
    orchestrator: ExtractionOrchestrator,
) -> None:
    in_flight = 0
    max_in_flight = 0
    order: list[str] = []

    async def _generate(content: bytes, mime_type: str, *, file_name: str = "") -> ModelResponse:
        nonlocal in_flight, max_in_flight
        in_flight += 1
        max_in_flight = max(max_in_flight, in_flight)
        order.append(file_name)
        await asyncio.sleep(0.01)
        in_flight -= 1
        return _response(f'[{{"name": "{file_name}"}}]')

    orchestrator.model_client.generate = _generate  # type: ignore[method-assign]

    await orchestrator.run_batch([_doc("a"), _doc("b"), _doc("c")])

    assert order == ["a", "b", "c"]
    assert max_in_flight == 1


async def test_records_visible_before_batch_ends(orchestrator: ExtractionOrchestrator) -> None:
    seen_sizes: list[int] = []

    async def _generate(content: bytes, mime_type: str, *, file_name: str = "") -> ModelResponse:
        seen_sizes.append(len(orchestrator.store))
        return _response('[{"name": "x"}]')

    orchestrator.model_client.generate = _generate  # type: ignore[method-assign]

    await orchestrator.run_batch([_doc("a"), _doc("b"), _doc("c")])

    assert seen_sizes == [0, 1, 2]


async def test_empty_batch_raises_upload_error(orchestrator: ExtractionOrchestrator) -> None:
    orchestrator.model_client.generate = AsyncMock()

    with pytest.raises(UploadError):
        await orchestrator.run_batch([])
    orchestrator.model_client.generate.assert_not_called()


async def test_second_batch_while_running_is_rejected(
    orchestrator: ExtractionOrchestrator,
) -> None:
    release = asyncio.Event()

    async def _generate(content: bytes, mime_type: str, *, file_name: str = "") -> ModelResponse:
        await release.wait()
        return _response("[]")

    orchestrator.model_client.generate = _generate  # type: ignore[method-assign]

    first = asyncio.create_task(orchestrator.run_batch([_doc("a")]))
    await asyncio.sleep(0.02)
    assert orchestrator.status().state == "running"

    with pytest.raises(BatchInProgressError):
        await orchestrator.run_batch([_doc("b")])

    release.set()
    await first
    assert orchestrator.status().state == "idle"


async def test_status_reports_progress_and_elapsed(orchestrator: ExtractionOrchestrator) -> None:
    orchestrator.model_client.generate = AsyncMock(return_value=_response("[]"))

    batch = await orchestrator.run_batch([_doc("a"), _doc("b")])
    status = orchestrator.status()

    assert status.state == "idle"
    assert (status.files_total, status.files_done) == (2, 2)
    assert batch.elapsed_seconds >= 0


async def test_unexpected_error_still_returns_to_idle(
    orchestrator: ExtractionOrchestrator,
) -> None:
    orchestrator.model_client.generate = AsyncMock(side_effect=RuntimeError("no network stack"))

    with pytest.raises(RuntimeError):
        await orchestrator.run_batch([_doc("a")])
    assert orchestrator.state == "idle"



async def test_single_extract_waits_for_batch_model_call(
    orchestrator: ExtractionOrchestrator,
) -> None:
    in_flight = 0
    max_in_flight = 0

    async def _generate(content: bytes, mime_type: str, *, file_name: str = "") -> ModelResponse:
        nonlocal in_flight, max_in_flight
        in_flight += 1
        max_in_flight = max(max_in_flight, in_flight)
        await asyncio.sleep(0.02)
        in_flight -= 1
        return _response("[]")

    orchestrator.model_client.generate = _generate  # type: ignore[method-assign]

    batch = asyncio.create_task(orchestrator.run_batch([_doc("a"), _doc("b")]))
    await asyncio.sleep(0.005)
    await asyncio.gather(
        orchestrator.extract_candidates(_doc("single-1")),
        orchestrator.extract_candidates(_doc("single-2")),
    )
    await batch

    assert max_in_flight == 1


async def test_unsupported_and_empty_files_fail_individually(
    orchestrator: ExtractionOrchestrator,
) -> None:
    orchestrator.model_client.generate = AsyncMock(return_value=_response('[{"name": "ok"}]'))
    empty = SourceDocument(file_name="blank.pdf", mime_type="application/pdf", content=b"")

    batch = await orchestrator.run_batch(
        [_doc("1.pdf"), _doc("notes.txt", "text/plain"), empty, _doc("4.png", "image/png")]
    )

    assert [f.success for f in batch.files] == [True, False, False, True]
    assert batch.files[1].error.startswith("Only images or PDF files are accepted")
    assert orchestrator.model_client.generate.await_count == 2
    assert len(orchestrator.store) == 2


async def test_snapshot_write_failure_does_not_abort_batch(
    model_client: ModelClient, tmp_path: Path
) -> None:
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("x")
    store = RecordStore(storage=SnapshotStorage(blocker / "snapshots", "records"))
    sources = SourceRegistry()
    orchestrator = ExtractionOrchestrator(model_client, store, sources, tick_interval_s=0.01)
    orchestrator.model_client.generate = AsyncMock(return_value=_response('[{"name": "x"}]'))

    batch = await orchestrator.run_batch([_doc("1"), _doc("2"), _doc("3")])

    assert orchestrator.model_client.generate.await_count == 3
    assert [f.success for f in batch.files] == [False, False, False]
    assert batch.files[0].error == "Snapshot could not be written"
    assert len(store) == 0
    assert len(sources) == 0
    assert orchestrator.state == "idle"


# ---------------------------------------------------------------------------
# ElapsedTimer
# ---------------------------------------------------------------------------


async def test_timer_ticks_and_stops() -> None:
    async with ElapsedTimer(0.01) as timer:
        assert timer.running
        await asyncio.sleep(0.05)
        assert timer.elapsed > 0

    assert not timer.running
    stopped_at = timer.elapsed
    await asyncio.sleep(0.03)
    assert timer.elapsed == stopped_at


async def test_timer_cancelled_on_error_path() -> None:
    timer = ElapsedTimer(0.01)
    with pytest.raises(ValueError):
        async with timer:
            raise ValueError("boom")
    assert not timer.running
