"""Session state container.

One explicit object owns the record store, the current sort selection, the
source blobs and the orchestrator. It lives on ``app.state`` and reaches the
routers through the ``get_state`` dependency.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from fastapi import Request

from app.core.config import Settings, settings
from app.modules.extraction.model_client import ModelClient
from app.modules.extraction.orchestrator import ExtractionOrchestrator
from app.modules.records.persistence import SnapshotStorage
from app.modules.records.sources import SourceRegistry
from app.modules.records.store import RecordStore, SortState


@dataclass
class AppState:
    store: RecordStore
    orchestrator: ExtractionOrchestrator
    sources: SourceRegistry
    sort: SortState = field(default_factory=SortState)


def build_state(
    config: Settings = settings,
    *,
    model_client: ModelClient | None = None,
    storage: SnapshotStorage | None = None,
) -> AppState:
    """Rehydrate the store from its snapshot and wire the pipeline around it."""
    storage = storage or SnapshotStorage(config.storage_dir, config.storage_key)
    store = RecordStore.from_snapshot(storage)
    sources = SourceRegistry()
    orchestrator = ExtractionOrchestrator(
        model_client or ModelClient(),
        store,
        sources,
        tick_interval_s=config.elapsed_tick_interval_s,
    )
    return AppState(store=store, orchestrator=orchestrator, sources=sources)


def get_state(request: Request) -> AppState:
    return request.app.state.session
