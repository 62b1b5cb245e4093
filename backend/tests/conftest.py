"""Shared test fixtures for the application form extractor test suite."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from httpx import ASGITransport, AsyncClient

from app.core.config import settings
from app.core.state import AppState, build_state
from app.main import app
from app.modules.extraction.model_client import ModelClient
from app.modules.records.persistence import SnapshotStorage

PRIMARY_MODEL = "primary-model"
FALLBACK_MODEL = "fallback-model"


def genai_response(text: str | None) -> SimpleNamespace:
    """Minimal stand-in for a google.genai GenerateContentResponse."""
    return SimpleNamespace(text=text)


@pytest.fixture
def fake_genai() -> MagicMock:
    """Gemini client double: ``client.aio.models.generate_content`` is an AsyncMock."""
    client = MagicMock()
    client.aio.models.generate_content = AsyncMock(return_value=genai_response("[]"))
    return client


@pytest.fixture
def model_client(fake_genai: MagicMock) -> ModelClient:
    return ModelClient(PRIMARY_MODEL, FALLBACK_MODEL, client=fake_genai)


@pytest.fixture
def storage(tmp_path: Path) -> SnapshotStorage:
    return SnapshotStorage(tmp_path, "test-records")


@pytest.fixture
def session(model_client: ModelClient, storage: SnapshotStorage) -> AppState:
    return build_state(settings, model_client=model_client, storage=storage)


@pytest.fixture
async def client(session: AppState) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client that talks directly to the FastAPI ASGI app."""
    app.state.session = session
    transport = ASGITransport(app=app)  # type: ignore[arg-type]
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    del app.state.session
