"""Model Client — Gemini document understanding with two-tier fallback.

Every request goes to the primary model first. On any failure (network,
quota, malformed request, empty response) the identical request is sent
once to the fallback model. If that also fails, ModelError is raised.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any

import structlog

from app.core.config import settings
from app.core.errors import ModelError
from app.modules.extraction.prompts import EXTRACTION_PROMPT

logger = structlog.get_logger()


@dataclass
class ModelResponse:
    text: str
    model: str
    duration_ms: int
    fallback_used: bool = False


class ModelClient:
    """Thin wrapper around ``google.genai`` owning the model fallback policy."""

    def __init__(
        self,
        primary_model: str | None = None,
        fallback_model: str | None = None,
        *,
        client: Any = None,
        prompt: str = EXTRACTION_PROMPT,
    ) -> None:
        self.primary_model = primary_model or settings.extraction_primary_model
        self.fallback_model = fallback_model or settings.extraction_fallback_model
        self.prompt = prompt
        self._client = client  # lazy unless injected

    def _get_client(self) -> Any:
        """Get or create the Gemini client."""
        if self._client is None:
            from google import genai
            from google.genai import types as genai_types

            self._client = genai.Client(
                api_key=settings.google_ai_api_key,
                http_options=genai_types.HttpOptions(timeout=settings.extraction_timeout_ms),
            )
        return self._client

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def extract(self, file_bytes: bytes, mime_type: str, *, file_name: str = "") -> str:
        """Return the raw model text for one document."""
        response = await self.generate(file_bytes, mime_type, file_name=file_name)
        return response.text

    async def generate(
        self, file_bytes: bytes, mime_type: str, *, file_name: str = ""
    ) -> ModelResponse:
        """Primary attempt, then exactly one fallback attempt."""
        try:
            return await self._call(self.primary_model, file_bytes, mime_type, file_name)
        except Exception as primary_exc:
            logger.warning(
                "Primary model failed, falling back",
                file=file_name,
                primary_model=self.primary_model,
                fallback_model=self.fallback_model,
                error=str(primary_exc),
            )

        try:
            response = await self._call(self.fallback_model, file_bytes, mime_type, file_name)
        except Exception as fallback_exc:
            logger.error(
                "Fallback model failed",
                file=file_name,
                fallback_model=self.fallback_model,
                error=str(fallback_exc),
            )
            raise ModelError(
                "Both primary and fallback model calls failed",
                {
                    "file": file_name,
                    "primary_model": self.primary_model,
                    "fallback_model": self.fallback_model,
                    "error": str(fallback_exc),
                },
            ) from fallback_exc

        response.fallback_used = True
        return response

    # ------------------------------------------------------------------
    # Single remote call
    # ------------------------------------------------------------------

    async def _call(
        self, model: str, file_bytes: bytes, mime_type: str, file_name: str
    ) -> ModelResponse:
        from google.genai import types

        client = self._get_client()
        logger.info(
            "Attempting with model",
            model=model,
            file=file_name,
            mime_type=mime_type,
            size_bytes=len(file_bytes),
        )
        start = time.time()

        result = await client.aio.models.generate_content(
            model=model,
            contents=[
                self.prompt,
                types.Part.from_bytes(data=file_bytes, mime_type=mime_type),
            ],
            config=types.GenerateContentConfig(
                temperature=settings.extraction_temperature,
            ),
        )

        duration_ms = int((time.time() - start) * 1000)
        text = getattr(result, "text", None)
        if not text:
            raise ModelError("Model returned no text", {"model": model, "file": file_name})

        logger.info("Model call succeeded", model=model, file=file_name, duration_ms=duration_ms)
        return ModelResponse(text=text, model=model, duration_ms=duration_ms)
