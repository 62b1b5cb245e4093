from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # App
    app_name: str = "Application Form Extractor"
    debug: bool = False
    api_prefix: str = "/api/v1"

    # Gemini (two-tier: primary first, fallback on any failure)
    google_ai_api_key: str = ""
    extraction_primary_model: str = "gemini-3-flash-preview"
    extraction_fallback_model: str = "gemini-2.0-flash-exp"
    extraction_timeout_ms: int = 120_000
    extraction_temperature: float = 0.0

    # Batch processing
    max_batch_files: int = 50
    elapsed_tick_interval_s: float = 0.1  # UI feedback only

    # Snapshot storage (record list, overwritten on every mutation)
    storage_dir: Path = Path(".data")
    storage_key: str = "supplement-csv-data"

    # CORS
    cors_origins: list[str] = ["http://localhost:3000"]

    @property
    def snapshot_path(self) -> Path:
        return self.storage_dir / f"{self.storage_key}.json"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
