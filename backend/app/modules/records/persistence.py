"""Snapshot persistence for the record list.

The whole canonical sequence is written as one JSON document under a fixed
key on every mutation and read back once at startup. A corrupt snapshot is
discarded rather than failing startup.
"""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path

import structlog
from pydantic import ValidationError

from app.core.errors import PersistenceError
from app.modules.records.normalizer import split_legacy_dob
from app.modules.records.schemas import Record

logger = structlog.get_logger()


class SnapshotStorage:
    """JSON file store: one file per storage key inside ``directory``."""

    def __init__(self, directory: str | Path, key: str) -> None:
        self.directory = Path(directory)
        self.key = key

    @property
    def path(self) -> Path:
        return self.directory / f"{self.key}.json"

    def save(self, records: list[Record]) -> None:
        """Overwrite the snapshot atomically (write temp file, then replace).

        Raises PersistenceError when the file cannot be written.
        """
        payload = json.dumps(
            [r.to_wire() for r in records], ensure_ascii=False, indent=2
        )
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self.directory, prefix=f".{self.key}.", suffix=".tmp"
            )
        except OSError as e:
            raise PersistenceError(
                "Snapshot could not be written", {"path": str(self.path), "error": str(e)}
            ) from e

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp_name, self.path)
        except OSError as e:
            Path(tmp_name).unlink(missing_ok=True)
            raise PersistenceError(
                "Snapshot could not be written", {"path": str(self.path), "error": str(e)}
            ) from e

    def load(self) -> list[Record]:
        """Read the snapshot. Missing file -> []. Corrupt -> PersistenceError."""
        if not self.path.exists():
            return []

        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise PersistenceError(
                "Stored snapshot is unreadable", {"path": str(self.path), "error": str(e)}
            ) from e

        if not isinstance(data, list):
            raise PersistenceError(
                "Stored snapshot is not a list",
                {"path": str(self.path), "type": type(data).__name__},
            )

        records: list[Record] = []
        for idx, item in enumerate(data):
            if not isinstance(item, dict):
                raise PersistenceError(
                    "Stored record is not an object", {"path": str(self.path), "index": idx}
                )
            try:
                records.append(Record.model_validate(split_legacy_dob(item)))
            except ValidationError as e:
                raise PersistenceError(
                    "Stored record failed validation",
                    {"path": str(self.path), "index": idx, "error": str(e)},
                ) from e
        return records

    def load_or_empty(self) -> list[Record]:
        """Startup path: a corrupt snapshot is logged and treated as empty."""
        try:
            records = self.load()
        except PersistenceError as e:
            logger.error("Failed to load saved data, starting empty", error=str(e))
            return []
        logger.info("Snapshot loaded", path=str(self.path), records=len(records))
        return records
