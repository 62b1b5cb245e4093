"""In-memory registry of uploaded source files.

Records point at their originating file through an opaque reference. Blobs
live for the process lifetime only; a reference restored from a snapshot
after restart simply resolves to nothing.
"""

from __future__ import annotations

import threading
import uuid
from collections.abc import Iterable
from dataclasses import dataclass


@dataclass(frozen=True)
class SourceBlob:
    reference: str
    file_name: str
    mime_type: str
    content: bytes


class SourceRegistry:
    def __init__(self) -> None:
        self._blobs: dict[str, SourceBlob] = {}
        self._lock = threading.Lock()

    def register(self, content: bytes, mime_type: str, file_name: str = "") -> str:
        reference = f"src_{uuid.uuid4().hex}"
        with self._lock:
            self._blobs[reference] = SourceBlob(
                reference=reference,
                file_name=file_name,
                mime_type=mime_type,
                content=content,
            )
        return reference

    def get(self, reference: str) -> SourceBlob | None:
        with self._lock:
            return self._blobs.get(reference)

    def discard(self, reference: str) -> None:
        with self._lock:
            self._blobs.pop(reference, None)

    def prune(self, live_references: Iterable[str]) -> int:
        """Drop blobs no record points at any more. Returns how many went."""
        live = set(live_references)
        with self._lock:
            dead = [ref for ref in self._blobs if ref not in live]
            for ref in dead:
                del self._blobs[ref]
        return len(dead)

    def __len__(self) -> int:
        return len(self._blobs)
