"""Record Store — canonical, insertion-ordered record sequence.

All mutations go through one lock and write the snapshot before the new
sequence becomes visible, so a batch append and a user edit/delete each
commit atomically. Sorting and filtering build views; they never reorder
the canonical sequence.
"""

from __future__ import annotations

import threading
from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass

import structlog

from app.core.errors import RecordNotFoundError
from app.modules.records.normalizer import normalize_record
from app.modules.records.persistence import SnapshotStorage
from app.modules.records.schemas import (
    SEARCH_FIELDS,
    Record,
    RecordEdit,
    SortDirection,
    SortKey,
)

logger = structlog.get_logger()


# ---------------------------------------------------------------------------
# Views (pure functions over a record list)
# ---------------------------------------------------------------------------


def sorted_view(
    records: list[Record],
    key: SortKey | None,
    direction: SortDirection | None,
) -> list[Record]:
    """Stable sort by a declared field. No key/direction -> canonical order."""
    if key is None or direction is None:
        return list(records)
    return sorted(
        records,
        key=lambda r: r.field_value(key).casefold(),
        reverse=direction == "desc",
    )


def filter_view(records: list[Record], query: str | None) -> list[Record]:
    """Case-insensitive substring match on name, furigana, cardNumber, phone."""
    needle = (query or "").strip().casefold()
    if not needle:
        return list(records)
    return [
        r
        for r in records
        if any(needle in r.field_value(f).casefold() for f in SEARCH_FIELDS)
    ]


def find_duplicates(records: Iterable[Record]) -> set[str]:
    """Card numbers present on 2+ records. Empty values never count."""
    counts = Counter(r.card_number for r in records if r.card_number)
    return {card for card, n in counts.items() if n >= 2}


@dataclass
class SortState:
    """Three-state column sort: ascending -> descending -> unsorted."""

    key: SortKey | None = None
    direction: SortDirection | None = None

    def toggle(self, key: SortKey) -> None:
        if key != self.key or self.direction is None:
            self.key, self.direction = key, "asc"
        elif self.direction == "asc":
            self.direction = "desc"
        else:
            self.key, self.direction = None, None


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


class RecordStore:
    """Owns the canonical record sequence for one session."""

    def __init__(
        self,
        records: Iterable[Record] | None = None,
        storage: SnapshotStorage | None = None,
    ) -> None:
        self._records: list[Record] = list(records or [])
        self._storage = storage
        self._lock = threading.Lock()

    @classmethod
    def from_snapshot(cls, storage: SnapshotStorage) -> RecordStore:
        """Rehydrate from storage. A corrupt snapshot yields an empty store."""
        return cls(storage.load_or_empty(), storage=storage)

    # --- Reads ---------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._records)

    def records(self) -> list[Record]:
        """Copy of the canonical sequence."""
        with self._lock:
            return list(self._records)

    def get(self, record_id: str) -> Record:
        with self._lock:
            return self._records[self._index_of(record_id)]

    def index_of(self, record_id: str) -> int:
        """Translate a stable id to its current canonical index."""
        with self._lock:
            return self._index_of(record_id)

    def duplicates(self) -> set[str]:
        with self._lock:
            return find_duplicates(self._records)

    def source_references(self) -> set[str]:
        with self._lock:
            return {r.source_reference for r in self._records if r.source_reference}

    def view(self, query: str | None = None, sort: SortState | None = None) -> list[Record]:
        """Sorted view first, then the filter applied on top of it."""
        sort = sort or SortState()
        return filter_view(sorted_view(self.records(), sort.key, sort.direction), query)

    # --- Mutations -----------------------------------------------------------
    #
    # Each mutation builds the next sequence, writes it, and only then swaps it
    # in. A PersistenceError leaves the in-memory sequence untouched.

    def append(
        self,
        candidates: Iterable[Record],
        *,
        source_reference: str | None = None,
        source_kind: str | None = None,
    ) -> list[Record]:
        """Append candidates in arrival order, stamping the shared provenance."""
        stamped = [
            c.model_copy(
                update={"source_reference": source_reference, "source_kind": source_kind}
            )
            for c in candidates
        ]
        with self._lock:
            self._commit([*self._records, *stamped])
            total = len(self._records)
        logger.info("Records appended", count=len(stamped), total=total)
        return stamped

    def update_at(self, index: int, record: Record) -> Record:
        """Replace the record at a canonical index (not a view row)."""
        with self._lock:
            self._check_index(index)
            updated = list(self._records)
            updated[index] = record
            self._commit(updated)
        return record

    def update(self, record_id: str, record: Record) -> Record:
        """Replace in place, keeping the stable id and provenance."""
        with self._lock:
            index = self._index_of(record_id)
            current = self._records[index]
            replacement = record.model_copy(
                update={
                    "id": current.id,
                    "source_reference": current.source_reference,
                    "source_kind": current.source_kind,
                }
            )
            updated = list(self._records)
            updated[index] = replacement
            self._commit(updated)
        return replacement

    def save_edit(self, record_id: str, edit: RecordEdit) -> Record:
        """Commit an operator edit: merge changed fields, normalize, replace."""
        with self._lock:
            index = self._index_of(record_id)
            merged = self._records[index].model_copy(
                update=edit.model_dump(exclude_none=True)
            )
            normalized = normalize_record(merged)
            updated = list(self._records)
            updated[index] = normalized
            self._commit(updated)
        logger.info("Record edited", record_id=record_id)
        return normalized

    def delete_at(self, index: int) -> Record:
        with self._lock:
            self._check_index(index)
            removed = self._records[index]
            self._commit(self._records[:index] + self._records[index + 1 :])
        return removed

    def delete(self, record_id: str) -> Record:
        with self._lock:
            index = self._index_of(record_id)
            removed = self._records[index]
            self._commit(self._records[:index] + self._records[index + 1 :])
        logger.info("Record deleted", record_id=record_id)
        return removed

    def clear(self) -> int:
        """Empty the sequence. Unconditional; a no-op on an empty store."""
        with self._lock:
            removed = len(self._records)
            self._commit([])
        logger.info("Records cleared", removed=removed)
        return removed

    # --- Internals (caller holds the lock) -----------------------------------

    def _index_of(self, record_id: str) -> int:
        for idx, record in enumerate(self._records):
            if record.id == record_id:
                return idx
        raise RecordNotFoundError("Record not found", {"record_id": record_id})

    def _check_index(self, index: int) -> None:
        if not 0 <= index < len(self._records):
            raise RecordNotFoundError(
                "Index out of range", {"index": index, "size": len(self._records)}
            )

    def _commit(self, records: list[Record]) -> None:
        """Write ``records`` to the snapshot, then make them the canonical sequence."""
        if self._storage is not None:
            self._storage.save(records)
        self._records = records
