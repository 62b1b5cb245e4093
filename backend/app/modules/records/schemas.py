"""Record schema plus request/response envelopes for the records API."""

from __future__ import annotations

import uuid
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# Declared extraction fields, in wire (camelCase) form and export order.
RECORD_FIELDS: tuple[str, ...] = (
    "name",
    "furigana",
    "gender",
    "dobYear",
    "dobMonth",
    "dobDay",
    "postalCode",
    "address",
    "phone",
    "occupation",
    "cardNumber",
)

# Fields the search box matches against.
SEARCH_FIELDS: tuple[str, ...] = ("name", "furigana", "cardNumber", "phone")

SortKey = Literal[
    "name",
    "furigana",
    "gender",
    "dobYear",
    "dobMonth",
    "dobDay",
    "postalCode",
    "address",
    "phone",
    "occupation",
    "cardNumber",
]
SortDirection = Literal["asc", "desc"]


def _new_id() -> str:
    return uuid.uuid4().hex


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Record(_CamelModel):
    """One extracted application entry.

    Every declared field is a string (possibly empty). Provenance is attached
    by the orchestrator after parsing and never read from model output.
    """

    id: str = Field(default_factory=_new_id)
    name: str = ""
    furigana: str = Field("", description="Phonetic reading of the name")
    gender: str = Field("0", description="0 = unknown/other, 1 = male, 2 = female")
    dob_year: str = ""
    dob_month: str = ""
    dob_day: str = ""
    postal_code: str = ""
    address: str = ""
    phone: str = ""
    occupation: str = ""
    card_number: str = Field("", description="8-digit receipt number, natural key")

    # Provenance
    source_reference: str | None = Field(None, description="Handle to the originating file blob")
    source_kind: str | None = Field(None, description="MIME type of the originating file")

    def field_value(self, wire_name: str) -> str:
        """Return a declared field by its wire name (e.g. ``cardNumber``)."""
        return getattr(self, _ATTR_BY_WIRE[wire_name])

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True)

    def export_row(self) -> dict[str, str]:
        """Declared fields only, keyed by wire name (no id, no provenance)."""
        return {name: self.field_value(name) for name in RECORD_FIELDS}


_ATTR_BY_WIRE: dict[str, str] = {
    (info.alias or attr): attr for attr, info in Record.model_fields.items()
}


class RecordEdit(_CamelModel):
    """Payload of the save-edit action. Omitted fields keep their value."""

    name: str | None = None
    furigana: str | None = None
    gender: str | None = None
    dob_year: str | None = None
    dob_month: str | None = None
    dob_day: str | None = None
    postal_code: str | None = None
    address: str | None = None
    phone: str | None = None
    occupation: str | None = None
    card_number: str | None = None


class SortStateOut(_CamelModel):
    key: SortKey | None = None
    direction: SortDirection | None = None


class RecordsView(_CamelModel):
    """Presentation view: sorted + filtered rows and the duplicate set."""

    items: list[Record]
    total: int = Field(..., description="Size of the canonical sequence")
    matched: int = Field(..., description="Rows in this view after filtering")
    query: str = ""
    sort: SortStateOut
    duplicates: list[str] = []


class DuplicatesOut(_CamelModel):
    card_numbers: list[str]


class ClearResponse(_CamelModel):
    removed: int
