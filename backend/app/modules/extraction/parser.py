"""Response Parser — raw model text to fully-populated candidate records.

Malformed JSON is a hard failure. Missing fields are defaulted and unknown
fields dropped, so every candidate carries all declared fields.
"""

from __future__ import annotations

import json
import re
from typing import Any

import structlog

from app.core.errors import ParseError
from app.modules.records.schemas import RECORD_FIELDS, Record

logger = structlog.get_logger()

_FENCE = re.compile(r"```(?:json)?", re.IGNORECASE)

# Defaults for missing/falsy values; everything not listed defaults to "".
_FIELD_DEFAULTS: dict[str, str] = {"gender": "0"}


def strip_code_fences(raw_text: str) -> str:
    """Remove every ``` / ```json marker and surrounding whitespace."""
    return _FENCE.sub("", raw_text).strip()


def _as_text(value: Any, default: str) -> str:
    if not value:
        return default
    if isinstance(value, str):
        return value
    return str(value)


def project_candidate(item: dict[str, Any]) -> Record:
    """Keep exactly the declared fields; provenance is never taken from the model."""
    values = {
        field: _as_text(item.get(field), _FIELD_DEFAULTS.get(field, ""))
        for field in RECORD_FIELDS
    }
    return Record.model_validate(values)


def parse_response(raw_text: str) -> list[Record]:
    """Parse model output into one candidate per JSON array element.

    A bare object is treated as a one-element array.
    """
    text = strip_code_fences(raw_text or "")
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        logger.error("Failed to parse JSON", raw_text=raw_text, error=str(e))
        raise ParseError("Failed to parse AI response", raw_text=raw_text) from e

    if isinstance(data, dict):
        data = [data]
    if not isinstance(data, list):
        logger.error("Unexpected JSON shape", raw_text=raw_text, type=type(data).__name__)
        raise ParseError(
            "Expected a JSON array or object",
            raw_text=raw_text,
            details={"type": type(data).__name__},
        )

    candidates: list[Record] = []
    for idx, item in enumerate(data):
        if not isinstance(item, dict):
            logger.error("Unexpected array element", raw_text=raw_text, index=idx)
            raise ParseError(
                "Array element is not an object",
                raw_text=raw_text,
                details={"index": idx, "type": type(item).__name__},
            )
        candidates.append(project_candidate(item))

    return candidates
