"""Deterministic field formatting applied when an edit is saved.

All functions are pure and idempotent. Normalization never runs at
extraction time, so the raw model output stays visible until an operator
commits an edit.
"""

from __future__ import annotations

import re
from typing import Any

from app.modules.records.schemas import Record

_NON_DIGIT = re.compile(r"\D", re.ASCII)
_DATE_SEPARATORS = re.compile(r"[-.]")


def normalize_phone(phone: str) -> str:
    """Format 11-digit numbers as XXX-XXXX-XXXX and 10-digit as XXX-XXX-XXXX.

    Any other digit count returns the input exactly as entered.
    """
    digits = _NON_DIGIT.sub("", phone)
    if len(digits) == 11:
        return f"{digits[:3]}-{digits[3:7]}-{digits[7:]}"
    if len(digits) == 10:
        return f"{digits[:3]}-{digits[3:6]}-{digits[6:]}"
    return phone


def normalize_date_separators(value: str) -> str:
    """YYYY-MM-DD / YYYY.MM.DD -> YYYY/MM/DD."""
    return _DATE_SEPARATORS.sub("/", value)


def normalize_record(record: Record) -> Record:
    return record.model_copy(update={"phone": normalize_phone(record.phone)})


def split_legacy_dob(data: dict[str, Any]) -> dict[str, Any]:
    """Migrate a stored record carrying a combined ``dob`` string.

    The date rule is applied first, then the value is split on ``/`` into
    ``dobYear``/``dobMonth``/``dobDay``. Split fields already present win.
    Unsplittable values land in ``dobYear`` so nothing is lost.
    """
    if "dob" not in data:
        return data

    migrated = {k: v for k, v in data.items() if k != "dob"}
    dob = normalize_date_separators(str(data.get("dob") or "")).strip()
    parts = [p.strip() for p in dob.split("/")] if dob else []

    if len(parts) == 3:
        year, month, day = parts
    else:
        year, month, day = dob, "", ""

    migrated.setdefault("dobYear", year)
    migrated.setdefault("dobMonth", month)
    migrated.setdefault("dobDay", day)
    return migrated
