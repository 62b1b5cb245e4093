"""CSV / Excel export of a record view."""

from __future__ import annotations

import csv
import io

import pandas as pd

from app.modules.records.schemas import RECORD_FIELDS, Record

SHEET_NAME = "Applications"

# (wire field, CSV header) in CSV column order; card number leads.
CSV_COLUMNS: list[tuple[str, str]] = [
    ("cardNumber", "Card No"),
    ("name", "Name"),
    ("furigana", "Furigana"),
    ("gender", "Gender"),
    ("dobYear", "DOB Year"),
    ("dobMonth", "DOB Month"),
    ("dobDay", "DOB Day"),
    ("postalCode", "Postal Code"),
    ("address", "Address"),
    ("phone", "Phone"),
    ("occupation", "Occupation"),
]

CSV_MEDIA_TYPE = "text/csv; charset=utf-8"
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _frame(records: list[Record]) -> pd.DataFrame:
    return pd.DataFrame(
        [r.export_row() for r in records], columns=list(RECORD_FIELDS), dtype=str
    )


def records_to_csv(records: list[Record]) -> str:
    """Plain header line, then every value double-quote wrapped."""
    df = _frame(records)[[field for field, _ in CSV_COLUMNS]]
    header = ",".join(title for _, title in CSV_COLUMNS)
    body = df.to_csv(
        index=False, header=False, quoting=csv.QUOTE_ALL, lineterminator="\n"
    )
    return f"{header}\n{body}"


def records_to_xlsx(records: list[Record]) -> bytes:
    """One sheet, columns are the declared record fields (no provenance)."""
    buffer = io.BytesIO()
    _frame(records).to_excel(
        buffer, index=False, sheet_name=SHEET_NAME, engine="openpyxl"
    )
    return buffer.getvalue()
