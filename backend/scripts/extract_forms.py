#!/usr/bin/env python3
"""Batch extraction runner for a folder of application forms.

Runs every image/PDF in a directory through one orchestrator batch
(sequential, with model fallback) and writes the resulting records as CSV
and/or Excel plus a JSON dump.

Usage:
    # Process all forms in a folder
    python -m scripts.extract_forms ./scans

    # Limit to N files (for testing)
    python -m scripts.extract_forms ./scans --limit 5

    # Excel only
    python -m scripts.extract_forms ./scans --format xlsx

    # Dry run (list files only)
    python -m scripts.extract_forms ./scans --dry-run
"""

from __future__ import annotations

import argparse
import asyncio
import json
import mimetypes
import sys
from datetime import datetime
from pathlib import Path

# Add backend to path for imports
_backend = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(_backend))

# Load .env before importing app modules
from dotenv import load_dotenv
load_dotenv(_backend / ".env")

import structlog

structlog.configure(
    processors=[
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer(),
    ]
)

from app.modules.extraction.model_client import ModelClient
from app.modules.extraction.orchestrator import ExtractionOrchestrator
from app.modules.extraction.schemas import SourceDocument, is_accepted_mime_type
from app.modules.records.export import records_to_csv, records_to_xlsx
from app.modules.records.store import RecordStore

logger = structlog.get_logger()

DEFAULT_OUTPUT_DIR = _backend / "output"


# ---------------------------------------------------------------------------
# File discovery
# ---------------------------------------------------------------------------


def discover_forms(input_dir: Path) -> list[Path]:
    """Images and PDFs under ``input_dir``, sorted by path."""
    forms: list[Path] = []

    if not input_dir.exists():
        logger.error("Input directory not found", path=str(input_dir))
        return forms

    for path in sorted(input_dir.rglob("*")):
        if not path.is_file() or path.name.startswith((".", "~")):
            continue
        mime_type, _ = mimetypes.guess_type(path.name)
        if not is_accepted_mime_type(mime_type):
            continue
        forms.append(path)

    return forms


def load_documents(paths: list[Path]) -> list[SourceDocument]:
    documents = []
    for path in paths:
        mime_type, _ = mimetypes.guess_type(path.name)
        documents.append(
            SourceDocument(
                file_name=path.name,
                mime_type=mime_type or "application/octet-stream",
                content=path.read_bytes(),
            )
        )
    return documents


# ---------------------------------------------------------------------------
# Export
# ---------------------------------------------------------------------------


def export_results(output_dir: Path, store: RecordStore, fmt: str) -> list[Path]:
    """Write records (canonical order) to the requested formats + JSON dump."""
    output_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    records = store.records()
    written: list[Path] = []

    if fmt in ("csv", "both"):
        csv_path = output_dir / f"extracted_data_{timestamp}.csv"
        csv_path.write_text(records_to_csv(records), encoding="utf-8")
        written.append(csv_path)

    if fmt in ("xlsx", "both"):
        xlsx_path = output_dir / f"extracted_data_{timestamp}.xlsx"
        xlsx_path.write_bytes(records_to_xlsx(records))
        written.append(xlsx_path)

    json_path = output_dir / f"extracted_data_{timestamp}.json"
    with open(json_path, "w", encoding="utf-8") as f:
        json.dump([r.to_wire() for r in records], f, indent=2, ensure_ascii=False)
    written.append(json_path)

    for path in written:
        logger.info(f"Exported: {path}")
    return written


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Extract records from application forms")
    parser.add_argument("input_dir", type=Path, help="Folder with scanned forms")
    parser.add_argument("--output-dir", type=Path, default=DEFAULT_OUTPUT_DIR)
    parser.add_argument("--format", choices=["csv", "xlsx", "both"], default="both")
    parser.add_argument("--limit", type=int, default=0, help="Process at most N files")
    parser.add_argument("--dry-run", action="store_true", help="List files only")
    parser.add_argument("--model", default=None, help="Override primary model")
    parser.add_argument("--fallback-model", default=None, help="Override fallback model")
    return parser.parse_args(argv)


async def run(args: argparse.Namespace) -> int:
    paths = discover_forms(args.input_dir)
    if args.limit:
        paths = paths[: args.limit]

    logger.info("Forms discovered", count=len(paths), input_dir=str(args.input_dir))
    if args.dry_run:
        for path in paths:
            print(f"  {path}")
        return 0
    if not paths:
        logger.error("No forms to process")
        return 1

    store = RecordStore()
    orchestrator = ExtractionOrchestrator(
        ModelClient(primary_model=args.model, fallback_model=args.fallback_model),
        store,
    )
    batch = await orchestrator.run_batch(load_documents(paths))

    for result in batch.files:
        if not result.success:
            logger.warning("File failed", file=result.filename, error=result.error)

    if len(store):
        export_results(args.output_dir, store, args.format)
    else:
        logger.warning("No records extracted, nothing exported")

    print(
        f"\nFiles: {batch.successful_count} ok / {batch.failed_count} failed"
        f" | Records: {batch.records_added}"
        f" | Duplicate card numbers: {len(store.duplicates())}"
        f" | Elapsed: {batch.elapsed_seconds:.1f}s"
    )
    return 0 if batch.successful_count else 1


def main() -> None:
    sys.exit(asyncio.run(run(parse_args())))


if __name__ == "__main__":
    main()
