"""Records API — review, correct, deduplicate and export extracted records.

Rows are addressed by their stable record id, never by the position they
have in a sorted/filtered view.
"""

from __future__ import annotations

import asyncio

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import Response

from app.core.errors import PersistenceError, RecordNotFoundError
from app.core.state import AppState, get_state
from app.modules.records.export import (
    CSV_MEDIA_TYPE,
    XLSX_MEDIA_TYPE,
    records_to_csv,
    records_to_xlsx,
)
from app.modules.records.schemas import (
    ClearResponse,
    DuplicatesOut,
    Record,
    RecordEdit,
    RecordsView,
    SortKey,
    SortStateOut,
)

logger = structlog.get_logger()

router = APIRouter(prefix="/records", tags=["records"])


def _unsaved(error: PersistenceError) -> HTTPException:
    logger.error("Failed to save records", error=str(error))
    return HTTPException(status_code=503, detail="Records could not be saved. Try again.")


def _view(state: AppState, q: str | None) -> RecordsView:
    items = state.store.view(q, state.sort)
    return RecordsView(
        items=items,
        total=len(state.store),
        matched=len(items),
        query=q or "",
        sort=SortStateOut(key=state.sort.key, direction=state.sort.direction),
        duplicates=sorted(state.store.duplicates()),
    )


@router.get("", response_model=RecordsView)
async def list_records(
    q: str | None = Query(None, description="Search name, furigana, card number, phone"),
    state: AppState = Depends(get_state),
) -> RecordsView:
    return _view(state, q)


@router.post("/sort/{key}", response_model=RecordsView)
async def toggle_sort(
    key: SortKey,
    q: str | None = Query(None),
    state: AppState = Depends(get_state),
) -> RecordsView:
    """Cycle the sort on ``key``: ascending -> descending -> unsorted."""
    state.sort.toggle(key)
    return _view(state, q)


@router.get("/duplicates", response_model=DuplicatesOut)
async def list_duplicates(state: AppState = Depends(get_state)) -> DuplicatesOut:
    return DuplicatesOut(card_numbers=sorted(state.store.duplicates()))


@router.get("/export")
async def export_records(
    format: str = Query("csv", description="Export format: csv or xlsx"),
    q: str | None = Query(None, description="Export only rows matching this search"),
    state: AppState = Depends(get_state),
) -> Response:
    """Export the currently filtered view as CSV or Excel."""
    if format not in ("csv", "xlsx"):
        raise HTTPException(
            status_code=422,
            detail=f"Invalid format '{format}'. Must be 'csv' or 'xlsx'.",
        )

    records = state.store.view(q, state.sort)
    if not records:
        raise HTTPException(status_code=404, detail="No records found for export.")

    logger.info("Export", format=format, rows=len(records))
    if format == "xlsx":
        return Response(
            content=records_to_xlsx(records),
            media_type=XLSX_MEDIA_TYPE,
            headers={"Content-Disposition": "attachment; filename=extracted_data.xlsx"},
        )
    return Response(
        content=records_to_csv(records).encode("utf-8"),
        media_type=CSV_MEDIA_TYPE,
        headers={"Content-Disposition": "attachment; filename=extracted_data.csv"},
    )


@router.get("/sources/{reference}")
async def get_source(reference: str, state: AppState = Depends(get_state)) -> Response:
    """Return the originating file of a record (available for this process only)."""
    blob = state.sources.get(reference)
    if blob is None:
        raise HTTPException(status_code=404, detail="Source file not available.")
    return Response(
        content=blob.content,
        media_type=blob.mime_type,
        headers={"Content-Disposition": f'inline; filename="{blob.file_name}"'},
    )


@router.get("/{record_id}", response_model=Record)
async def get_record(record_id: str, state: AppState = Depends(get_state)) -> Record:
    try:
        return state.store.get(record_id)
    except RecordNotFoundError:
        raise HTTPException(status_code=404, detail=f"Record {record_id} not found.")


@router.put("/{record_id}", response_model=Record)
async def save_record(
    record_id: str,
    edit: RecordEdit,
    state: AppState = Depends(get_state),
) -> Record:
    """Commit an edit. The phone number is normalized on save."""
    try:
        return await asyncio.to_thread(state.store.save_edit, record_id, edit)
    except RecordNotFoundError:
        raise HTTPException(status_code=404, detail=f"Record {record_id} not found.")
    except PersistenceError as e:
        raise _unsaved(e)


@router.delete("/{record_id}", response_model=Record)
async def delete_record(record_id: str, state: AppState = Depends(get_state)) -> Record:
    try:
        removed = await asyncio.to_thread(state.store.delete, record_id)
    except RecordNotFoundError:
        raise HTTPException(status_code=404, detail=f"Record {record_id} not found.")
    except PersistenceError as e:
        raise _unsaved(e)
    state.sources.prune(state.store.source_references())
    return removed


@router.delete("", response_model=ClearResponse)
async def clear_records(
    confirm: bool = Query(False, description="Must be true to delete all records"),
    state: AppState = Depends(get_state),
) -> ClearResponse:
    if not confirm:
        raise HTTPException(
            status_code=400, detail="Clearing all records requires confirm=true."
        )
    try:
        removed = await asyncio.to_thread(state.store.clear)
    except PersistenceError as e:
        raise _unsaved(e)
    state.sources.prune(())
    return ClearResponse(removed=removed)
