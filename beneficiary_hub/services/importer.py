from __future__ import annotations

import logging
import time
from collections.abc import Iterable, Mapping, Sequence
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from ..db.store import DocumentStore
from ..excel.reader import DEFAULT_PLACEHOLDER_PREFIX, SheetData, load_sheet
from ..logging.error_log import ErrorLogBuffer
from ..models.beneficiary import BeneficiaryRecord
from ..models.column_mapping import ColumnMapping, MappingError
from ..models.processing_result import BulkResult, ImportResult
from ..models.team import Session
from .authorization import Action, require
from .auto_mapping import apply_suggestions, suggest_mappings
from .bulk import DEFAULT_CHUNK_SIZE, BulkOperationError, run_in_chunks

"""Spreadsheet -> beneficiary records import.

Flow: load_sheet -> column mapping (explicit and/or auto-suggested) ->
build_records -> chunked insert. Empty records are dropped before insert.
There is no idempotency key; re-running an import after a partial failure
inserts the already-written rows again.
"""

__all__ = [
    "build_mapping",
    "build_records",
    "import_records",
    "import_sheet",
]

logger = logging.getLogger(__name__)


def build_mapping(
    sheet: SheetData,
    explicit: ColumnMapping | None = None,
    *,
    auto_map: bool = True,
    exact_only: bool = False,
) -> ColumnMapping:
    """Explicit pairs first, then auto-suggestions for the remaining columns."""
    mapping = ColumnMapping(sheet.headers)
    if explicit is not None:
        for column, field_key in explicit:
            if column not in sheet.headers:
                raise MappingError(f"column {column!r} not found in sheet {sheet.sheet_name!r}")
            mapping.assign(column, field_key)
    if auto_map:
        applied = apply_suggestions(mapping, suggest_mappings(sheet.headers), exact_only=exact_only)
        for column, field_key in applied:
            logger.debug("auto-mapped %r -> %s", column, field_key)
    return mapping


def build_records(
    rows: Iterable[Mapping[str, Any]],
    mapping: ColumnMapping,
    team_id: str,
) -> tuple[list[BeneficiaryRecord], int]:
    """Transform header-keyed rows into records through ``mapping``.

    Returns (records, skipped_empty).
    """
    records: list[BeneficiaryRecord] = []
    skipped = 0
    pairs = list(mapping)
    for row in rows:
        values = {field_key: row.get(column, "") for column, field_key in pairs}
        record = BeneficiaryRecord.from_values(values, team_id=team_id)
        if record.is_empty():
            skipped += 1
            continue
        records.append(record)
    return records, skipped


def import_records(
    store: DocumentStore,
    session: Session,
    records: Sequence[BeneficiaryRecord],
    *,
    batch_size: int = DEFAULT_CHUNK_SIZE,
    progress: bool = True,
    errors: ErrorLogBuffer | None = None,
    source: str = "import",
) -> BulkResult:
    """Insert records into the session's team in chunks of ``batch_size``."""
    require(store, session, Action.WRITE_RECORDS, session.team_id)
    docs = []
    for record in records:
        doc = record.to_document()
        doc["team_id"] = session.team_id
        docs.append(doc)
    try:
        return run_in_chunks(
            docs,
            lambda chunk: store.insert("beneficiaries", chunk),
            chunk_size=batch_size,
            label="import",
            progress=progress,
        )
    except BulkOperationError as e:
        if errors is not None:
            errors.record(source, "BATCH_INSERT_FAILED", str(e))
        raise


def import_sheet(
    store: DocumentStore,
    session: Session,
    path: Path,
    *,
    mapping: ColumnMapping | None = None,
    sheet_name: str | None = None,
    auto_map: bool = True,
    exact_only: bool = False,
    placeholder_prefix: str = DEFAULT_PLACEHOLDER_PREFIX,
    batch_size: int = DEFAULT_CHUNK_SIZE,
    progress: bool = True,
    errors: ErrorLogBuffer | None = None,
) -> ImportResult:
    """Read one sheet of ``path`` and insert its rows into the session's team."""
    require(store, session, Action.WRITE_RECORDS, session.team_id)
    start_time = datetime.now(UTC)
    started = time.perf_counter()

    sheet = load_sheet(path, sheet_name, placeholder_prefix)
    effective = build_mapping(sheet, mapping, auto_map=auto_map, exact_only=exact_only)
    if len(effective) == 0:
        raise MappingError(f"no columns of sheet {sheet.sheet_name!r} are mapped to beneficiary fields")
    unmapped = [h for h in sheet.headers if h not in effective]
    if unmapped:
        logger.info("sheet=%s unmapped columns ignored: %s", sheet.sheet_name, unmapped)

    records, skipped = build_records(sheet.records, effective, session.team_id or "")
    if skipped:
        logger.info("sheet=%s skipped %d empty rows", sheet.sheet_name, skipped)
    bulk = import_records(
        store,
        session,
        records,
        batch_size=batch_size,
        progress=progress,
        errors=errors,
        source=path.name,
    )

    elapsed = time.perf_counter() - started
    end_time = datetime.now(UTC)
    throughput = bulk.completed / elapsed if elapsed > 0 else 0.0
    logger.info(
        "file=%s sheet=%s mapped=%d/%d inserted=%d",
        path.name,
        sheet.sheet_name,
        *effective.progress(),
        bulk.completed,
    )
    return ImportResult(
        source=path.name,
        sheet=sheet.sheet_name,
        total_rows=len(sheet.records),
        inserted_rows=bulk.completed,
        skipped_empty=skipped,
        start_time=start_time,
        end_time=end_time,
        elapsed_seconds=elapsed,
        throughput_rows_per_sec=throughput,
        bulk=bulk,
    )
