from __future__ import annotations

import logging
from pathlib import Path

from ..config.loader import ExportSettings
from ..db.store import DocumentStore
from ..excel.export import format_export_rows, write_export
from ..models.team import Session
from .authorization import Action, require
from .beneficiaries import load_records, sort_records

logger = logging.getLogger(__name__)


def export_team(
    store: DocumentStore,
    session: Session,
    path: Path,
    settings: ExportSettings | None = None,
    *,
    sort_field: str | None = None,
    sort_direction: str | None = None,
) -> int:
    """Write the team's non-empty records to ``path``; returns the row count."""
    settings = settings or ExportSettings()
    require(store, session, Action.READ_RECORDS, session.team_id)
    records = load_records(store, session)
    if sort_field:
        records = sort_records(records, sort_field, sort_direction)
    rows = format_export_rows(records, settings.currency_symbol)
    write_export(rows, path, column_width=settings.column_width, sheet_name=settings.sheet_name)
    logger.info("exported %d records to %s", len(rows), path)
    return len(rows)
