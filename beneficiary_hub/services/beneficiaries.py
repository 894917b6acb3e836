from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from typing import Any

from ..db.store import DocumentStore, NotFoundError
from ..excel.export import normalize_birth_month
from ..models.beneficiary import BeneficiaryRecord, RecordValidationError, to_text
from ..models.fields import FIELD_KEYS
from ..models.processing_result import BulkResult
from ..models.team import Session
from .authorization import Action, require
from .bulk import DEFAULT_CHUNK_SIZE, run_in_chunks

"""Beneficiary list operations: load, search, sort, edit, delete, clear."""

__all__ = [
    "SORT_DIRECTIONS",
    "clear_team_data",
    "delete_records",
    "load_records",
    "mass_update",
    "next_sort_direction",
    "search_records",
    "sort_records",
    "update_record",
]

logger = logging.getLogger(__name__)

SORT_DIRECTIONS = ("asc", "desc", None)


def load_records(store: DocumentStore, session: Session) -> list[BeneficiaryRecord]:
    """Records of the session's team in store order, empty ones excluded."""
    require(store, session, Action.READ_RECORDS, session.team_id)
    docs = store.find("beneficiaries", {"team_id": session.team_id})
    records = [BeneficiaryRecord.from_document(d) for d in docs]
    return [r for r in records if not r.is_empty()]


def search_records(records: Sequence[BeneficiaryRecord], query: str) -> list[BeneficiaryRecord]:
    q = (query or "").strip().lower()
    if not q:
        return list(records)
    return [
        r for r in records
        if any(q in to_text(v).lower() for v in r.schema_values().values())
    ]


def _sort_value(record: BeneficiaryRecord, field_key: str) -> Any:
    value = getattr(record, field_key)
    if field_key == "birth_month":
        return normalize_birth_month(value)
    if field_key == "amount":
        return float(value or 0)
    return to_text(value).lower()


def sort_records(
    records: Sequence[BeneficiaryRecord], field_key: str, direction: str | None
) -> list[BeneficiaryRecord]:
    """Sort by one field; ``direction=None`` keeps the given (store) order."""
    if field_key not in FIELD_KEYS:
        raise RecordValidationError(f"unknown sort field: {field_key!r}")
    if direction not in SORT_DIRECTIONS:
        raise ValueError(f"invalid sort direction: {direction!r}")
    if direction is None:
        return list(records)
    return sorted(records, key=lambda r: _sort_value(r, field_key), reverse=direction == "desc")


def next_sort_direction(current_field: str | None, current_direction: str | None, field_key: str) -> str | None:
    """Header-click cycle: asc -> desc -> none on the same field, asc on a new one."""
    if current_field != field_key:
        return "asc"
    if current_direction == "asc":
        return "desc"
    if current_direction == "desc":
        return None
    return "asc"


def _owned_ids(store: DocumentStore, session: Session, ids: Sequence[str]) -> list[str]:
    docs = store.find("beneficiaries", {"team_id": session.team_id, "id": list(ids)})
    found = {d["id"] for d in docs}
    missing = [i for i in ids if i not in found]
    if missing:
        raise NotFoundError(f"records not found in team {session.team_id}: {missing}")
    # 入力順を保つ, 重複 id は 1 回
    return list(dict.fromkeys(ids))


def update_record(
    store: DocumentStore, session: Session, record_id: str, changes: Mapping[str, Any]
) -> BeneficiaryRecord:
    """Edit one record; only the given fields change."""
    require(store, session, Action.WRITE_RECORDS, session.team_id)
    values = BeneficiaryRecord.from_values(changes).schema_values()
    values = {k: values[k] for k in changes}
    _owned_ids(store, session, [record_id])
    store.update("beneficiaries", [record_id], values)
    return BeneficiaryRecord.from_document(store.get("beneficiaries", record_id))


def mass_update(
    store: DocumentStore,
    session: Session,
    ids: Sequence[str],
    changes: Mapping[str, Any],
    *,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    progress: bool = True,
) -> BulkResult:
    """Apply the same edit to many records.

    Blank values in ``changes`` mean "leave unchanged" and are dropped.
    """
    require(store, session, Action.WRITE_RECORDS, session.team_id)
    kept = {k: v for k, v in changes.items() if to_text(v) != ""}
    values = BeneficiaryRecord.from_values(kept).schema_values()
    values = {k: values[k] for k in kept}
    if not values or not ids:
        return BulkResult(operation="update", requested=len(ids), completed=0)
    targets = _owned_ids(store, session, ids)
    return run_in_chunks(
        targets,
        lambda chunk: store.update("beneficiaries", chunk, values),
        chunk_size=chunk_size,
        label="update",
        progress=progress,
    )


def delete_records(
    store: DocumentStore,
    session: Session,
    ids: Sequence[str],
    *,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    progress: bool = True,
) -> BulkResult:
    require(store, session, Action.WRITE_RECORDS, session.team_id)
    if not ids:
        return BulkResult(operation="delete", requested=0, completed=0)
    targets = _owned_ids(store, session, ids)
    return run_in_chunks(
        targets,
        lambda chunk: store.delete("beneficiaries", chunk),
        chunk_size=chunk_size,
        label="delete",
        progress=progress,
    )


def clear_team_data(
    store: DocumentStore,
    session: Session,
    confirm: Callable[[int], bool],
    *,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    progress: bool = True,
) -> BulkResult | None:
    """Delete every record of the team after ``confirm(count)``; None when declined."""
    require(store, session, Action.WRITE_RECORDS, session.team_id)
    ids = [d["id"] for d in store.find("beneficiaries", {"team_id": session.team_id})]
    if not confirm(len(ids)):
        logger.info("clear cancelled (%d records)", len(ids))
        return None
    return run_in_chunks(
        ids,
        lambda chunk: store.delete("beneficiaries", chunk),
        chunk_size=chunk_size,
        label="clear",
        progress=progress,
    )
