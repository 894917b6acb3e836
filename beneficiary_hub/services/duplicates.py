from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field

from ..db.store import DocumentStore
from ..models.beneficiary import BeneficiaryRecord
from ..models.processing_result import BulkResult
from ..models.team import Session
from .authorization import Action, require
from .beneficiaries import load_records
from .bulk import DEFAULT_CHUNK_SIZE, run_in_chunks

"""Duplicate detection over a team's beneficiary records.

Identity is (last, first, middle name, birth month/day/year), trimmed and
lowercased, missing parts as "". Within a group the record seen first is
kept and the rest are removal candidates.
"""

__all__ = [
    "KEY_FIELDS",
    "DuplicateGroup",
    "DuplicateRemovalResult",
    "count_removal_candidates",
    "duplicate_key",
    "find_duplicate_groups",
    "remove_duplicates",
]

logger = logging.getLogger(__name__)

KEY_FIELDS = ("last_name", "first_name", "middle_name", "birth_month", "birth_day", "birth_year")

DuplicateKey = tuple[str, ...]


@dataclass(frozen=True)
class DuplicateGroup:
    key: DuplicateKey
    keep: BeneficiaryRecord
    duplicates: tuple[BeneficiaryRecord, ...]

    @property
    def size(self) -> int:
        return 1 + len(self.duplicates)


@dataclass(frozen=True)
class DuplicateRemovalResult:
    groups: int
    candidates: int
    removed: int
    confirmed: bool
    removed_ids: tuple[str, ...] = field(default=(), repr=False)
    bulk: BulkResult | None = None


def duplicate_key(record: BeneficiaryRecord) -> DuplicateKey:
    return tuple((getattr(record, name) or "").strip().lower() for name in KEY_FIELDS)


def find_duplicate_groups(records: Iterable[BeneficiaryRecord]) -> list[DuplicateGroup]:
    """Groups of two or more records sharing a key, in first-appearance order."""
    buckets: dict[DuplicateKey, list[BeneficiaryRecord]] = {}
    for record in records:
        buckets.setdefault(duplicate_key(record), []).append(record)
    return [
        DuplicateGroup(key=key, keep=members[0], duplicates=tuple(members[1:]))
        for key, members in buckets.items()
        if len(members) > 1
    ]


def count_removal_candidates(groups: Sequence[DuplicateGroup]) -> int:
    return sum(len(g.duplicates) for g in groups)


def remove_duplicates(
    store: DocumentStore,
    session: Session,
    confirm: Callable[[int], bool],
    *,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    progress: bool = True,
) -> DuplicateRemovalResult:
    """Find duplicates in the session's team and delete them once confirmed.

    ``confirm`` receives the candidate count and must return True for any
    deletion to happen. Nothing is asked when there are no candidates.
    """
    require(store, session, Action.WRITE_RECORDS, session.team_id)
    # 空行は一覧・重複判定の対象外
    records = load_records(store, session)
    groups = find_duplicate_groups(records)
    candidates = count_removal_candidates(groups)
    if candidates == 0:
        return DuplicateRemovalResult(groups=0, candidates=0, removed=0, confirmed=False)
    if not confirm(candidates):
        logger.info("duplicate removal cancelled (%d candidates)", candidates)
        return DuplicateRemovalResult(groups=len(groups), candidates=candidates, removed=0, confirmed=False)

    ids = [r.id for g in groups for r in g.duplicates if r.id]
    bulk = run_in_chunks(
        ids,
        lambda chunk: store.delete("beneficiaries", chunk),
        chunk_size=chunk_size,
        label="dedupe",
        progress=progress,
    )
    return DuplicateRemovalResult(
        groups=len(groups),
        candidates=candidates,
        removed=bulk.completed,
        confirmed=True,
        removed_ids=tuple(ids),
        bulk=bulk,
    )
