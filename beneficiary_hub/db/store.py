from __future__ import annotations

import copy
import uuid
from collections.abc import Mapping, Sequence
from datetime import UTC, datetime
from typing import Any

from ..models.fields import FIELD_KEYS

"""Collection-oriented document store.

Every collection holds flat documents keyed by a generated ``id`` and
stamped with ``created_at``. Queries are equality filters (a list value
means "any of") plus an optional single-column ordering; without an
ordering documents come back in insertion order.

Two implementations share these semantics: MemoryStore (tests / mock mode)
and PostgresStore (db/postgres.py).
"""

__all__ = [
    "COLLECTIONS",
    "DocumentStore",
    "MemoryStore",
    "NotFoundError",
    "StoreError",
]

_RECORD_COLUMNS = ("team_id", "form_link_id", *FIELD_KEYS)

# collection -> writable columns (id / created_at are managed by the store)
COLLECTIONS: dict[str, tuple[str, ...]] = {
    "users": ("email", "display_name"),
    "teams": ("name", "description"),
    "team_members": ("team_id", "user_id", "email", "role", "pending"),
    "beneficiaries": _RECORD_COLUMNS,
    "form_links": ("team_id", "name"),
    "form_submissions": (*_RECORD_COLUMNS, "updated_at"),
}


class StoreError(Exception):
    """Raised when a read or write against the store fails."""


class NotFoundError(StoreError):
    """Raised when a document addressed by id does not exist."""


def _new_id() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(UTC)


def _check_collection(collection: str) -> tuple[str, ...]:
    try:
        return COLLECTIONS[collection]
    except KeyError:
        raise StoreError(f"unknown collection: {collection!r}") from None


def _check_columns(collection: str, names: Sequence[str] | Mapping[str, Any]) -> None:
    allowed = set(_check_collection(collection)) | {"id", "created_at"}
    unknown = sorted(set(names) - allowed)
    if unknown:
        raise StoreError(f"unknown columns for {collection}: {unknown}")


class DocumentStore:
    """Interface shared by the store implementations."""

    mode = "abstract"

    def insert(self, collection: str, docs: Sequence[Mapping[str, Any]]) -> list[dict[str, Any]]:
        """Insert documents and return them with ``id`` and ``created_at`` set."""
        raise NotImplementedError

    def find(
        self,
        collection: str,
        filters: Mapping[str, Any] | None = None,
        *,
        order_by: str | None = None,
        descending: bool = False,
    ) -> list[dict[str, Any]]:
        raise NotImplementedError

    def update(self, collection: str, ids: Sequence[str], changes: Mapping[str, Any]) -> int:
        """Apply the same changes to every listed document; returns the count touched."""
        raise NotImplementedError

    def delete(self, collection: str, ids: Sequence[str]) -> int:
        raise NotImplementedError

    def delete_where(self, collection: str, filters: Mapping[str, Any]) -> int:
        raise NotImplementedError

    def count(self, collection: str, filters: Mapping[str, Any] | None = None) -> int:
        return len(self.find(collection, filters))

    def get(self, collection: str, doc_id: str) -> dict[str, Any]:
        """Return one document by id (NotFoundError when missing)."""
        found = self.find(collection, {"id": doc_id})
        if not found:
            raise NotFoundError(f"{collection}: no document with id {doc_id}")
        return found[0]

    def close(self) -> None:
        pass


def _matches(doc: Mapping[str, Any], filters: Mapping[str, Any]) -> bool:
    for key, expected in filters.items():
        value = doc.get(key)
        if isinstance(expected, (list, tuple, set, frozenset)):
            if value not in expected:
                return False
        elif value != expected:
            return False
    return True


class MemoryStore(DocumentStore):
    """In-process store used by tests and by the CLI's mock mode."""

    mode = "mock"

    def __init__(self) -> None:
        self._data: dict[str, list[dict[str, Any]]] = {name: [] for name in COLLECTIONS}

    def insert(self, collection: str, docs: Sequence[Mapping[str, Any]]) -> list[dict[str, Any]]:
        columns = _check_collection(collection)
        created: list[dict[str, Any]] = []
        for doc in docs:
            _check_columns(collection, doc)
            row = {c: doc.get(c) for c in columns}
            row["id"] = doc.get("id") or _new_id()
            row["created_at"] = doc.get("created_at") or _now()
            created.append(row)
        self._data[collection].extend(created)
        return copy.deepcopy(created)

    def find(
        self,
        collection: str,
        filters: Mapping[str, Any] | None = None,
        *,
        order_by: str | None = None,
        descending: bool = False,
    ) -> list[dict[str, Any]]:
        _check_collection(collection)
        filters = filters or {}
        _check_columns(collection, filters)
        rows = [d for d in self._data[collection] if _matches(d, filters)]
        if order_by is not None:
            _check_columns(collection, [order_by])
            present = [d for d in rows if d.get(order_by) is not None]
            missing = [d for d in rows if d.get(order_by) is None]
            # NULLS LAST (PostgresStore と同じ並び)
            rows = sorted(present, key=lambda d: d[order_by], reverse=descending) + missing
        return copy.deepcopy(rows)

    def update(self, collection: str, ids: Sequence[str], changes: Mapping[str, Any]) -> int:
        _check_collection(collection)
        _check_columns(collection, changes)
        wanted = set(ids)
        touched = 0
        for doc in self._data[collection]:
            if doc["id"] in wanted:
                doc.update(changes)
                touched += 1
        return touched

    def delete(self, collection: str, ids: Sequence[str]) -> int:
        _check_collection(collection)
        wanted = set(ids)
        before = len(self._data[collection])
        self._data[collection] = [d for d in self._data[collection] if d["id"] not in wanted]
        return before - len(self._data[collection])

    def delete_where(self, collection: str, filters: Mapping[str, Any]) -> int:
        _check_collection(collection)
        if not filters:
            raise StoreError("delete_where requires at least one filter")
        _check_columns(collection, filters)
        before = len(self._data[collection])
        self._data[collection] = [d for d in self._data[collection] if not _matches(d, filters)]
        return before - len(self._data[collection])
