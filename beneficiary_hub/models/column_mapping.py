from __future__ import annotations

from collections.abc import Iterable, Iterator

from .fields import BENEFICIARY_FIELDS, FIELD_KEYS

"""ColumnMapping: one-to-one partial function from source column to field key."""

__all__ = [
    "ColumnMapping",
    "MappingError",
    "parse_mapping_args",
]


class MappingError(Exception):
    """Raised for mappings that reference unknown fields or columns."""


class ColumnMapping:
    """Source column -> target field, at most one column per field.

    ``assign`` keeps the invariant: choosing a column for a field un-maps
    whichever column held that field before.
    """

    def __init__(self, columns: Iterable[str] | None = None) -> None:
        self._columns = list(columns) if columns is not None else None
        self._by_column: dict[str, str] = {}

    def __len__(self) -> int:
        return len(self._by_column)

    def __iter__(self) -> Iterator[tuple[str, str]]:
        return iter(list(self._by_column.items()))

    def __contains__(self, column: object) -> bool:
        return column in self._by_column

    def __repr__(self) -> str:
        return f"ColumnMapping({self._by_column!r})"

    def assign(self, column: str, field_key: str) -> None:
        if field_key not in FIELD_KEYS:
            raise MappingError(f"unknown field: {field_key!r}")
        if self._columns is not None and column not in self._columns:
            raise MappingError(f"unknown column: {column!r}")
        previous = self.column_for(field_key)
        if previous is not None and previous != column:
            del self._by_column[previous]
        self._by_column[column] = field_key

    def unassign(self, column: str) -> None:
        self._by_column.pop(column, None)

    def field_for(self, column: str) -> str | None:
        return self._by_column.get(column)

    def column_for(self, field_key: str) -> str | None:
        for column, mapped in self._by_column.items():
            if mapped == field_key:
                return column
        return None

    def mapped_fields(self) -> set[str]:
        return set(self._by_column.values())

    def as_dict(self) -> dict[str, str]:
        return dict(self._by_column)

    def progress(self) -> tuple[int, int]:
        """(mapped fields, total fields)"""
        return len(self._by_column), len(BENEFICIARY_FIELDS)


def parse_mapping_args(pairs: Iterable[str], columns: Iterable[str] | None = None) -> ColumnMapping:
    """Parse ``"Excel Column=field_key"`` pairs into a ColumnMapping.

    Later pairs win for the same field, matching ``ColumnMapping.assign``.
    """
    mapping = ColumnMapping(columns)
    for raw in pairs:
        column, sep, field_key = raw.rpartition("=")
        if not sep or not column.strip() or not field_key.strip():
            raise MappingError(f"invalid mapping {raw!r} (expected COLUMN=FIELD)")
        mapping.assign(column.strip(), field_key.strip())
    return mapping
