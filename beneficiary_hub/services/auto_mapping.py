from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass

from ..models.column_mapping import ColumnMapping
from ..models.fields import BENEFICIARY_FIELDS, FieldSpec

"""Auto-mapping suggestions from spreadsheet headers to record fields.

Per header the checks run in this order, all case-insensitive on trimmed
text, and the first hit wins:

    1. header == field key           (exact)
    2. header == field label         (exact)
    3. key in header / header in key (approximate)
    4. same containment with labels  (approximate)
"""

__all__ = [
    "MappingSuggestion",
    "apply_suggestions",
    "suggest_mapping",
    "suggest_mappings",
]


@dataclass(frozen=True)
class MappingSuggestion:
    field_key: str
    exact: bool


def _contains_either(a: str, b: str) -> bool:
    return a in b or b in a


def suggest_mapping(header: str, fields: Sequence[FieldSpec] = BENEFICIARY_FIELDS) -> MappingSuggestion | None:
    h = str(header).strip().lower()
    if not h:
        return None
    for field in fields:
        if field.key.lower() == h:
            return MappingSuggestion(field.key, True)
    for field in fields:
        if field.label.lower() == h:
            return MappingSuggestion(field.key, True)
    for field in fields:
        if _contains_either(field.key.lower(), h):
            return MappingSuggestion(field.key, False)
    for field in fields:
        if _contains_either(field.label.lower(), h):
            return MappingSuggestion(field.key, False)
    return None


def suggest_mappings(
    headers: Iterable[str], fields: Sequence[FieldSpec] = BENEFICIARY_FIELDS
) -> dict[str, MappingSuggestion]:
    """Suggestion per header; headers without a match are left out."""
    suggestions: dict[str, MappingSuggestion] = {}
    for header in headers:
        found = suggest_mapping(header, fields)
        if found is not None:
            suggestions[header] = found
    return suggestions


def apply_suggestions(
    mapping: ColumnMapping,
    suggestions: Mapping[str, MappingSuggestion],
    *,
    exact_only: bool = False,
) -> list[tuple[str, str]]:
    """Apply suggestions to ``mapping`` without disturbing what is already there.

    - a column that already has a target keeps it
    - a field already mapped from another column is not taken over
    - exact suggestions go first, so an approximate match can never claim a
      field that some header matches exactly

    Returns the (column, field_key) pairs that were applied.
    """
    applied: list[tuple[str, str]] = []
    exact = [(c, s) for c, s in suggestions.items() if s.exact]
    approximate = [] if exact_only else [(c, s) for c, s in suggestions.items() if not s.exact]
    for column, suggestion in [*exact, *approximate]:
        if column in mapping:
            continue
        if suggestion.field_key in mapping.mapped_fields():
            continue
        mapping.assign(column, suggestion.field_key)
        applied.append((column, suggestion.field_key))
    return applied
