from __future__ import annotations

from dataclasses import dataclass

"""Fixed target schema for beneficiary records.

The order of BENEFICIARY_FIELDS is the order used by the column mapper,
the list view and the export workbook.
"""

__all__ = [
    "FieldSpec",
    "BENEFICIARY_FIELDS",
    "FIELD_KEYS",
    "FIELD_LABELS",
    "NUMERIC_FIELDS",
    "get_field",
]


@dataclass(frozen=True)
class FieldSpec:
    """One target field: storage key, human label and an optional entry hint."""
    key: str
    label: str
    hint: str | None = None


BENEFICIARY_FIELDS: tuple[FieldSpec, ...] = (
    FieldSpec("last_name", "Last Name"),
    FieldSpec("first_name", "First Name"),
    FieldSpec("middle_name", "Middle Name"),
    FieldSpec("extension_name", "Extension Name", hint="Common values: Jr., Sr., III, IV, etc."),
    FieldSpec("birth_month", "Birth Month"),
    FieldSpec("birth_day", "Birth Day"),
    FieldSpec("birth_year", "Birth Year"),
    FieldSpec("sex", "Sex"),
    FieldSpec("barangay", "Barangay"),
    FieldSpec("psgc_city", "PSGC City"),
    FieldSpec("city", "City"),
    FieldSpec("province", "Province"),
    FieldSpec("type_of_assistance", "Type of Assistance"),
    FieldSpec("amount", "Amount"),
    FieldSpec("philsys_number", "PhilSys Number"),
    FieldSpec("beneficiary_uniq", "Beneficiary ID"),
    FieldSpec("contact_number", "Contact Number"),
    FieldSpec("target_sector", "Target Sector"),
    FieldSpec("sub_category", "Sub Category"),
    FieldSpec("civil_status", "Civil Status"),
)

FIELD_KEYS: tuple[str, ...] = tuple(f.key for f in BENEFICIARY_FIELDS)
FIELD_LABELS: dict[str, str] = {f.key: f.label for f in BENEFICIARY_FIELDS}
NUMERIC_FIELDS: frozenset[str] = frozenset({"amount"})

_BY_KEY = {f.key: f for f in BENEFICIARY_FIELDS}


def get_field(key: str) -> FieldSpec:
    """Return the FieldSpec for ``key`` (KeyError when unknown)."""
    return _BY_KEY[key]
