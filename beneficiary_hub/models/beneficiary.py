from __future__ import annotations

import math
import re
from dataclasses import dataclass, field, fields
from datetime import datetime
from collections.abc import Mapping
from typing import Any

from .fields import FIELD_KEYS, NUMERIC_FIELDS

"""BeneficiaryRecord: closed record schema validated at the import boundary.

Every schema field is optional. Text fields default to "" and are trimmed on
the way in; ``amount`` is the only numeric field. Storage metadata (id,
team_id, form_link_id, created_at) travels alongside but is not part of the
schema used for emptiness checks, search or export.
"""

__all__ = [
    "BeneficiaryRecord",
    "RecordValidationError",
    "parse_amount",
    "to_text",
]

# parseFloat 相当: 先頭の数値部分のみ採用
_LEADING_NUMBER = re.compile(r"[-+]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][-+]?\d+)?")
_AMOUNT_NOISE = re.compile(r"[,\s₱$€£¥]")


class RecordValidationError(Exception):
    """Raised when a value map does not fit the closed beneficiary schema."""


def to_text(value: Any) -> str:
    """Render a cell/form value as trimmed text ("" for missing)."""
    if value is None:
        return ""
    if isinstance(value, float):
        if math.isnan(value):
            return ""
        if value.is_integer():
            return str(int(value))
    return str(value).strip()


def parse_amount(value: Any) -> float:
    """Parse an amount the way a lenient form field would.

    Numbers pass through, text may carry a currency symbol and thousands
    separators. Anything unparseable becomes 0.0.
    """
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        number = float(value)
        return 0.0 if math.isnan(number) else number
    cleaned = _AMOUNT_NOISE.sub("", str(value))
    match = _LEADING_NUMBER.match(cleaned)
    if not match:
        return 0.0
    return float(match.group(0))


@dataclass
class BeneficiaryRecord:
    last_name: str = ""
    first_name: str = ""
    middle_name: str = ""
    extension_name: str = ""
    birth_month: str = ""
    birth_day: str = ""
    birth_year: str = ""
    sex: str = ""
    barangay: str = ""
    psgc_city: str = ""
    city: str = ""
    province: str = ""
    type_of_assistance: str = ""
    amount: float | None = None
    philsys_number: str = ""
    beneficiary_uniq: str = ""
    contact_number: str = ""
    target_sector: str = ""
    sub_category: str = ""
    civil_status: str = ""
    # storage metadata
    id: str | None = None
    team_id: str | None = None
    form_link_id: str | None = None
    created_at: datetime | None = field(default=None, compare=False)

    @classmethod
    def from_values(
        cls,
        values: Mapping[str, Any],
        *,
        team_id: str | None = None,
        form_link_id: str | None = None,
    ) -> BeneficiaryRecord:
        """Build a record from schema-keyed values.

        Raises RecordValidationError for keys outside the schema.
        """
        unknown = sorted(set(values) - set(FIELD_KEYS))
        if unknown:
            raise RecordValidationError(f"unknown beneficiary fields: {unknown}")
        kwargs: dict[str, Any] = {}
        for key, raw in values.items():
            if key in NUMERIC_FIELDS:
                kwargs[key] = parse_amount(raw)
            else:
                kwargs[key] = to_text(raw)
        return cls(**kwargs, team_id=team_id, form_link_id=form_link_id)

    @classmethod
    def from_document(cls, doc: Mapping[str, Any]) -> BeneficiaryRecord:
        known = {f.name for f in fields(cls)}
        kwargs: dict[str, Any] = {}
        for key, value in doc.items():
            if key not in known:
                continue
            if key in FIELD_KEYS and key not in NUMERIC_FIELDS:
                kwargs[key] = to_text(value)
            elif key == "amount":
                kwargs[key] = None if value is None else float(value)
            else:
                kwargs[key] = value
        return cls(**kwargs)

    def schema_values(self) -> dict[str, Any]:
        """Schema fields only, in schema order."""
        return {key: getattr(self, key) for key in FIELD_KEYS}

    def to_document(self) -> dict[str, Any]:
        doc = self.schema_values()
        doc["team_id"] = self.team_id
        doc["form_link_id"] = self.form_link_id
        if self.id is not None:
            doc["id"] = self.id
        if self.created_at is not None:
            doc["created_at"] = self.created_at
        return doc

    def is_empty(self) -> bool:
        """True when every schema field is blank or zero."""
        for value in self.schema_values().values():
            if value is None or value == "" or value == 0:
                continue
            return False
        return True
