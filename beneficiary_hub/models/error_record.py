from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

"""ErrorRecord model for structured error logging.

One record per rejected row, aborted chunk or failed promotion. ``row`` is
the 1-based spreadsheet row, or -1 when the failure is not tied to a single
row (chunk-level or operation-level errors).
"""

__all__ = [
    "ErrorRecord",
]


@dataclass(frozen=True)
class ErrorRecord:
    """Structured error record for JSON Lines logging.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        source: file name or operation name the error belongs to
        sheet: sheet name, "" when not applicable
        row: 1-based row number, -1 when unknown
        error_type: UPPER_SNAKE_CASE classification
        message: error description
    """
    timestamp: str
    source: str
    sheet: str
    row: int
    error_type: str
    message: str

    @staticmethod
    def create(source: str, sheet: str, row: int, error_type: str, message: str) -> ErrorRecord:
        """Create a new ErrorRecord stamped with the current UTC time."""
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(
            timestamp=ts,
            source=source,
            sheet=sheet,
            row=row,
            error_type=error_type,
            message=message,
        )

    def to_json_line(self) -> str:
        # 追加キー阻止: dataclass -> dict して json.dumps
        return json.dumps(asdict(self), ensure_ascii=False)
