from __future__ import annotations

from datetime import UTC, datetime, tzinfo
from pathlib import Path

from ..models.error_record import ErrorRecord

"""Error log buffering.

- JSON Lines, fixed schema (no extra keys)
- one `errors-YYYYMMDD-HHMMSS.log` per run, created on first flush; the file
  name is stamped in the configured timezone (UTC by default), record
  timestamps stay UTC
- records are buffered in memory and appended on flush()
"""

__all__ = [
    "ErrorRecord",
    "ErrorLogBuffer",
]

LOGS_DIR = Path("./logs")
TIMESTAMP_FMT = "%Y%m%d-%H%M%S"


class ErrorLogBuffer:
    """In-memory buffer for error records. Flush writes JSON Lines.

    - the file path is fixed on first access
    - no thread safety needed (operations run serially)
    """
    def __init__(self, logs_dir: Path | None = None, tz: tzinfo | None = None) -> None:
        self._records: list[ErrorRecord] = []
        self._file_path: Path | None = None
        self._logs_dir = logs_dir if logs_dir is not None else LOGS_DIR
        self._tz = tz or UTC

    @property
    def file_path(self) -> Path:
        if self._file_path is None:
            self._logs_dir.mkdir(parents=True, exist_ok=True)
            stamp = datetime.now(self._tz).strftime(TIMESTAMP_FMT)
            self._file_path = self._logs_dir / f"errors-{stamp}.log"
        return self._file_path

    def append(self, record: ErrorRecord) -> None:
        self._records.append(record)

    def record(self, source: str, error_type: str, message: str, *, sheet: str = "", row: int = -1) -> ErrorRecord:
        """Create, buffer and return an ErrorRecord."""
        rec = ErrorRecord.create(source, sheet, row, error_type, message)
        self._records.append(rec)
        return rec

    @property
    def records(self) -> list[ErrorRecord]:
        return list(self._records)

    def __len__(self) -> int:  # pragma: no cover (trivial)
        return len(self._records)

    def flush(self) -> Path | None:
        """Append buffered records to the log file; None when nothing was buffered."""
        if not self._records:
            return None
        fp = self.file_path
        with fp.open("a", encoding="utf-8") as f:
            for r in self._records:
                f.write(r.to_json_line() + "\n")
        self._records.clear()
        return fp
