from __future__ import annotations

import logging
import math
import zipfile
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Any

import pandas as pd

from .columns import cell_reference, column_letter

"""Spreadsheet reader: sheet grid loading plus header & record extraction.

Row 1 is the header row, every following non-blank row is a record. Blank
header cells get a placeholder name built from the column letter
("Column B"). Records are keyed by header text; when two columns end up
with the same header the later column's value wins and the clash is
reported in ``SheetData.duplicate_headers``.
"""

logger = logging.getLogger(__name__)

SUPPORTED_SUFFIXES = (".xlsx", ".xls")
DEFAULT_PLACEHOLDER_PREFIX = "Column"


class UnsupportedFileError(Exception):
    """Raised when the file is not one of the accepted spreadsheet formats."""


class SheetReadError(Exception):
    """Raised when a workbook or sheet cannot be read."""


@dataclass(frozen=True)
class HeaderDescriptor:
    """Header text paired with the cell it came from."""
    header: str
    column_letter: str
    cell_ref: str  # e.g. "B1"
    placeholder: bool = False


@dataclass
class SheetData:
    sheet_name: str
    headers: list[str]
    records: list[dict[str, Any]]  # header -> value, "" for missing cells
    row_numbers: list[int]  # 1-based sheet row of each record
    column_refs: dict[str, str]  # header -> origin cell reference
    header_descriptors: list[HeaderDescriptor]
    duplicate_headers: list[str] = field(default_factory=list)
    available_sheets: list[str] = field(default_factory=list)


def _check_suffix(path: Path) -> None:
    if path.suffix.lower() not in SUPPORTED_SUFFIXES:
        raise UnsupportedFileError(
            f"unsupported file type {path.suffix or '<none>'!r}: expected .xlsx or .xls"
        )


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    if value is pd.NaT:
        return True
    if isinstance(value, str) and value.strip() == "":
        return True
    return False


def _cell_value(value: Any) -> Any:
    """Normalize a raw cell: blanks -> "", integral floats -> int, dates -> ISO text."""
    if _is_blank(value):
        return ""
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, (pd.Timestamp, datetime)):
        if value.hour == 0 and value.minute == 0 and value.second == 0:
            return value.date().isoformat()
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return value


def list_sheet_names(path: Path) -> list[str]:
    _check_suffix(path)
    try:
        with pd.ExcelFile(path) as xls:
            return [str(name) for name in xls.sheet_names]
    except (OSError, ValueError, ImportError, zipfile.BadZipFile) as e:
        raise SheetReadError(f"cannot read workbook {path.name}: {e}") from e


def read_sheet_grid(path: Path, sheet_name: str | None = None) -> tuple[str, list[list[Any]], list[str]]:
    """Read one sheet as a raw cell grid.

    Returns (sheet_name, grid, all_sheet_names). The first sheet is used
    when ``sheet_name`` is None.
    """
    _check_suffix(path)
    try:
        with pd.ExcelFile(path) as xls:
            names = [str(n) for n in xls.sheet_names]
            if not names:
                raise SheetReadError(f"workbook {path.name} has no sheets")
            target = names[0] if sheet_name is None else sheet_name
            if target not in names:
                raise SheetReadError(f"sheet {target!r} not found in {path.name} (sheets: {names})")
            # ヘッダなしで生読み, 文字列の NA 変換は行わない
            df = xls.parse(target, header=None, dtype=object, keep_default_na=False)
    except SheetReadError:
        raise
    except (OSError, ValueError, ImportError, zipfile.BadZipFile) as e:
        raise SheetReadError(f"cannot read workbook {path.name}: {e}") from e
    grid = [list(row) for row in df.itertuples(index=False, name=None)]
    return target, grid, names


def build_headers(
    header_row: list[Any], width: int, placeholder_prefix: str = DEFAULT_PLACEHOLDER_PREFIX
) -> list[HeaderDescriptor]:
    descriptors: list[HeaderDescriptor] = []
    for c in range(width):
        letter = column_letter(c)
        raw = header_row[c] if c < len(header_row) else None
        if _is_blank(raw):
            descriptors.append(
                HeaderDescriptor(f"{placeholder_prefix} {letter}", letter, cell_reference(c), True)
            )
        else:
            text = str(_cell_value(raw)).strip()
            descriptors.append(HeaderDescriptor(text, letter, cell_reference(c)))
    return descriptors


def extract_sheet(
    grid: list[list[Any]],
    sheet_name: str = "Sheet1",
    placeholder_prefix: str = DEFAULT_PLACEHOLDER_PREFIX,
) -> SheetData:
    """Derive headers and header-keyed records from a raw cell grid."""
    width = max((len(row) for row in grid), default=0)
    header_row = grid[0] if grid else []
    descriptors = build_headers(header_row, width, placeholder_prefix)
    headers = [d.header for d in descriptors]

    column_refs: dict[str, str] = {}
    seen: set[str] = set()
    duplicates: list[str] = []
    for d in descriptors:
        if d.header in seen and d.header not in duplicates:
            duplicates.append(d.header)
        seen.add(d.header)
        column_refs[d.header] = d.cell_ref
    if duplicates:
        logger.warning(
            "sheet=%s duplicate headers %s: later columns overwrite earlier ones",
            sheet_name,
            duplicates,
        )

    records: list[dict[str, Any]] = []
    row_numbers: list[int] = []
    for offset, raw in enumerate(grid[1:], start=2):
        if all(_is_blank(v) for v in raw):
            continue
        record: dict[str, Any] = {}
        for c, header in enumerate(headers):
            record[header] = _cell_value(raw[c]) if c < len(raw) else ""
        records.append(record)
        row_numbers.append(offset)

    return SheetData(
        sheet_name=sheet_name,
        headers=headers,
        records=records,
        row_numbers=row_numbers,
        column_refs=column_refs,
        header_descriptors=descriptors,
        duplicate_headers=duplicates,
    )


def load_sheet(
    path: Path,
    sheet_name: str | None = None,
    placeholder_prefix: str = DEFAULT_PLACEHOLDER_PREFIX,
) -> SheetData:
    """Read and extract one sheet of a workbook (first sheet by default)."""
    target, grid, names = read_sheet_grid(path, sheet_name)
    data = extract_sheet(grid, target, placeholder_prefix)
    data.available_sheets = names
    logger.debug(
        "file=%s sheet=%s columns=%d records=%d", path.name, target, len(data.headers), len(data.records)
    )
    return data
