from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import Any

from openpyxl import Workbook
from openpyxl.utils import get_column_letter

from ..models.beneficiary import BeneficiaryRecord
from ..models.fields import BENEFICIARY_FIELDS

"""Export formatter: records -> label-keyed display rows -> .xlsx workbook."""

__all__ = [
    "MONTH_MAP",
    "format_amount",
    "normalize_birth_month",
    "format_export_rows",
    "write_export",
]

logger = logging.getLogger(__name__)

DEFAULT_CURRENCY_SYMBOL = "₱"
DEFAULT_COLUMN_WIDTH = 15
DEFAULT_SHEET_NAME = "Beneficiaries"
EXPORT_HEADERS = [f.label for f in BENEFICIARY_FIELDS]

MONTH_MAP = {
    "january": "01",
    "february": "02",
    "march": "03",
    "april": "04",
    "may": "05",
    "june": "06",
    "july": "07",
    "august": "08",
    "september": "09",
    "october": "10",
    "november": "11",
    "december": "12",
}


def format_amount(value: Any, symbol: str = DEFAULT_CURRENCY_SYMBOL) -> str:
    """Currency text with thousands separators, "" when missing or zero.

    >>> format_amount(1500)
    '₱1,500'
    >>> format_amount(1234.5)
    '₱1,234.5'
    """
    if value is None or value == "":
        return ""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return ""
    if math.isnan(number) or number == 0:
        return ""
    # 小数は最大3桁 (末尾ゼロは落とす)
    text = f"{number:,.3f}".rstrip("0").rstrip(".")
    return f"{symbol}{text}"


def normalize_birth_month(value: Any) -> str:
    """Two-digit month for month names and 1-12; anything else passes through."""
    if value is None:
        return ""
    text = str(value).strip()
    if not text:
        return ""
    lowered = text.lower()
    if lowered.isdigit() and 1 <= int(lowered) <= 12 and len(lowered) <= 2:
        return lowered.zfill(2)
    if lowered in MONTH_MAP:
        return MONTH_MAP[lowered]
    return text


def format_export_rows(
    records: Iterable[BeneficiaryRecord], currency_symbol: str = DEFAULT_CURRENCY_SYMBOL
) -> list[dict[str, str]]:
    rows: list[dict[str, str]] = []
    for record in records:
        if record.is_empty():
            continue
        row: dict[str, str] = {}
        for field in BENEFICIARY_FIELDS:
            value = getattr(record, field.key)
            if field.key == "amount":
                row[field.label] = format_amount(value, currency_symbol)
            elif field.key == "birth_month":
                row[field.label] = normalize_birth_month(value)
            else:
                row[field.label] = value or ""
        rows.append(row)
    return rows


def write_export(
    rows: Sequence[dict[str, str]],
    path: Path,
    column_width: int = DEFAULT_COLUMN_WIDTH,
    sheet_name: str = DEFAULT_SHEET_NAME,
) -> Path:
    """Write label-keyed rows to a single-sheet workbook with fixed column widths."""
    wb = Workbook()
    ws = wb.active
    ws.title = sheet_name
    ws.append(EXPORT_HEADERS)
    for row in rows:
        # 空文字は空セルとして書く
        ws.append([row.get(label) or None for label in EXPORT_HEADERS])
    for idx in range(1, len(EXPORT_HEADERS) + 1):
        ws.column_dimensions[get_column_letter(idx)].width = column_width
    path.parent.mkdir(parents=True, exist_ok=True)
    wb.save(path)
    logger.debug("export written: %s (%d rows)", path, len(rows))
    return path
