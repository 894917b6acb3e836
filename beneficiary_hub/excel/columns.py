from __future__ import annotations

import re

"""Spreadsheet column codec.

Column labels are base-26 numerals over A-Z with no zero digit:
0 -> "A", 25 -> "Z", 26 -> "AA", 701 -> "ZZ", 702 -> "AAA".
"""

__all__ = [
    "column_letter",
    "column_index",
    "cell_reference",
]

_LABEL = re.compile(r"^[A-Za-z]+$")


def column_letter(index: int) -> str:
    """Return the letter label for a zero-based column index."""
    if index < 0:
        raise ValueError(f"column index must be >= 0: {index}")
    letters: list[str] = []
    n = index
    while n >= 0:
        n, rem = divmod(n, 26)
        letters.append(chr(65 + rem))
        n -= 1
    return "".join(reversed(letters))


def column_index(label: str) -> int:
    """Inverse of column_letter ("A" -> 0, "aa" -> 26)."""
    if not _LABEL.match(label or ""):
        raise ValueError(f"invalid column label: {label!r}")
    n = 0
    for ch in label.upper():
        n = n * 26 + (ord(ch) - 64)
    return n - 1


def cell_reference(index: int, row: int = 1) -> str:
    """Cell reference such as "B1" for a zero-based column and 1-based row."""
    return f"{column_letter(index)}{row}"
