from __future__ import annotations

from ..models.processing_result import BulkResult, ImportResult, PromotionResult

"""SUMMARY line rendering.

Formats (one line, space separated key=value pairs):

    SUMMARY op=import file={name} sheet={sheet} rows={total} inserted={n}
        skipped_empty={n} elapsed_sec={s} throughput_rps={r}
    SUMMARY op={operation} requested={n} completed={n} chunks={n}
    SUMMARY op=promote succeeded={n} failed={n}

The leading "SUMMARY " is part of the rendered string; ``strip_label``
removes it before the body goes to ``log_summary`` (which adds the label).
"""

__all__ = [
    "SUMMARY_LABEL",
    "format_number",
    "render_bulk_summary",
    "render_import_summary",
    "render_promotion_summary",
    "strip_label",
]

SUMMARY_LABEL = "SUMMARY "


def format_number(value: float) -> str:
    """Plain decimal text: integers without ".0", no scientific notation."""
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    if abs(value) < 0.01:
        return f"{value:.6f}".rstrip("0").rstrip(".")
    return str(round(value, 3))


def render_import_summary(result: ImportResult) -> str:
    """
    >>> from datetime import datetime, timezone
    >>> t = datetime(2024, 1, 1, tzinfo=timezone.utc)
    >>> render_import_summary(ImportResult("a.xlsx", "Sheet1", 10, 9, 1, t, t, 2.0, 4.5))
    'SUMMARY op=import file=a.xlsx sheet=Sheet1 rows=10 inserted=9 skipped_empty=1 elapsed_sec=2 throughput_rps=4.5'
    """
    return (
        f"SUMMARY op=import "
        f"file={result.source} "
        f"sheet={result.sheet} "
        f"rows={result.total_rows} "
        f"inserted={result.inserted_rows} "
        f"skipped_empty={result.skipped_empty} "
        f"elapsed_sec={format_number(result.elapsed_seconds)} "
        f"throughput_rps={format_number(result.throughput_rows_per_sec)}"
    )


def render_bulk_summary(result: BulkResult) -> str:
    return (
        f"SUMMARY op={result.operation} "
        f"requested={result.requested} "
        f"completed={result.completed} "
        f"chunks={result.total_chunks}"
    )


def render_promotion_summary(result: PromotionResult) -> str:
    return f"SUMMARY op=promote succeeded={result.succeeded} failed={result.failed}"


def strip_label(line: str) -> str:
    """Body of a rendered SUMMARY line, without the label.

    >>> strip_label("SUMMARY op=promote succeeded=1 failed=0")
    'op=promote succeeded=1 failed=0'
    """
    if not line.startswith(SUMMARY_LABEL):
        raise ValueError(f"not a SUMMARY line: {line!r}")
    return line[len(SUMMARY_LABEL):]
