"""Spreadsheet input and output."""

from .columns import cell_reference, column_index, column_letter
from .export import format_amount, format_export_rows, normalize_birth_month, write_export
from .reader import (
    HeaderDescriptor,
    SheetData,
    SheetReadError,
    UnsupportedFileError,
    extract_sheet,
    list_sheet_names,
    load_sheet,
    read_sheet_grid,
)

__all__ = [
    "cell_reference",
    "column_index",
    "column_letter",
    "format_amount",
    "format_export_rows",
    "normalize_birth_month",
    "write_export",
    "HeaderDescriptor",
    "SheetData",
    "SheetReadError",
    "UnsupportedFileError",
    "extract_sheet",
    "list_sheet_names",
    "load_sheet",
    "read_sheet_grid",
]
