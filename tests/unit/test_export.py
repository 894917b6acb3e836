from __future__ import annotations

from pathlib import Path

import pytest
from openpyxl import load_workbook

from beneficiary_hub.excel.export import (
    EXPORT_HEADERS,
    format_amount,
    format_export_rows,
    normalize_birth_month,
    write_export,
)
from beneficiary_hub.models.beneficiary import BeneficiaryRecord


@pytest.mark.parametrize(
    "value,expected",
    [
        (1500, "₱1,500"),
        (1234.5, "₱1,234.5"),
        (1000000.125, "₱1,000,000.125"),
        ("2500", "₱2,500"),
        (0, ""),
        (0.0, ""),
        (None, ""),
        ("", ""),
        ("abc", ""),
        (float("nan"), ""),
    ],
)
def test_format_amount(value, expected):
    assert format_amount(value) == expected


def test_format_amount_custom_symbol():
    assert format_amount(99.9, "$") == "$99.9"


@pytest.mark.parametrize(
    "value,expected",
    [
        ("January", "01"),
        ("december", "12"),
        (" MAY ", "05"),
        ("3", "03"),
        (3, "03"),
        ("12", "12"),
        ("03", "03"),
        ("13", "13"),
        ("0", "0"),
        ("Sept", "Sept"),
        ("", ""),
        (None, ""),
    ],
)
def test_normalize_birth_month(value, expected):
    assert normalize_birth_month(value) == expected


def test_format_export_rows_uses_labels_and_skips_empty():
    records = [
        BeneficiaryRecord.from_values({"last_name": "Cruz", "birth_month": "March", "amount": 1500}),
        BeneficiaryRecord(),
        BeneficiaryRecord.from_values({"first_name": "Ana"}),
    ]
    rows = format_export_rows(records)
    assert len(rows) == 2
    assert list(rows[0]) == EXPORT_HEADERS
    assert rows[0]["Last Name"] == "Cruz"
    assert rows[0]["Birth Month"] == "03"
    assert rows[0]["Amount"] == "₱1,500"
    assert rows[1]["Amount"] == ""
    assert rows[1]["Beneficiary ID"] == ""


def test_write_export_headers_widths_and_blank_cells(tmp_path: Path):
    rows = format_export_rows([BeneficiaryRecord.from_values({"last_name": "Cruz", "amount": "1,000"})])
    out = write_export(rows, tmp_path / "out" / "export.xlsx", column_width=20, sheet_name="Data")
    assert out.exists()
    wb = load_workbook(out)
    ws = wb["Data"]
    values = list(ws.iter_rows(values_only=True))
    assert list(values[0]) == EXPORT_HEADERS
    assert values[1][0] == "Cruz"
    assert values[1][1] is None
    assert values[1][EXPORT_HEADERS.index("Amount")] == "₱1,000"
    assert ws.column_dimensions["A"].width == 20
    assert ws.column_dimensions["T"].width == 20


def test_write_export_no_rows_writes_header_only(tmp_path: Path):
    out = write_export([], tmp_path / "empty.xlsx")
    ws = load_workbook(out).active
    assert ws.max_row == 1
    assert ws.title == "Beneficiaries"
