from __future__ import annotations

import pytest

from beneficiary_hub.excel.columns import cell_reference, column_index, column_letter


@pytest.mark.parametrize(
    "index,label",
    [(0, "A"), (1, "B"), (25, "Z"), (26, "AA"), (27, "AB"), (51, "AZ"), (52, "BA"), (701, "ZZ"), (702, "AAA")],
)
def test_column_letter(index, label):
    assert column_letter(index) == label
    assert column_index(label) == index


def test_column_index_is_case_insensitive():
    assert column_index("aa") == 26


def test_column_letter_rejects_negative():
    with pytest.raises(ValueError):
        column_letter(-1)


@pytest.mark.parametrize("label", ["", "A1", "ä", " A"])
def test_column_index_rejects_invalid(label):
    with pytest.raises(ValueError):
        column_index(label)


def test_cell_reference():
    assert cell_reference(1) == "B1"
    assert cell_reference(27, 10) == "AB10"
