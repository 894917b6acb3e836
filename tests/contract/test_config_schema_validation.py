from __future__ import annotations

import json

import jsonschema
import pytest

from beneficiary_hub.config.loader import SCHEMA_PATH

"""Bundled config schema contract."""


@pytest.fixture(scope="module")
def schema() -> dict:
    return json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))


def test_minimal_config_valid(schema):
    jsonschema.validate({"database": {}}, schema)


def test_full_config_valid(schema):
    jsonschema.validate(
        {
            "database": {"host": "db", "port": 5432, "user": "u", "password": "p", "database": "d"},
            "batch_size": 500,
            "timezone": "Asia/Manila",
            "error_log_dir": "logs",
            "import": {"placeholder_prefix": "Column", "sheet": None},
            "export": {"currency_symbol": "₱", "column_width": 15, "sheet_name": "Beneficiaries", "file_name": "b.xlsx"},
            "forms": {"base_url": "https://forms.example.org", "minimum_age": 18},
        },
        schema,
    )


@pytest.mark.parametrize(
    "config",
    [
        {},
        {"database": {}, "batch_size": 0},
        {"database": {}, "batch_size": "500"},
        {"database": {"port": 70000}},
        {"database": {"schema": "public"}},
        {"database": {}, "export": {"column_width": 0}},
        {"database": {}, "forms": {"minimum_age": -1}},
        {"database": {}, "unknown": 1},
    ],
)
def test_invalid_configs_rejected(schema, config):
    with pytest.raises(jsonschema.ValidationError):
        jsonschema.validate(config, schema)
