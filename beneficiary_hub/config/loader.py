from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import tzinfo
from pathlib import Path
from typing import Any

import jsonschema
import pytz
import yaml
from jsonschema.exceptions import ValidationError

"""Config loader.

Responsibilities:
- Load YAML config (config/beneficiary.yml by default)
- Validate against the bundled JSON schema (config_schema.json)
- Apply defaults for every optional section (timezone=UTC if missing)
"""

__all__ = [
    "AppConfig",
    "ConfigError",
    "DatabaseConfig",
    "ExportSettings",
    "FormSettings",
    "ImportSettings",
    "DEFAULT_CONFIG_PATH",
    "SCHEMA_PATH",
    "load_config",
]

SCHEMA_PATH = Path(__file__).with_name("config_schema.json")
DEFAULT_CONFIG_PATH = Path("config/beneficiary.yml")

DEFAULT_BATCH_SIZE = 500


class ConfigError(Exception):
    pass


@dataclass(frozen=True)
class DatabaseConfig:
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None


@dataclass(frozen=True)
class ImportSettings:
    placeholder_prefix: str = "Column"
    sheet: str | None = None  # None -> first sheet


@dataclass(frozen=True)
class ExportSettings:
    currency_symbol: str = "₱"
    column_width: int = 15
    sheet_name: str = "Beneficiaries"
    file_name: str = "beneficiaries.xlsx"


@dataclass(frozen=True)
class FormSettings:
    base_url: str = "http://localhost:5173"
    minimum_age: int = 18


@dataclass(frozen=True)
class AppConfig:
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    batch_size: int = DEFAULT_BATCH_SIZE
    timezone: str = "UTC"
    error_log_dir: str = "logs"
    imports: ImportSettings = field(default_factory=ImportSettings)
    export: ExportSettings = field(default_factory=ExportSettings)
    forms: FormSettings = field(default_factory=FormSettings)

    @property
    def zone(self) -> tzinfo:
        return pytz.timezone(self.timezone)


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against the bundled JSON schema.

    Raises:
        ConfigError: the schema file is missing or not valid JSON, or the
            config data fails validation (missing required keys, wrong
            types, unknown keys).
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")

    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"config validation failed: {e.message}") from e


def load_config(path: Path) -> AppConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"config root must be a mapping: {path}")

    _validate_config_schema(data)

    tz = data.get("timezone", "UTC")
    try:
        pytz.timezone(tz)
    except pytz.UnknownTimeZoneError as e:
        raise ConfigError(f"unknown timezone: {tz}") from e

    db_raw = data.get("database") or {}
    db = DatabaseConfig(
        host=db_raw.get("host"),
        port=db_raw.get("port"),
        user=db_raw.get("user"),
        password=db_raw.get("password"),
        database=db_raw.get("database"),
        dsn=db_raw.get("dsn"),
    )
    # 未指定セクションは dataclass の既定値
    return AppConfig(
        database=db,
        batch_size=data.get("batch_size", DEFAULT_BATCH_SIZE),
        timezone=tz,
        error_log_dir=data.get("error_log_dir", "logs"),
        imports=ImportSettings(**(data.get("import") or {})),
        export=ExportSettings(**(data.get("export") or {})),
        forms=FormSettings(**(data.get("forms") or {})),
    )
