# Shared pytest fixtures
from __future__ import annotations

import tempfile
from pathlib import Path

import pandas as pd
import pytest

from beneficiary_hub.db.store import MemoryStore
from beneficiary_hub.logging.init import reset_logging
from beneficiary_hub.models.team import Session
from beneficiary_hub.services import teams


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return """database:
  host: localhost
  port: 5432
  user: appuser
  password: secret
  database: appdb
batch_size: 500
timezone: UTC
import:
  placeholder_prefix: Column
export:
  currency_symbol: "₱"
  column_width: 15
  sheet_name: Beneficiaries
  file_name: beneficiaries.xlsx
forms:
  base_url: https://forms.example.org
  minimum_age: 18
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "beneficiary.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def mock_cli_env(monkeypatch):
    """CLI runs against the in-memory store with fresh logging."""
    monkeypatch.setenv("DISABLE_DB_CONNECT", "1")
    for var in ("BENEFICIARY_USER_ID", "BENEFICIARY_USER_EMAIL", "BENEFICIARY_TEAM_ID"):
        monkeypatch.delenv(var, raising=False)
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture()
def admin(store: MemoryStore) -> Session:
    """Registered user who owns a freshly created team (session bound to it)."""
    session = teams.register_user(store, "Admin@Example.org", "Admin")
    team = teams.create_team(store, session, "Barangay Uno", "test team")
    return session.with_team(team.id)


@pytest.fixture()
def member(store: MemoryStore, admin: Session) -> Session:
    """Plain member of the admin's team."""
    session = teams.register_user(store, "member@example.org")
    teams.add_member(store, admin, admin.team_id, "member@example.org", "member")
    return session.with_team(admin.team_id)


@pytest.fixture()
def outsider(store: MemoryStore) -> Session:
    return teams.register_user(store, "outsider@example.org")


def make_excel(path: Path, rows: list[list[object]], sheet_name: str = "Sheet1") -> Path:
    """Write rows (first row = header) to an .xlsx without pandas' own header."""
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        pd.DataFrame(rows).to_excel(writer, sheet_name=sheet_name, header=False, index=False)
    return path


@pytest.fixture()
def excel_factory(tmp_path: Path):
    def _make(rows: list[list[object]], name: str = "upload.xlsx", sheet_name: str = "Sheet1") -> Path:
        return make_excel(tmp_path / name, rows, sheet_name)
    return _make
