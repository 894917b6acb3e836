from __future__ import annotations

import importlib

import psycopg2
import pytest

from beneficiary_hub.db.batch_insert import BatchInsertError, BatchMetrics, InsertResult, batch_insert
from beneficiary_hub.db.store import StoreError

# パッケージの batch_insert は関数で上書きされるのでモジュールを直接取得
batch_insert_module = importlib.import_module("beneficiary_hub.db.batch_insert")


class DummyCursor:
    def __init__(self) -> None:
        self.queries: list[str] = []
        self.rows: list[list] = []

# execute_values をモジュール内で差し替え, 実 DB なしでロジックのみ検証

@pytest.fixture(autouse=True)
def patch_execute_values(monkeypatch):
    def fake_execute_values(cursor, sql, rows, page_size=1000):
        cursor.queries.append(sql)
        cursor.rows.extend(rows)
    monkeypatch.setattr(batch_insert_module, "execute_values", fake_execute_values)
    return fake_execute_values


def test_batch_insert_basic():
    cur = DummyCursor()
    res = batch_insert(cur, table="beneficiaries", columns=["id", "last_name"], rows=[("a", "Cruz"), ("b", "Reyes")])
    assert isinstance(res, InsertResult)
    assert res.inserted_rows == 2
    assert cur.queries == ['INSERT INTO beneficiaries ("id","last_name") VALUES %s']
    assert cur.rows == [("a", "Cruz"), ("b", "Reyes")]


def test_batch_insert_empty_rows_skips_statement():
    cur = DummyCursor()
    calls: list[BatchMetrics] = []
    res = batch_insert(cur, table="beneficiaries", columns=["id"], rows=[], metrics_callback=calls.append)
    assert res.inserted_rows == 0
    assert cur.queries == []
    assert calls == []


def test_batch_insert_metrics_callback():
    cur = DummyCursor()
    calls: list[BatchMetrics] = []
    batch_insert(cur, "teams", ["id"], iter([("x",), ("y",), ("z",)]), metrics_callback=calls.append)
    assert len(calls) == 1
    m = calls[0]
    assert m.batch_size == 3
    assert m.elapsed_seconds >= 0
    assert m.end_time >= m.start_time


def test_batch_insert_wraps_driver_error(monkeypatch):
    def failing(cursor, sql, rows, page_size=1000):
        raise psycopg2.OperationalError("connection lost")
    monkeypatch.setattr(batch_insert_module, "execute_values", failing)
    calls: list[BatchMetrics] = []
    with pytest.raises(BatchInsertError) as exc:
        batch_insert(DummyCursor(), "teams", ["id"], [("x",)], metrics_callback=calls.append)
    assert isinstance(exc.value, StoreError)
    assert "connection lost" in str(exc.value)
    # 失敗時も計測は通知される
    assert len(calls) == 1


def test_execute_values_is_patched_on_the_module():
    import beneficiary_hub.db as db

    # db.batch_insert はパッケージ再エクスポートの関数
    assert db.batch_insert is batch_insert
    assert batch_insert_module.__name__ == "beneficiary_hub.db.batch_insert"
    assert batch_insert_module.execute_values.__name__ == "fake_execute_values"
