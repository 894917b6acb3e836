from __future__ import annotations

import logging
import os
from collections.abc import Callable, Mapping, Sequence
from pathlib import Path
from typing import Any, TypeVar

import psycopg2

from ..config.loader import DatabaseConfig
from ..models.processing_result import BatchStatsAccumulator
from .batch_insert import BatchMetrics, batch_insert
from .store import (
    COLLECTIONS,
    DocumentStore,
    StoreError,
    _check_collection,
    _check_columns,
    _new_id,
    _now,
)

"""PostgreSQL-backed document store.

Every public call runs in its own transaction: commit on success, rollback
and StoreError on failure. Collections map 1:1 onto the tables in
schema.sql.
"""

__all__ = [
    "SCHEMA_SQL_PATH",
    "PostgresStore",
    "connect",
    "init_schema",
    "resolve_dsn",
]

logger = logging.getLogger(__name__)

SCHEMA_SQL_PATH = Path(__file__).with_name("schema.sql")

T = TypeVar("T")


def resolve_dsn(db_cfg: DatabaseConfig) -> str:
    """Resolve connection parameters.

    Precedence (.env is loaded with override before this runs):
        1. DATABASE_URL / PGDSN (whole DSN), then the config ``dsn``
        2. PGHOST / PGPORT / PGUSER / PGPASSWORD / PGDATABASE
        3. the config ``database`` section for whatever is still missing
    """
    dsn_env = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or db_cfg.dsn
    if dsn_env:
        return dsn_env
    host = os.getenv("PGHOST", db_cfg.host or "localhost")
    port = os.getenv("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
    user = os.getenv("PGUSER", db_cfg.user or "postgres")
    password = os.getenv("PGPASSWORD", db_cfg.password or "")
    database = os.getenv("PGDATABASE", db_cfg.database or "postgres")
    dsn = f"host={host} port={port} user={user} dbname={database}"
    if password:
        dsn += f" password={password}"
    return dsn


def connect(db_cfg: DatabaseConfig) -> PostgresStore:  # pragma: no cover (needs a server)
    """Open a connection and return a PostgresStore bound to it (caller closes)."""
    try:
        conn = psycopg2.connect(resolve_dsn(db_cfg))
    except psycopg2.Error as e:
        raise StoreError(f"cannot connect to database: {e}") from e
    conn.autocommit = False
    return PostgresStore(conn)


def init_schema(store: PostgresStore, path: Path = SCHEMA_SQL_PATH) -> None:
    sql = path.read_text(encoding="utf-8")
    store.run(lambda cur: cur.execute(sql))


def _select_columns(collection: str) -> tuple[str, ...]:
    return ("id", "created_at", *COLLECTIONS[collection])


def _where(filters: Mapping[str, Any]) -> tuple[str, list[Any]]:
    clauses: list[str] = []
    params: list[Any] = []
    for key, value in filters.items():
        if isinstance(value, (list, tuple, set, frozenset)):
            clauses.append(f'"{key}" = ANY(%s)')
            params.append(list(value))
        elif value is None:
            clauses.append(f'"{key}" IS NULL')
        else:
            clauses.append(f'"{key}" = %s')
            params.append(value)
    if not clauses:
        return "", params
    return " WHERE " + " AND ".join(clauses), params


class PostgresStore(DocumentStore):
    mode = "live"

    def __init__(self, conn: Any, *, page_size: int = 1000) -> None:
        self._conn = conn
        self.page_size = page_size
        self.insert_stats = BatchStatsAccumulator()

    def run(self, fn: Callable[[Any], T]) -> T:
        """Run ``fn(cursor)`` inside one transaction."""
        cur = self._conn.cursor()
        try:
            result = fn(cur)
            self._conn.commit()
            return result
        except StoreError:
            self._conn.rollback()
            raise
        except psycopg2.Error as e:
            self._conn.rollback()
            raise StoreError(str(e).strip()) from e
        finally:
            cur.close()

    def _on_batch(self, metrics: BatchMetrics) -> None:
        self.insert_stats.add_batch_time(metrics.elapsed_seconds)
        logger.debug("batch insert rows=%d elapsed=%.4fs", metrics.batch_size, metrics.elapsed_seconds)

    def insert(self, collection: str, docs: Sequence[Mapping[str, Any]]) -> list[dict[str, Any]]:
        columns = _select_columns(collection)
        created: list[dict[str, Any]] = []
        for doc in docs:
            _check_columns(collection, doc)
            row = {c: doc.get(c) for c in columns}
            row["id"] = doc.get("id") or _new_id()
            row["created_at"] = doc.get("created_at") or _now()
            created.append(row)
        if not created:
            return []
        values = [tuple(row[c] for c in columns) for row in created]
        self.run(
            lambda cur: batch_insert(
                cur,
                collection,
                columns,
                values,
                page_size=self.page_size,
                metrics_callback=self._on_batch,
            )
        )
        return created

    def find(
        self,
        collection: str,
        filters: Mapping[str, Any] | None = None,
        *,
        order_by: str | None = None,
        descending: bool = False,
    ) -> list[dict[str, Any]]:
        _check_collection(collection)
        filters = filters or {}
        _check_columns(collection, filters)
        columns = _select_columns(collection)
        where, params = _where(filters)
        if order_by is not None:
            _check_columns(collection, [order_by])
            direction = "DESC" if descending else "ASC"
            order = f' ORDER BY "{order_by}" {direction} NULLS LAST, seq'
        else:
            order = " ORDER BY seq"
        cols_sql = ",".join(f'"{c}"' for c in columns)
        sql = f"SELECT {cols_sql} FROM {collection}{where}{order}"

        def _query(cur: Any) -> list[dict[str, Any]]:
            cur.execute(sql, params)
            return [dict(zip(columns, row)) for row in cur.fetchall()]

        return self.run(_query)

    def update(self, collection: str, ids: Sequence[str], changes: Mapping[str, Any]) -> int:
        _check_collection(collection)
        _check_columns(collection, changes)
        if not ids or not changes:
            return 0
        assignments = ",".join(f'"{k}" = %s' for k in changes)
        sql = f"UPDATE {collection} SET {assignments} WHERE id = ANY(%s)"
        params = [*changes.values(), list(ids)]

        def _exec(cur: Any) -> int:
            cur.execute(sql, params)
            return cur.rowcount

        return self.run(_exec)

    def delete(self, collection: str, ids: Sequence[str]) -> int:
        _check_collection(collection)
        if not ids:
            return 0
        sql = f"DELETE FROM {collection} WHERE id = ANY(%s)"

        def _exec(cur: Any) -> int:
            cur.execute(sql, [list(ids)])
            return cur.rowcount

        return self.run(_exec)

    def delete_where(self, collection: str, filters: Mapping[str, Any]) -> int:
        _check_collection(collection)
        if not filters:
            raise StoreError("delete_where requires at least one filter")
        _check_columns(collection, filters)
        where, params = _where(filters)
        sql = f"DELETE FROM {collection}{where}"

        def _exec(cur: Any) -> int:
            cur.execute(sql, params)
            return cur.rowcount

        return self.run(_exec)

    def count(self, collection: str, filters: Mapping[str, Any] | None = None) -> int:
        _check_collection(collection)
        filters = filters or {}
        _check_columns(collection, filters)
        where, params = _where(filters)
        sql = f"SELECT count(*) FROM {collection}{where}"

        def _query(cur: Any) -> int:
            cur.execute(sql, params)
            return int(cur.fetchone()[0])

        return self.run(_query)

    def close(self) -> None:
        if not self._conn.closed:
            self._conn.close()
