from .batch_insert import BatchInsertError, batch_insert
from .postgres import PostgresStore, connect, init_schema, resolve_dsn
from .store import COLLECTIONS, DocumentStore, MemoryStore, NotFoundError, StoreError

__all__ = [
    "BatchInsertError",
    "batch_insert",
    "PostgresStore",
    "connect",
    "init_schema",
    "resolve_dsn",
    "COLLECTIONS",
    "DocumentStore",
    "MemoryStore",
    "NotFoundError",
    "StoreError",
]
