# Persistence Layer - SQLite snapshot store

from .db import DatabaseManager
from .errors import PersistenceError, SchemaError, SnapshotReadError, SnapshotWriteError
from .schema import ensure_schema
from .snapshots import (
    AppendReport,
    ChildInsertResult,
    append,
    get_entry,
    list_entries,
)

__all__ = [
    "DatabaseManager",
    "PersistenceError",
    "SchemaError",
    "SnapshotReadError",
    "SnapshotWriteError",
    "ensure_schema",
    "AppendReport",
    "ChildInsertResult",
    "append",
    "get_entry",
    "list_entries",
]
