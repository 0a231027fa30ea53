"""Persistence error types.

All of them chain the underlying aiosqlite/sqlite3 error via ``from``.
"""


class PersistenceError(RuntimeError):
    """Base class for snapshot store failures."""


class SchemaError(PersistenceError):
    """Schema creation failed; the process must not proceed."""


class SnapshotWriteError(PersistenceError):
    """The root log_info row (or the final commit) could not be written."""


class SnapshotReadError(PersistenceError):
    """Listing or reconstructing stored entries failed."""
