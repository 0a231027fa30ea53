"""Schema management for the snapshot store."""

from pathlib import Path

import aiosqlite
import structlog

from .errors import SchemaError

logger = structlog.get_logger(__name__)

SCHEMA_PATH = Path(__file__).parent / "schema.sql"

TABLES = (
    "log_info",
    "system_info",
    "disk_info",
    "network_info",
    "component_info",
    "ping_times",
)


async def ensure_schema(db: aiosqlite.Connection) -> None:
    """
    Create the snapshot tables and indexes if they do not exist.

    Idempotent: safe on every start, including against a store populated by
    a previous run. No migration is attempted.

    Args:
        db: Open connection to the store

    Raises:
        SchemaError: If the DDL cannot be read or applied
    """
    try:
        ddl = SCHEMA_PATH.read_text(encoding="utf-8")
        await db.executescript(ddl)
        await db.commit()
    except (OSError, aiosqlite.Error) as e:
        logger.error("schema_setup_failed", schema_path=str(SCHEMA_PATH), error=str(e))
        raise SchemaError(f"Failed to create snapshot schema: {e}") from e

    logger.debug("schema_ensured", tables=list(TABLES))
