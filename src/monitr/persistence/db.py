"""Database connection management with WAL mode and pragma configuration."""

from pathlib import Path
from typing import Optional

import aiosqlite
import structlog

logger = structlog.get_logger(__name__)


class DatabaseManager:
    """Owns the single SQLite connection of a monitr process.

    Use as an async context manager so the connection is released on exit:

        async with DatabaseManager(path) as manager:
            db = await manager.get_connection()
    """

    def __init__(self, db_path: str | Path):
        """
        Initialize database manager.

        Args:
            db_path: Path to SQLite database file ("~" is expanded)
        """
        self.db_path = Path(db_path).expanduser()
        self._connection: Optional[aiosqlite.Connection] = None

    async def __aenter__(self) -> "DatabaseManager":
        await self.get_connection()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def get_connection(self) -> aiosqlite.Connection:
        """
        Get database connection with WAL mode and optimized pragmas.

        Returns:
            SQLite connection with WAL mode enabled

        Note:
            The connection is created on first call and reused afterwards;
            monitr has exactly one writer per process.
        """
        if self._connection is not None:
            return self._connection

        # Ensure database directory exists
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        conn = await aiosqlite.connect(str(self.db_path))

        try:
            await conn.execute("PRAGMA foreign_keys=ON")
            await conn.execute("PRAGMA journal_mode=WAL")
            await conn.execute("PRAGMA synchronous=NORMAL")
            await conn.execute("PRAGMA busy_timeout=5000")

            # Verify WAL mode was enabled
            cursor = await conn.execute("PRAGMA journal_mode")
            mode = await cursor.fetchone()
            await cursor.close()

            if mode[0].lower() != "wal":
                raise RuntimeError(
                    f"Failed to enable WAL mode. Expected 'wal', got '{mode[0]}'. "
                    "WAL mode lets `monitr view` read while `monitr run` writes."
                )
        except Exception:
            # Clean up connection on any pragma configuration failure
            await conn.close()
            raise

        logger.info(
            "database_connection_established",
            db_path=str(self.db_path),
            journal_mode=mode[0],
        )

        self._connection = conn
        return conn

    async def close(self) -> None:
        """Close database connection."""
        if self._connection is not None:
            await self._connection.close()
            self._connection = None
            logger.info("database_connection_closed", db_path=str(self.db_path))
