"""Unit tests for persistence layer (database manager, schema)."""

import aiosqlite
import pytest

from src.monitr.persistence.db import DatabaseManager
from src.monitr.persistence.errors import SchemaError
from src.monitr.persistence.schema import TABLES, ensure_schema


# Database Connection Tests

@pytest.mark.asyncio
async def test_get_connection_wal_mode(tmp_path):
    """Verify WAL mode is enabled on database connection."""
    db_manager = DatabaseManager(tmp_path / "test.db")

    conn = await db_manager.get_connection()

    cursor = await conn.execute("PRAGMA journal_mode")
    mode = await cursor.fetchone()
    await cursor.close()

    assert mode[0].lower() == "wal", "WAL mode should be enabled"

    await db_manager.close()


@pytest.mark.asyncio
async def test_get_connection_pragmas(tmp_path):
    """Verify all required pragmas are set."""
    db_manager = DatabaseManager(tmp_path / "test.db")

    conn = await db_manager.get_connection()

    cursor = await conn.execute("PRAGMA foreign_keys")
    assert (await cursor.fetchone())[0] == 1
    await cursor.close()

    cursor = await conn.execute("PRAGMA busy_timeout")
    assert (await cursor.fetchone())[0] == 5000
    await cursor.close()

    await db_manager.close()


@pytest.mark.asyncio
async def test_connection_reused(tmp_path):
    """Verify one connection is shared for the process."""
    db_manager = DatabaseManager(tmp_path / "test.db")

    conn1 = await db_manager.get_connection()
    conn2 = await db_manager.get_connection()

    assert conn1 is conn2, "Connection should be reused"

    await db_manager.close()


@pytest.mark.asyncio
async def test_creates_missing_parent_directory(tmp_path):
    """Store directory (e.g. ~/.monitr) is created on first connect."""
    db_path = tmp_path / "nested" / ".monitr" / "system_info.db"

    async with DatabaseManager(db_path):
        pass

    assert db_path.exists()


@pytest.mark.asyncio
async def test_context_manager_closes_connection(tmp_path):
    """Leaving the async with block releases the connection."""
    async with DatabaseManager(tmp_path / "test.db") as manager:
        assert manager._connection is not None

    assert manager._connection is None


def test_expands_user_home():
    manager = DatabaseManager("~/.monitr/system_info.db")
    assert "~" not in str(manager.db_path)


# Schema Tests

async def _table_names(conn: aiosqlite.Connection) -> set[str]:
    cursor = await conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
    rows = await cursor.fetchall()
    await cursor.close()
    return {row[0] for row in rows}


@pytest.mark.asyncio
async def test_ensure_schema_creates_all_tables(tmp_path):
    async with DatabaseManager(tmp_path / "test.db") as manager:
        conn = await manager.get_connection()
        await ensure_schema(conn)

        assert set(TABLES) <= await _table_names(conn)


@pytest.mark.asyncio
async def test_ensure_schema_idempotent(tmp_path):
    """Repeated calls leave the same schema and never raise."""
    async with DatabaseManager(tmp_path / "test.db") as manager:
        conn = await manager.get_connection()
        await ensure_schema(conn)
        first = await _table_names(conn)

        for _ in range(3):
            await ensure_schema(conn)

        assert await _table_names(conn) == first


@pytest.mark.asyncio
async def test_ensure_schema_keeps_existing_rows(tmp_path):
    """Running setup against a populated store from a previous run is safe."""
    db_path = tmp_path / "test.db"
    async with DatabaseManager(db_path) as manager:
        conn = await manager.get_connection()
        await ensure_schema(conn)
        await conn.execute("INSERT INTO log_info (timestamp) VALUES (1)")
        await conn.commit()

    async with DatabaseManager(db_path) as manager:
        conn = await manager.get_connection()
        await ensure_schema(conn)
        cursor = await conn.execute("SELECT COUNT(*) FROM log_info")
        assert (await cursor.fetchone())[0] == 1
        await cursor.close()


@pytest.mark.asyncio
async def test_component_critical_column_nullable(tmp_path):
    async with DatabaseManager(tmp_path / "test.db") as manager:
        conn = await manager.get_connection()
        await ensure_schema(conn)
        cursor = await conn.execute("PRAGMA table_info(component_info)")
        columns = {col[1]: col for col in await cursor.fetchall()}
        await cursor.close()

    # col[3] is the notnull flag
    assert columns["critical"][3] == 0
    assert columns["temperature"][3] == 1


@pytest.mark.asyncio
async def test_strict_tables_reject_wrong_types(tmp_path):
    async with DatabaseManager(tmp_path / "test.db") as manager:
        conn = await manager.get_connection()
        await ensure_schema(conn)

        with pytest.raises(aiosqlite.IntegrityError):
            await conn.execute("INSERT INTO log_info (timestamp) VALUES ('yesterday')")


@pytest.mark.asyncio
async def test_ensure_schema_failure_raises_schema_error(tmp_path):
    async with DatabaseManager(tmp_path / "test.db") as manager:
        conn = await manager.get_connection()
        # A view squatting on a table name makes CREATE TABLE fail
        await conn.execute("CREATE VIEW disk_info AS SELECT 1 AS x")
        await conn.commit()

        with pytest.raises(SchemaError):
            await ensure_schema(conn)
