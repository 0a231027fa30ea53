"""Snapshot persistence: normalized write path and reconstruction read path.

A Snapshot is stored as one log_info row (the root, which carries identity)
and child rows in system_info, disk_info, network_info, component_info and
ping_times keyed by log_id. The root insert is fatal on failure; child inserts
are best-effort and reported in the returned AppendReport.
"""

from __future__ import annotations

from contextlib import suppress
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Optional

import aiosqlite
import structlog

from ..collection.models import (
    ComponentRecord,
    DiskRecord,
    LoadAverage,
    NetworkRecord,
    PingRecord,
    ReconstructedEntry,
    Snapshot,
    SystemVitals,
)
from .errors import SnapshotReadError, SnapshotWriteError

logger = structlog.get_logger(__name__)

# Errors that can surface while binding/inserting a single child row
_CHILD_INSERT_ERRORS = (aiosqlite.Error, AttributeError, TypeError, ValueError, OverflowError)

_INSERT_SYSTEM = """
    INSERT INTO system_info (
        log_id, boot_time, uptime, total_memory, used_memory, total_swap, used_swap,
        name, kernel_version, os_version, host_name, cpus,
        load_avg_one, load_avg_five, load_avg_fifteen
    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
"""
_INSERT_DISK = """
    INSERT INTO disk_info (
        log_id, name, file_system, mount_point, total_space, available_space
    ) VALUES (?, ?, ?, ?, ?, ?)
"""
_INSERT_NETWORK = """
    INSERT INTO network_info (
        log_id, interface_name, total_received, total_transmitted
    ) VALUES (?, ?, ?, ?)
"""
_INSERT_COMPONENT = """
    INSERT INTO component_info (
        log_id, temperature, max, critical, label
    ) VALUES (?, ?, ?, ?, ?)
"""
_INSERT_PING = "INSERT INTO ping_times (log_id, host, time) VALUES (?, ?, ?)"


@dataclass(frozen=True)
class ChildInsertResult:
    """Outcome of inserting one child row."""

    kind: str  # "system" | "disk" | "network" | "component" | "ping"
    index: int  # Position within the snapshot list (0 for singletons)
    ok: bool
    error: Optional[str] = None


@dataclass
class AppendReport:
    """Result of appending one snapshot.

    A returned report always has a valid log_id; check ``ok`` or
    ``failures`` before assuming every child row was written.
    """

    log_id: int
    timestamp: int
    results: list[ChildInsertResult] = field(default_factory=list)

    @property
    def failures(self) -> list[ChildInsertResult]:
        return [r for r in self.results if not r.ok]

    @property
    def ok(self) -> bool:
        return not self.failures


# ---------------------------------------------------------------------------
# Write path
# ---------------------------------------------------------------------------


def _system_params(system: SystemVitals) -> tuple:
    return (
        system.boot_time,
        system.uptime,
        system.total_memory,
        system.used_memory,
        system.total_swap,
        system.used_swap,
        system.name,
        system.kernel_version,
        system.os_version,
        system.host_name,
        system.cpus,
        system.load_avg.one,
        system.load_avg.five,
        system.load_avg.fifteen,
    )


def _disk_params(disk: DiskRecord) -> tuple:
    return (disk.name, disk.file_system, disk.mount_point, disk.total_space, disk.available_space)


def _network_params(network: NetworkRecord) -> tuple:
    return (network.interface_name, network.total_received, network.total_transmitted)


def _component_params(component: ComponentRecord) -> tuple:
    return (component.temperature, component.max, component.critical, component.label)


def _ping_params(ping: PingRecord) -> tuple:
    return (ping.host, ping.time)


async def _rollback(db: aiosqlite.Connection) -> None:
    with suppress(aiosqlite.Error):
        await db.rollback()


async def _insert_child(
    db: aiosqlite.Connection,
    log_id: int,
    kind: str,
    index: int,
    sql: str,
    build_params: Callable[[Any], tuple],
    record: Any,
) -> ChildInsertResult:
    """Insert one child row; a failure is logged and reported, never raised."""
    try:
        cursor = await db.execute(sql, (log_id, *build_params(record)))
        await cursor.close()
    except _CHILD_INSERT_ERRORS as e:
        logger.warning(
            "snapshot_child_insert_failed",
            log_id=log_id,
            kind=kind,
            index=index,
            error=str(e),
        )
        return ChildInsertResult(kind=kind, index=index, ok=False, error=str(e))
    return ChildInsertResult(kind=kind, index=index, ok=True)


async def append(
    db: aiosqlite.Connection,
    snapshot: Snapshot,
    timestamp: Optional[int] = None,
) -> AppendReport:
    """
    Persist one snapshot as a log entry plus its child rows.

    Args:
        db: Open connection with the schema in place
        snapshot: Snapshot to store
        timestamp: Entry timestamp (defaults to now, Unix epoch seconds)

    Returns:
        AppendReport with the new log id and one result per child row

    Raises:
        SnapshotWriteError: If the log_info row or the final commit fails.
            Nothing is written in that case.
    """
    if timestamp is None:
        timestamp = int(datetime.now().timestamp())

    try:
        cursor = await db.execute(
            "INSERT INTO log_info (timestamp) VALUES (?)",
            (timestamp,),
        )
        log_id = int(cursor.lastrowid)
        await cursor.close()
    except aiosqlite.Error as e:
        await _rollback(db)
        logger.error("snapshot_root_insert_failed", error=str(e))
        raise SnapshotWriteError(f"Failed to insert log entry: {e}") from e

    report = AppendReport(log_id=log_id, timestamp=timestamp)

    report.results.append(
        await _insert_child(db, log_id, "system", 0, _INSERT_SYSTEM, _system_params, snapshot.system)
    )
    for index, disk in enumerate(snapshot.disks):
        report.results.append(
            await _insert_child(db, log_id, "disk", index, _INSERT_DISK, _disk_params, disk)
        )
    for index, network in enumerate(snapshot.networks):
        report.results.append(
            await _insert_child(db, log_id, "network", index, _INSERT_NETWORK, _network_params, network)
        )
    for index, component in enumerate(snapshot.components):
        report.results.append(
            await _insert_child(
                db, log_id, "component", index, _INSERT_COMPONENT, _component_params, component
            )
        )

    # A failed probe leaves no ping row at all
    ping = snapshot.ping
    if ping is not None:
        report.results.append(
            await _insert_child(db, log_id, "ping", 0, _INSERT_PING, _ping_params, ping)
        )

    try:
        await db.commit()
    except aiosqlite.Error as e:
        await _rollback(db)
        logger.error("snapshot_commit_failed", log_id=log_id, error=str(e))
        raise SnapshotWriteError(f"Failed to commit log entry {log_id}: {e}") from e

    logger.info(
        "snapshot_appended",
        log_id=log_id,
        disks=len(snapshot.disks),
        networks=len(snapshot.networks),
        components=len(snapshot.components),
        ping=ping is not None,
        failed_children=len(report.failures),
    )
    return report


# ---------------------------------------------------------------------------
# Read path
# ---------------------------------------------------------------------------


async def _fetchall(db: aiosqlite.Connection, sql: str, params: tuple = ()) -> list:
    cursor = await db.execute(sql, params)
    rows = await cursor.fetchall()
    await cursor.close()
    return list(rows)


async def _query_system(db: aiosqlite.Connection, log_id: int) -> Optional[SystemVitals]:
    rows = await _fetchall(
        db,
        """
        SELECT boot_time, uptime, total_memory, used_memory, total_swap, used_swap,
               name, kernel_version, os_version, host_name, cpus,
               load_avg_one, load_avg_five, load_avg_fifteen
        FROM system_info
        WHERE log_id = ?
        ORDER BY id
        LIMIT 1
        """,
        (log_id,),
    )
    if not rows:
        return None
    row = rows[0]
    return SystemVitals(
        boot_time=row[0],
        uptime=row[1],
        total_memory=row[2],
        used_memory=row[3],
        total_swap=row[4],
        used_swap=row[5],
        name=row[6],
        kernel_version=row[7],
        os_version=row[8],
        host_name=row[9],
        cpus=row[10],
        load_avg=LoadAverage(one=row[11], five=row[12], fifteen=row[13]),
    )


async def _query_disks(db: aiosqlite.Connection, log_id: int) -> list[DiskRecord]:
    rows = await _fetchall(
        db,
        """
        SELECT name, file_system, mount_point, total_space, available_space
        FROM disk_info
        WHERE log_id = ?
        """,
        (log_id,),
    )
    return [
        DiskRecord(
            name=row[0],
            file_system=row[1],
            mount_point=row[2],
            total_space=row[3],
            available_space=row[4],
        )
        for row in rows
    ]


async def _query_networks(db: aiosqlite.Connection, log_id: int) -> list[NetworkRecord]:
    rows = await _fetchall(
        db,
        """
        SELECT interface_name, total_received, total_transmitted
        FROM network_info
        WHERE log_id = ?
        """,
        (log_id,),
    )
    return [
        NetworkRecord(interface_name=row[0], total_received=row[1], total_transmitted=row[2])
        for row in rows
    ]


async def _query_components(db: aiosqlite.Connection, log_id: int) -> list[ComponentRecord]:
    rows = await _fetchall(
        db,
        """
        SELECT temperature, max, critical, label
        FROM component_info
        WHERE log_id = ?
        """,
        (log_id,),
    )
    return [
        ComponentRecord(temperature=row[0], max=row[1], critical=row[2], label=row[3])
        for row in rows
    ]


async def _query_ping(db: aiosqlite.Connection, log_id: int) -> Optional[PingRecord]:
    rows = await _fetchall(
        db,
        "SELECT host, time FROM ping_times WHERE log_id = ? LIMIT 1",
        (log_id,),
    )
    if not rows:
        return None
    return PingRecord(host=rows[0][0], time=rows[0][1])


async def _reconstruct(db: aiosqlite.Connection, log_id: int, timestamp: int) -> ReconstructedEntry:
    return ReconstructedEntry(
        id=log_id,
        timestamp=timestamp,
        system=await _query_system(db, log_id),
        disks=await _query_disks(db, log_id),
        networks=await _query_networks(db, log_id),
        components=await _query_components(db, log_id),
        ping=await _query_ping(db, log_id),
    )


async def list_entries(db: aiosqlite.Connection) -> list[ReconstructedEntry]:
    """
    Reconstruct every stored log entry.

    Args:
        db: Open connection with the schema in place

    Returns:
        Entries ordered by log id ascending (insertion order). Sibling
        disk/network/component order within an entry is unspecified.

    Raises:
        SnapshotReadError: If any query fails; the listing is abandoned.
    """
    try:
        rows = await _fetchall(db, "SELECT id, timestamp FROM log_info ORDER BY id ASC")
        entries = []
        for row in rows:
            entries.append(await _reconstruct(db, row[0], row[1]))
    except aiosqlite.Error as e:
        logger.error("snapshot_listing_failed", error=str(e))
        raise SnapshotReadError(f"Failed to list log entries: {e}") from e

    return entries


async def get_entry(db: aiosqlite.Connection, log_id: int) -> Optional[ReconstructedEntry]:
    """
    Reconstruct a single log entry.

    Args:
        db: Open connection with the schema in place
        log_id: Id returned by append()

    Returns:
        The entry, or None if no log_info row has that id

    Raises:
        SnapshotReadError: If any query fails
    """
    try:
        rows = await _fetchall(db, "SELECT id, timestamp FROM log_info WHERE id = ?", (log_id,))
        if not rows:
            return None
        return await _reconstruct(db, rows[0][0], rows[0][1])
    except aiosqlite.Error as e:
        logger.error("snapshot_lookup_failed", log_id=log_id, error=str(e))
        raise SnapshotReadError(f"Failed to read log entry {log_id}: {e}") from e
