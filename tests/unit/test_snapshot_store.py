"""Unit tests for snapshot append and reconstruction."""

from collections import Counter

import aiosqlite
import pytest
from structlog.testing import capture_logs

from src.monitr.collection.models import (
    ComponentRecord,
    DiskRecord,
    LoadAverage,
    NetworkRecord,
    PingRecord,
    ProbeResult,
    ProbeStatus,
    Snapshot,
    SystemVitals,
)
from src.monitr.persistence.db import DatabaseManager
from src.monitr.persistence.errors import SnapshotReadError, SnapshotWriteError
from src.monitr.persistence.schema import ensure_schema
from src.monitr.persistence.snapshots import append, get_entry, list_entries


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
async def db(tmp_path):
    """Fixture: real SQLite store with the snapshot schema applied."""
    db_manager = DatabaseManager(tmp_path / "system_info.db")
    conn = await db_manager.get_connection()
    await ensure_schema(conn)
    yield conn
    await db_manager.close()


def _vitals(total_memory: int = 16_000_000_000) -> SystemVitals:
    return SystemVitals(
        boot_time=1_700_000_000,
        uptime="2 days, 1:00:00",
        total_memory=total_memory,
        used_memory=6_500_000_000,
        total_swap=2_147_483_648,
        used_swap=1_048_576,
        name="Ubuntu",
        kernel_version="6.5.0-14-generic",
        os_version="22.04",
        host_name="workstation",
        cpus=12,
        load_avg=LoadAverage(one=1.25, five=0.75, fifteen=0.5),
    )


def _ok_probe(time_ms: float = 12.3) -> ProbeResult:
    return ProbeResult(host="1.1.1.1", status=ProbeStatus.OK, latency_ms=time_ms)


def _make_snapshot(**overrides) -> Snapshot:
    fields = dict(
        system=_vitals(),
        disks=[
            DiskRecord("/dev/nvme0n1p2", "ext4", "/", 500_000_000_000, 200_000_000_000),
            DiskRecord("/dev/nvme0n1p1", "vfat", "/boot/efi", 536_870_912, 500_000_000),
        ],
        networks=[
            NetworkRecord("lo", 1_000, 1_000),
            NetworkRecord("wlp2s0", 9_876_543_210, 123_456_789),
        ],
        components=[
            ComponentRecord(temperature=52.0, max=61.5, critical=100.0, label="Package id 0"),
            ComponentRecord(temperature=38.0, max=40.0, critical=None, label="nvme Composite"),
        ],
        probe=_ok_probe(),
    )
    fields.update(overrides)
    return Snapshot(**fields)


async def _count(db: aiosqlite.Connection, table: str) -> int:
    cursor = await db.execute(f"SELECT COUNT(*) FROM {table}")
    row = await cursor.fetchone()
    await cursor.close()
    return row[0]


# ---------------------------------------------------------------------------
# Round trip
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_round_trip_preserves_every_field(db):
    snapshot = _make_snapshot()

    report = await append(db, snapshot, timestamp=1_700_000_500)
    entry = await get_entry(db, report.log_id)

    assert report.ok
    assert entry.id == report.log_id
    assert entry.timestamp == 1_700_000_500
    assert entry.system == snapshot.system
    assert Counter(entry.disks) == Counter(snapshot.disks)
    assert Counter(entry.networks) == Counter(snapshot.networks)
    assert Counter(entry.components) == Counter(snapshot.components)
    assert entry.ping == snapshot.ping


@pytest.mark.asyncio
async def test_reconstructed_dict_matches_written_snapshot(db):
    snapshot = _make_snapshot(disks=[DiskRecord("disk0", "apfs", "/", 10, 5)], networks=[], components=[])

    report = await append(db, snapshot)
    entry = (await list_entries(db))[0]
    data = entry.to_dict()

    assert data.pop("id") == report.log_id
    assert data.pop("timestamp") == report.timestamp
    assert data == snapshot.to_dict()


@pytest.mark.asyncio
async def test_end_to_end_example(db):
    snapshot = Snapshot(
        system=_vitals(total_memory=16_000_000_000),
        disks=[
            DiskRecord(
                name="disk0",
                file_system="apfs",
                mount_point="/",
                total_space=500_000_000_000,
                available_space=200_000_000_000,
            )
        ],
        networks=[],
        components=[],
        probe=_ok_probe(12.3),
    )

    await append(db, snapshot)
    entries = await list_entries(db)

    assert len(entries) == 1
    data = entries[0].to_dict()
    assert data["system"]["total_memory"] == 16_000_000_000
    assert len(data["disks"]) == 1
    assert data["disks"][0]["name"] == "disk0"
    assert data["disks"][0]["total_space"] == 500_000_000_000
    assert data["disks"][0]["available_space"] == 200_000_000_000
    assert data["networks"] == []
    assert data["components"] == []
    assert data["ping"] == {"host": "1.1.1.1", "time": 12.3}


@pytest.mark.asyncio
async def test_append_writes_exactly_one_vitals_row(db):
    report = await append(db, _make_snapshot())

    cursor = await db.execute("SELECT COUNT(*) FROM system_info WHERE log_id = ?", (report.log_id,))
    assert (await cursor.fetchone())[0] == 1
    await cursor.close()


@pytest.mark.asyncio
async def test_report_lists_one_result_per_child(db):
    report = await append(db, _make_snapshot())

    kinds = Counter(result.kind for result in report.results)
    assert kinds == {"system": 1, "disk": 2, "network": 2, "component": 2, "ping": 1}
    assert report.failures == []


@pytest.mark.asyncio
async def test_same_mount_point_repeats_across_entries(db):
    await append(db, _make_snapshot())
    await append(db, _make_snapshot())

    entries = await list_entries(db)
    roots = [d for entry in entries for d in entry.disks if d.mount_point == "/"]
    assert len(roots) == 2


@pytest.mark.asyncio
async def test_network_counters_stored_raw(db):
    first = await append(db, _make_snapshot(networks=[NetworkRecord("eth0", 1_000, 500)]))
    second = await append(db, _make_snapshot(networks=[NetworkRecord("eth0", 4_000, 900)]))

    assert (await get_entry(db, first.log_id)).networks == [NetworkRecord("eth0", 1_000, 500)]
    assert (await get_entry(db, second.log_id)).networks == [NetworkRecord("eth0", 4_000, 900)]


# ---------------------------------------------------------------------------
# Partial failures
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_malformed_disk_does_not_lose_rest_of_snapshot(db):
    bad_disk = DiskRecord(name=None, file_system="ext4", mount_point="/broken", total_space=1, available_space=1)
    good_disk = DiskRecord("/dev/sdb1", "xfs", "/data", 2_000, 1_000)
    snapshot = _make_snapshot(disks=[bad_disk, good_disk])

    with capture_logs() as logs:
        report = await append(db, snapshot)

    assert report.log_id > 0
    assert not report.ok
    assert [(f.kind, f.index) for f in report.failures] == [("disk", 0)]
    assert "NOT NULL" in report.failures[0].error
    assert any(
        log["event"] == "snapshot_child_insert_failed" and log["kind"] == "disk"
        for log in logs
    )

    entry = await get_entry(db, report.log_id)
    assert entry.system == snapshot.system
    assert entry.disks == [good_disk]
    assert Counter(entry.networks) == Counter(snapshot.networks)
    assert Counter(entry.components) == Counter(snapshot.components)
    assert entry.ping == snapshot.ping


@pytest.mark.asyncio
async def test_wrongly_typed_child_value_is_reported(db):
    bad_network = NetworkRecord("eth1", "lots", 0)

    report = await append(db, _make_snapshot(networks=[bad_network, NetworkRecord("eth0", 1, 1)]))

    assert [(f.kind, f.index) for f in report.failures] == [("network", 0)]
    entry = await get_entry(db, report.log_id)
    assert entry.networks == [NetworkRecord("eth0", 1, 1)]


@pytest.mark.asyncio
async def test_unbindable_vitals_reported_and_entry_kept(db):
    broken = _vitals()
    object.__setattr__(broken, "load_avg", None)

    report = await append(db, _make_snapshot(system=broken))

    assert [f.kind for f in report.failures] == ["system"]
    entry = await get_entry(db, report.log_id)
    assert entry.system is None
    assert len(entry.disks) == 2


@pytest.mark.asyncio
async def test_root_insert_failure_raises_and_writes_nothing(db):
    await db.execute("DROP TABLE log_info")
    await db.commit()

    with pytest.raises(SnapshotWriteError) as exc_info:
        await append(db, _make_snapshot())

    assert isinstance(exc_info.value.__cause__, aiosqlite.Error)
    assert await _count(db, "system_info") == 0
    assert await _count(db, "disk_info") == 0
    assert await _count(db, "ping_times") == 0


# ---------------------------------------------------------------------------
# Optional fields
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status",
    [ProbeStatus.PROCESS_FAILED, ProbeStatus.NOT_FOUND],
)
async def test_failed_probe_leaves_no_ping_row(db, status):
    probe = ProbeResult(host="1.1.1.1", status=status, error="unreachable")

    report = await append(db, _make_snapshot(probe=probe))
    entry = await get_entry(db, report.log_id)

    assert entry.ping is None
    assert entry.to_dict()["ping"] is None
    assert await _count(db, "ping_times") == 0
    assert "ping" not in {r.kind for r in report.results}


@pytest.mark.asyncio
async def test_missing_critical_threshold_distinct_from_zero(db):
    unknown = ComponentRecord(temperature=30.0, max=31.0, critical=None, label="unknown-threshold")
    zero = ComponentRecord(temperature=-5.0, max=-4.0, critical=0.0, label="zero-threshold")

    report = await append(db, _make_snapshot(components=[unknown, zero]))
    entry = await get_entry(db, report.log_id)

    by_label = {c.label: c for c in entry.components}
    assert by_label["unknown-threshold"].critical is None
    assert by_label["zero-threshold"].critical == 0.0
    assert by_label["zero-threshold"].critical is not None


@pytest.mark.asyncio
async def test_entry_without_vitals_reconstructs_as_none(db):
    await db.execute("INSERT INTO log_info (id, timestamp) VALUES (42, 1)")
    await db.commit()

    entry = await get_entry(db, 42)

    assert entry.system is None
    assert entry.disks == []
    assert entry.ping is None


# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_list_entries_empty_store(db):
    assert await list_entries(db) == []


@pytest.mark.asyncio
async def test_list_entries_in_insertion_order(db):
    ids = [(await append(db, _make_snapshot(probe=_ok_probe(float(i))))).log_id for i in range(5)]

    entries = await list_entries(db)

    assert [e.id for e in entries] == ids
    assert ids == sorted(ids)
    assert [e.ping.time for e in entries] == [0.0, 1.0, 2.0, 3.0, 4.0]


@pytest.mark.asyncio
async def test_list_entries_sorted_by_id_not_storage_order(db):
    for log_id in (9, 3, 6):
        await db.execute("INSERT INTO log_info (id, timestamp) VALUES (?, ?)", (log_id, log_id))
    await db.commit()

    entries = await list_entries(db)

    assert [e.id for e in entries] == [3, 6, 9]


@pytest.mark.asyncio
async def test_list_entries_keeps_children_with_their_entry(db):
    first = await append(db, _make_snapshot(disks=[DiskRecord("a", "ext4", "/a", 1, 1)]))
    second = await append(db, _make_snapshot(disks=[], probe=None))

    entries = {e.id: e for e in await list_entries(db)}

    assert entries[first.log_id].disks == [DiskRecord("a", "ext4", "/a", 1, 1)]
    assert entries[second.log_id].disks == []
    assert entries[second.log_id].ping is None


@pytest.mark.asyncio
async def test_get_entry_unknown_id(db):
    assert await get_entry(db, 12345) is None


@pytest.mark.asyncio
async def test_list_entries_read_failure_raises(tmp_path):
    async with DatabaseManager(tmp_path / "empty.db") as manager:
        conn = await manager.get_connection()

        with pytest.raises(SnapshotReadError):
            await list_entries(conn)
