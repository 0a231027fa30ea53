"""Snapshot data models.

One Snapshot is the in-memory bundle collected during a poll cycle. On disk it
is split across six tables (see persistence/schema.sql) and joined back into a
ReconstructedEntry with the same field names, so a written Snapshot and the
entry read back compare field by field.
"""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Optional


@dataclass(frozen=True)
class LoadAverage:
    """1/5/15-minute load average (0.0 where the platform has none)."""

    one: float
    five: float
    fifteen: float


@dataclass(frozen=True)
class SystemVitals:
    """Host-wide figures, exactly one per log entry."""

    boot_time: int  # Unix epoch
    uptime: str  # Human readable, e.g. "3 days, 4:05:06"
    total_memory: int  # Bytes
    used_memory: int
    total_swap: int
    used_swap: int
    name: str  # "Unknown" when unavailable
    kernel_version: str
    os_version: str
    host_name: str
    cpus: int  # Logical CPU count
    load_avg: LoadAverage


@dataclass(frozen=True)
class DiskRecord:
    """One mounted volume."""

    name: str
    file_system: str
    mount_point: str
    total_space: int  # Bytes
    available_space: int


@dataclass(frozen=True)
class NetworkRecord:
    """Cumulative since-boot counters for one interface."""

    interface_name: str
    total_received: int  # Bytes
    total_transmitted: int


@dataclass(frozen=True)
class ComponentRecord:
    """One thermal sensor reading in degrees Celsius."""

    temperature: float
    max: float  # Highest value observed by this process
    critical: Optional[float]  # None = threshold unknown
    label: str


@dataclass(frozen=True)
class PingRecord:
    """Successful reachability sample."""

    host: str
    time: float  # Round-trip milliseconds


class ProbeStatus(str, Enum):
    """Outcome of a single reachability probe."""

    OK = "ok"
    NOT_FOUND = "not_found"  # ping ran but printed no time= token
    PROCESS_FAILED = "process_failed"  # could not launch, or non-zero exit


@dataclass(frozen=True)
class ProbeResult:
    """Result of one probe, successful or not."""

    host: str
    status: ProbeStatus
    latency_ms: Optional[float] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status is ProbeStatus.OK

    def to_record(self) -> Optional[PingRecord]:
        if not self.ok or self.latency_ms is None:
            return None
        return PingRecord(host=self.host, time=self.latency_ms)


def _record_dict(record: Any) -> Optional[dict[str, Any]]:
    return asdict(record) if record is not None else None


@dataclass(frozen=True)
class Snapshot:
    """Complete point-in-time sample, before persistence."""

    system: SystemVitals
    disks: list[DiskRecord] = field(default_factory=list)
    networks: list[NetworkRecord] = field(default_factory=list)
    components: list[ComponentRecord] = field(default_factory=list)
    probe: Optional[ProbeResult] = None

    @property
    def ping(self) -> Optional[PingRecord]:
        return self.probe.to_record() if self.probe is not None else None

    def to_dict(self) -> dict[str, Any]:
        return {
            "system": _record_dict(self.system),
            "disks": [asdict(d) for d in self.disks],
            "networks": [asdict(n) for n in self.networks],
            "components": [asdict(c) for c in self.components],
            "ping": _record_dict(self.ping),
        }


@dataclass(frozen=True)
class ReconstructedEntry:
    """A stored log entry joined back into Snapshot shape."""

    id: int
    timestamp: int
    system: Optional[SystemVitals]
    disks: list[DiskRecord] = field(default_factory=list)
    networks: list[NetworkRecord] = field(default_factory=list)
    components: list[ComponentRecord] = field(default_factory=list)
    ping: Optional[PingRecord] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "system": _record_dict(self.system),
            "disks": [asdict(d) for d in self.disks],
            "networks": [asdict(n) for n in self.networks],
            "components": [asdict(c) for c in self.components],
            "ping": _record_dict(self.ping),
        }
