# Collection - host metric source, reachability probe, snapshot assembly

from .models import (
    ComponentRecord,
    DiskRecord,
    LoadAverage,
    NetworkRecord,
    PingRecord,
    ProbeResult,
    ProbeStatus,
    ReconstructedEntry,
    Snapshot,
    SystemVitals,
)
from .probe import parse_ping_time, probe_host
from .source import MetricSource, PsutilMetricSource
from .assembler import assemble_snapshot

__all__ = [
    "ComponentRecord",
    "DiskRecord",
    "LoadAverage",
    "NetworkRecord",
    "PingRecord",
    "ProbeResult",
    "ProbeStatus",
    "ReconstructedEntry",
    "Snapshot",
    "SystemVitals",
    "parse_ping_time",
    "probe_host",
    "MetricSource",
    "PsutilMetricSource",
    "assemble_snapshot",
]
