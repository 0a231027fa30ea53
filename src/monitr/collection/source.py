"""Host metric source backed by psutil.

Every call is a synchronous OS query. Strings the platform cannot provide are
reported as "Unknown"; sub-collections the platform cannot provide (e.g.
temperature sensors on macOS/Windows) come back empty.
"""

import os
import platform
import time
from datetime import timedelta
from typing import Optional, Protocol

import psutil
import structlog

from .models import ComponentRecord, DiskRecord, LoadAverage, NetworkRecord, SystemVitals

logger = structlog.get_logger(__name__)

UNKNOWN = "Unknown"


class MetricSource(Protocol):
    """Point-in-time host state."""

    def vitals(self) -> SystemVitals: ...

    def disks(self) -> list[DiskRecord]: ...

    def networks(self) -> list[NetworkRecord]: ...

    def components(self) -> list[ComponentRecord]: ...


def _lossy(value: str) -> str:
    """Replace undecodable OS bytes (surrogate escapes) with U+FFFD."""
    return os.fsencode(value).decode("utf-8", "replace")


def _or_unknown(value: Optional[str]) -> str:
    if value is None:
        return UNKNOWN
    value = value.strip()
    return value or UNKNOWN


def format_uptime(seconds: float) -> str:
    """Render an uptime in seconds as e.g. "3 days, 4:05:06"."""
    return str(timedelta(seconds=max(0, int(seconds))))


def _os_identity() -> tuple[Optional[str], Optional[str]]:
    """Return (distribution name, distribution version) where available."""
    if platform.system() == "Linux":
        try:
            release = platform.freedesktop_os_release()
        except OSError:
            release = {}
        name = release.get("NAME")
        version = release.get("VERSION_ID") or release.get("VERSION")
        if name:
            return name, version
    if platform.system() == "Darwin":
        return "Darwin", platform.mac_ver()[0] or None
    return platform.system() or None, platform.version() or None


def _load_average() -> LoadAverage:
    try:
        one, five, fifteen = psutil.getloadavg()
    except (AttributeError, OSError):
        return LoadAverage(one=0.0, five=0.0, fifteen=0.0)
    return LoadAverage(one=float(one), five=float(five), fifteen=float(fifteen))


class PsutilMetricSource:
    """MetricSource implementation reading from psutil and platform.

    Tracks the highest temperature observed per sensor over the lifetime of
    the instance, reported as ComponentRecord.max.
    """

    def __init__(self) -> None:
        self._max_seen: dict[str, float] = {}

    def vitals(self) -> SystemVitals:
        boot_time = int(psutil.boot_time())
        vm = psutil.virtual_memory()
        swap = psutil.swap_memory()
        os_name, os_version = _os_identity()

        return SystemVitals(
            boot_time=boot_time,
            uptime=format_uptime(time.time() - boot_time),
            total_memory=int(vm.total),
            used_memory=int(vm.used),
            total_swap=int(swap.total),
            used_swap=int(swap.used),
            name=_or_unknown(os_name),
            kernel_version=_or_unknown(platform.release()),
            os_version=_or_unknown(os_version),
            host_name=_or_unknown(platform.node()),
            cpus=psutil.cpu_count(logical=True) or 0,
            load_avg=_load_average(),
        )

    def disks(self) -> list[DiskRecord]:
        records = []
        for partition in psutil.disk_partitions(all=False):
            try:
                usage = psutil.disk_usage(partition.mountpoint)
            except OSError as exc:
                # Unreadable or vanished mount (e.g. empty CD drive)
                logger.debug(
                    "disk_usage_unavailable",
                    mount_point=partition.mountpoint,
                    error=str(exc),
                )
                continue
            records.append(
                DiskRecord(
                    name=_or_unknown(_lossy(partition.device)),
                    file_system=_or_unknown(partition.fstype),
                    mount_point=_lossy(partition.mountpoint),
                    total_space=int(usage.total),
                    available_space=int(usage.free),
                )
            )
        return records

    def networks(self) -> list[NetworkRecord]:
        counters = psutil.net_io_counters(pernic=True) or {}
        return [
            NetworkRecord(
                interface_name=_lossy(name),
                total_received=int(stats.bytes_recv),
                total_transmitted=int(stats.bytes_sent),
            )
            for name, stats in counters.items()
        ]

    def components(self) -> list[ComponentRecord]:
        sensors = getattr(psutil, "sensors_temperatures", None)
        if sensors is None:
            return []
        try:
            readings = sensors()
        except (OSError, RuntimeError) as exc:
            logger.debug("sensors_unavailable", error=str(exc))
            return []

        records = []
        for chip, entries in (readings or {}).items():
            for index, entry in enumerate(entries):
                if entry.current is None:
                    continue
                label = _lossy(entry.label or chip)
                key = f"{chip}/{label}/{index}"
                current = float(entry.current)
                highest = max(current, self._max_seen.get(key, current))
                self._max_seen[key] = highest
                records.append(
                    ComponentRecord(
                        temperature=current,
                        max=highest,
                        critical=float(entry.critical) if entry.critical is not None else None,
                        label=label,
                    )
                )
        return records
