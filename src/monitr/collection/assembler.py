"""Snapshot assembly: one MetricSource pass plus one reachability probe."""

import asyncio
from collections.abc import Awaitable, Callable

import structlog

from .models import ProbeResult, Snapshot
from .probe import probe_host
from .source import MetricSource

logger = structlog.get_logger(__name__)


async def assemble_snapshot(
    source: MetricSource,
    ping_host: str,
    prober: Callable[[str], Awaitable[ProbeResult]] = probe_host,
) -> Snapshot:
    """Collect a full Snapshot.

    Blocking psutil calls are offloaded via asyncio.to_thread. A failed probe
    is kept in Snapshot.probe and does not fail the snapshot; nothing is
    retried or filtered.

    Args:
        source: Metric source to query
        ping_host: Reference host for the reachability probe
        prober: Probe coroutine (injectable for tests)

    Returns:
        Fresh Snapshot of current host state.
    """
    system = await asyncio.to_thread(source.vitals)
    disks = await asyncio.to_thread(source.disks)
    networks = await asyncio.to_thread(source.networks)
    components = await asyncio.to_thread(source.components)
    probe = await prober(ping_host)

    if not probe.ok:
        logger.info(
            "snapshot_probe_failed",
            host=ping_host,
            status=probe.status.value,
            error=probe.error,
        )

    return Snapshot(
        system=system,
        disks=disks,
        networks=networks,
        components=components,
        probe=probe,
    )
