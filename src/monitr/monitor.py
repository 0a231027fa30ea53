"""Poll loop: sample the host and append a snapshot every N seconds.

Design:
- Single sequential loop: one cycle at a time, never overlapping
- A failed cycle is logged and the loop moves on to the next one
- The probe subprocess is awaited without an extra timeout, so a ping that
  never exits stalls the loop until the OS reports failure
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from typing import Optional

import aiosqlite
import structlog

from .collection.assembler import assemble_snapshot
from .collection.models import ProbeResult
from .collection.probe import probe_host
from .collection.source import MetricSource
from .persistence.snapshots import AppendReport, append

logger = structlog.get_logger(__name__)


async def run_cycle(
    db: aiosqlite.Connection,
    source: MetricSource,
    ping_host: str,
    prober: Callable[[str], Awaitable[ProbeResult]] = probe_host,
) -> AppendReport:
    """Collect one snapshot and append it to the store.

    Raises:
        SnapshotWriteError: If the root log entry cannot be written
    """
    snapshot = await assemble_snapshot(source, ping_host, prober=prober)
    return await append(db, snapshot)


async def monitor_loop(
    db: aiosqlite.Connection,
    source: MetricSource,
    ping_host: str,
    interval_seconds: int = 30,
    max_cycles: Optional[int] = None,
    prober: Callable[[str], Awaitable[ProbeResult]] = probe_host,
) -> int:
    """Run sample-and-persist cycles until cancelled.

    Args:
        db: Open store connection (schema already ensured)
        source: Metric source to sample
        ping_host: Reference host for the reachability probe
        interval_seconds: Sleep between cycles
        max_cycles: Stop after this many cycles (None = forever)
        prober: Probe coroutine (injectable for tests)

    Returns:
        Number of cycles that appended a log entry.
    """
    logger.info("monitor_started", interval_seconds=interval_seconds, ping_host=ping_host)

    cycles = 0
    appended = 0
    while max_cycles is None or cycles < max_cycles:
        try:
            start_ns = time.perf_counter_ns()
            report = await run_cycle(db, source, ping_host, prober=prober)
            appended += 1

            duration_ms = (time.perf_counter_ns() - start_ns) / 1_000_000
            if report.ok:
                logger.debug(
                    "snapshot_cycle_completed",
                    log_id=report.log_id,
                    duration_ms=round(duration_ms, 1),
                )
            else:
                logger.warning(
                    "snapshot_partially_persisted",
                    log_id=report.log_id,
                    failed=[f"{r.kind}[{r.index}]" for r in report.failures],
                    duration_ms=round(duration_ms, 1),
                )

        except Exception as exc:  # noqa: BLE001
            logger.error(
                "snapshot_cycle_failed",
                error=str(exc),
                exc_info=True,
            )

        cycles += 1
        if max_cycles is None or cycles < max_cycles:
            await asyncio.sleep(interval_seconds)

    logger.info("monitor_stopped", cycles=cycles, appended=appended)
    return appended
