"""Reachability probe: one `ping` round-trip and latency extraction."""

from __future__ import annotations

import asyncio
import platform
import re

import structlog

from .models import ProbeResult, ProbeStatus

logger = structlog.get_logger(__name__)

_TIME_TOKEN = "time="
_NUMERIC_PREFIX = re.compile(r"\d+(?:\.\d+)?")


def parse_ping_time(output: str) -> float | None:
    """Extract the round-trip latency in milliseconds from ping output.

    Takes the first line carrying a ``time=<value><unit>`` token and parses
    the numeric prefix of the value, so ``time=13.482 ms``, ``time=13.482ms``
    and ``time=13ms`` all work. Lines whose token has no numeric prefix are
    skipped.

    Args:
        output: Raw stdout of the ping command

    Returns:
        Latency in milliseconds, or None if no line carries a time= token.
    """
    for line in output.splitlines():
        if _TIME_TOKEN not in line:
            continue
        tail = line.split(_TIME_TOKEN, 1)[1].split()
        if not tail:
            continue
        match = _NUMERIC_PREFIX.match(tail[0])
        if match is not None:
            return float(match.group())
    return None


def _ping_command(host: str) -> list[str]:
    count_flag = "-n" if platform.system() == "Windows" else "-c"
    return ["ping", count_flag, "1", host]


async def probe_host(host: str) -> ProbeResult:
    """Send a single ping to host and classify the outcome.

    No timeout is applied on top of ping's own; the caller blocks until the
    process exits.

    Args:
        host: Hostname or IP address to probe

    Returns:
        ProbeResult with status OK (latency set), NOT_FOUND (ping succeeded
        but printed no time= token) or PROCESS_FAILED (launch failure or
        non-zero exit, reason in ``error``).
    """
    cmd = _ping_command(host)

    try:
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as exc:
        logger.warning("ping_launch_failed", host=host, error=str(exc))
        return ProbeResult(
            host=host,
            status=ProbeStatus.PROCESS_FAILED,
            error=f"Failed to run ping: {exc}",
        )

    stdout, stderr = await process.communicate()

    if process.returncode != 0:
        stderr_text = stderr.decode("utf-8", errors="replace").strip()
        logger.warning(
            "ping_failed",
            host=host,
            returncode=process.returncode,
            stderr=stderr_text,
        )
        return ProbeResult(
            host=host,
            status=ProbeStatus.PROCESS_FAILED,
            error=f"Ping failed: {stderr_text}" if stderr_text else "Ping failed",
        )

    latency_ms = parse_ping_time(stdout.decode("utf-8", errors="replace"))
    if latency_ms is None:
        logger.warning("ping_time_not_found", host=host)
        return ProbeResult(host=host, status=ProbeStatus.NOT_FOUND)

    return ProbeResult(host=host, status=ProbeStatus.OK, latency_ms=latency_ms)
