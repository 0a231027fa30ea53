"""CLI entrypoints: `monitr run` and `monitr view`."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys

import aiosqlite
import structlog

from . import __version__
from .collection.assembler import assemble_snapshot
from .collection.source import PsutilMetricSource
from .config.manager import ConfigManager, initialize_config
from .logging_setup import configure_logging
from .monitor import monitor_loop
from .persistence.db import DatabaseManager
from .persistence.errors import PersistenceError
from .persistence.schema import ensure_schema
from .persistence.snapshots import list_entries

logger = structlog.get_logger(__name__)


def _print_json(data: object) -> None:
    print(json.dumps(data, sort_keys=True, default=str))


async def _run(config: ConfigManager) -> None:
    async with DatabaseManager(config.get("database.path")) as manager:
        db = await manager.get_connection()
        await ensure_schema(db)
        await monitor_loop(
            db,
            PsutilMetricSource(),
            ping_host=config.get("probe.host"),
            interval_seconds=config.get("monitor.interval_seconds"),
        )


async def _view(config: ConfigManager) -> None:
    snapshot = await assemble_snapshot(PsutilMetricSource(), config.get("probe.host"))
    _print_json(snapshot.to_dict())

    async with DatabaseManager(config.get("database.path")) as manager:
        db = await manager.get_connection()
        await ensure_schema(db)
        for entry in await list_entries(db):
            _print_json(entry.to_dict())


def cmd_run(config: ConfigManager) -> int:
    try:
        asyncio.run(_run(config))
    except KeyboardInterrupt:
        logger.info("monitor_interrupted")
    except (PersistenceError, RuntimeError, OSError, aiosqlite.Error) as e:
        logger.error("monitor_aborted", error=str(e))
        return 1
    return 0


def cmd_view(config: ConfigManager) -> int:
    try:
        asyncio.run(_view(config))
    except (PersistenceError, RuntimeError, OSError, aiosqlite.Error) as e:
        logger.error("view_failed", error=str(e))
        return 1
    return 0


COMMANDS = {
    "run": cmd_run,
    "view": cmd_view,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="monitr", description="A system resource monitor")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("run", help="Sample the host every interval and store each snapshot")
    sub.add_parser("view", help="Print the live snapshot, then every stored entry")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = initialize_config()
    except ValueError as e:
        print(f"monitr: {e}", file=sys.stderr)
        return 1

    try:
        configure_logging(
            level=config.get("logging.level"),
            file_path=config.get("logging.file_path"),
            json_output=config.get("logging.json"),
        )
    except OSError as e:
        print(f"monitr: cannot open log file: {e}", file=sys.stderr)
        return 1
    return COMMANDS[args.command](config)
