"""Command line interface.

Provides the serve, run, latest and init-db commands.
"""

from __future__ import annotations

import argparse
import asyncio
import signal
import sys

import orjson
import structlog

from issue_index.config import Settings
from issue_index.domain.errors import PipelineError
from issue_index.main import application, load_schema
from issue_index.utils.logging import configure_logging

logger = structlog.get_logger()


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="issue-index",
        description="News cluster tracking and hourly issue index pipeline",
    )
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("serve", help="Run the pipeline on its cron schedule until stopped")
    subparsers.add_parser("run", help="Run the pipeline once and print the result")
    subparsers.add_parser("latest", help="Print the latest issue index record")
    subparsers.add_parser("init-db", help="Create the registry tables if missing")

    return parser


def _print_json(payload: object) -> None:
    sys.stdout.write(orjson.dumps(payload, option=orjson.OPT_INDENT_2).decode() + "\n")


async def _serve(settings: Settings) -> int:
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    async with application(settings) as container:
        container.scheduler.start()
        await stop.wait()
        logger.info("Shutdown signal received")
    return 0


async def _run_once(settings: Settings) -> int:
    async with application(settings) as container:
        result = await container.scheduler.trigger_now()
    _print_json(result.to_dict())
    return 0 if result.succeeded else 1


async def _latest(settings: Settings) -> int:
    async with application(settings) as container:
        record = await container.query.latest()
    if record is None:
        print("No issue index recorded yet", file=sys.stderr)
        return 1
    _print_json(record.to_dict())
    return 0


async def _init_db(settings: Settings) -> int:
    async with application(settings) as container:
        await container.registry.apply_schema(load_schema())
    logger.info("Schema applied")
    return 0


COMMANDS = {
    "serve": _serve,
    "run": _run_once,
    "latest": _latest,
    "init-db": _init_db,
}


def run_command(command: str, settings: Settings | None = None) -> int:
    settings = settings or Settings()
    configure_logging(log_level=settings.log_level, log_format=settings.log_format)

    try:
        return asyncio.run(COMMANDS[command](settings))
    except PipelineError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
