# src/taskloop/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds the Dispatcher, seeds tasks given on the command
line, then runs the dispatch loop until SIGINT/SIGTERM (or --run-for expires).
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import json
import logging
import signal
from dataclasses import replace
from typing import Any, Sequence

from ..cli.bootstrap import create_dispatcher
from ..config import Settings, get_settings
from ..logging_setup import setup_logging
from ..tasks.dispatcher import Dispatcher

logger = logging.getLogger(__name__)


def parse_seed(raw: str) -> tuple[str, Any]:
    """
    Parse "KIND" or "KIND:JSON" into (kind, payload).

    >>> parse_seed('sleep:{"seconds": 2}')
    ('sleep', {'seconds': 2})
    """
    kind, sep, payload_raw = raw.partition(":")
    kind = kind.strip()
    if not kind:
        raise argparse.ArgumentTypeError(f"missing task kind in {raw!r}")
    if not sep or not payload_raw.strip():
        return kind, None
    try:
        return kind, json.loads(payload_raw)
    except json.JSONDecodeError as exc:
        raise argparse.ArgumentTypeError(f"invalid JSON payload for {kind!r}: {exc}") from None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="taskloop",
        description="Run the task dispatcher with the built-in handlers (echo, sleep, fail).",
    )
    parser.add_argument(
        "--enqueue",
        "-e",
        metavar="KIND[:JSON]",
        action="append",
        type=parse_seed,
        default=[],
        help="Task to enqueue at startup (repeatable), e.g. -e 'echo:{\"v\": 1}'",
    )
    parser.add_argument("--instances", type=int, default=1, help="Fan-out count for each seeded task.")
    parser.add_argument("--retries", type=int, default=None, help="Retry budget for each seeded task.")
    parser.add_argument(
        "--recurring-delay",
        type=float,
        default=None,
        metavar="SECONDS",
        help="Make seeded tasks recurring, re-enqueued this long after each success.",
    )
    parser.add_argument("--max-concurrency", type=int, default=None, help="Override TASKLOOP_MAX_CONCURRENCY.")
    parser.add_argument("--health-port", type=int, default=None, help="Override TASKLOOP_HEALTH_PORT.")
    parser.add_argument("--run-for", type=float, default=None, metavar="SECONDS", help="Stop after this long.")
    return parser


def apply_cli_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    overrides: dict[str, Any] = {}
    if args.max_concurrency is not None:
        overrides["max_concurrency"] = max(1, args.max_concurrency)
    if args.health_port is not None:
        overrides["health_port"] = args.health_port
    return replace(settings, **overrides) if overrides else settings


async def seed_tasks(dispatcher: Dispatcher, args: argparse.Namespace) -> list[str]:
    ids: list[str] = []
    for kind, payload in args.enqueue:
        ids += await dispatcher.enqueue_instances(
            kind,
            payload,
            instances=args.instances,
            retries=args.retries,
            recurring=args.recurring_delay is not None,
            recurring_delay=args.recurring_delay or 0.0,
        )
    return ids


async def run(settings: Settings, args: argparse.Namespace) -> None:
    dispatcher = create_dispatcher(settings=settings)
    stop_main = asyncio.Event()

    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        # Some platforms (Windows) do not support loop signal handlers.
        with contextlib.suppress(NotImplementedError, RuntimeError):
            loop.add_signal_handler(signum, stop_main.set)

    await dispatcher.start()
    try:
        seeded = await seed_tasks(dispatcher, args)
        if seeded:
            logger.info("Seeded %d task(s)", len(seeded))

        if args.run_for is not None:
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(stop_main.wait(), timeout=max(0.0, args.run_for))
        else:
            logger.info("Dispatcher running. Press Ctrl+C to stop.")
            await stop_main.wait()
    finally:
        await dispatcher.stop()
        if dispatcher.in_flight_count:
            logger.warning("Exiting with %d task(s) still in flight", dispatcher.in_flight_count)


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = apply_cli_overrides(get_settings(), args)

    level_name = str(settings.log_level).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    setup_logging(log_dir=settings.log_dir, console_level=console_level)

    logger.info("Starting %s...", settings.app_name)
    try:
        asyncio.run(run(settings, args))
    except ValueError as exc:
        logger.error("%s", exc)
        return 2
    logger.info("Bye.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
