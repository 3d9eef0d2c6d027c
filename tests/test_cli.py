# tests/test_cli.py

from __future__ import annotations

import argparse
import logging

import pytest

from taskloop.cli.bootstrap import create_dispatcher
from taskloop.cli.main import apply_cli_overrides, build_parser, parse_seed, run, seed_tasks
from taskloop.config import Settings
from taskloop.tasks.memory_queue import MemoryQueue, RejectPolicy
from taskloop.tasks.task_models import TaskState


def test_parse_seed() -> None:
    assert parse_seed("echo") == ("echo", None)
    assert parse_seed('sleep:{"seconds": 0.5}') == ("sleep", {"seconds": 0.5})
    assert parse_seed("echo:") == ("echo", None)

    with pytest.raises(argparse.ArgumentTypeError):
        parse_seed(":{}")
    with pytest.raises(argparse.ArgumentTypeError):
        parse_seed("echo:{not json")


def test_parser_collects_seeds_and_overrides(settings: Settings) -> None:
    args = build_parser().parse_args(
        ["-e", 'echo:{"v": 1}', "-e", "fail", "--retries", "2", "--max-concurrency", "8", "--health-port", "9000"]
    )

    assert args.enqueue == [("echo", {"v": 1}), ("fail", None)]
    assert args.retries == 2

    s = apply_cli_overrides(settings, args)
    assert s.max_concurrency == 8
    assert s.health_port == 9000
    assert s.polling_interval_ms == settings.polling_interval_ms


def test_create_dispatcher_wires_settings(settings: Settings) -> None:
    d = create_dispatcher(settings=settings)

    assert d.registry.kinds() == ["echo", "fail", "sleep"]
    assert d.max_concurrency == 2
    assert d.polling_interval == 0.01
    assert isinstance(d.queue, MemoryQueue)
    assert d.queue.reject_policy is RejectPolicy.DISCARD

    bare = create_dispatcher(settings=settings, register_builtins=False)
    assert len(bare.registry) == 0


@pytest.mark.asyncio
async def test_seed_tasks_fans_out_every_seed(settings: Settings) -> None:
    d = create_dispatcher(settings=settings)
    args = build_parser().parse_args(["-e", "echo", "-e", 'sleep:{"seconds": 0}', "--instances", "2"])

    ids = await seed_tasks(d, args)

    assert len(ids) == 4
    assert all(d.queue.state_of(i) == TaskState.QUEUED for i in ids)


@pytest.mark.asyncio
async def test_run_processes_seeded_tasks_and_exits(settings: Settings, caplog: pytest.LogCaptureFixture) -> None:
    args = build_parser().parse_args(
        ["-e", 'echo:{"v": 1}', "-e", 'sleep:{"seconds": 0.01}', "-e", "fail", "--retries", "1", "--run-for", "0.3"]
    )

    with caplog.at_level(logging.INFO):
        await run(settings, args)

    assert "[echo]" in caplog.text
    assert "[sleep]" in caplog.text and "done" in caplog.text
    assert "Retrying task" in caplog.text
    assert "Discarding task" in caplog.text
