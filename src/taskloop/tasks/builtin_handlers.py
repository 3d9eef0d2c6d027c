# src/taskloop/tasks/builtin_handlers.py

from __future__ import annotations

"""Small handlers registered by the CLI for demos and smoke runs."""

import asyncio
import logging

from .task_models import Task

logger = logging.getLogger(__name__)


async def echo(task: Task) -> None:
    logger.info("[echo] %s #%d payload=%r", task.id, task.instance_index, task.payload)


async def sleep(task: Task) -> None:
    """Await payload["seconds"] (default 1.0) to simulate slow I/O."""
    seconds = 1.0
    if isinstance(task.payload, dict):
        try:
            seconds = float(task.payload.get("seconds", seconds))
        except (TypeError, ValueError):
            raise ValueError(f"payload.seconds is not a number: {task.payload.get('seconds')!r}") from None
    logger.info("[sleep] %s #%d sleeping %.2fs", task.id, task.instance_index, seconds)
    await asyncio.sleep(max(0.0, seconds))
    logger.info("[sleep] %s #%d done", task.id, task.instance_index)


async def fail(task: Task) -> None:
    raise RuntimeError(f"task {task.id} failed on purpose (retries left: {task.retries_remaining})")


BUILTIN_HANDLERS = {
    "echo": echo,
    "sleep": sleep,
    "fail": fail,
}
