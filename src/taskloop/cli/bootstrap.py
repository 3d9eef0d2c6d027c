# src/taskloop/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- builds the queue backend from settings,
- wires the Dispatcher and registers the built-in handlers.
"""

from __future__ import annotations

import logging

from ..config import Settings, get_settings
from ..tasks.builtin_handlers import BUILTIN_HANDLERS
from ..tasks.dispatcher import Dispatcher
from ..tasks.memory_queue import MemoryQueue, RejectPolicy

logger = logging.getLogger(__name__)


def create_queue(settings: Settings) -> MemoryQueue:
    return MemoryQueue(
        reject_policy=RejectPolicy.parse(settings.reject_policy),
        max_rejections=settings.max_rejections,
    )


def create_dispatcher(*, settings: Settings | None = None, register_builtins: bool = True) -> Dispatcher:
    """
    Create a Dispatcher from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    dispatcher = Dispatcher(
        queue=create_queue(settings),
        polling_interval=settings.polling_interval,
        max_concurrency=settings.max_concurrency,
        health_port=settings.health_port,
        health_host=settings.health_host,
        saturated_poll_interval=settings.saturated_poll_interval,
    )

    if register_builtins:
        for kind, handler in BUILTIN_HANDLERS.items():
            dispatcher.register_handler(kind, handler)
        logger.debug("Registered built-in handlers: %s", ", ".join(dispatcher.registry.kinds()))

    return dispatcher
