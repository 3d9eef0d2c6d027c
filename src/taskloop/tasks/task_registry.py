# src/taskloop/tasks/task_registry.py

from __future__ import annotations

import logging

from ..core.ports import TaskHandler

logger = logging.getLogger(__name__)


class HandlerNotFoundError(LookupError):
    """No handler is registered for a task kind."""

    def __init__(self, kind: str) -> None:
        super().__init__(f"No handler registered for task kind: {kind}")
        self.kind = kind


class TaskRegistry:
    """Task kind -> handler mapping. The last registration for a kind wins."""

    def __init__(self) -> None:
        self._handlers: dict[str, TaskHandler] = {}

    def register(self, kind: str, handler: TaskHandler) -> None:
        key = (kind or "").strip()
        if not key:
            raise ValueError("Task kind must be a non-empty string")
        if key != kind:
            raise ValueError(f"Task kind must not have surrounding whitespace: {kind!r}")
        if not callable(handler):
            raise TypeError(f"Handler for {kind!r} is not callable")

        if kind in self._handlers:
            logger.info("Replacing handler for task kind %r", kind)
        self._handlers[kind] = handler

    def unregister(self, kind: str) -> None:
        self._handlers.pop(kind, None)

    def get(self, kind: str) -> TaskHandler | None:
        return self._handlers.get(kind)

    def resolve(self, kind: str) -> TaskHandler:
        handler = self._handlers.get(kind)
        if handler is None:
            raise HandlerNotFoundError(kind)
        return handler

    def kinds(self) -> list[str]:
        return sorted(self._handlers)

    def __contains__(self, kind: object) -> bool:
        return kind in self._handlers

    def __len__(self) -> int:
        return len(self._handlers)
