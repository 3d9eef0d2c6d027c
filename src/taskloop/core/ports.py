# src/taskloop/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the dispatcher.

The dispatcher depends on Protocols instead of concrete implementations.
This keeps queue backends and loggers swappable and makes testing easier.
"""

from typing import TYPE_CHECKING, Any, Awaitable, Callable, Protocol, runtime_checkable

if TYPE_CHECKING:
    from ..tasks.task_models import Task

TaskHandler = Callable[["Task"], Awaitable[Any] | Any]
# Coroutine functions are the normal case; plain callables are accepted too.


@runtime_checkable
class QueueBackend(Protocol):
    """
    Storage backend contract (memory, database, broker...).

    - enqueue: append to the pending set. Errors must propagate.
    - dequeue: return one eligible task or None. Never waits for work;
      moving a task from pending to in-flight is atomic.
    - acknowledge: settle successfully. Unknown/already settled ids are a no-op.
    - reject: backend-defined failure disposition. Unknown ids are a no-op.
    """

    async def enqueue(self, task: Task) -> None: ...

    async def dequeue(self) -> Task | None: ...

    async def acknowledge(self, task_id: str) -> None: ...

    async def reject(self, task_id: str, error: BaseException | None = None) -> None: ...


class Logger(Protocol):
    """Anything shaped like logging.Logger (the default)."""

    def info(self, msg: str, *args: Any, **kwargs: Any) -> None: ...
    def warning(self, msg: str, *args: Any, **kwargs: Any) -> None: ...
    def error(self, msg: str, *args: Any, **kwargs: Any) -> None: ...
    def exception(self, msg: str, *args: Any, **kwargs: Any) -> None: ...
