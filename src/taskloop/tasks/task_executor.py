# src/taskloop/tasks/task_executor.py

from __future__ import annotations

"""
Per-task execution.

Runs the handler for one dequeued task and settles it:
- success            -> acknowledge (+ schedule the next run of a recurring task)
- failure, retries>0 -> enqueue a retry copy, THEN acknowledge the original
- failure otherwise  -> reject

The retry copy is enqueued before the original is acknowledged: a crash in
between can duplicate the task but never lose it.

Nothing raised here reaches the dispatch loop; every failure is logged.
"""

import asyncio
import inspect
import logging
from typing import Awaitable, Callable

from ..core.ports import Logger, QueueBackend
from .task_models import Task
from .task_registry import TaskRegistry

ScheduleRecurring = Callable[[Task], Awaitable[None]]


class TaskExecutor:
    def __init__(
            self,
            queue: QueueBackend,
            registry: TaskRegistry,
            *,
            schedule_recurring: ScheduleRecurring,
            logger: Logger | None = None,
    ) -> None:
        self.queue = queue
        self.registry = registry
        self.schedule_recurring = schedule_recurring
        self.logger = logger or logging.getLogger(__name__)

    async def execute(self, task: Task) -> None:
        try:
            await self._invoke(task)
        except asyncio.CancelledError as exc:
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                # The execution itself is being cancelled.
                raise
            # Cancellation surfaced by the handler's own awaited work: a plain failure.
            self.logger.error("Task %s (%s) failed: handler work was cancelled", task.id, task.kind)
            await self._handle_failure(task, exc)
            return
        except Exception as exc:
            self.logger.error("Task %s (%s) failed: %r", task.id, task.kind, exc, exc_info=exc)
            await self._handle_failure(task, exc)
            return

        await self._handle_success(task)

    async def _invoke(self, task: Task) -> None:
        handler = self.registry.resolve(task.kind)
        result = handler(task)
        if inspect.isawaitable(result):
            await result

    async def _handle_success(self, task: Task) -> None:
        try:
            await self.queue.acknowledge(task.id)
        except Exception:
            self.logger.exception("acknowledge failed task_id=%s", task.id)

        if not task.recurring:
            return

        # Already acknowledged: a failure here must not touch the original's outcome.
        try:
            await self.schedule_recurring(task)
        except Exception:
            self.logger.exception("Failed to reschedule recurring task %s (%s)", task.id, task.kind)

    async def _handle_failure(self, task: Task, exc: BaseException) -> None:
        if task.can_retry:
            retry = task.for_retry()
            self.logger.info(
                "Retrying task %s (%s). Attempts left: %s", task.id, task.kind, retry.retries_remaining
            )
            try:
                await self.queue.enqueue(retry)
            except Exception:
                self.logger.exception("Failed to requeue task %s for retry; rejecting", task.id)
            else:
                try:
                    await self.queue.acknowledge(task.id)
                except Exception:
                    self.logger.exception("acknowledge after retry enqueue failed task_id=%s", task.id)
                return

        try:
            await self.queue.reject(task.id, exc)
        except Exception:
            self.logger.exception("reject failed task_id=%s", task.id)
