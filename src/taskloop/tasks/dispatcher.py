# src/taskloop/tasks/dispatcher.py

from __future__ import annotations

"""
Dispatcher: registration + enqueue API + the dispatch loop.

The loop keeps an in-flight counter and, while running:
- below max_concurrency: dequeue one task and launch its execution without
  awaiting it, then poll again right away;
- queue empty or dequeue failed: wait polling_interval;
- at max_concurrency: wait saturated_poll_interval and re-check.

Known limitations:
- stop() only stops accepting new work. Executions already launched keep
  running and are neither cancelled nor awaited.
- There is no handler timeout; a hung handler holds its slot forever.
"""

import asyncio
import contextlib
import logging
import time
from typing import TYPE_CHECKING, Any

from ..core.ports import Logger, QueueBackend, TaskHandler
from ..core.state import DispatcherStatus
from .memory_queue import MemoryQueue
from .task_executor import TaskExecutor
from .task_models import Task
from .task_registry import TaskRegistry

if TYPE_CHECKING:
    from ..health.server import HealthServer

DEFAULT_POLLING_INTERVAL = 1.0
DEFAULT_SATURATED_POLL_INTERVAL = 0.1


class Dispatcher:
    def __init__(
            self,
            *,
            queue: QueueBackend | None = None,
            polling_interval: float = DEFAULT_POLLING_INTERVAL,
            max_concurrency: int = 1,
            health_port: int | None = None,
            health_host: str = "127.0.0.1",
            saturated_poll_interval: float = DEFAULT_SATURATED_POLL_INTERVAL,
            logger: Logger | None = None,
    ) -> None:
        if polling_interval <= 0:
            raise ValueError("polling_interval must be > 0")
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")
        if saturated_poll_interval <= 0:
            raise ValueError("saturated_poll_interval must be > 0")

        self.queue: QueueBackend = queue if queue is not None else MemoryQueue()
        self.polling_interval = float(polling_interval)
        self.max_concurrency = int(max_concurrency)
        # A freed slot should never wait longer than an empty-queue poll.
        self.saturated_poll_interval = min(float(saturated_poll_interval), self.polling_interval)
        self.health_port = health_port
        self.health_host = health_host
        self.logger: Logger = logger or logging.getLogger(__name__)

        self.registry = TaskRegistry()
        self.executor = TaskExecutor(
            self.queue,
            self.registry,
            schedule_recurring=self._schedule_recurring,
            logger=self.logger,
        )

        self._running = False
        self._in_flight = 0
        self._wake = asyncio.Event()
        self._lifecycle_lock = asyncio.Lock()
        self._loop_task: asyncio.Task[None] | None = None
        self._background: set[asyncio.Task[Any]] = set()
        self._health: HealthServer | None = None

    # ---- Registration / enqueue ----

    def register_handler(self, kind: str, handler: TaskHandler) -> None:
        self.registry.register(kind, handler)

    async def enqueue(
            self,
            kind: str,
            payload: Any = None,
            *,
            instances: int = 1,
            recurring: bool = False,
            recurring_delay: float = 0.0,
            retries: int | None = None,
            instance_index: int | None = None,
    ) -> str:
        """Enqueue a task (or N fan-out instances). Returns the id of the first instance."""
        ids = await self.enqueue_instances(
            kind,
            payload,
            instances=instances,
            recurring=recurring,
            recurring_delay=recurring_delay,
            retries=retries,
            instance_index=instance_index,
        )
        return ids[0]

    async def enqueue_instances(
            self,
            kind: str,
            payload: Any = None,
            *,
            instances: int = 1,
            recurring: bool = False,
            recurring_delay: float = 0.0,
            retries: int | None = None,
            instance_index: int | None = None,
    ) -> list[str]:
        """
        Enqueue `instances` independent copies of a task and return all their ids.

        Each copy gets its own id and instance_index 0..N-1; instance_index may
        only be set explicitly for a single instance. Copies are enqueued one by
        one: if the backend fails halfway, earlier copies stay queued and the
        error propagates.
        """
        if not isinstance(kind, str) or not kind.strip():
            raise ValueError("kind must be a non-empty string")
        if isinstance(instances, bool) or not isinstance(instances, int) or instances < 1:
            raise ValueError(f"instances must be a positive integer, got {instances!r}")
        if retries is not None and (isinstance(retries, bool) or not isinstance(retries, int) or retries < 0):
            raise ValueError(f"retries must be a non-negative integer, got {retries!r}")
        if recurring_delay < 0:
            raise ValueError(f"recurring_delay must be >= 0, got {recurring_delay!r}")
        if instance_index is not None and instances > 1:
            raise ValueError("instance_index can only be set when instances == 1")

        now_ts = time.time()
        ids: list[str] = []
        for i in range(instances):
            task = Task(
                kind=kind,
                payload=payload,
                timestamp=now_ts,
                retries_remaining=retries,
                recurring=bool(recurring),
                recurring_delay=float(recurring_delay),
                instance_index=instance_index if instance_index is not None else i,
            )
            await self.queue.enqueue(task)
            ids.append(task.id)

        self.logger.info("Enqueued %d x %s: %s", instances, kind, ", ".join(ids))
        return ids

    # ---- Lifecycle ----

    @property
    def running(self) -> bool:
        return self._running

    @property
    def in_flight_count(self) -> int:
        return self._in_flight

    def status(self) -> DispatcherStatus:
        return DispatcherStatus(running=self._running, in_flight_count=self._in_flight)

    async def start(self) -> None:
        """Start the dispatch loop (and the health server if a port is configured). Idempotent."""
        async with self._lifecycle_lock:
            if self._running:
                return

            # A loop stopped a moment ago may still be finishing its iteration.
            if self._loop_task is not None and not self._loop_task.done():
                await self._loop_task

            self._running = True
            self._wake.clear()
            self.logger.info(
                "Dispatcher started (max_concurrency=%d, polling_interval=%.3fs)",
                self.max_concurrency,
                self.polling_interval,
            )

            if self.health_port is not None:
                from ..health.server import HealthServer

                self._health = HealthServer(
                    self.status, host=self.health_host, port=self.health_port, logger=self.logger
                )
                await self._health.start()

            self._loop_task = asyncio.create_task(self._loop(), name="taskloop-dispatch")

    async def stop(self) -> None:
        """
        Stop accepting new work. Idempotent.

        In-flight executions keep running; this does not drain them.
        """
        async with self._lifecycle_lock:
            if not self._running:
                return

            self._running = False
            self._wake.set()
            self.logger.info("Dispatcher stopping (%d task(s) still in flight)", self._in_flight)

            if self._health is not None:
                await self._health.stop()
                self._health = None

    # ---- Loop ----

    async def _loop(self) -> None:
        while self._running:
            if self._in_flight >= self.max_concurrency:
                await self._pause(self.saturated_poll_interval)
                continue

            try:
                task = await self.queue.dequeue()
            except Exception:
                self.logger.exception("Error in dispatch loop (dequeue failed)")
                await self._pause(self.polling_interval)
                continue

            if task is None:
                await self._pause(self.polling_interval)
                continue

            self._launch(task)
            # Let the new execution start before polling again.
            await asyncio.sleep(0)

    async def _pause(self, seconds: float) -> None:
        with contextlib.suppress(asyncio.TimeoutError):
            await asyncio.wait_for(self._wake.wait(), timeout=seconds)

    def _launch(self, task: Task) -> None:
        # The slot is taken here, not inside the execution: create_task() does not
        # run the coroutine yet and the loop would otherwise over-dequeue.
        self._in_flight += 1
        try:
            execution = asyncio.create_task(self.executor.execute(task), name=f"taskloop-task-{task.id}")
        except BaseException:
            self._in_flight -= 1
            raise
        # Released from the done callback: it also fires for an execution
        # cancelled before its first step.
        execution.add_done_callback(self._release_slot)
        self._track(execution)

    def _release_slot(self, _execution: asyncio.Task[Any]) -> None:
        self._in_flight -= 1

    # ---- Recurring ----

    async def _schedule_recurring(self, task: Task) -> None:
        nxt = task.next_occurrence()
        if task.recurring_delay <= 0:
            await self.queue.enqueue(nxt)
            self.logger.info("Recurring task %s re-enqueued as %s", task.id, nxt.id)
            return

        self._track(
            asyncio.create_task(self._enqueue_later(nxt, task.recurring_delay), name=f"taskloop-recur-{nxt.id}")
        )

    async def _enqueue_later(self, task: Task, delay: float) -> None:
        await asyncio.sleep(delay)
        try:
            await self.queue.enqueue(task)
        except Exception:
            self.logger.exception("Failed to automatically requeue recurring task %s", task.kind)
            return
        self.logger.info("Recurring task %s (%s) enqueued after %.3fs", task.id, task.kind, delay)

    # ---- Background tasks ----

    def _track(self, t: asyncio.Task[Any]) -> None:
        self._background.add(t)
        t.add_done_callback(self._on_background_done)

    def _on_background_done(self, t: asyncio.Task[Any]) -> None:
        self._background.discard(t)
        if t.cancelled():
            self.logger.warning("Background task %s was cancelled", t.get_name())
            return
        exc = t.exception()
        if exc is not None:
            self.logger.error("Background task %s crashed: %r", t.get_name(), exc, exc_info=exc)
