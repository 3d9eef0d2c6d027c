# src/taskloop/tasks/memory_queue.py

from __future__ import annotations

"""
In-memory queue backend.

FIFO pending sequence + in-flight map. No persistence: a process restart loses
everything, which is fine for local/dev use and for tests.

None of the methods awaits anything internally, so each operation is atomic
with respect to other coroutines on the same event loop.
"""

import logging
from collections import deque
from enum import StrEnum

from .task_models import Task, TaskState

logger = logging.getLogger(__name__)


class RejectPolicy(StrEnum):
    """What MemoryQueue.reject() does with the rejected task."""

    REQUEUE = "requeue"  # back to the tail of the pending queue
    DISCARD = "discard"  # drop it (logged)

    @classmethod
    def parse(cls, raw: str | None) -> RejectPolicy:
        if not raw:
            return cls.REQUEUE
        try:
            return cls(raw.strip().lower())
        except ValueError:
            logger.warning("Unknown reject policy %r; using %s", raw, cls.REQUEUE.value)
            return cls.REQUEUE


class MemoryQueue:
    """
    Reference QueueBackend.

    Rejection is explicit: with RejectPolicy.REQUEUE a rejected task goes back
    to pending (at-least-once at the backend level, on top of the dispatcher's
    own bounded retries). Set max_rejections to discard a task once it has been
    rejected that many times, or use RejectPolicy.DISCARD to never requeue.

    A retry reuses its task id and is enqueued before the original delivery is
    acknowledged, so one id can be in flight twice. Deliveries per id are kept
    in dequeue order and acknowledge/reject settle the oldest one.
    """

    def __init__(
            self,
            *,
            reject_policy: RejectPolicy | str = RejectPolicy.REQUEUE,
            max_rejections: int | None = None,
    ) -> None:
        if max_rejections is not None and max_rejections < 1:
            raise ValueError("max_rejections must be >= 1 (or None for unbounded)")

        self.reject_policy = RejectPolicy(reject_policy)
        self.max_rejections = max_rejections

        self._pending: deque[Task] = deque()
        self._in_flight: dict[str, deque[Task]] = {}
        self._rejections: dict[str, int] = {}

        self.rejected = 0
        self.discarded = 0

    async def enqueue(self, task: Task) -> None:
        self._pending.append(task)

    async def dequeue(self) -> Task | None:
        if not self._pending:
            return None
        task = self._pending.popleft()
        self._in_flight.setdefault(task.id, deque()).append(task)
        return task

    async def acknowledge(self, task_id: str) -> None:
        task = self._pop_in_flight(task_id)
        if task is not None and task_id not in self._in_flight:
            self._rejections.pop(task_id, None)

    async def reject(self, task_id: str, error: BaseException | None = None) -> None:
        task = self._pop_in_flight(task_id)
        if task is None:
            return

        self.rejected += 1
        count = self._rejections.get(task_id, 0) + 1

        if self.reject_policy == RejectPolicy.DISCARD:
            self._discard(task, error, reason="reject policy is discard")
            return

        if self.max_rejections is not None and count >= self.max_rejections:
            self._discard(task, error, reason=f"rejected {count} times")
            return

        self._rejections[task_id] = count
        self._pending.append(task)
        logger.debug("Task %s (%s) rejected %d time(s); requeued", task_id, task.kind, count)

    # ---- Introspection ----

    def pending_count(self) -> int:
        return len(self._pending)

    def in_flight_count(self) -> int:
        return sum(len(d) for d in self._in_flight.values())

    def state_of(self, task_id: str) -> TaskState:
        """
        Current state of a task id.

        Ids the backend no longer tracks (including ones it never saw) report SETTLED.
        """
        if task_id in self._in_flight:
            return TaskState.IN_FLIGHT
        if any(t.id == task_id for t in self._pending):
            return TaskState.QUEUED
        return TaskState.SETTLED

    def _pop_in_flight(self, task_id: str) -> Task | None:
        deliveries = self._in_flight.get(task_id)
        if not deliveries:
            return None
        task = deliveries.popleft()
        if not deliveries:
            del self._in_flight[task_id]
        return task

    def _discard(self, task: Task, error: BaseException | None, *, reason: str) -> None:
        self.discarded += 1
        if task.id not in self._in_flight:
            self._rejections.pop(task.id, None)
        logger.warning("Discarding task %s (%s): %s; last error: %r", task.id, task.kind, reason, error)
