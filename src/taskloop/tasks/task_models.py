# src/taskloop/tasks/task_models.py

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field, replace
from enum import StrEnum
from typing import Any


def new_task_id() -> str:
    return uuid.uuid4().hex


class TaskState(StrEnum):
    """
    Backend-visible task state.

    A task is in exactly one of these at a time:
    - queued: waiting in the pending set
    - in_flight: handed out by dequeue(), not yet acknowledged/rejected
    - settled: acknowledged or rejected for good, no longer tracked
    """

    QUEUED = "queued"
    IN_FLIGHT = "in_flight"
    SETTLED = "settled"


@dataclass(slots=True, frozen=True)
class Task:
    """
    One unit of work.

    Records are never mutated: a retry is a copy with the same id and a smaller
    retries_remaining, a recurring re-run is a fresh record with a new id.
    """

    kind: str
    payload: Any = None
    id: str = field(default_factory=new_task_id)
    timestamp: float = field(default_factory=time.time)

    retries_remaining: int | None = None
    recurring: bool = False
    recurring_delay: float = 0.0
    instance_index: int = 0

    @property
    def can_retry(self) -> bool:
        return bool(self.retries_remaining and self.retries_remaining > 0)

    def for_retry(self) -> Task:
        """Copy with the same id and one retry fewer."""
        remaining = max(0, (self.retries_remaining or 0) - 1)
        return replace(self, retries_remaining=remaining)

    def next_occurrence(self) -> Task:
        """
        Fresh instance of a recurring task.

        New id and timestamp; kind, payload, instance_index and the recurring
        options are carried over. The retry budget is not.
        """
        return Task(
            kind=self.kind,
            payload=self.payload,
            recurring=True,
            recurring_delay=self.recurring_delay,
            instance_index=self.instance_index,
        )
