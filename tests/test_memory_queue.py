# tests/test_memory_queue.py

from __future__ import annotations

from dataclasses import replace

import pytest

from taskloop.core.ports import QueueBackend
from taskloop.tasks.memory_queue import MemoryQueue, RejectPolicy
from taskloop.tasks.task_models import Task, TaskState


def test_memory_queue_satisfies_backend_protocol() -> None:
    assert isinstance(MemoryQueue(), QueueBackend)


@pytest.mark.asyncio
async def test_dequeue_is_fifo_and_empty_returns_none() -> None:
    q = MemoryQueue()
    first, second = Task(kind="a"), Task(kind="b")
    await q.enqueue(first)
    await q.enqueue(second)

    assert await q.dequeue() is first
    assert await q.dequeue() is second
    assert await q.dequeue() is None
    assert q.in_flight_count() == 2
    assert q.pending_count() == 0


@pytest.mark.asyncio
async def test_acknowledge_settles_and_is_idempotent() -> None:
    q = MemoryQueue()
    task = Task(kind="a")
    await q.enqueue(task)
    assert q.state_of(task.id) == TaskState.QUEUED

    await q.dequeue()
    assert q.state_of(task.id) == TaskState.IN_FLIGHT

    await q.acknowledge(task.id)
    assert q.state_of(task.id) == TaskState.SETTLED

    await q.acknowledge(task.id)
    await q.acknowledge("never-seen")
    assert q.in_flight_count() == 0
    assert q.pending_count() == 0


@pytest.mark.asyncio
async def test_reject_unknown_or_settled_is_noop() -> None:
    q = MemoryQueue()
    task = Task(kind="a")
    await q.enqueue(task)
    await q.dequeue()
    await q.acknowledge(task.id)

    await q.reject(task.id, RuntimeError("late"))
    await q.reject("never-seen")

    assert q.pending_count() == 0
    assert q.rejected == 0


@pytest.mark.asyncio
async def test_reject_requeues_by_default() -> None:
    q = MemoryQueue()
    task = Task(kind="a")
    other = Task(kind="b")
    await q.enqueue(task)
    await q.enqueue(other)
    await q.dequeue()

    await q.reject(task.id, RuntimeError("boom"))

    assert q.state_of(task.id) == TaskState.QUEUED
    # Back at the tail, behind the task that was already waiting.
    assert await q.dequeue() is other
    assert await q.dequeue() is task


@pytest.mark.asyncio
async def test_reject_with_discard_policy_drops_task() -> None:
    q = MemoryQueue(reject_policy=RejectPolicy.DISCARD)
    task = Task(kind="a")
    await q.enqueue(task)
    await q.dequeue()

    await q.reject(task.id, RuntimeError("boom"))

    assert q.state_of(task.id) == TaskState.SETTLED
    assert q.pending_count() == 0
    assert q.discarded == 1


@pytest.mark.asyncio
async def test_max_rejections_bounds_backend_requeue() -> None:
    q = MemoryQueue(max_rejections=3)
    task = Task(kind="a")
    await q.enqueue(task)

    for _ in range(2):
        assert await q.dequeue() is task
        await q.reject(task.id)
        assert q.state_of(task.id) == TaskState.QUEUED

    assert await q.dequeue() is task
    await q.reject(task.id)

    assert q.state_of(task.id) == TaskState.SETTLED
    assert q.rejected == 3
    assert q.discarded == 1


def test_max_rejections_must_be_positive() -> None:
    with pytest.raises(ValueError):
        MemoryQueue(max_rejections=0)


@pytest.mark.asyncio
async def test_overlapping_deliveries_of_one_id_settle_oldest_first() -> None:
    q = MemoryQueue()
    original = Task(kind="a", retries_remaining=1)
    await q.enqueue(original)
    assert await q.dequeue() is original

    # A retry reuses the id and may be dequeued before the original is acknowledged.
    retry = replace(original, retries_remaining=0)
    await q.enqueue(retry)
    assert await q.dequeue() is retry
    assert q.in_flight_count() == 2

    await q.acknowledge(original.id)
    assert q.in_flight_count() == 1
    assert q.state_of(original.id) == TaskState.IN_FLIGHT

    await q.reject(original.id)
    assert q.pending_count() == 1
    assert (await q.dequeue()).retries_remaining == 0


def test_reject_policy_parse() -> None:
    assert RejectPolicy.parse("DISCARD") is RejectPolicy.DISCARD
    assert RejectPolicy.parse(" requeue ") is RejectPolicy.REQUEUE
    assert RejectPolicy.parse(None) is RejectPolicy.REQUEUE
    assert RejectPolicy.parse("dead-letter") is RejectPolicy.REQUEUE
