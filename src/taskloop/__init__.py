"""
taskloop: single-process async task dispatcher.

Register handlers per task kind, enqueue tasks, and let a bounded-concurrency
loop pull them from a pluggable queue backend.
"""

from .core.ports import QueueBackend, TaskHandler
from .core.state import DispatcherStatus
from .tasks.dispatcher import Dispatcher
from .tasks.memory_queue import MemoryQueue, RejectPolicy
from .tasks.task_models import Task, TaskState
from .tasks.task_registry import HandlerNotFoundError, TaskRegistry

__all__ = [
    "Dispatcher",
    "DispatcherStatus",
    "HandlerNotFoundError",
    "MemoryQueue",
    "QueueBackend",
    "RejectPolicy",
    "Task",
    "TaskHandler",
    "TaskRegistry",
    "TaskState",
]
