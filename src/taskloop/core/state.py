# src/taskloop/core/state.py

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Callable


@dataclass(slots=True, frozen=True)
class DispatcherStatus:
    """Read-only snapshot handed to the health reporter."""

    running: bool
    in_flight_count: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


StatusProvider = Callable[[], DispatcherStatus]
