# tests/conftest.py

from __future__ import annotations

from pathlib import Path

import pytest

from taskloop.config import Settings

from .fakes import RecordingQueue


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    """
    Settings built directly, not from the environment.

    Short intervals keep the dispatch loop tests fast and deterministic.
    """
    return Settings(
        app_name="taskloop-test",
        log_level="DEBUG",
        log_dir=tmp_path / "logs",
        polling_interval_ms=10,
        saturated_poll_ms=5,
        max_concurrency=2,
        health_port=None,
        health_host="127.0.0.1",
        reject_policy="discard",
        max_rejections=None,
    )


@pytest.fixture()
def queue() -> RecordingQueue:
    # Discard on reject so a terminally failed task does not loop forever in tests.
    return RecordingQueue(reject_policy="discard")
