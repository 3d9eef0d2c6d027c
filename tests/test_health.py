# tests/test_health.py

from __future__ import annotations

import logging
import socket

import httpx
import pytest
from starlette.testclient import TestClient

from taskloop.core.state import DispatcherStatus
from taskloop.health.server import HealthServer, create_health_app
from taskloop.tasks.dispatcher import Dispatcher



def _free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


def test_health_returns_status_snapshot() -> None:
    app = create_health_app(lambda: DispatcherStatus(running=True, in_flight_count=3))

    with TestClient(app) as client:
        resp = client.get("/health")

    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "running": True, "in_flight_count": 3}


def test_health_reads_live_dispatcher_state() -> None:
    d = Dispatcher()
    app = create_health_app(d.status)

    with TestClient(app) as client:
        assert client.get("/health").json()["running"] is False
        d._in_flight = 1
        assert client.get("/health").json()["in_flight_count"] == 1


@pytest.mark.parametrize(
    ("method", "path"),
    [
        ("GET", "/"),
        ("GET", "/status"),
        ("GET", "/health/live"),
        ("POST", "/health"),
        ("DELETE", "/health"),
        ("GET", "/docs"),
        ("GET", "/openapi.json"),
    ],
)
def test_everything_else_is_404(method: str, path: str) -> None:
    app = create_health_app(lambda: DispatcherStatus(running=False, in_flight_count=0))

    with TestClient(app) as client:
        resp = client.request(method, path)

    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_dispatcher_serves_health_while_running(caplog: pytest.LogCaptureFixture) -> None:
    port = _free_port()
    d = Dispatcher(polling_interval=0.01, health_port=port)

    with caplog.at_level(logging.INFO):
        await d.start()
    try:
        server = d._health
        # start() returns once the port is bound.
        assert server is not None and server._server is not None and server._server.started
        assert "Health check server listening" in caplog.text

        async with httpx.AsyncClient() as client:
            resp = await client.get(f"http://127.0.0.1:{port}/health")
    finally:
        await d.stop()

    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "running": True, "in_flight_count": 0}
    assert d._health is None


@pytest.mark.asyncio
async def test_bind_failure_is_logged_not_raised(caplog: pytest.LogCaptureFixture) -> None:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as blocker:
        blocker.bind(("127.0.0.1", 0))
        blocker.listen()
        port = blocker.getsockname()[1]

        server = HealthServer(lambda: DispatcherStatus(running=True, in_flight_count=0), port=port)
        with caplog.at_level(logging.INFO):
            await server.start()
        assert not server.serving
        await server.stop()

    assert "Health server failed to start" in caplog.text
    assert "listening" not in caplog.text
