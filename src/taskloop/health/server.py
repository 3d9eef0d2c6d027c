# src/taskloop/health/server.py

from __future__ import annotations

"""
Health reporter.

A tiny FastAPI app served by uvicorn inside the dispatcher's event loop:
- GET /health -> 200 {"status": "ok", "running": ..., "in_flight_count": ...}
- anything else (other paths, other methods on /health) -> 404

Read-only, no auth, no docs routes.
"""

import asyncio
import contextlib
import logging
import time
from collections.abc import Iterator

import uvicorn
from fastapi import FastAPI, Response

from ..core.ports import Logger
from ..core.state import StatusProvider

STARTUP_TIMEOUT = 5.0
_ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


def create_health_app(status_provider: StatusProvider) -> FastAPI:
    app = FastAPI(docs_url=None, redoc_url=None, openapi_url=None)

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok", **status_provider().to_dict()}

    # Catches other paths and also other methods on /health (which would be a 405 otherwise).
    @app.api_route("/{path:path}", methods=_ALL_METHODS, include_in_schema=False)
    async def not_found(path: str) -> Response:
        return Response(status_code=404)

    return app


class _EmbeddedServer(uvicorn.Server):
    """uvicorn.Server that leaves process signal handling to the host application."""

    @contextlib.contextmanager
    def capture_signals(self) -> Iterator[None]:
        yield

    def install_signal_handlers(self) -> None:
        pass


class HealthServer:
    def __init__(
            self,
            status_provider: StatusProvider,
            *,
            host: str = "127.0.0.1",
            port: int,
            logger: Logger | None = None,
    ) -> None:
        self.host = host
        self.port = int(port)
        self.logger = logger or logging.getLogger(__name__)
        self.app = create_health_app(status_provider)

        self._server: _EmbeddedServer | None = None
        self._task: asyncio.Task[None] | None = None

    @property
    def serving(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Start serving and wait until the port is bound (or binding failed)."""
        if self.serving:
            return
        config = uvicorn.Config(
            self.app,
            host=self.host,
            port=self.port,
            log_level="warning",
            access_log=False,
            lifespan="off",
        )
        server = _EmbeddedServer(config)
        self._server = server
        self._task = asyncio.create_task(self._serve(server), name="taskloop-health")

        deadline = time.monotonic() + STARTUP_TIMEOUT
        while not server.started and not self._task.done() and time.monotonic() < deadline:
            await asyncio.sleep(0.01)

        if server.started:
            self.logger.info("Health check server listening on %s:%d", self.host, self.port)
        elif not self._task.done():
            self.logger.warning("Health server on %s:%d is still starting", self.host, self.port)

    async def stop(self) -> None:
        if self._server is None or self._task is None:
            return
        self._server.should_exit = True
        try:
            await self._task
        finally:
            self._server = None
            self._task = None

    async def _serve(self, server: _EmbeddedServer) -> None:
        try:
            await server.serve()
        except SystemExit:
            # uvicorn exits the process when it cannot bind; keep the dispatcher alive.
            self.logger.error("Health server failed to start on %s:%d", self.host, self.port)
        except Exception:
            self.logger.exception("Health server error")
