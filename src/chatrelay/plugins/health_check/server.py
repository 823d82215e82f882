"""
HTTP health check server

Serves the keepalive status of game sessions so an orchestrator can probe
each account: ``GET /health`` and ``GET /status/<name>``.
"""

import asyncio
import logging
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request, Response

from ...core.logging import get_logger
from .monitor import KeepaliveMonitor


ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


def create_app(monitor: KeepaliveMonitor) -> FastAPI:
    """Build the FastAPI app answering every path from the monitor"""
    app = FastAPI(title="chatrelay health check", docs_url=None, redoc_url=None, openapi_url=None)

    @app.api_route("/{path:path}", methods=ALL_METHODS)
    async def health_status(request: Request, path: str) -> Response:
        return Response(status_code=monitor.status_for_request(request.method, request.url.path))

    return app


class HealthCheckServer:
    """uvicorn server running the health check app as an asyncio task"""

    def __init__(self, monitor: KeepaliveMonitor, host: str = "0.0.0.0", port: int = 8080,
                 logger: Optional[logging.Logger] = None):
        self.monitor = monitor
        self.host = host
        self.port = port
        self.app = create_app(monitor)
        self.logger = logger or get_logger('health_check')

        self.server: Optional[uvicorn.Server] = None
        self.server_task: Optional[asyncio.Task] = None

    async def start(self) -> None:
        config = uvicorn.Config(
            app=self.app,
            host=self.host,
            port=self.port,
            log_level="warning",
            access_log=False,
        )
        self.server = uvicorn.Server(config)
        self.server_task = asyncio.create_task(self.server.serve(), name="health-check")
        self.logger.info(f"Health check listening on http://{self.host}:{self.port}")

    async def stop(self) -> None:
        if self.server:
            self.server.should_exit = True

        if self.server_task:
            try:
                await asyncio.wait_for(self.server_task, timeout=5)
            except asyncio.TimeoutError:
                self.server_task.cancel()
                try:
                    await self.server_task
                except asyncio.CancelledError:
                    pass
            self.server_task = None

        self.logger.info("Health check stopped")
