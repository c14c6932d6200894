"""FastAPI application serving the live-reload WebSocket channel."""

from __future__ import annotations

import asyncio
import threading
import time
from typing import Any, Dict, Literal, Optional, Set

import uvicorn
from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from pydantic import BaseModel, ValidationError

from ..logging import get_logger

logger = get_logger("livereload")


class LiveReloadMessage(BaseModel):
    type: Literal["reload", "ping", "pong"]
    data: Optional[Dict[str, Any]] = None


class HealthResponse(BaseModel):
    status: str
    clients: int


class LiveReloadHub:
    """Tracks connected clients and fans messages out to them.

    Coroutines run on the server's event loop. :meth:`broadcast_reload` and
    :meth:`close_all_threadsafe` may be called from any other thread.
    """

    def __init__(self) -> None:
        self._clients: Set[WebSocket] = set()
        self._lock = threading.Lock()
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def client_count(self) -> int:
        with self._lock:
            return len(self._clients)

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        with self._lock:
            self._loop = asyncio.get_running_loop()
            self._clients.add(websocket)
        logger.debug("Live reload client connected (%d total)", self.client_count)

    def disconnect(self, websocket: WebSocket) -> None:
        with self._lock:
            self._clients.discard(websocket)

    async def handle(self, websocket: WebSocket, raw: str) -> None:
        try:
            message = LiveReloadMessage.model_validate_json(raw)
        except ValidationError as exc:
            logger.debug("Ignoring invalid live reload message %r: %s", raw, exc.errors()[0]["msg"])
            return
        if message.type == "ping":
            await self._send(websocket, LiveReloadMessage(type="pong"))

    async def broadcast(self, message: LiveReloadMessage) -> int:
        with self._lock:
            clients = list(self._clients)
        delivered = 0
        for client in clients:
            if await self._send(client, message):
                delivered += 1
        return delivered

    async def close_all(self) -> None:
        with self._lock:
            clients = list(self._clients)
            self._clients.clear()
        for client in clients:
            try:
                await client.close()
            except RuntimeError:
                # Already closed by the peer.
                continue

    def broadcast_reload(self, timeout: float = 2.0) -> int:
        """Send ``{"type": "reload"}`` to every client; returns the number reached."""
        loop = self._loop
        if loop is None or loop.is_closed() or not self.client_count:
            return 0
        future = asyncio.run_coroutine_threadsafe(self.broadcast(LiveReloadMessage(type="reload")), loop)
        return future.result(timeout)

    def close_all_threadsafe(self, timeout: float = 2.0) -> None:
        loop = self._loop
        if loop is None or loop.is_closed() or not loop.is_running():
            return
        asyncio.run_coroutine_threadsafe(self.close_all(), loop).result(timeout)

    async def _send(self, websocket: WebSocket, message: LiveReloadMessage) -> bool:
        try:
            await websocket.send_json(message.model_dump(exclude_none=True))
        except (WebSocketDisconnect, RuntimeError) as exc:
            logger.debug("Dropping live reload client: %s", exc)
            self.disconnect(websocket)
            return False
        return True


def create_app(hub: LiveReloadHub | None = None) -> FastAPI:
    """Create the FastAPI application exposing the live-reload channel."""
    hub = hub or LiveReloadHub()
    app = FastAPI(title="staticrender live reload", version="1.0.0")
    app.state.hub = hub

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(status="ok", clients=hub.client_count)

    @app.websocket("/")
    async def live_reload(websocket: WebSocket) -> None:
        await hub.connect(websocket)
        try:
            while True:
                raw = await websocket.receive_text()
                await hub.handle(websocket, raw)
        except WebSocketDisconnect:
            pass
        finally:
            hub.disconnect(websocket)

    return app


class LiveReloadServer:
    """Runs the live-reload app with uvicorn on a background thread."""

    def __init__(
        self,
        port: int,
        host: str = "localhost",
        *,
        hub: LiveReloadHub | None = None,
        startup_timeout: float = 5.0,
    ) -> None:
        self.port = port
        self.host = host
        self.hub = hub or LiveReloadHub()
        self.startup_timeout = startup_timeout
        self._server: Optional[uvicorn.Server] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def is_running(self) -> bool:
        return bool(self._server and self._server.started and self._thread and self._thread.is_alive())

    @property
    def client_count(self) -> int:
        return self.hub.client_count

    def start(self) -> None:
        if self._thread is not None:
            return
        config = uvicorn.Config(
            create_app(self.hub),
            host=self.host,
            port=self.port,
            log_level="warning",
            lifespan="off",
        )
        self._server = uvicorn.Server(config)
        self._thread = threading.Thread(
            target=self._server.run, name="staticrender-livereload", daemon=True
        )
        self._thread.start()

        deadline = time.monotonic() + self.startup_timeout
        while not self._server.started:
            if not self._thread.is_alive() or time.monotonic() >= deadline:
                self._server.should_exit = True
                self._thread = None
                raise RuntimeError(
                    f"Live reload server failed to start on {self.host}:{self.port}"
                )
            time.sleep(0.05)
        logger.info("Live reload server listening on %s:%d", self.host, self.port)

    def broadcast_reload(self) -> int:
        delivered = self.hub.broadcast_reload()
        if delivered:
            logger.debug("Reload sent to %d client(s)", delivered)
        return delivered

    def stop(self) -> None:
        if self._server is None or self._thread is None:
            return
        self.hub.close_all_threadsafe()
        self._server.should_exit = True
        self._thread.join(timeout=5.0)
        self._server = None
        self._thread = None


__all__ = [
    "LiveReloadHub",
    "LiveReloadMessage",
    "LiveReloadServer",
    "create_app",
]
