"""Live-reload notification over WebSocket."""

from __future__ import annotations

from .app import LiveReloadHub, LiveReloadMessage, LiveReloadServer, create_app

__all__ = ["LiveReloadHub", "LiveReloadMessage", "LiveReloadServer", "create_app"]
