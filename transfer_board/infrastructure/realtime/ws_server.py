from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any

from fastapi import WebSocket

log = logging.getLogger(__name__)

EventRenderer = Callable[[Any], dict[str, Any] | None]


class WebSocketServerAdapter:
    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._connections: set[WebSocket] = set()

    async def connect(self, ws: WebSocket, greeting: dict[str, Any] | None = None) -> None:
        await ws.accept()
        if greeting is not None:
            await ws.send_json(greeting)
        async with self._lock:
            self._connections.add(ws)
            count = len(self._connections)
        log.info("WebSocket connected client=%s connections=%s", ws.client, count)

    async def disconnect(self, ws: WebSocket) -> None:
        async with self._lock:
            self._connections.discard(ws)
            count = len(self._connections)
        log.info("WebSocket disconnected client=%s connections=%s", ws.client, count)

    async def broadcast(self, payload: dict[str, Any]) -> int:
        async with self._lock:
            targets = list(self._connections)
        dead: list[WebSocket] = []
        for ws in targets:
            try:
                await ws.send_json(payload)
            except Exception:  # noqa: BLE001
                dead.append(ws)
        if dead:
            async with self._lock:
                for ws in dead:
                    self._connections.discard(ws)
            log.info("WebSocket broadcast pruned dead connections=%s", len(dead))
        return len(targets) - len(dead)

    async def event_pump(self, queue: asyncio.Queue[Any], render: EventRenderer) -> None:
        while True:
            event = await queue.get()
            try:
                payload = render(event)
            except Exception:  # noqa: BLE001
                log.exception("WebSocket payload render failed event_type=%s", type(event).__name__)
                continue
            if payload is None:
                continue
            delivered = await self.broadcast(payload)
            log.debug("WebSocket broadcast type=%s delivered=%s", payload.get("type"), delivered)
