from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from transfer_board.application.ports import EventBusPort
from transfer_board.application.services.board import TransferBoardService
from transfer_board.domain.events import CutoffChanged, RefreshFailed, SnapshotReplaced
from transfer_board.infrastructure.realtime.ws_server import WebSocketServerAdapter

log = logging.getLogger(__name__)


def event_to_payload(board: TransferBoardService, event: Any) -> dict[str, Any] | None:
    if isinstance(event, (SnapshotReplaced, CutoffChanged)):
        return {"type": "BoardUpdated", "board": board.board_payload()}
    if isinstance(event, RefreshFailed):
        return {
            "type": "RefreshFailed",
            "reason": event.reason,
            "failed_at": event.failed_at.isoformat(),
            "generation": event.generation,
        }
    return None


class WsRuntime:
    def __init__(
        self,
        event_bus: EventBusPort,
        ws_server: WebSocketServerAdapter,
        board: TransferBoardService,
        queue_size: int,
    ) -> None:
        self._event_bus = event_bus
        self._ws_server = ws_server
        self._board = board
        self._queue_size = queue_size
        self._queue: asyncio.Queue[Any] | None = None
        self._task: asyncio.Task | None = None

    async def start(self) -> None:
        if self._task is not None:
            log.debug("WsRuntime start skipped because task already exists")
            return
        self._queue = await self._event_bus.subscribe(maxsize=self._queue_size)
        self._task = asyncio.create_task(
            self._ws_server.event_pump(self._queue, lambda event: event_to_payload(self._board, event)),
            name="ws-board-pump",
        )
        log.info("WsRuntime started queue_size=%s", self._queue_size)

    async def stop(self) -> None:
        if self._task is None:
            log.debug("WsRuntime stop skipped because task is None")
            return
        log.info("WsRuntime stopping")
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        if self._queue is not None:
            await self._event_bus.unsubscribe(self._queue)
            self._queue = None
        log.info("WsRuntime stopped")


def build_ws_router(ws_server: WebSocketServerAdapter, board: TransferBoardService) -> APIRouter:
    router = APIRouter()

    @router.websocket("/ws/board")
    async def ws_board(ws: WebSocket) -> None:
        log.info("WS /ws/board connect request client=%s", ws.client)
        await ws_server.connect(ws, greeting={"type": "BoardUpdated", "board": board.board_payload()})
        try:
            while True:
                await ws.receive_text()
        except WebSocketDisconnect:
            log.info("WS /ws/board disconnected client=%s", ws.client)
        finally:
            await ws_server.disconnect(ws)

    return router
