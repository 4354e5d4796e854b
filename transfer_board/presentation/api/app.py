from __future__ import annotations

import contextlib
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass

from fastapi import FastAPI

from transfer_board.application.services.board import TransferBoardService
from transfer_board.application.services.refresh_coordinator import RefreshCoordinator
from transfer_board.infrastructure.http.transfer_api import TransferApiClient
from transfer_board.infrastructure.realtime.ws_server import WebSocketServerAdapter
from transfer_board.presentation.api.http import build_http_router
from transfer_board.presentation.api.ws import WsRuntime, build_ws_router

log = logging.getLogger(__name__)


@dataclass(slots=True)
class BoardRuntime:
    api_client: TransferApiClient | None
    coordinator: RefreshCoordinator
    board: TransferBoardService
    ws_server: WebSocketServerAdapter
    ws_runtime: WsRuntime

    async def start(self) -> None:
        log.info("Board runtime start begin")
        if self.api_client is not None:
            await self.api_client.start()
        await self.ws_runtime.start()
        await self.coordinator.start()
        log.info("Board runtime start completed")

    async def stop(self) -> None:
        log.info("Board runtime stop begin")
        with contextlib.suppress(Exception):
            await self.coordinator.stop()
        with contextlib.suppress(Exception):
            await self.ws_runtime.stop()
        if self.api_client is not None:
            with contextlib.suppress(Exception):
                await self.api_client.close()
        log.info("Board runtime stop completed")


def create_app(runtime: BoardRuntime, *, title: str = "Transfer Board") -> FastAPI:
    @contextlib.asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        await runtime.start()
        try:
            yield
        finally:
            await runtime.stop()

    app = FastAPI(title=title, lifespan=lifespan)
    app.include_router(build_http_router(runtime.board))
    app.include_router(build_ws_router(runtime.ws_server, runtime.board))
    return app
