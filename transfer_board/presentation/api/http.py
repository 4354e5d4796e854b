from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from transfer_board.application.services.board import TransferBoardService
from transfer_board.domain.rules.time_slot import SlotPolicy

log = logging.getLogger(__name__)


class TimeSlotSettingsRequest(BaseModel):
    cutoff: str | None = Field(default=None, max_length=32)
    policy: SlotPolicy | None = None


def build_http_router(board: TransferBoardService) -> APIRouter:
    router = APIRouter()

    @router.get("/health")
    async def health() -> dict:
        log.debug("HTTP GET /health")
        return {"status": "ok", "refresh": board.status().to_dict()}

    @router.get("/board")
    async def board_view() -> dict:
        log.debug("HTTP GET /board")
        return board.board_payload()

    @router.get("/board/{assignee:path}")
    async def assignee_view(assignee: str) -> dict:
        log.debug("HTTP GET /board/%s", assignee)
        payload = board.assignee_payload(assignee)
        if payload is None:
            raise HTTPException(status_code=404, detail=f"Unknown assignee {assignee!r}")
        return payload

    @router.post("/refresh/manual")
    async def manual_refresh() -> dict:
        log.info("HTTP POST /refresh/manual")
        return await board.refresh()

    @router.get("/settings/time-slot")
    async def time_slot_settings() -> dict:
        log.debug("HTTP GET /settings/time-slot")
        return board.time_slot_settings()

    @router.put("/settings/time-slot")
    async def update_time_slot_settings(req: TimeSlotSettingsRequest) -> dict:
        log.info("HTTP PUT /settings/time-slot cutoff=%r policy=%s", req.cutoff, req.policy)
        return await board.update_time_slot_settings(cutoff=req.cutoff, policy=req.policy)

    return router
