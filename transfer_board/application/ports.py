from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Any, Protocol

from transfer_board.domain.models.transfer import TransferRecord


class ClockPort(Protocol):
    def now(self) -> datetime: ...


class EventBusPort(Protocol):
    async def publish(self, event: Any) -> None: ...

    async def subscribe(self, maxsize: int | None = None) -> asyncio.Queue[Any]: ...

    async def unsubscribe(self, queue: asyncio.Queue[Any]) -> None: ...


class TransferSourcePort(Protocol):
    async def fetch_pending(self) -> list[TransferRecord]: ...
