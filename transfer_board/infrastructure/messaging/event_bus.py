from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass
from typing import Any

log = logging.getLogger(__name__)


@dataclass(slots=True)
class _Subscription:
    name: str
    queue: asyncio.Queue[Any]
    dropped: int = 0


class AsyncEventBus:
    """In-process fan-out of board events. A full subscriber queue drops its oldest event."""

    def __init__(self, default_queue_size: int) -> None:
        self._default_queue_size = default_queue_size
        self._subscriptions: dict[int, _Subscription] = {}
        self._lock = asyncio.Lock()

    async def subscribe(self, maxsize: int | None = None, *, name: str = "subscriber") -> asyncio.Queue[Any]:
        queue: asyncio.Queue[Any] = asyncio.Queue(maxsize=maxsize or self._default_queue_size)
        async with self._lock:
            self._subscriptions[id(queue)] = _Subscription(name=name, queue=queue)
            count = len(self._subscriptions)
        log.info("Event bus subscribe name=%s subscribers=%s queue_size=%s", name, count, queue.maxsize)
        return queue

    async def unsubscribe(self, queue: asyncio.Queue[Any]) -> None:
        async with self._lock:
            subscription = self._subscriptions.pop(id(queue), None)
            count = len(self._subscriptions)
        if subscription is not None:
            log.info(
                "Event bus unsubscribe name=%s subscribers=%s dropped_total=%s",
                subscription.name,
                count,
                subscription.dropped,
            )

    async def subscriber_count(self) -> int:
        async with self._lock:
            return len(self._subscriptions)

    async def publish(self, event: Any) -> None:
        async with self._lock:
            subscriptions = list(self._subscriptions.values())
        dropped_for: list[str] = []
        for subscription in subscriptions:
            try:
                subscription.queue.put_nowait(event)
            except asyncio.QueueFull:
                with contextlib.suppress(asyncio.QueueEmpty):
                    _ = subscription.queue.get_nowait()
                subscription.queue.put_nowait(event)
                subscription.dropped += 1
                dropped_for.append(subscription.name)
        if dropped_for:
            log.warning(
                "Event bus publish dropped_oldest_for=%s event_type=%s",
                dropped_for,
                type(event).__name__,
            )
        else:
            log.debug("Event bus publish event_type=%s subscribers=%s", type(event).__name__, len(subscriptions))
