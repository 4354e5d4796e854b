from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from datetime import datetime

from transfer_board.application.ports import ClockPort, EventBusPort, TransferSourcePort
from transfer_board.application.state.snapshots import RefreshState, RefreshStatus, TransferSnapshot
from transfer_board.domain.events import RefreshFailed, SnapshotReplaced
from transfer_board.domain.models.transfer import TransferRecord

log = logging.getLogger(__name__)


class RefreshCoordinator:
    """
    Owns the current transfer snapshot.

    idle --trigger--> fetching --success--> idle
                      fetching --failure--> error --trigger--> fetching

    At most one fetch is in flight; a trigger while fetching is a no-op.
    A failed fetch keeps the last good snapshot. A cancelled fetch restores
    the state it started from.
    """

    def __init__(
        self,
        source: TransferSourcePort,
        clock: ClockPort,
        *,
        refresh_interval_seconds: float,
        event_bus: EventBusPort | None = None,
    ) -> None:
        self._source = source
        self._clock = clock
        self._event_bus = event_bus
        self._refresh_interval_seconds = refresh_interval_seconds

        self._snapshot = TransferSnapshot()
        self._state = RefreshState.IDLE
        self._last_updated: datetime | None = None
        self._last_error: str | None = None
        self._last_failure_at: datetime | None = None

        self._running = False
        self._refresh_task: asyncio.Task | None = None
        self._stop_event = asyncio.Event()
        self._refresh_iteration = 0

    @property
    def snapshot(self) -> TransferSnapshot:
        return self._snapshot

    @property
    def state(self) -> RefreshState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._running

    def status(self) -> RefreshStatus:
        snapshot = self._snapshot
        return RefreshStatus(
            state=self._state,
            generation=snapshot.generation,
            record_count=len(snapshot),
            last_updated=self._last_updated,
            last_error=self._last_error,
            last_failure_at=self._last_failure_at,
        )

    async def start(self) -> None:
        if self._running:
            log.warning("Refresh coordinator already running")
            return
        self._running = True
        self._stop_event.clear()
        self._refresh_task = asyncio.create_task(self._refresh_loop(), name="transfer-refresh-loop")
        log.info("Refresh coordinator started interval_seconds=%s", self._refresh_interval_seconds)

    async def stop(self) -> None:
        if not self._running:
            log.debug("Refresh coordinator stop skipped because it is not running")
            return
        log.info("Refresh coordinator stop begin")
        self._running = False
        self._stop_event.set()
        if self._refresh_task is not None:
            if asyncio.current_task() is self._refresh_task:
                self._refresh_task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await self._refresh_task
            else:
                await self._refresh_task
            self._refresh_task = None
        log.info("Refresh coordinator stop completed")

    async def trigger_refresh(self) -> bool:
        """Fetch a new snapshot. Returns False when a fetch is already in flight."""
        if self._state is RefreshState.FETCHING:
            log.debug("Refresh trigger ignored because a fetch is in flight")
            return False
        previous_state = self._state
        self._state = RefreshState.FETCHING
        started_at = time.perf_counter()
        try:
            records = list(await self._source.fetch_pending())
        except asyncio.CancelledError:
            self._state = previous_state
            log.warning("Refresh cancelled while fetching; state restored to %s", previous_state.value)
            raise
        except Exception as exc:  # noqa: BLE001
            await self._on_failure(exc, started_at)
            return True
        await self._on_success(records, started_at)
        return True

    async def _on_success(self, records: list[TransferRecord], started_at: float) -> None:
        now = self._clock.now()
        self._snapshot = TransferSnapshot(
            generation=self._snapshot.generation + 1,
            records=tuple(records),
            fetched_at=now,
        )
        self._last_updated = now
        self._last_error = None
        self._state = RefreshState.IDLE
        log.info(
            "Refresh completed generation=%s records=%s elapsed_ms=%s",
            self._snapshot.generation,
            len(self._snapshot),
            int((time.perf_counter() - started_at) * 1000),
        )
        await self._publish(
            SnapshotReplaced(
                generation=self._snapshot.generation,
                record_count=len(self._snapshot),
                fetched_at=now,
            )
        )

    async def _on_failure(self, exc: Exception, started_at: float) -> None:
        now = self._clock.now()
        reason = str(exc).strip() or type(exc).__name__
        self._last_error = reason
        self._last_failure_at = now
        self._state = RefreshState.ERROR
        log.error(
            "Refresh failed elapsed_ms=%s kept_generation=%s reason=%s",
            int((time.perf_counter() - started_at) * 1000),
            self._snapshot.generation,
            reason,
            exc_info=exc,
        )
        await self._publish(RefreshFailed(reason=reason, failed_at=now, generation=self._snapshot.generation))

    async def _publish(self, event: object) -> None:
        if self._event_bus is None:
            return
        try:
            await self._event_bus.publish(event)
        except Exception:  # noqa: BLE001
            log.exception("Failed to publish event_type=%s", type(event).__name__)

    async def _refresh_loop(self) -> None:
        log.info("Refresh loop started interval_seconds=%s", self._refresh_interval_seconds)
        while self._running:
            self._refresh_iteration += 1
            started = await self.trigger_refresh()
            if not started:
                log.debug("Refresh #%s skipped because a fetch is in flight", self._refresh_iteration)
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self._refresh_interval_seconds)
            except asyncio.TimeoutError:
                pass
        log.info("Refresh loop stopped")
