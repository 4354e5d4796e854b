from __future__ import annotations

import logging
from typing import Any

from transfer_board.application.ports import ClockPort, EventBusPort
from transfer_board.application.services.refresh_coordinator import RefreshCoordinator
from transfer_board.application.state.snapshots import RefreshStatus
from transfer_board.application.use_cases.recompute_view import RecomputeViewUseCase
from transfer_board.domain.events import CutoffChanged
from transfer_board.domain.models.board import AggregatedView, AssigneeGroup
from transfer_board.domain.rules.assignment import AssigneeId, AssignmentResolver
from transfer_board.domain.rules.time_slot import SlotPolicy, TimeCutoffConfig

log = logging.getLogger(__name__)


class TransferBoardService:
    def __init__(
        self,
        coordinator: RefreshCoordinator,
        resolver: AssignmentResolver,
        clock: ClockPort,
        *,
        cutoff: TimeCutoffConfig,
        policy: SlotPolicy = SlotPolicy.CALENDAR,
        event_bus: EventBusPort | None = None,
    ) -> None:
        self._coordinator = coordinator
        self._resolver = resolver
        self._clock = clock
        self._cutoff = cutoff
        self._policy = SlotPolicy(policy)
        self._event_bus = event_bus
        self._recompute_view = RecomputeViewUseCase(resolver)

    @property
    def coordinator(self) -> RefreshCoordinator:
        return self._coordinator

    def cutoff(self) -> TimeCutoffConfig:
        return self._cutoff

    def policy(self) -> SlotPolicy:
        return self._policy

    def status(self) -> RefreshStatus:
        return self._coordinator.status()

    def assignee_tabs(self) -> list[AssigneeId]:
        return self._resolver.table.tabs()

    async def refresh(self) -> dict[str, object]:
        log.info("Manual refresh requested")
        started = await self._coordinator.trigger_refresh()
        status = self._coordinator.status()
        if not started:
            log.info("Manual refresh skipped because a fetch is in flight")
        return {"started": started, **status.to_dict()}

    def view(self) -> AggregatedView:
        return self._recompute_view.execute(
            self._coordinator.snapshot,
            self._cutoff,
            self._policy,
            self._clock.now(),
        )

    async def update_time_slot_settings(
        self,
        *,
        cutoff: str | None = None,
        policy: SlotPolicy | None = None,
    ) -> dict[str, object]:
        changed = False
        if cutoff is not None and cutoff != self._cutoff.raw:
            self._cutoff = TimeCutoffConfig(raw=cutoff)
            changed = True
            if not self._cutoff.is_valid:
                log.warning("Cutoff set to invalid value=%r; transfers will show as classification errors", cutoff)
        if policy is not None and SlotPolicy(policy) is not self._policy:
            self._policy = SlotPolicy(policy)
            changed = True
        if changed:
            self._recompute_view.invalidate()
            log.info("Time slot settings changed cutoff=%s policy=%s", self._cutoff.raw, self._policy.value)
            await self._publish(
                CutoffChanged(
                    cutoff_text=self._cutoff.raw,
                    policy=self._policy.value,
                    valid=self._cutoff.is_valid,
                )
            )
        return {"changed": changed, **self.time_slot_settings()}

    async def _publish(self, event: object) -> None:
        if self._event_bus is None:
            return
        try:
            await self._event_bus.publish(event)
        except Exception:  # noqa: BLE001
            log.exception("Failed to publish event_type=%s", type(event).__name__)

    def time_slot_settings(self) -> dict[str, object]:
        return {
            "cutoff": self._cutoff.raw,
            "valid": self._cutoff.is_valid,
            "policy": self._policy.value,
        }

    def board_payload(self) -> dict[str, object]:
        view = self.view()
        return {
            "settings": self.time_slot_settings(),
            "status": self.status().to_dict(),
            "computed_at": view.computed_at.isoformat(),
            "record_count": view.record_count,
            "assignees": [_group_payload(view, assignee) for assignee in self.assignee_tabs()],
        }

    def assignee_payload(self, assignee: str) -> dict[str, Any] | None:
        if assignee not in self.assignee_tabs():
            return None
        return _group_payload(self.view(), AssigneeId(assignee))


def _group_payload(view: AggregatedView, assignee: AssigneeId) -> dict[str, Any]:
    group = view.group(assignee)
    if group is None:
        group = AssigneeGroup(assignee=assignee)
    return group.to_dict()
