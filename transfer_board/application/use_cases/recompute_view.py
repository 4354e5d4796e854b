from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import date, datetime

from transfer_board.application.state.snapshots import TransferSnapshot
from transfer_board.domain.models.board import AggregatedView
from transfer_board.domain.rules.aggregation import aggregate
from transfer_board.domain.rules.assignment import AssignmentResolver
from transfer_board.domain.rules.time_slot import SlotPolicy, TimeCutoffConfig, TimeSlotClassifier

log = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class _ViewCacheKey:
    generation: int
    cutoff_text: str
    policy: SlotPolicy
    reference_day: date | None


class RecomputeViewUseCase:
    """
    Builds the aggregated view of a snapshot, cached per
    (snapshot generation, cutoff, policy). The calendar policy also keys on
    the reference day because "today" moves the morning boundary.
    """

    def __init__(self, resolver: AssignmentResolver) -> None:
        self._resolver = resolver
        self._cache_key: _ViewCacheKey | None = None
        self._cached: AggregatedView | None = None

    def execute(
        self,
        snapshot: TransferSnapshot,
        cutoff: TimeCutoffConfig,
        policy: SlotPolicy,
        now: datetime,
    ) -> AggregatedView:
        key = _ViewCacheKey(
            generation=snapshot.generation,
            cutoff_text=cutoff.raw,
            policy=policy,
            reference_day=now.date() if policy is SlotPolicy.CALENDAR else None,
        )
        if self._cached is not None and self._cache_key == key:
            log.debug("View cache hit generation=%s cutoff=%s", key.generation, key.cutoff_text)
            return self._cached

        started_at = time.perf_counter()
        view = aggregate(
            snapshot.records,
            self._resolver,
            TimeSlotClassifier(policy),
            cutoff,
            now,
        )
        self._cache_key = key
        self._cached = view
        log.debug(
            "View recomputed elapsed_ms=%s generation=%s records=%s assignees=%s",
            int((time.perf_counter() - started_at) * 1000),
            key.generation,
            view.record_count,
            len(view.groups),
        )
        return view

    def invalidate(self) -> None:
        self._cache_key = None
        self._cached = None
