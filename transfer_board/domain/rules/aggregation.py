from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType

from transfer_board.domain.models.board import AggregatedView, AssigneeGroup, ClientSummary, SlotBucket
from transfer_board.domain.models.transfer import TransferRecord
from transfer_board.domain.rules.assignment import AssigneeId, AssignmentResolver
from transfer_board.domain.rules.time_slot import (
    SlotKey,
    TimeCutoffConfig,
    TimeSlot,
    TimeSlotClassifier,
    align_to_reference,
)

log = logging.getLogger(__name__)


@dataclass(slots=True)
class _ClientTally:
    transfer_count: int = 0
    product_quantities: dict[str, int] = field(default_factory=dict)
    latest_update: datetime | None = None

    def freeze(self, brand: str) -> ClientSummary:
        return ClientSummary(
            client_brand=brand,
            transfer_count=self.transfer_count,
            product_quantities=MappingProxyType(dict(self.product_quantities)),
            latest_update=self.latest_update,
        )


@dataclass(slots=True)
class _SlotTally:
    slot: TimeSlot
    clients: dict[str, _ClientTally] = field(default_factory=dict)


@dataclass(slots=True)
class _AssigneeTally:
    total_count: int = 0
    slots: dict[SlotKey, _SlotTally] = field(default_factory=dict)

    def freeze(self, assignee: AssigneeId) -> AssigneeGroup:
        buckets = {
            key: SlotBucket(
                slot=tally.slot,
                clients=MappingProxyType({brand: client.freeze(brand) for brand, client in tally.clients.items()}),
            )
            for key, tally in self.slots.items()
        }
        return AssigneeGroup(assignee=assignee, total_count=self.total_count, buckets=MappingProxyType(buckets))


def aggregate(
    records: Iterable[TransferRecord],
    resolver: AssignmentResolver,
    classifier: TimeSlotClassifier,
    cutoff: TimeCutoffConfig,
    now: datetime,
) -> AggregatedView:
    if not cutoff.is_valid:
        log.warning("Aggregation with invalid cutoff=%r; every record goes to the error slot", cutoff.raw)

    tallies: dict[AssigneeId, _AssigneeTally] = {}
    record_count = 0
    for record in records:
        record_count += 1
        assignee = resolver.resolve(record.destination_city)
        slot = classifier.classify(record.created_at, cutoff, now)
        brand = record.client_brand

        tally = tallies.get(assignee)
        if tally is None:
            tally = _AssigneeTally()
            tallies[assignee] = tally
        tally.total_count += 1

        slot_tally = tally.slots.get(slot.key)
        if slot_tally is None:
            slot_tally = _SlotTally(slot=slot)
            tally.slots[slot.key] = slot_tally

        client = slot_tally.clients.get(brand)
        if client is None:
            client = _ClientTally()
            slot_tally.clients[brand] = client
        client.transfer_count += 1

        for line in record.products or ():
            name = line.display_name
            client.product_quantities[name] = client.product_quantities.get(name, 0) + line.effective_quantity

        # naive and aware instants can share a bucket; compare in the reference zone
        updated_at = align_to_reference(record.updated_at, now)
        if client.latest_update is None or updated_at > client.latest_update:
            client.latest_update = updated_at

    log.debug(
        "Aggregation done records=%s assignees=%s cutoff=%s policy=%s",
        record_count,
        len(tallies),
        cutoff.raw,
        classifier.policy.value,
    )
    return AggregatedView(
        groups=MappingProxyType({assignee: tally.freeze(assignee) for assignee, tally in tallies.items()}),
        cutoff_text=cutoff.raw,
        computed_at=now,
        record_count=record_count,
    )
