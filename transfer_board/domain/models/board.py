from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Any

from transfer_board.domain.rules.assignment import AssigneeId
from transfer_board.domain.rules.time_slot import SlotKey, TimeSlot


def _empty() -> Mapping[Any, Any]:
    return MappingProxyType({})


@dataclass(slots=True, frozen=True)
class ClientSummary:
    client_brand: str
    transfer_count: int = 0
    product_quantities: Mapping[str, int] = field(default_factory=_empty)
    latest_update: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "client_brand": self.client_brand,
            "transfer_count": self.transfer_count,
            "products": [
                {"product_name": name, "quantity": quantity}
                for name, quantity in self.product_quantities.items()
            ],
            "latest_update": self.latest_update.isoformat() if self.latest_update else None,
        }


@dataclass(slots=True, frozen=True)
class SlotBucket:
    slot: TimeSlot
    clients: Mapping[str, ClientSummary] = field(default_factory=_empty)

    @property
    def transfer_count(self) -> int:
        return sum(client.transfer_count for client in self.clients.values())

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.slot.key.value,
            "label": self.slot.label,
            "transfer_count": self.transfer_count,
            "clients": [client.to_dict() for client in self.clients.values()],
        }


@dataclass(slots=True, frozen=True)
class AssigneeGroup:
    assignee: AssigneeId
    total_count: int = 0
    buckets: Mapping[SlotKey, SlotBucket] = field(default_factory=_empty)

    def ordered_buckets(self) -> list[SlotBucket]:
        return sorted(self.buckets.values(), key=lambda bucket: bucket.slot.sort_index)

    def to_dict(self) -> dict[str, Any]:
        return {
            "assignee": str(self.assignee),
            "total_count": self.total_count,
            "slots": [bucket.to_dict() for bucket in self.ordered_buckets()],
        }


@dataclass(slots=True, frozen=True)
class AggregatedView:
    """Assignee -> slot -> client brand grouping of one snapshot. Read-only once built."""

    groups: Mapping[AssigneeId, AssigneeGroup]
    cutoff_text: str
    computed_at: datetime
    record_count: int

    def group(self, assignee: str) -> AssigneeGroup | None:
        return self.groups.get(AssigneeId(assignee))

    def total_count(self) -> int:
        return sum(group.total_count for group in self.groups.values())
