from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum

from transfer_board.domain.models.transfer import TransferRecord


class RefreshState(StrEnum):
    IDLE = "idle"
    FETCHING = "fetching"
    ERROR = "error"


@dataclass(slots=True, frozen=True)
class TransferSnapshot:
    generation: int = 0
    records: tuple[TransferRecord, ...] = field(default_factory=tuple)
    fetched_at: datetime | None = None

    def __len__(self) -> int:
        return len(self.records)


@dataclass(slots=True, frozen=True)
class RefreshStatus:
    state: RefreshState
    generation: int
    record_count: int
    last_updated: datetime | None
    last_error: str | None
    last_failure_at: datetime | None

    def to_dict(self) -> dict[str, object]:
        return {
            "state": self.state.value,
            "generation": self.generation,
            "record_count": self.record_count,
            "last_updated": self.last_updated.isoformat() if self.last_updated else None,
            "last_error": self.last_error,
            "last_failure_at": self.last_failure_at.isoformat() if self.last_failure_at else None,
        }
