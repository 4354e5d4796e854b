from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(slots=True, frozen=True)
class SnapshotReplaced:
    generation: int
    record_count: int
    fetched_at: datetime


@dataclass(slots=True, frozen=True)
class RefreshFailed:
    reason: str
    failed_at: datetime
    generation: int


@dataclass(slots=True, frozen=True)
class CutoffChanged:
    cutoff_text: str
    policy: str
    valid: bool
