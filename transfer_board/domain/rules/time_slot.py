from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum

_CUTOFF_PATTERN = re.compile(r"^\s*(\d{1,2})\s*:\s*(\d{1,2})\s*$")

DEFAULT_CUTOFF_TEXT = "18:07"


class SlotKey(StrEnum):
    MORNING = "morning"
    EVENING = "evening"
    ERROR = "classification_error"


class SlotPolicy(StrEnum):
    CALENDAR = "calendar"
    TIME_OF_DAY = "time_of_day"


SLOT_ORDER: dict[SlotKey, int] = {
    SlotKey.MORNING: 0,
    SlotKey.EVENING: 1,
    SlotKey.ERROR: 2,
}


@dataclass(slots=True, frozen=True)
class TimeCutoff:
    hour: int
    minute: int

    def display(self) -> str:
        return f"{self.hour:02d}:{self.minute:02d}"


def parse_cutoff(text: str | None) -> TimeCutoff | None:
    if text is None:
        return None
    match = _CUTOFF_PATTERN.match(text)
    if match is None:
        return None
    hour, minute = int(match.group(1)), int(match.group(2))
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        return None
    return TimeCutoff(hour=hour, minute=minute)


@dataclass(slots=True, frozen=True)
class TimeCutoffConfig:
    raw: str = DEFAULT_CUTOFF_TEXT
    parsed: TimeCutoff | None = field(init=False, default=None, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "parsed", parse_cutoff(self.raw))

    @property
    def is_valid(self) -> bool:
        return self.parsed is not None


@dataclass(slots=True, frozen=True)
class TimeSlot:
    key: SlotKey
    label: str

    @property
    def sort_index(self) -> int:
        return SLOT_ORDER[self.key]


def slot_label(key: SlotKey, cutoff: TimeCutoffConfig, policy: SlotPolicy) -> str:
    if key is SlotKey.ERROR or cutoff.parsed is None:
        return f"Classification Error (invalid cutoff {cutoff.raw!r})"
    at = cutoff.parsed.display()
    if policy is SlotPolicy.CALENDAR:
        if key is SlotKey.MORNING:
            return f"Morning Transfers (Today Before {at})"
        return f"Evening Transfers (Today After {at} or Earlier Days)"
    if key is SlotKey.MORNING:
        return f"Morning Transfers (Before {at})"
    return f"Evening Transfers (After {at})"


class TimeSlotClassifier:
    """
    Maps a transfer timestamp to a morning/evening slot.

    ``calendar``: morning only when the timestamp is on the reference day and
    strictly before the cutoff; every other timestamp is evening.
    ``time_of_day``: compares hour/minute only, the date is ignored.

    Timestamps are compared in the timezone of ``reference_now``.
    An unparseable cutoff yields the classification error slot.
    """

    def __init__(self, policy: SlotPolicy = SlotPolicy.CALENDAR) -> None:
        self.policy = SlotPolicy(policy)

    def classify(self, timestamp: datetime, cutoff: TimeCutoffConfig, reference_now: datetime) -> TimeSlot:
        key = self.classify_key(timestamp, cutoff, reference_now)
        return TimeSlot(key=key, label=slot_label(key, cutoff, self.policy))

    def classify_key(self, timestamp: datetime, cutoff: TimeCutoffConfig, reference_now: datetime) -> SlotKey:
        boundary = cutoff.parsed
        if boundary is None:
            return SlotKey.ERROR
        local = align_to_reference(timestamp, reference_now)
        before_cutoff = (local.hour, local.minute) < (boundary.hour, boundary.minute)
        if self.policy is SlotPolicy.TIME_OF_DAY:
            return SlotKey.MORNING if before_cutoff else SlotKey.EVENING
        if local.date() == reference_now.date() and before_cutoff:
            return SlotKey.MORNING
        return SlotKey.EVENING


def align_to_reference(timestamp: datetime, reference_now: datetime) -> datetime:
    if reference_now.tzinfo is None:
        if timestamp.tzinfo is None:
            return timestamp
        return timestamp.astimezone().replace(tzinfo=None)
    if timestamp.tzinfo is None:
        return timestamp.replace(tzinfo=reference_now.tzinfo)
    return timestamp.astimezone(reference_now.tzinfo)
