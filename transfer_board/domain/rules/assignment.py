from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import NewType

log = logging.getLogger(__name__)

AssigneeId = NewType("AssigneeId", str)

UNASSIGNED = AssigneeId("Other / Unassigned")

DEFAULT_ASSIGNMENT_TABLE: dict[str, list[str]] = {
    "Bader": ["tanger"],
    "Abderrazak": ["oujda", "guelmim", "azemmour", "kelaa des sraghna"],
    "Yassine": ["agadir", "marrakech", "sale", "sidi sliman"],
    "Salah": ["deroua", "casablanca", "midelt", "beni melal", "khouribga", "safi"],
}


def normalize_city(city: str) -> str:
    return city.strip().lower()


@dataclass(slots=True, frozen=True)
class AssignmentTable:
    """
    Static assignee -> cities table.
    Entry order is the lookup order; the first entry owning a city wins.
    """

    entries: tuple[tuple[AssigneeId, frozenset[str]], ...]

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Iterable[str]]) -> "AssignmentTable":
        entries: list[tuple[AssigneeId, frozenset[str]]] = []
        owners: dict[str, str] = {}
        for assignee, cities in mapping.items():
            name = str(assignee).strip()
            if not name:
                raise ValueError("assignee name must not be empty")
            if name == UNASSIGNED:
                raise ValueError(f"{UNASSIGNED!r} is reserved and cannot own cities")
            normalized = frozenset(normalize_city(city) for city in cities if city and city.strip())
            for city in sorted(normalized):
                previous = owners.get(city)
                if previous is not None:
                    log.warning(
                        "Assignment table overlap city=%s owner=%s ignored_for=%s",
                        city,
                        previous,
                        name,
                    )
                    continue
                owners[city] = name
            entries.append((AssigneeId(name), normalized))
        log.debug("Assignment table built assignees=%s cities=%s", len(entries), len(owners))
        return cls(entries=tuple(entries))

    @classmethod
    def default(cls) -> "AssignmentTable":
        return cls.from_mapping(DEFAULT_ASSIGNMENT_TABLE)

    def assignees(self) -> list[AssigneeId]:
        return [assignee for assignee, _ in self.entries]

    def tabs(self) -> list[AssigneeId]:
        return [*self.assignees(), UNASSIGNED]


class AssignmentResolver:
    def __init__(self, table: AssignmentTable) -> None:
        self._table = table

    @property
    def table(self) -> AssignmentTable:
        return self._table

    def resolve(self, destination_city: str) -> AssigneeId:
        city = normalize_city(destination_city)
        for assignee, cities in self._table.entries:
            if city in cities:
                return assignee
        return UNASSIGNED
