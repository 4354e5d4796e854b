from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from transfer_board.domain.models.transfer import ProductLine, TransferRecord

CASABLANCA = timezone(timedelta(hours=1))
REFERENCE_NOW = datetime(2026, 10, 17, 20, 0, tzinfo=CASABLANCA)


class FixedClock:
    def __init__(self, now: datetime = REFERENCE_NOW) -> None:
        self.current = now

    def now(self) -> datetime:
        return self.current

    def advance(self, delta: timedelta) -> None:
        self.current = self.current + delta


class ScriptedTransferSource:
    """Returns the scripted results in order, repeating the last one. Exceptions are raised."""

    def __init__(self, *results: object, gate: asyncio.Event | None = None) -> None:
        self._results = list(results) or [[]]
        self.gate = gate
        self.entered = asyncio.Event()
        self.calls = 0

    async def fetch_pending(self) -> list[TransferRecord]:
        self.calls += 1
        self.entered.set()
        if self.gate is not None:
            await self.gate.wait()
        result = self._results.pop(0) if len(self._results) > 1 else self._results[0]
        if isinstance(result, Exception):
            raise result
        return list(result)


def make_record(
    city: str = "Tanger",
    brand: str | None = "Acme",
    products: list[tuple[str | None, int | None]] | None = None,
    *,
    created_at: datetime | None = None,
    updated_at: datetime | None = None,
) -> TransferRecord:
    created = created_at or REFERENCE_NOW.replace(hour=9, minute=30)
    lines = [("Box", 2)] if products is None else products
    return TransferRecord(
        destination_city=city,
        created_at=created,
        updated_at=updated_at or created,
        client_brand_name=brand,
        products=tuple(ProductLine(product_name=name, quantity=qty) for name, qty in lines),
    )


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def record_factory():
    return make_record


@pytest.fixture
def reference_now() -> datetime:
    return REFERENCE_NOW


@pytest.fixture
def source_factory():
    return ScriptedTransferSource
