from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, NewType

TransferId = NewType("TransferId", str)

UNKNOWN_CLIENT = "Unknown Client"
UNKNOWN_PRODUCT = "Unknown Product"
DEFAULT_QUANTITY = 1


@dataclass(slots=True, frozen=True)
class ProductLine:
    product_name: str | None = None
    quantity: int | None = None

    @property
    def display_name(self) -> str:
        return self.product_name or UNKNOWN_PRODUCT

    @property
    def effective_quantity(self) -> int:
        return effective_quantity(self.quantity)


@dataclass(slots=True, frozen=True)
class TransferRecord:
    destination_city: str
    created_at: datetime
    updated_at: datetime
    client_brand_name: str | None = None
    products: tuple[ProductLine, ...] = field(default_factory=tuple)
    transfer_id: TransferId | None = None

    @property
    def client_brand(self) -> str:
        return self.client_brand_name or UNKNOWN_CLIENT


def effective_quantity(value: Any) -> int:
    if isinstance(value, bool):
        return DEFAULT_QUANTITY
    if isinstance(value, int):
        return value if value >= 0 else DEFAULT_QUANTITY
    if isinstance(value, float):
        return int(value) if value.is_integer() and value >= 0 else DEFAULT_QUANTITY
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return DEFAULT_QUANTITY
