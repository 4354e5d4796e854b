from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from transfer_board.domain.models.transfer import ProductLine, TransferId, TransferRecord


def parse_datetime(value: Any) -> datetime | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)):
        # epoch milliseconds
        parsed = datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
    else:
        text = str(value).strip()
        if not text:
            return None
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def transfer_from_payload(item: Any) -> TransferRecord:
    if not isinstance(item, dict):
        raise ValueError(f"transfer must be an object, got {type(item).__name__}")
    city = item.get("to_city")
    if not isinstance(city, str):
        raise ValueError(f"transfer {_transfer_id(item)!r} has no to_city")

    timestamps = item.get("timestamps")
    if not isinstance(timestamps, dict):
        timestamps = {}
    created_at = parse_datetime(timestamps.get("created"))
    if created_at is None:
        raise ValueError(f"transfer {_transfer_id(item)!r} has no valid timestamps.created")
    updated_at = parse_datetime(timestamps.get("updated")) or created_at
    raw_id = _transfer_id(item)

    return TransferRecord(
        destination_city=city,
        created_at=created_at,
        updated_at=updated_at,
        client_brand_name=_nested_name(item.get("client"), "brand"),
        products=tuple(_product_line(line) for line in _as_list(item.get("products"))),
        transfer_id=TransferId(str(raw_id)) if raw_id is not None else None,
    )


def transfers_from_response(body: Any) -> list[TransferRecord]:
    items = body
    for key in ("data", "data", "data"):
        if not isinstance(items, dict):
            items = None
            break
        items = items.get(key)
    if items is None:
        return []
    if not isinstance(items, list):
        raise ValueError(f"transfer list must be an array, got {type(items).__name__}")
    return [transfer_from_payload(item) for item in items]


def _product_line(line: Any) -> ProductLine:
    if not isinstance(line, dict):
        return ProductLine()
    name = line.get("product")
    product_name = name.get("name") if isinstance(name, dict) else None
    return ProductLine(
        product_name=str(product_name) if product_name else None,
        quantity=line.get("quantity"),
    )


def _nested_name(value: Any, key: str) -> str | None:
    if not isinstance(value, dict):
        return None
    inner = value.get(key)
    if not isinstance(inner, dict):
        return None
    name = inner.get("name")
    return str(name) if name else None


def _as_list(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []


def _transfer_id(item: dict[str, Any]) -> Any:
    return item.get("_id", item.get("id"))
