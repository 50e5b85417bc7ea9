from __future__ import annotations

from decimal import Decimal, InvalidOperation

from app.corpsite.responses import BadRequest

# NUMERIC(12, 2) columns: salaries, service prices
MAX_AMOUNT = Decimal("9999999999.99")


def str_field(payload: dict, key: str, *, strip: bool = True) -> str:
    """
    String value of payload[key]; "" when the key is missing or null.
    Numbers, lists and objects are rejected with a 400 instead of being coerced.
    """
    raw = payload.get(key)
    if raw is None:
        return ""
    if not isinstance(raw, str):
        raise BadRequest(f"{key} must be a string.")
    return raw.strip() if strip else raw


def optional_str(payload: dict, key: str) -> str | None:
    return str_field(payload, key) or None


def clean_text(value) -> str | None:
    """Stripped text or None. Scalars are stringified; lists and objects are a 400."""
    if value is None:
        return None
    if isinstance(value, (dict, list)):
        raise BadRequest("Expected a text value.")
    return str(value).strip() or None


def parse_bool(raw) -> bool:
    if isinstance(raw, bool):
        return raw
    return str(raw).strip().lower() in ("1", "true", "yes", "on")


def int_field(payload: dict, key: str, default: int | None = None) -> int | None:
    """Integer value of payload[key]; `default` when missing, null or "". Must fit an INTEGER column."""
    raw = payload.get(key)
    if raw is None or raw == "":
        return default
    if isinstance(raw, bool):
        raise BadRequest(f"{key} must be an integer.")
    try:
        value = int(raw)
    except (TypeError, ValueError, OverflowError):
        raise BadRequest(f"{key} must be an integer.") from None
    if not -(2**31) <= value < 2**31:
        raise BadRequest(f"{key} is out of range.")
    return value


def parse_sort_order(items) -> dict[int, int]:
    """[{id, sort_order}, ...] -> {id: sort_order}, as sent by the drag-to-reorder tables."""
    if not isinstance(items, list) or not items:
        raise BadRequest("Body must be a non-empty list of {id, sort_order}.")
    out: dict[int, int] = {}
    for item in items:
        if not isinstance(item, dict):
            raise BadRequest("Each entry must be an object with id and sort_order.")
        item_id = int_field(item, "id")
        if item_id is None:
            raise BadRequest("Each entry needs an id.")
        out[item_id] = int_field(item, "sort_order", 0)
    return out


def parse_amount(raw, label: str) -> Decimal:
    """Non-negative money amount rounded to 2 places; NaN, Infinity and overflow are a 400."""
    try:
        value = Decimal(str(raw))
    except (InvalidOperation, ValueError):
        raise BadRequest(f"{label} must be a number.") from None
    if not value.is_finite():
        raise BadRequest(f"{label} must be a finite number.")
    if value < 0:
        raise BadRequest(f"{label} cannot be negative.")
    if value > MAX_AMOUNT:
        raise BadRequest(f"{label} is too large.")
    return value.quantize(Decimal("0.01"))
