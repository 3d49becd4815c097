"""Field access for loosely-shaped seller API records.

The same field shows up as ``sold_quantity``, ``soldQuantity`` or
``salesCount`` depending on the endpoint, and amounts are sometimes plain
numbers and sometimes ``{"amount": ...}`` objects.
"""
from datetime import datetime, timezone
from typing import Any, Dict, Optional


def pick(raw: Any, *keys: str, default: Any = None) -> Any:
    """Return the first non-empty value among ``keys``.

    Dotted keys (``"buyer.nickname"``) walk nested dicts.
    """
    if not isinstance(raw, dict):
        return default
    for key in keys:
        value: Any = raw
        for part in key.split("."):
            if not isinstance(value, dict):
                value = None
                break
            value = value.get(part)
        if value is not None and value != "":
            return value
    return default


def as_float(value: Any, default: float = 0.0) -> float:
    if isinstance(value, dict):
        value = value.get("amount", value.get("value"))
    if isinstance(value, bool) or value is None:
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if number != number or number in (float("inf"), float("-inf")):
        return default
    return number


def as_int(value: Any, default: int = 0) -> int:
    if isinstance(value, bool) or value is None:
        return default
    try:
        return int(float(value))
    except (TypeError, ValueError, OverflowError):
        return default


def parse_datetime(value: Any) -> Optional[datetime]:
    """Parse ISO-8601 strings (``Z`` suffix included) and epoch milliseconds.

    Naive values are taken as UTC; offsets present in the input are kept so
    callers can bucket by the seller's local calendar day.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            dt = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def as_text(value: Any) -> Optional[str]:
    """Render scalar ids and labels as text; containers become ``None``."""
    if value is None or isinstance(value, (dict, list, tuple, set)):
        return None
    if isinstance(value, bool):
        return str(value).lower()
    return str(value)
