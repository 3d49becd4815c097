"""Normalization of seller API response bodies.

The seller API has answered in several shapes over time. Callers never poke
at ``body["data"]`` directly; they go through :func:`unwrap_envelope`, which
tries the accepted shapes in a fixed priority order:

1. ``{"success": true, "data": {key: value}}``
2. ``{"data": {key: value}}``
3. ``{key: value}``
4. ``{"data": value}`` when no key is requested
5. a bare JSON list

A body with ``"success": false`` raises :class:`EnvelopeError` whatever else it
contains.
"""
from __future__ import annotations

from typing import Any, Callable, List, Optional, Tuple

from seller_hub.services.errors import EnvelopeError

_MISSING = object()


def _check_success(body: Any) -> None:
    if isinstance(body, dict) and body.get("success") is False:
        message = body.get("message") or body.get("error") or "Request was not successful"
        raise EnvelopeError(str(message))


def _data_keyed(body: Any, key: Optional[str]) -> Any:
    if key is None or not isinstance(body, dict):
        return _MISSING
    data = body.get("data")
    if isinstance(data, dict) and key in data:
        return data[key]
    return _MISSING


def _top_level_keyed(body: Any, key: Optional[str]) -> Any:
    if key is None or not isinstance(body, dict):
        return _MISSING
    if key in body:
        return body[key]
    return _MISSING


def _data_whole(body: Any, key: Optional[str]) -> Any:
    if not isinstance(body, dict) or "data" not in body:
        return _MISSING
    data = body["data"]
    if key is None or isinstance(data, list):
        return data
    return _MISSING


def _bare_list(body: Any, key: Optional[str]) -> Any:
    if isinstance(body, list):
        return body
    return _MISSING


# Priority order matters: the nested ``data.<key>`` form wins over a
# top-level key of the same name.
ENVELOPE_SHAPES: List[Tuple[str, Callable[[Any, Optional[str]], Any]]] = [
    ("data_keyed", _data_keyed),
    ("top_level_keyed", _top_level_keyed),
    ("data_whole", _data_whole),
    ("bare_list", _bare_list),
]


def unwrap_envelope(body: Any, key: Optional[str] = None, default: Any = None) -> Any:
    """Return the payload of ``body`` (optionally the ``key`` entry of it)."""
    _check_success(body)

    for _name, shape in ENVELOPE_SHAPES:
        value = shape(body, key)
        if value is not _MISSING:
            return value

    if key is None and isinstance(body, dict):
        return body
    return default


def unwrap_list(body: Any, key: str) -> list:
    """Like :func:`unwrap_envelope` but always returns a list."""
    value = unwrap_envelope(body, key, default=[])
    if isinstance(value, list):
        return value
    return []


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def extract_total(body: Any, key: Optional[str] = None) -> int:
    """Read a record count from a list response.

    Looks at ``data.total``, ``data.paging.total``, ``total`` and
    ``paging.total`` in that order and falls back to the length of the
    unwrapped ``key`` list.
    """
    _check_success(body)

    if isinstance(body, dict):
        data = body.get("data")
        candidates = []
        if isinstance(data, dict):
            candidates.append(data.get("total"))
            paging = data.get("paging")
            if isinstance(paging, dict):
                candidates.append(paging.get("total"))
        candidates.append(body.get("total"))
        paging = body.get("paging")
        if isinstance(paging, dict):
            candidates.append(paging.get("total"))

        for candidate in candidates:
            total = _as_int(candidate)
            if total is not None:
                return total

    if key is not None:
        return len(unwrap_list(body, key))
    if isinstance(body, list):
        return len(body)
    return 0
