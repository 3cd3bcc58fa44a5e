"""Helpers for safe debug logging.

Action payloads and states can be large or carry secrets (tokens,
passwords) that belong to the application, not to log files. This module
renders them into a bounded, redacted structure before they are emitted
by the logging middleware.
"""

from __future__ import annotations

from collections.abc import Collection, Mapping, Sequence
from typing import Any

from pydantic import BaseModel

DEFAULT_REDACT_KEYS: frozenset[str] = frozenset(
    {
        "password",
        "secret",
        "token",
        "accesstoken",
        "refreshtoken",
        "apikey",
        "authorization",
        "cookie",
    }
)


def redact_for_log(
    value: Any,
    *,
    redact_keys: Collection[str] = DEFAULT_REDACT_KEYS,
    max_string: int = 256,
    max_items: int = 50,
    _depth: int = 0,
) -> Any:
    """Return a redacted copy of *value* suitable for debug logs.

    Keys are matched case-insensitively against *redact_keys*.
    """
    if _depth > 10:
        return "<max-depth>"

    if value is None or isinstance(value, (bool, int, float)):
        return value

    if isinstance(value, str):
        if len(value) > max_string:
            return f"{value[:max_string]}…<truncated>"
        return value

    if isinstance(value, (bytes, bytearray)):
        return f"<bytes:{len(value)}b>"

    kwargs: dict[str, Any] = {
        "redact_keys": redact_keys,
        "max_string": max_string,
        "max_items": max_items,
        "_depth": _depth + 1,
    }

    if isinstance(value, BaseModel):
        return redact_for_log(value.model_dump(), **kwargs)

    if isinstance(value, Mapping):
        lowered = {k.lower() for k in redact_keys}
        redacted: dict[str, Any] = {}
        for index, (k, v) in enumerate(value.items()):
            if index >= max_items:
                redacted["…"] = f"<{len(value) - max_items} more>"
                break
            key = str(k)
            if key.lower() in lowered:
                redacted[key] = "<redacted>"
            else:
                redacted[key] = redact_for_log(v, **kwargs)
        return redacted

    if isinstance(value, Sequence):
        items = [redact_for_log(v, **kwargs) for v in list(value)[:max_items]]
        if len(value) > max_items:
            items.append(f"<{len(value) - max_items} more>")
        return items

    # Unknown objects are rendered without dumping internals.
    return repr(value)
