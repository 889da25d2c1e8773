"""Masking of driver payloads before they reach DEBUG logs.

Driver reports carry driver references and, when the service runs behind an
auth proxy, caller credentials. Neither belongs in a log file.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

REDACTED = "<redacted>"

_MASKED_KEYS: frozenset[str] = frozenset(
    {
        "driverref",
        "driver_ref",
        "driverid",
        "token",
        "accesstoken",
        "authorization",
        "cookie",
        "password",
    }
)

_MAX_DEPTH = 10


def _is_masked(key: object) -> bool:
    return str(key).lower() in _MASKED_KEYS


def redact_for_log(value: Any, *, max_string: int = 256, _depth: int = 0) -> Any:
    """Copy of *value* with credential and driver keys masked.

    Long strings are cut at *max_string* characters and raw bytes are
    replaced by their length.
    """
    if _depth > _MAX_DEPTH:
        return "<max-depth>"
    if value is None or isinstance(value, (bool, int, float)):
        return value
    if isinstance(value, str):
        return value if len(value) <= max_string else f"{value[:max_string]}…<truncated>"
    if isinstance(value, (bytes, bytearray)):
        return f"<bytes:{len(value)}b>"

    def _nested(item: Any) -> Any:
        return redact_for_log(item, max_string=max_string, _depth=_depth + 1)

    if isinstance(value, Mapping):
        return {str(key): REDACTED if _is_masked(key) else _nested(item) for key, item in value.items()}
    if isinstance(value, Sequence):
        return [_nested(item) for item in value]
    return repr(value)
