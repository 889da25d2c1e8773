"""Base model and helpers for wastetrack data models.

Every model inherits from :class:`TrackerBaseModel` which provides:

* ``alias_generator=to_camel`` so the camelCase wire format used by the
  dashboard and driver apps maps to snake_case fields, while snake_case
  names are accepted too (storage documents use them).
* Frozen instances: updates always produce a new value.
* Rejection of NaN/inf floats.

Timestamps go through :data:`UtcDatetime`, which accepts aware or naive
datetimes, ISO-8601 strings, and epoch numbers (seconds **or**
milliseconds) and always yields an aware UTC datetime.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict
from pydantic.alias_generators import to_camel

# Threshold to distinguish seconds from milliseconds.
_MS_THRESHOLD = 1_000_000_000_000


def parse_timestamp(value: Any) -> datetime | None:
    """Coerce *value* to an aware UTC datetime.

    Returns ``None`` for ``None`` and empty strings. Raises ``ValueError``
    for anything that is not a recognisable timestamp.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        try:
            return value.astimezone(UTC)
        except OverflowError as exc:
            raise ValueError(f"timestamp out of range: {value.isoformat()}") from exc
    if isinstance(value, bool):
        raise ValueError("timestamp must not be a boolean")
    if isinstance(value, (int, float)):
        ts = float(value)
        if ts >= _MS_THRESHOLD:
            ts /= 1000.0
        try:
            return datetime.fromtimestamp(ts, tz=UTC)
        except (OverflowError, OSError) as exc:
            raise ValueError(f"timestamp out of range: {value!r}") from exc
    if isinstance(value, str):
        parsed = datetime.fromisoformat(value.strip())
        return parse_timestamp(parsed)
    raise ValueError(f"unsupported timestamp value: {value!r}")


UtcDatetime = Annotated[datetime, BeforeValidator(parse_timestamp)]
"""Annotated type that coerces timestamps to aware UTC datetimes."""


class TrackerBaseModel(BaseModel):
    """Base for wastetrack models."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
        allow_inf_nan=False,
    )

    def to_wire(self) -> dict[str, Any]:
        """JSON-ready camelCase representation."""
        return self.model_dump(mode="json", by_alias=True)

    def to_document(self) -> dict[str, Any]:
        """JSON-ready snake_case representation used by storage backends."""
        return self.model_dump(mode="json")
