"""Append-only, bounded-retention location history."""

from __future__ import annotations

import logging
from datetime import datetime

from pydantic import ValidationError

from wastetrack._constants import DEFAULT_HISTORY_LIMIT, MAX_HISTORY_LIMIT
from wastetrack.exceptions import InvalidInputError
from wastetrack.models.location import LocationSample
from wastetrack.state.backends import StorageBackend

_logger = logging.getLogger(__name__)


class LocationHistoryLog:
    """Raw position samples per vehicle.

    Independent of the current-state store: a sample is appended for every
    persisted location update and is never rewritten. Expiry is enforced by
    the backend, so query results never contain expired samples.
    """

    def __init__(self, backend: StorageBackend, *, default_limit: int = DEFAULT_HISTORY_LIMIT) -> None:
        if not 1 <= default_limit <= MAX_HISTORY_LIMIT:
            raise ValueError(f"default_limit must be between 1 and {MAX_HISTORY_LIMIT}")
        self._backend = backend
        self._default_limit = default_limit

    async def append(self, sample: LocationSample) -> None:
        await self._backend.append_sample(
            sample.vehicle_id,
            sample.to_document(),
            timestamp=sample.timestamp.timestamp(),
        )

    async def query(
        self,
        vehicle_id: str,
        *,
        start: datetime | None = None,
        end: datetime | None = None,
        limit: int | None = None,
    ) -> list[LocationSample]:
        """Samples for *vehicle_id*, newest first.

        ``start``/``end`` are inclusive bounds. ``limit`` defaults to the
        configured bound and may not exceed it.
        """
        effective_limit = self._default_limit if limit is None else limit
        if not 1 <= effective_limit <= self._default_limit:
            raise InvalidInputError(f"limit must be between 1 and {self._default_limit}", field="limit")
        if start is not None and end is not None and start > end:
            raise InvalidInputError("start must not be after end", field="startDate")

        documents = await self._backend.list_samples(
            vehicle_id,
            start=start.timestamp() if start is not None else None,
            end=end.timestamp() if end is not None else None,
            limit=effective_limit,
        )
        samples: list[LocationSample] = []
        for document in documents:
            try:
                samples.append(LocationSample.model_validate(document))
            except ValidationError:
                _logger.debug("Skipping invalid stored location sample", exc_info=True)
        return samples
