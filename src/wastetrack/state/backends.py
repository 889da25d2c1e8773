"""Storage backends for vehicle state and location history.

A backend stores plain JSON-ready documents. It knows nothing about the
models; :mod:`wastetrack.state.store` and :mod:`wastetrack.state.history`
validate what comes out of it.

Both backends enforce history retention themselves, so readers never see
an expired sample and never filter for one.

Any failure to reach the underlying storage is raised as
:class:`wastetrack.exceptions.StoreUnavailableError`.
"""

from __future__ import annotations

import bisect
import copy
import json
import logging
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any, Protocol
from urllib.parse import urlparse

import redis.asyncio as aioredis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from wastetrack._constants import HISTORY_RETENTION_SECONDS
from wastetrack.exceptions import StoreUnavailableError, TrackerConfigError

_logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class StorageBackend(Protocol):
    """Structural backend interface.

    Having a protocol here makes it easy to pass test doubles while keeping
    the production implementations concrete.
    """

    name: str

    async def get_vehicle(self, vehicle_id: str) -> dict[str, Any] | None: ...

    async def put_vehicle(self, vehicle_id: str, document: dict[str, Any]) -> None: ...

    async def list_vehicles(self) -> list[dict[str, Any]]: ...

    async def append_sample(self, vehicle_id: str, document: dict[str, Any], *, timestamp: float) -> None: ...

    async def list_samples(
        self,
        vehicle_id: str,
        *,
        start: float | None,
        end: float | None,
        limit: int,
    ) -> list[dict[str, Any]]: ...

    async def ping(self) -> bool: ...

    async def close(self) -> None: ...


class MemoryBackend:
    """In-process backend.

    ``available`` can be switched off to simulate an unreachable store.
    Expired samples are purged on every history access.
    """

    name = "memory"

    def __init__(
        self,
        *,
        retention_seconds: float = HISTORY_RETENTION_SECONDS,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.available = True
        self._retention_seconds = retention_seconds
        self._clock = clock
        self._vehicles: dict[str, dict[str, Any]] = {}
        # Per vehicle: (timestamps ascending, documents) kept in lockstep.
        self._samples: dict[str, tuple[list[float], list[dict[str, Any]]]] = {}

    def _check(self) -> None:
        if not self.available:
            raise StoreUnavailableError("memory backend is marked unavailable", backend=self.name)

    def _purge_expired(self, vehicle_id: str) -> None:
        entry = self._samples.get(vehicle_id)
        if entry is None:
            return
        timestamps, documents = entry
        cutoff = self._clock().timestamp() - self._retention_seconds
        expired = bisect.bisect_right(timestamps, cutoff)
        if expired:
            del timestamps[:expired]
            del documents[:expired]
        if not timestamps:
            self._samples.pop(vehicle_id, None)

    async def get_vehicle(self, vehicle_id: str) -> dict[str, Any] | None:
        self._check()
        document = self._vehicles.get(vehicle_id)
        return copy.deepcopy(document) if document is not None else None

    async def put_vehicle(self, vehicle_id: str, document: dict[str, Any]) -> None:
        self._check()
        self._vehicles[vehicle_id] = copy.deepcopy(document)

    async def list_vehicles(self) -> list[dict[str, Any]]:
        self._check()
        return [copy.deepcopy(document) for document in self._vehicles.values()]

    async def append_sample(self, vehicle_id: str, document: dict[str, Any], *, timestamp: float) -> None:
        self._check()
        timestamps, documents = self._samples.setdefault(vehicle_id, ([], []))
        index = bisect.bisect_right(timestamps, timestamp)
        timestamps.insert(index, timestamp)
        documents.insert(index, copy.deepcopy(document))
        self._purge_expired(vehicle_id)

    async def list_samples(
        self,
        vehicle_id: str,
        *,
        start: float | None,
        end: float | None,
        limit: int,
    ) -> list[dict[str, Any]]:
        self._check()
        self._purge_expired(vehicle_id)
        entry = self._samples.get(vehicle_id)
        if entry is None:
            return []
        timestamps, documents = entry
        lo = 0 if start is None else bisect.bisect_left(timestamps, start)
        hi = len(timestamps) if end is None else bisect.bisect_right(timestamps, end)
        selected = documents[lo:hi]
        selected.reverse()
        return [copy.deepcopy(document) for document in selected[:limit]]

    async def ping(self) -> bool:
        return self.available

    async def close(self) -> None:
        return None


class RedisBackend:
    """Redis backend.

    Layout::

        <prefix>:vehicles            set of vehicle ids
        <prefix>:vehicle:<id>        JSON document
        <prefix>:history:<id>        sorted set, score = epoch seconds, member = JSON sample

    History retention is enforced by trimming the sorted set below the
    retention cutoff on every access and by expiring the whole key once no
    sample has been appended for a full retention window.
    """

    name = "redis"

    def __init__(
        self,
        url: str,
        *,
        key_prefix: str = "wastetrack",
        retention_seconds: float = HISTORY_RETENTION_SECONDS,
        clock: Callable[[], datetime] = _utcnow,
        client: aioredis.Redis | None = None,
    ) -> None:
        self._client = client or aioredis.Redis.from_url(url, decode_responses=True)
        self._prefix = key_prefix
        self._retention_seconds = retention_seconds
        self._clock = clock

    def _vehicle_key(self, vehicle_id: str) -> str:
        return f"{self._prefix}:vehicle:{vehicle_id}"

    def _history_key(self, vehicle_id: str) -> str:
        return f"{self._prefix}:history:{vehicle_id}"

    @property
    def _index_key(self) -> str:
        return f"{self._prefix}:vehicles"

    def _cutoff(self) -> float:
        return self._clock().timestamp() - self._retention_seconds

    def _unavailable(self, exc: Exception) -> StoreUnavailableError:
        _logger.debug("Redis backend unreachable", exc_info=True)
        return StoreUnavailableError(f"redis unavailable: {exc}", backend=self.name)

    async def get_vehicle(self, vehicle_id: str) -> dict[str, Any] | None:
        try:
            raw = await self._client.get(self._vehicle_key(vehicle_id))
        except (RedisConnectionError, RedisTimeoutError) as exc:
            raise self._unavailable(exc) from exc
        return json.loads(raw) if raw else None

    async def put_vehicle(self, vehicle_id: str, document: dict[str, Any]) -> None:
        payload = json.dumps(document, separators=(",", ":"))
        try:
            async with self._client.pipeline(transaction=True) as pipe:
                pipe.set(self._vehicle_key(vehicle_id), payload)
                pipe.sadd(self._index_key, vehicle_id)
                await pipe.execute()
        except (RedisConnectionError, RedisTimeoutError) as exc:
            raise self._unavailable(exc) from exc

    async def list_vehicles(self) -> list[dict[str, Any]]:
        try:
            vehicle_ids = sorted(await self._client.smembers(self._index_key))
            if not vehicle_ids:
                return []
            raw_documents = await self._client.mget([self._vehicle_key(v) for v in vehicle_ids])
        except (RedisConnectionError, RedisTimeoutError) as exc:
            raise self._unavailable(exc) from exc
        return [json.loads(raw) for raw in raw_documents if raw]

    async def append_sample(self, vehicle_id: str, document: dict[str, Any], *, timestamp: float) -> None:
        key = self._history_key(vehicle_id)
        member = json.dumps(document, separators=(",", ":"), sort_keys=True)
        try:
            async with self._client.pipeline(transaction=True) as pipe:
                pipe.zadd(key, {member: timestamp})
                pipe.zremrangebyscore(key, "-inf", self._cutoff())
                pipe.expire(key, int(self._retention_seconds))
                await pipe.execute()
        except (RedisConnectionError, RedisTimeoutError) as exc:
            raise self._unavailable(exc) from exc

    async def list_samples(
        self,
        vehicle_id: str,
        *,
        start: float | None,
        end: float | None,
        limit: int,
    ) -> list[dict[str, Any]]:
        key = self._history_key(vehicle_id)
        low: float | str = "-inf" if start is None else start
        high: float | str = "+inf" if end is None else end
        try:
            await self._client.zremrangebyscore(key, "-inf", self._cutoff())
            members = await self._client.zrevrangebyscore(key, high, low, start=0, num=limit)
        except (RedisConnectionError, RedisTimeoutError) as exc:
            raise self._unavailable(exc) from exc
        return [json.loads(member) for member in members]

    async def ping(self) -> bool:
        try:
            return bool(await self._client.ping())
        except (RedisConnectionError, RedisTimeoutError):
            return False

    async def close(self) -> None:
        await self._client.aclose()


def make_backend(
    store_url: str,
    *,
    retention_seconds: float = HISTORY_RETENTION_SECONDS,
    clock: Callable[[], datetime] = _utcnow,
) -> StorageBackend:
    """Build a backend from a ``memory://`` or ``redis://`` URL."""
    scheme = urlparse(store_url).scheme.lower()
    if scheme == "memory":
        return MemoryBackend(retention_seconds=retention_seconds, clock=clock)
    if scheme in {"redis", "rediss", "unix"}:
        return RedisBackend(store_url, retention_seconds=retention_seconds, clock=clock)
    raise TrackerConfigError(f"unsupported store url scheme: {scheme or store_url!r}")
