"""Observer registry and event fanout.

Each connected observer owns one bounded queue and one sender task. That
single queue is what gives per-vehicle FIFO delivery: the reconciler
publishes a vehicle's events in production order and the sender drains
them in the same order. Nothing orders events across vehicles.

``publish`` never awaits. When an observer's queue is full the oldest
queued event is discarded, so a slow observer falls behind to the current
state instead of holding up everyone else. A send that raises
disconnects the observer; events are never retried or replayed.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from wastetrack._constants import ALL_VEHICLES_GROUP, DEFAULT_OBSERVER_QUEUE_SIZE
from wastetrack.exceptions import InvalidInputError
from wastetrack.ingestion.normalize import canonical_vehicle_id
from wastetrack.state.events import EventType, NormalizedEvent

_logger = logging.getLogger(__name__)

SendFn = Callable[[NormalizedEvent], Awaitable[None]]


@dataclass(frozen=True)
class SubscriptionHandle:
    """Membership of one observer in one fanout group."""

    observer_id: str
    group: str

    @property
    def vehicle_id(self) -> str | None:
        return None if self.group == ALL_VEHICLES_GROUP else self.group


class Observer:
    """A connected client and its outbound queue."""

    def __init__(
        self,
        observer_id: str,
        send: SendFn,
        *,
        queue_size: int,
        on_failure: Callable[[str], None],
    ) -> None:
        self.observer_id = observer_id
        self.dropped = 0
        self._send = send
        self._on_failure = on_failure
        self._queue: asyncio.Queue[NormalizedEvent] = asyncio.Queue(maxsize=queue_size)
        self._task: asyncio.Task[None] | None = None

    def start(self) -> None:
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name=f"wastetrack-observer-{self.observer_id}"
        )

    def offer(self, event: NormalizedEvent) -> None:
        """Enqueue without blocking, discarding the oldest event when full."""
        if self._queue.full():
            with contextlib.suppress(asyncio.QueueEmpty):
                self._queue.get_nowait()
                self.dropped += 1
        self._queue.put_nowait(event)

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    async def _run(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                await self._send(event)
            except asyncio.CancelledError:
                raise
            except Exception:
                _logger.debug("Send to observer %s failed; disconnecting", self.observer_id, exc_info=True)
                self._on_failure(self.observer_id)
                return

    def close(self) -> asyncio.Task[None] | None:
        """Cancel the sender; queued events are dropped."""
        task = self._task
        self._task = None
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()
            return task
        return None


class BroadcastFanout:
    """Fanout of normalized events to the "all" group and per-vehicle groups.

    Usage::

        fanout = BroadcastFanout()
        fanout.connect("obs-1", websocket_send)
        handle = fanout.subscribe("obs-1", "KA01AB1234")
        fanout.publish(event)
        fanout.unsubscribe(handle)
        fanout.disconnect("obs-1")

    Must be used from the event loop thread.
    """

    def __init__(self, *, queue_size: int = DEFAULT_OBSERVER_QUEUE_SIZE) -> None:
        self._queue_size = queue_size
        self._observers: dict[str, Observer] = {}
        self._groups: dict[str, set[str]] = {}
        self._closing: set[asyncio.Task[None]] = set()

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    def connect(self, observer_id: str, send: SendFn) -> Observer:
        if observer_id in self._observers:
            raise ValueError(f"observer {observer_id!r} is already connected")
        observer = Observer(observer_id, send, queue_size=self._queue_size, on_failure=self.disconnect)
        self._observers[observer_id] = observer
        observer.start()
        _logger.debug("Observer connected id=%s", observer_id)
        return observer

    def disconnect(self, observer_id: str) -> None:
        """Release every group membership of *observer_id* and stop its sender."""
        observer = self._observers.pop(observer_id, None)
        if observer is None:
            return
        for group in list(self._groups):
            members = self._groups[group]
            members.discard(observer_id)
            if not members:
                del self._groups[group]
        task = observer.close()
        if task is not None:
            self._closing.add(task)
            task.add_done_callback(self._closing.discard)
        _logger.debug("Observer disconnected id=%s dropped=%d", observer_id, observer.dropped)

    async def close(self) -> None:
        """Disconnect every observer and wait for their senders to stop."""
        for observer_id in list(self._observers):
            self.disconnect(observer_id)
        pending = list(self._closing)
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    # ------------------------------------------------------------------
    # Group membership
    # ------------------------------------------------------------------

    def subscribe(self, observer_id: str, vehicle_id: str | None = None) -> SubscriptionHandle:
        """Join the "all" group, or the group of *vehicle_id* when given."""
        if observer_id not in self._observers:
            raise InvalidInputError(f"observer {observer_id!r} is not connected", field="observerId")
        if vehicle_id is None:
            group = ALL_VEHICLES_GROUP
        else:
            try:
                group = canonical_vehicle_id(vehicle_id)
            except ValueError as exc:
                raise InvalidInputError(str(exc), field="vehicleId") from exc
        self._groups.setdefault(group, set()).add(observer_id)
        return SubscriptionHandle(observer_id=observer_id, group=group)

    def unsubscribe(self, handle: SubscriptionHandle) -> None:
        members = self._groups.get(handle.group)
        if members is None:
            return
        members.discard(handle.observer_id)
        if not members:
            del self._groups[handle.group]

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------

    def publish(self, event: NormalizedEvent) -> int:
        """Hand *event* to every interested observer without blocking.

        Emergency alerts go to the "all" group only. Other events go to the
        "all" group and the event vehicle's group; an observer in both gets
        the event once. Returns the number of observers it was queued for.
        """
        targets = set(self._groups.get(ALL_VEHICLES_GROUP, ()))
        if event.type != EventType.EMERGENCY:
            targets |= self._groups.get(event.vehicle_id, set())
        for observer_id in targets:
            observer = self._observers.get(observer_id)
            if observer is not None:
                observer.offer(event)
        return len(targets)

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    @property
    def observer_count(self) -> int:
        return len(self._observers)

    def group_members(self, vehicle_id: str | None = None) -> frozenset[str]:
        group = ALL_VEHICLES_GROUP if vehicle_id is None else canonical_vehicle_id(vehicle_id)
        return frozenset(self._groups.get(group, ()))
