"""
Typed relay event delivery.

``EventStream`` is a single-consumer async iterator of relay events.  It
preserves production order and never drops state changes; when more than
``max_pending`` events are waiting, the oldest pending ``StatsReceived`` is
discarded so only stale intermediate snapshots are lost.  A closed stream
drains what is pending and then stops for good.

``EventHub`` fans every published event out to the streams of its
subscribers (one per UI surface) synchronously, so all subscribers observe
the same order.

Usage::

    hub = EventHub()
    stream = hub.subscribe()
    async for event in stream:
        ...
"""

from __future__ import annotations

import asyncio
from collections import deque

from hashdeck.core.models import RelayEvent, StatsReceived, StatsSnapshot

DEFAULT_MAX_PENDING = 64


class EventStream:
    def __init__(self, max_pending: int = DEFAULT_MAX_PENDING) -> None:
        self._max_pending = max(1, max_pending)
        self._pending: deque[RelayEvent] = deque()
        self._wakeup = asyncio.Event()
        self._closed = False
        self.dropped = 0

    @property
    def closed(self) -> bool:
        return self._closed

    def publish(self, event: RelayEvent) -> None:
        if self._closed:
            return
        if isinstance(event, StatsReceived) and len(self._pending) >= self._max_pending:
            self._drop_oldest_stats()
        self._pending.append(event)
        self._wakeup.set()

    def _drop_oldest_stats(self) -> None:
        for index, pending in enumerate(self._pending):
            if isinstance(pending, StatsReceived):
                del self._pending[index]
                self.dropped += 1
                return

    def close(self) -> None:
        """Stop accepting events; pending ones are still delivered."""
        self._closed = True
        self._wakeup.set()

    def drain(self) -> list[RelayEvent]:
        """Return and clear every pending event without waiting."""
        events = list(self._pending)
        self._pending.clear()
        return events

    def __aiter__(self) -> EventStream:
        return self

    async def __anext__(self) -> RelayEvent:
        while not self._pending:
            if self._closed:
                raise StopAsyncIteration
            self._wakeup.clear()
            await self._wakeup.wait()
        return self._pending.popleft()


class EventHub:
    def __init__(self, max_pending: int = DEFAULT_MAX_PENDING) -> None:
        self._max_pending = max_pending
        self._subscribers: list[EventStream] = []
        self._latest_stats: StatsSnapshot | None = None

    @property
    def latest_stats(self) -> StatsSnapshot | None:
        return self._latest_stats

    @property
    def subscriber_count(self) -> int:
        return sum(1 for stream in self._subscribers if not stream.closed)

    def subscribe(self) -> EventStream:
        stream = EventStream(self._max_pending)
        self._subscribers.append(stream)
        return stream

    def publish(self, event: RelayEvent) -> None:
        if isinstance(event, StatsReceived):
            self._latest_stats = event.stats
        self._subscribers = [s for s in self._subscribers if not s.closed]
        for stream in self._subscribers:
            stream.publish(event)

    def close(self) -> None:
        for stream in self._subscribers:
            stream.close()
        self._subscribers.clear()
