"""Non-blocking fan-out of normalized events to live subscribers.

Every subscriber owns a bounded private queue.  ``publish`` is a plain
(synchronous) method: it never awaits, so the log pipeline can never be
held up by a slow WebSocket client.  When a subscriber's queue is full the
oldest queued event is discarded to make room (drop-oldest); only that
subscriber sees the gap.

The subscriber set is confined to the event loop thread.  ``publish``
iterates over a snapshot, so a subscribe or unsubscribe that happens while
sessions are being woken never causes a double or a skipped delivery.
"""

from __future__ import annotations

import asyncio
import logging

from event_relay.core.enums import SubscriberState
from event_relay.core.events import NormalizedEvent
from event_relay.core.ids import new_id
from event_relay.observability import metrics

logger = logging.getLogger(__name__)

# Queue marker that wakes a consumer blocked on a closed subscriber.
_CLOSED = object()


class Subscriber:
    """One consumer's identity, private queue, and delivery counters."""

    def __init__(self, subscriber_id: str, capacity: int) -> None:
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self.id = subscriber_id
        self.capacity = capacity
        self.state = SubscriberState.ACTIVE
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=capacity)

        self.delivered = 0  # events queued for this subscriber
        self.dropped = 0  # events discarded on overflow

    @property
    def is_active(self) -> bool:
        return self.state == SubscriberState.ACTIVE

    @property
    def pending(self) -> int:
        """Events queued and not yet consumed."""
        if not self.is_active:
            return 0
        return self._queue.qsize()

    def offer(self, event: NormalizedEvent) -> bool:
        """Queue *event* without blocking, evicting the oldest if full.

        Returns ``False`` when the subscriber is already closed.
        """
        if not self.is_active:
            return False
        if self._queue.full():
            self._queue.get_nowait()
            self.dropped += 1
            metrics.record_overflow_drop()
            logger.debug(
                "Subscriber %s queue full (%d); dropped oldest event",
                self.id, self.capacity,
            )
        self._queue.put_nowait(event)
        self.delivered += 1
        return True

    async def get(self) -> NormalizedEvent | None:
        """Wait for the next event. ``None`` once the subscriber is closed."""
        if not self.is_active:
            return None
        item = await self._queue.get()
        if item is _CLOSED:
            return None
        return item

    def get_nowait(self) -> NormalizedEvent | None:
        """Next queued event, or ``None`` if there is none (or closed)."""
        if not self.is_active:
            return None
        try:
            item = self._queue.get_nowait()
        except asyncio.QueueEmpty:
            return None
        return None if item is _CLOSED else item

    def close(self) -> None:
        """Mark closed, release queued events and wake a blocked consumer."""
        if not self.is_active:
            return
        self.state = SubscriberState.CLOSED
        while not self._queue.empty():
            self._queue.get_nowait()
        self._queue.put_nowait(_CLOSED)

    def __repr__(self) -> str:
        return (
            f"Subscriber(id={self.id!r}, state={self.state.value}, "
            f"pending={self.pending}, dropped={self.dropped})"
        )


class Broadcaster:
    """Holds the live subscriber set and publishes to every member."""

    def __init__(self, queue_size: int = 100) -> None:
        if queue_size < 1:
            raise ValueError("queue_size must be >= 1")
        self._queue_size = queue_size
        self._subscribers: dict[str, Subscriber] = {}
        self._closed = False
        self.published = 0

    # ------------------------------------------------------------------
    # Subscriber set
    # ------------------------------------------------------------------

    def subscribe(self) -> Subscriber:
        """Register a new subscriber with an empty queue (no history)."""
        if self._closed:
            raise RuntimeError("Broadcaster is closed")
        subscriber = Subscriber(new_id(), self._queue_size)
        self._subscribers[subscriber.id] = subscriber
        metrics.update_active_subscribers(len(self._subscribers))
        logger.info(
            "Subscriber %s connected (%d total)",
            subscriber.id, len(self._subscribers),
        )
        return subscriber

    def unsubscribe(self, subscriber_id: str) -> bool:
        """Remove a subscriber and release its queue. Idempotent."""
        subscriber = self._subscribers.pop(subscriber_id, None)
        if subscriber is None:
            return False
        subscriber.close()
        metrics.update_active_subscribers(len(self._subscribers))
        logger.info(
            "Subscriber %s disconnected (%d remaining, %d dropped)",
            subscriber_id, len(self._subscribers), subscriber.dropped,
        )
        return True

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def queue_size(self) -> int:
        return self._queue_size

    # ------------------------------------------------------------------
    # Publishing
    # ------------------------------------------------------------------

    def publish(self, event: NormalizedEvent) -> int:
        """Offer *event* to every current subscriber without blocking.

        Returns the number of subscribers the event was queued for.
        """
        self.published += 1
        metrics.record_published()
        queued = 0
        for subscriber in tuple(self._subscribers.values()):
            if subscriber.offer(event):
                queued += 1
        return queued

    def close(self) -> None:
        """Close every subscriber and refuse new ones (shutdown)."""
        self._closed = True
        for subscriber_id in list(self._subscribers):
            self.unsubscribe(subscriber_id)

    async def wait_drained(self, timeout: float) -> bool:
        """Wait until every subscriber queue is empty, at most *timeout* seconds."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while any(s.pending for s in tuple(self._subscribers.values())):
            if loop.time() >= deadline:
                return False
            await asyncio.sleep(0.01)
        return True

    def stats(self) -> dict[str, int]:
        return {
            "subscribers": len(self._subscribers),
            "published": self.published,
            "overflow_drops": sum(s.dropped for s in self._subscribers.values()),
        }
