"""Test Broadcaster subscribe/publish/unsubscribe and drop-oldest overflow."""

import asyncio

import pytest

from event_relay.bus.broadcaster import Broadcaster, Subscriber
from event_relay.core.enums import SubscriberState
from event_relay.core.events import OrderAcceptedMessage


def _event(n: int) -> OrderAcceptedMessage:
    return OrderAcceptedMessage(order=f"order-{n}", courier="courier")


def _drain(subscriber: Subscriber) -> list[str]:
    orders = []
    while (event := subscriber.get_nowait()) is not None:
        orders.append(event.order)
    return orders


class TestSubscribe:
    async def test_new_subscriber_is_active_and_empty(self, broadcaster):
        sub = broadcaster.subscribe()
        assert sub.state == SubscriberState.ACTIVE
        assert sub.pending == 0
        assert broadcaster.subscriber_count == 1

    async def test_ids_are_unique(self, broadcaster):
        ids = {broadcaster.subscribe().id for _ in range(10)}
        assert len(ids) == 10

    async def test_no_backfill_of_history(self, broadcaster):
        broadcaster.publish(_event(1))
        sub = broadcaster.subscribe()
        assert sub.pending == 0

    async def test_subscribe_after_close_raises(self, broadcaster):
        broadcaster.close()
        with pytest.raises(RuntimeError):
            broadcaster.subscribe()

    def test_invalid_queue_size(self):
        with pytest.raises(ValueError):
            Broadcaster(queue_size=0)


class TestPublish:
    async def test_each_subscriber_gets_one_copy(self, broadcaster):
        subs = [broadcaster.subscribe() for _ in range(3)]

        queued = broadcaster.publish(_event(1))

        assert queued == 3
        for sub in subs:
            assert _drain(sub) == ["order-1"]

    async def test_publish_order_preserved(self, broadcaster):
        sub = broadcaster.subscribe()
        for n in range(3):
            broadcaster.publish(_event(n))
        assert _drain(sub) == ["order-0", "order-1", "order-2"]

    async def test_publish_without_subscribers(self, broadcaster):
        assert broadcaster.publish(_event(1)) == 0
        assert broadcaster.published == 1

    async def test_publish_is_synchronous(self, broadcaster):
        broadcaster.subscribe()
        assert not asyncio.iscoroutinefunction(broadcaster.publish)
        # A full queue still never blocks the caller.
        for n in range(100):
            broadcaster.publish(_event(n))


class TestOverflow:
    async def test_drop_oldest(self, broadcaster):
        sub = broadcaster.subscribe()  # capacity 4
        for n in range(6):
            broadcaster.publish(_event(n))

        assert sub.dropped == 2
        assert _drain(sub) == ["order-2", "order-3", "order-4", "order-5"]

    async def test_overflow_is_isolated(self, broadcaster):
        slow = broadcaster.subscribe()
        fast = broadcaster.subscribe()

        for n in range(6):
            broadcaster.publish(_event(n))
            fast.get_nowait()

        assert slow.dropped == 2
        assert fast.dropped == 0
        assert fast.delivered == 6

    async def test_stats(self, broadcaster):
        broadcaster.subscribe()
        for n in range(5):
            broadcaster.publish(_event(n))
        assert broadcaster.stats() == {
            "subscribers": 1,
            "published": 5,
            "overflow_drops": 1,
        }


class TestUnsubscribe:
    async def test_unsubscribe_stops_delivery(self, broadcaster):
        a = broadcaster.subscribe()
        b = broadcaster.subscribe()

        assert broadcaster.unsubscribe(a.id) is True
        queued = broadcaster.publish(_event(1))

        assert queued == 1
        assert a.state == SubscriberState.CLOSED
        assert a.get_nowait() is None
        assert _drain(b) == ["order-1"]

    async def test_unsubscribe_is_idempotent(self, broadcaster):
        sub = broadcaster.subscribe()
        assert broadcaster.unsubscribe(sub.id) is True
        assert broadcaster.unsubscribe(sub.id) is False
        assert broadcaster.unsubscribe("missing") is False

    async def test_unsubscribe_releases_queue(self, broadcaster):
        sub = broadcaster.subscribe()
        broadcaster.publish(_event(1))
        broadcaster.unsubscribe(sub.id)
        assert sub.pending == 0

    async def test_unsubscribe_wakes_blocked_consumer(self, broadcaster):
        sub = broadcaster.subscribe()
        waiter = asyncio.create_task(sub.get())
        await asyncio.sleep(0)

        broadcaster.unsubscribe(sub.id)

        assert await asyncio.wait_for(waiter, timeout=1) is None

    async def test_close_closes_everyone(self, broadcaster):
        subs = [broadcaster.subscribe() for _ in range(3)]
        broadcaster.close()
        assert broadcaster.subscriber_count == 0
        assert broadcaster.closed
        assert all(s.state == SubscriberState.CLOSED for s in subs)


class TestConcurrentMutation:
    async def test_consumer_unsubscribing_during_delivery(self, broadcaster):
        """A consumer removing itself while others are fed sees no double delivery."""
        subs = [broadcaster.subscribe() for _ in range(5)]
        received: dict[str, list[str]] = {s.id: [] for s in subs}

        async def consume(sub: Subscriber, leave_after: int | None) -> None:
            while (event := await sub.get()) is not None:
                received[sub.id].append(event.order)
                if leave_after is not None and len(received[sub.id]) == leave_after:
                    broadcaster.unsubscribe(sub.id)

        tasks = [
            asyncio.create_task(consume(sub, 2 if i == 0 else None))
            for i, sub in enumerate(subs)
        ]
        for n in range(4):
            broadcaster.publish(_event(n))
            await asyncio.sleep(0.01)
        broadcaster.subscribe()  # joining mid-stream
        await asyncio.sleep(0.01)
        broadcaster.close()
        await asyncio.wait_for(asyncio.gather(*tasks), timeout=1)

        assert received[subs[0].id] == ["order-0", "order-1"]
        for sub in subs[1:]:
            assert received[sub.id] == ["order-0", "order-1", "order-2", "order-3"]

    async def test_wait_drained(self, broadcaster):
        sub = broadcaster.subscribe()
        broadcaster.publish(_event(1))
        assert await broadcaster.wait_drained(timeout=0.05) is False
        sub.get_nowait()
        assert await broadcaster.wait_drained(timeout=0.05) is True
