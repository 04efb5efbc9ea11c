"""Test the WebSocket push endpoint and the health check."""

import asyncio
import json

import pytest
from aiohttp import WSCloseCode, WSMsgType

from event_relay.feed.pipeline import LogPipeline
from event_relay.server.app import create_relay_app


async def wait_for_subscribers(broadcaster, count, timeout=2.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while broadcaster.subscriber_count != count:
        assert loop.time() < deadline, f"expected {count} subscribers"
        await asyncio.sleep(0.01)


@pytest.fixture
def pipeline(broadcaster):
    return LogPipeline(broadcaster)


@pytest.fixture
async def client(aiohttp_client, broadcaster, pipeline):
    app = create_relay_app(broadcaster, pipeline=pipeline, heartbeat=None)
    return await aiohttp_client(app)


class TestPushEndpoint:
    async def test_event_pushed_as_json_text(
        self, client, broadcaster, pipeline, order_created_line, expected_order_created
    ):
        ws = await client.ws_connect("/ws")
        await wait_for_subscribers(broadcaster, 1)

        pipeline.process_line(order_created_line)

        msg = await ws.receive(timeout=2)
        assert msg.type == WSMsgType.TEXT
        assert json.loads(msg.data) == expected_order_created
        await ws.close()

    async def test_every_client_gets_every_event_in_order(
        self, client, broadcaster, pipeline, order_created_line, order_accepted_line
    ):
        first = await client.ws_connect("/ws")
        second = await client.ws_connect("/ws")
        await wait_for_subscribers(broadcaster, 2)

        pipeline.process_lines([order_created_line, order_accepted_line])

        for ws in (first, second):
            types = [json.loads((await ws.receive(timeout=2)).data)["type"] for _ in range(2)]
            assert types == ["OrderCreated", "OrderAccepted"]
            await ws.close()

    async def test_late_joiner_gets_no_history(
        self, client, broadcaster, pipeline, order_created_line, order_accepted_line
    ):
        pipeline.process_line(order_created_line)

        ws = await client.ws_connect("/ws")
        await wait_for_subscribers(broadcaster, 1)
        pipeline.process_line(order_accepted_line)

        msg = await ws.receive(timeout=2)
        assert json.loads(msg.data)["type"] == "OrderAccepted"
        await ws.close()

    async def test_disconnect_unsubscribes_without_affecting_others(
        self, client, broadcaster, pipeline, order_completed_line
    ):
        leaving = await client.ws_connect("/ws")
        staying = await client.ws_connect("/ws")
        await wait_for_subscribers(broadcaster, 2)

        await leaving.close()
        await wait_for_subscribers(broadcaster, 1)
        pipeline.process_line(order_completed_line)

        msg = await staying.receive(timeout=2)
        assert json.loads(msg.data)["type"] == "OrderCompleted"
        await staying.close()

    async def test_client_frames_ignored(self, client, broadcaster, pipeline, order_created_line):
        ws = await client.ws_connect("/ws")
        await wait_for_subscribers(broadcaster, 1)

        await ws.send_str("hello relay")
        pipeline.process_line(order_created_line)

        msg = await ws.receive(timeout=2)
        assert json.loads(msg.data)["type"] == "OrderCreated"
        await ws.close()

    async def test_refused_after_broadcaster_closed(self, client, broadcaster):
        broadcaster.close()
        resp = await client.get("/ws")
        assert resp.status == 503

    async def test_shutdown_during_handshake_closes_socket(
        self, client, broadcaster, monkeypatch
    ):
        subscribe = broadcaster.subscribe

        def subscribe_after_shutdown():
            broadcaster.close()
            return subscribe()

        monkeypatch.setattr(broadcaster, "subscribe", subscribe_after_shutdown)

        ws = await client.ws_connect("/ws")
        msg = await ws.receive(timeout=2)

        assert msg.type == WSMsgType.CLOSE
        assert msg.data == WSCloseCode.GOING_AWAY
        assert broadcaster.subscriber_count == 0


class TestHealth:
    async def test_reports_counters(self, client, broadcaster, pipeline, order_created_line):
        ws = await client.ws_connect("/ws")
        await wait_for_subscribers(broadcaster, 1)
        pipeline.process_lines([order_created_line, "Program log: noise"])

        resp = await client.get("/health")
        assert resp.status == 200
        body = await resp.json()
        assert body["status"] == "ok"
        assert body["subscribers"] == 1
        assert body["published"] == 1
        assert body["pipeline"]["events"] == 1
        assert body["pipeline"]["lines"] == 2
        await ws.close()

    async def test_degraded_after_feed_failure(self, client, pipeline):
        from event_relay.core.errors import FeedClosedError

        pipeline.failed = FeedClosedError("gone")
        body = await (await client.get("/health")).json()
        assert body["status"] == "degraded"
