"""Relay HTTP server — WebSocket push endpoint plus health check.

Endpoints:
  GET /ws      — WebSocket upgrade; one JSON text frame per decoded event
  GET /health  — subscriber count and pipeline counters

Client-originated frames are read only to notice the close handshake and
are otherwise ignored.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from aiohttp import WSCloseCode, WSMsgType, web

from event_relay.bus.broadcaster import Broadcaster
from event_relay.core.enums import SessionState

from .session import SubscriberSession

logger = logging.getLogger(__name__)


def create_relay_app(
    broadcaster: Broadcaster,
    pipeline: Any = None,
    path: str = "/ws",
    send_timeout: float | None = 5.0,
    heartbeat: float | None = 30.0,
) -> web.Application:
    """Create the aiohttp web application serving the push endpoint."""
    app = web.Application()
    app["broadcaster"] = broadcaster
    app["pipeline"] = pipeline
    app["send_timeout"] = send_timeout
    app["heartbeat"] = heartbeat
    app["sessions"] = set()

    app.router.add_get(path, handle_ws)
    app.router.add_get("/health", handle_health)
    app.on_shutdown.append(_close_sessions)
    return app


async def handle_ws(request: web.Request) -> web.WebSocketResponse:
    """GET /ws — stream events to one subscriber until either side goes away."""
    broadcaster: Broadcaster = request.app["broadcaster"]
    if broadcaster.closed:
        raise web.HTTPServiceUnavailable(text="Relay is shutting down")

    ws = web.WebSocketResponse(heartbeat=request.app["heartbeat"])
    await ws.prepare(request)

    try:
        subscriber = broadcaster.subscribe()
    except RuntimeError:
        # Shutdown began during the handshake.
        await ws.close(code=WSCloseCode.GOING_AWAY, message=b"Server shutdown")
        return ws

    session = SubscriberSession(
        subscriber,
        ws.send_str,
        broadcaster,
        send_timeout=request.app["send_timeout"],
    )
    logger.info("Web client connected from %s", request.remote)

    async def _forward() -> None:
        await session.run()
        # Sender side ended (send failure or shutdown): close the socket so
        # the read loop below finishes too.
        if not ws.closed:
            await ws.close()

    sender = asyncio.create_task(_forward(), name=f"session:{subscriber.id}")
    request.app["sessions"].add(ws)
    try:
        async for msg in ws:
            if msg.type == WSMsgType.ERROR:
                logger.warning("WebSocket error: %s", ws.exception())
                break
    finally:
        request.app["sessions"].discard(ws)
        if session.state == SessionState.CONNECTED:
            session.close("client_closed")
        if not sender.done():
            sender.cancel()
        await asyncio.gather(sender, return_exceptions=True)

    logger.info("Web client disconnected (%s)", session.close_reason)
    return ws


async def handle_health(request: web.Request) -> web.Response:
    """GET /health — simple health check."""
    broadcaster: Broadcaster = request.app["broadcaster"]
    pipeline = request.app.get("pipeline")

    body: dict[str, Any] = {"status": "ok", **broadcaster.stats()}
    if pipeline is not None:
        body["pipeline"] = pipeline.stats.as_dict()
        if pipeline.failed:
            body["status"] = "degraded"
    return web.json_response(body)


async def _close_sessions(app: web.Application) -> None:
    for ws in list(app["sessions"]):
        await ws.close(code=WSCloseCode.GOING_AWAY, message=b"Server shutdown")


async def start_relay_server(
    app: web.Application,
    host: str = "0.0.0.0",
    port: int = 3000,
) -> web.AppRunner:
    """Start serving *app*.

    Returns the runner for lifecycle management (call runner.cleanup() to stop).
    """
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, host, port)
    await site.start()
    logger.info("WebSocket server on ws://%s:%d", host, port)
    return runner
