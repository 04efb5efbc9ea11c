"""Solana ``logsSubscribe`` feed over a JSON-RPC WebSocket.

Architecture
------------
* One aiohttp WebSocket to the node's PubSub endpoint.
* Subscribes with the ``mentions`` filter for a single program id, so every
  transaction that touches the program produces one ``logsNotification``.
* Each notification becomes one :class:`LogBatch`.
* Frames that are not JSON objects, or notifications of the wrong shape, are
  logged and skipped.  Only a rejected subscription is a protocol error.
* Without ``reconnect`` any failure raises :class:`FeedError` and ends the
  feed.  With ``reconnect`` the connection is re-established with
  exponential backoff; events emitted while disconnected are lost.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator
from typing import Any

import aiohttp

from event_relay.core.enums import Commitment
from event_relay.core.errors import (
    FeedClosedError,
    FeedConnectionError,
    FeedError,
    FeedProtocolError,
)
from event_relay.core.interfaces import LogBatch
from event_relay.observability import metrics

logger = logging.getLogger(__name__)

_SUBSCRIBE_ID = 1


def build_subscribe_request(
    program_id: str,
    commitment: Commitment | None = None,
    request_id: int = _SUBSCRIBE_ID,
) -> dict[str, Any]:
    """JSON-RPC ``logsSubscribe`` request for logs mentioning *program_id*."""
    config: dict[str, Any] = {}
    if commitment is not None:
        config["commitment"] = Commitment(commitment).value
    return {
        "jsonrpc": "2.0",
        "id": request_id,
        "method": "logsSubscribe",
        "params": [{"mentions": [program_id]}, config],
    }


def parse_notification(msg: dict[str, Any]) -> LogBatch | None:
    """Turn a ``logsNotification`` message into a batch.

    Returns ``None`` for any other message (acks, unrelated notifications).

    Raises:
        ValueError: a ``logsNotification`` whose payload is not shaped
            ``params.result.value.logs``.
    """
    if msg.get("method") != "logsNotification":
        return None
    params = msg.get("params")
    result = params.get("result") if isinstance(params, dict) else None
    if not isinstance(result, dict):
        raise ValueError(f"logsNotification without a result object: {params!r}")
    value = result.get("value")
    if not isinstance(value, dict):
        raise ValueError(f"logsNotification without a value object: {value!r}")
    logs = value.get("logs") or []
    if not isinstance(logs, list):
        raise ValueError(f"logsNotification logs is not a list: {logs!r}")
    context = result.get("context")
    return LogBatch(
        lines=tuple(str(line) for line in logs),
        signature=value.get("signature") or "",
        slot=context.get("slot") if isinstance(context, dict) else None,
        failed=value.get("err") is not None,
    )


class SolanaLogFeed:
    """Streams program log batches from a Solana node.

    Parameters
    ----------
    ws_url:
        PubSub WebSocket endpoint, e.g. ``ws://127.0.0.1:8900``.
    program_id:
        Base58 id of the program whose logs are wanted.
    commitment:
        Optional commitment level; the node default is used when unset.
    reconnect:
        Re-establish the subscription after a failure instead of raising.
    """

    def __init__(
        self,
        ws_url: str,
        program_id: str,
        commitment: Commitment | None = None,
        reconnect: bool = False,
        initial_delay: float = 0.5,
        max_delay: float = 30.0,
        heartbeat: float | None = 20.0,
        connect_timeout: float = 10.0,
    ) -> None:
        self._ws_url = ws_url
        self._program_id = program_id
        self._commitment = commitment
        self._reconnect = reconnect
        self._initial_delay = initial_delay
        self._max_delay = max_delay
        self._heartbeat = heartbeat
        self._connect_timeout = connect_timeout

        self._session: aiohttp.ClientSession | None = None
        self._ws: aiohttp.ClientWebSocketResponse | None = None
        self._closed = False
        self.subscription_id: int | None = None
        self.connects = 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def close(self) -> None:
        self._closed = True
        await self._disconnect()

    async def _disconnect(self) -> None:
        if self._ws is not None and not self._ws.closed:
            await self._ws.close()
        self._ws = None
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None
        self.subscription_id = None

    # ------------------------------------------------------------------
    # Feed
    # ------------------------------------------------------------------

    async def batches(self) -> AsyncIterator[LogBatch]:
        """Yield log batches until closed, or until the feed fails."""
        delay = self._initial_delay
        while not self._closed:
            try:
                await self._connect()
                delay = self._initial_delay  # reset on success
                async for batch in self._receive():
                    yield batch
                if self._closed:
                    return
                raise FeedClosedError(f"Log feed {self._ws_url} closed by peer")
            except FeedProtocolError:
                await self._disconnect()
                raise
            except FeedError as exc:
                await self._disconnect()
                if self._closed:
                    return
                if not self._reconnect:
                    raise
                metrics.record_feed_reconnection()
                logger.warning(
                    "Log feed lost (%s); reconnecting in %.1fs", exc, delay
                )
                await asyncio.sleep(delay)
                delay = min(delay * 2, self._max_delay)

    async def _connect(self) -> None:
        timeout = aiohttp.ClientTimeout(total=None, sock_connect=self._connect_timeout)
        self._session = aiohttp.ClientSession(timeout=timeout)
        try:
            self._ws = await self._session.ws_connect(
                self._ws_url, heartbeat=self._heartbeat
            )
        except (aiohttp.ClientError, OSError, asyncio.TimeoutError) as exc:
            raise FeedConnectionError(
                f"Cannot connect to log feed {self._ws_url}: {exc}"
            ) from exc

        request = build_subscribe_request(self._program_id, self._commitment)
        try:
            await self._ws.send_json(request)
            ack = await asyncio.wait_for(
                self._ws.receive(), timeout=self._connect_timeout
            )
        except (aiohttp.ClientError, OSError, asyncio.TimeoutError) as exc:
            raise FeedConnectionError(f"logsSubscribe failed: {exc}") from exc

        if ack.type != aiohttp.WSMsgType.TEXT:
            raise FeedConnectionError(
                f"logsSubscribe failed: connection {ack.type.name.lower()}"
            )
        reply = _loads(ack.data)
        if "error" in reply:
            raise FeedProtocolError(f"logsSubscribe rejected: {reply['error']}")
        if reply.get("id") != _SUBSCRIBE_ID or "result" not in reply:
            raise FeedProtocolError(f"Unexpected logsSubscribe reply: {reply}")

        self.subscription_id = reply["result"]
        self.connects += 1
        logger.info(
            "Listening for program %s logs on %s (subscription %s)",
            self._program_id, self._ws_url, self.subscription_id,
        )

    async def _receive(self) -> AsyncIterator[LogBatch]:
        assert self._ws is not None
        async for msg in self._ws:
            if msg.type == aiohttp.WSMsgType.TEXT:
                try:
                    batch = parse_notification(_loads(msg.data))
                except (FeedProtocolError, ValueError) as exc:
                    logger.warning("Ignoring unreadable log feed frame: %s", exc)
                    continue
                if batch is not None:
                    yield batch
            elif msg.type == aiohttp.WSMsgType.ERROR:
                raise FeedClosedError(f"Log feed error: {self._ws.exception()}")


def _loads(data: str) -> dict[str, Any]:
    try:
        value = json.loads(data)
    except ValueError as exc:
        raise FeedProtocolError(f"Log feed sent invalid JSON: {exc}") from exc
    if not isinstance(value, dict):
        raise FeedProtocolError(f"Log feed sent non-object JSON: {value!r}")
    return value
