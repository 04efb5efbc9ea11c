"""Per-connection subscriber session.

A session pulls events from its subscriber queue and pushes each one over
its own transport.  The first failed (or timed-out) send closes it for good:
the subscriber is removed from the broadcaster and its queue released.
Nothing is redelivered; a slow or reconnecting client may miss events.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from event_relay.bus.broadcaster import Broadcaster, Subscriber
from event_relay.core.enums import SessionState
from event_relay.core.errors import SessionClosedError
from event_relay.decoding.normalizer import to_wire
from event_relay.observability import metrics
from event_relay.observability.logger import bind_context, unbind_context

logger = logging.getLogger(__name__)

SendFn = Callable[[str], Awaitable[None]]


class SubscriberSession:
    """Connected → Closed state machine around one subscriber."""

    def __init__(
        self,
        subscriber: Subscriber,
        send: SendFn,
        broadcaster: Broadcaster,
        send_timeout: float | None = 5.0,
    ) -> None:
        self._subscriber = subscriber
        self._send = send
        self._broadcaster = broadcaster
        self._send_timeout = send_timeout
        self.state = SessionState.CONNECTED
        self.sent = 0
        self.close_reason = ""

    @property
    def subscriber_id(self) -> str:
        return self._subscriber.id

    async def run(self) -> None:
        """Forward events until a send fails or the subscriber is closed."""
        if self.state == SessionState.CLOSED:
            raise SessionClosedError(f"Session {self._subscriber.id} is closed")
        bind_context(subscriber_id=self._subscriber.id)
        try:
            while self.state == SessionState.CONNECTED:
                event = await self._subscriber.get()
                if event is None:
                    self.close("unsubscribed")
                    break

                frame = to_wire(event)
                try:
                    if self._send_timeout:
                        await asyncio.wait_for(self._send(frame), self._send_timeout)
                    else:
                        await self._send(frame)
                except asyncio.TimeoutError:
                    logger.warning("Send timed out after %.1fs", self._send_timeout)
                    self.close("send_timeout")
                    break
                except Exception as exc:
                    logger.warning("Send failed: %s", exc)
                    self.close("send_failed")
                    break
                self.sent += 1
        finally:
            if self.state == SessionState.CONNECTED:
                self.close("cancelled")
            unbind_context("subscriber_id")

    def close(self, reason: str) -> None:
        """Enter the terminal Closed state. Safe to call more than once."""
        if self.state == SessionState.CLOSED:
            return
        self.state = SessionState.CLOSED
        self.close_reason = reason
        self._broadcaster.unsubscribe(self._subscriber.id)
        metrics.record_session_closed(reason)
        logger.info("Session closed (%s) after %d events", reason, self.sent)
