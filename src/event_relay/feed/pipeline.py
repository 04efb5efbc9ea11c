"""Sequential decode pipeline: log feed → extract → decode → normalize → publish.

Runs as a single asyncio task.  Everything between receiving a batch and
``Broadcaster.publish`` is pure computation, and ``publish`` never awaits,
so the pipeline only suspends while waiting on the feed.

Malformed or unknown payloads are dropped and counted; they never stop the
pipeline.  A :class:`FeedError` from the feed does stop it.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass, field

from event_relay.bus.broadcaster import Broadcaster
from event_relay.core.errors import DecodeError, FeedError
from event_relay.core.events import NormalizedEvent
from event_relay.core.interfaces import LogFeed
from event_relay.decoding.dispatcher import EventDecoder, default_decoder
from event_relay.decoding.extractor import extract_payload
from event_relay.decoding.normalizer import normalize
from event_relay.observability import metrics

logger = logging.getLogger(__name__)


@dataclass
class PipelineStats:
    """In-process counters, mirrored to Prometheus."""

    batches: int = 0
    lines: int = 0
    payloads: int = 0
    events: int = 0
    dropped: dict[str, int] = field(default_factory=lambda: defaultdict(int))
    events_by_type: dict[str, int] = field(default_factory=lambda: defaultdict(int))

    @property
    def dropped_total(self) -> int:
        return sum(self.dropped.values())

    def as_dict(self) -> dict:
        return {
            "batches": self.batches,
            "lines": self.lines,
            "payloads": self.payloads,
            "events": self.events,
            "dropped": dict(self.dropped),
            "events_by_type": dict(self.events_by_type),
        }


class LogPipeline:
    """Owns the decode path and feeds the broadcaster."""

    def __init__(
        self,
        broadcaster: Broadcaster,
        decoder: EventDecoder | None = None,
    ) -> None:
        self._broadcaster = broadcaster
        self._decoder = decoder or default_decoder()
        self.stats = PipelineStats()
        self.failed: FeedError | None = None

    def process_line(self, line: str) -> NormalizedEvent | None:
        """Run one raw log line through the pipeline.

        Returns the published event, or ``None`` when the line carried no
        event (not a payload line, or a dropped payload).
        """
        self.stats.lines += 1
        try:
            envelope = extract_payload(line)
            if envelope is None:
                return None
            self.stats.payloads += 1
            event = self._decoder.decode(envelope)
            message = normalize(event, self._decoder)
        except DecodeError as exc:
            self.stats.dropped[exc.reason] += 1
            metrics.record_payload_dropped(exc.reason)
            logger.debug("Dropped payload (%s): %s", exc.reason, exc)
            return None

        event_type = type(event).__name__
        self.stats.events += 1
        self.stats.events_by_type[event_type] += 1
        metrics.record_event_decoded(event_type)

        self._broadcaster.publish(message)
        return message

    def process_lines(self, lines: Iterable[str]) -> list[NormalizedEvent]:
        """Process a batch of lines in order; return the published events."""
        published = []
        for line in lines:
            message = self.process_line(line)
            if message is not None:
                published.append(message)
        return published

    async def run(self, feed: LogFeed) -> None:
        """Consume *feed* until it ends.

        Raises:
            FeedError: the feed could not be established or terminated.
        """
        try:
            async for batch in feed.batches():
                self.stats.batches += 1
                logger.debug(
                    "Batch %s (slot %s, %d lines%s)",
                    batch.signature or "-", batch.slot, len(batch.lines),
                    ", failed transaction" if batch.failed else "",
                )
                metrics.record_log_lines(len(batch.lines))
                self.process_lines(batch.lines)
        except FeedError as exc:
            self.failed = exc
            logger.error("Log feed failed: %s", exc)
            raise
        finally:
            await feed.close()
        logger.info(
            "Log feed ended after %d batches (%d events, %d dropped)",
            self.stats.batches, self.stats.events, self.stats.dropped_total,
        )
