"""Protocol interfaces for the relay.

The log feed is the only inbound boundary.  Implementations can be swapped
(live node subscription, file replay, tests) without changing the pipeline.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class LogBatch:
    """Log lines from one feed notification (one transaction)."""

    lines: tuple[str, ...]
    signature: str = ""
    slot: int | None = None
    failed: bool = False  # transaction error reported alongside the logs


@runtime_checkable
class LogFeed(Protocol):
    """Produces an ongoing sequence of log-line batches.

    ``batches()`` raises :class:`~event_relay.core.errors.FeedError` when the
    subscription cannot be established or terminates unexpectedly.  A feed
    with a natural end (file replay) simply stops iterating.
    """

    def batches(self) -> AsyncIterator[LogBatch]: ...

    async def close(self) -> None: ...
