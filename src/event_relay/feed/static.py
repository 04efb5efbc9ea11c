"""In-memory and file-backed log feeds (replay, tests)."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Iterable
from pathlib import Path
from typing import IO

from event_relay.core.interfaces import LogBatch


class StaticLogFeed:
    """Replays a fixed sequence of batches, then ends."""

    def __init__(self, batches: Iterable[LogBatch | Iterable[str]]) -> None:
        self._batches = [
            b if isinstance(b, LogBatch) else LogBatch(lines=tuple(b))
            for b in batches
        ]
        self._closed = False

    @classmethod
    def from_lines(cls, lines: Iterable[str]) -> StaticLogFeed:
        """One batch per line, trailing newlines stripped."""
        return cls([[line.rstrip("\r\n")] for line in lines])

    @classmethod
    def from_file(cls, path: str | Path) -> StaticLogFeed:
        with open(path, encoding="utf-8") as f:
            return cls.from_lines(f)

    @classmethod
    def from_stream(cls, stream: IO[str]) -> StaticLogFeed:
        return cls.from_lines(stream)

    async def batches(self) -> AsyncIterator[LogBatch]:
        for batch in self._batches:
            if self._closed:
                return
            yield batch
            # Let subscriber sessions run between batches.
            await asyncio.sleep(0)

    async def close(self) -> None:
        self._closed = True
