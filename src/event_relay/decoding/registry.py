"""Event discriminator registry.

An Anchor event payload starts with an 8-byte discriminator: the first
8 bytes of ``sha256("event:" + EventName)``.  Tags for every known event
are computed once when the registry is built and are read-only afterwards.
"""

from __future__ import annotations

import hashlib
from collections.abc import Iterable, Iterator
from types import MappingProxyType

TAG_LENGTH = 8
_NAMESPACE = "event:"


def compute_tag(event_name: str) -> bytes:
    """Return the 8-byte discriminator for *event_name*."""
    digest = hashlib.sha256(f"{_NAMESPACE}{event_name}".encode("utf-8")).digest()
    return digest[:TAG_LENGTH]


class DiscriminatorRegistry:
    """Read-only name → tag mapping, iterated in registration order."""

    def __init__(self, names: Iterable[str]) -> None:
        tags: dict[str, bytes] = {}
        for name in names:
            tags.setdefault(name, compute_tag(name))
        self._tags = MappingProxyType(tags)
        self._names_by_tag = MappingProxyType({t: n for n, t in tags.items()})

    def tag_for(self, name: str) -> bytes:
        """Tag of a registered event name. ``KeyError`` if unknown."""
        return self._tags[name]

    def matches(self, tag: bytes, name: str) -> bool:
        expected = self._tags.get(name)
        return expected is not None and bytes(tag) == expected

    def lookup(self, tag: bytes) -> str | None:
        """Event name for *tag*, or ``None`` when the tag is not registered."""
        return self._names_by_tag.get(bytes(tag))

    @property
    def tags(self) -> MappingProxyType:
        return self._tags

    def __iter__(self) -> Iterator[str]:
        return iter(self._tags)

    def __len__(self) -> int:
        return len(self._tags)

    def __contains__(self, name: object) -> bool:
        return name in self._tags


def default_registry() -> DiscriminatorRegistry:
    """Registry of the order lifecycle events, in dispatch order."""
    from event_relay.core.enums import EventType

    return DiscriminatorRegistry(event.value for event in EventType)
