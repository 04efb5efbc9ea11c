"""Program log line → payload envelope.

Anchor's ``emit!`` writes events as ``Program data: <base64>`` log lines.
Every other line (instruction traces, ``Program log:`` messages, compute
budget reports) carries no payload and is skipped.
"""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass

from event_relay.core.errors import MalformedPayloadError

from .registry import TAG_LENGTH

DATA_PREFIX = "Program data: "


@dataclass(frozen=True)
class PayloadEnvelope:
    """Discriminator plus undecoded body. Transient: discarded after dispatch."""

    tag: bytes
    body: bytes

    def __post_init__(self) -> None:
        if len(self.tag) != TAG_LENGTH:
            raise ValueError(f"tag must be {TAG_LENGTH} bytes, got {len(self.tag)}")


def extract_payload(line: str) -> PayloadEnvelope | None:
    """Pull the binary payload out of one raw log line.

    Returns ``None`` when the line is not a program-data line.

    Raises:
        MalformedPayloadError: the data is not valid base64, or decodes to
            fewer than 8 bytes.
    """
    if not line.startswith(DATA_PREFIX):
        return None

    encoded = line[len(DATA_PREFIX):].rstrip("\r\n")
    try:
        raw = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise MalformedPayloadError(
            f"Invalid base64 in program data: {exc}", reason="bad_base64"
        ) from exc

    if len(raw) < TAG_LENGTH:
        raise MalformedPayloadError(
            f"Payload too short: {len(raw)} bytes (< {TAG_LENGTH})",
            reason="short_payload",
        )

    return PayloadEnvelope(tag=raw[:TAG_LENGTH], body=raw[TAG_LENGTH:])


def encode_log_line(tag: bytes, body: bytes) -> str:
    """Build the ``Program data:`` line that carries ``tag ++ body``."""
    return DATA_PREFIX + base64.b64encode(bytes(tag) + bytes(body)).decode("ascii")
