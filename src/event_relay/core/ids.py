"""Canonical ID and account-identifier helpers.

ID Categories
-------------
1. Internal IDs: UUID v4 strings (subscriber ids).
2. Account identifiers: 32 raw bytes on the wire, base58 text everywhere else.
"""

from __future__ import annotations

import uuid

import base58

PUBKEY_LENGTH = 32


def new_id() -> str:
    """Generate a new UUID v4 string.  Use for all internal entity IDs."""
    return str(uuid.uuid4())


def encode_pubkey(raw: bytes) -> str:
    """Render a 32-byte account identifier as base58 text."""
    if len(raw) != PUBKEY_LENGTH:
        raise ValueError(
            f"Account identifier must be {PUBKEY_LENGTH} bytes, got {len(raw)}"
        )
    return base58.b58encode(raw).decode("ascii")


def decode_pubkey(text: str) -> bytes:
    """Parse base58 text into a 32-byte account identifier.

    Raises ``ValueError`` for invalid base58 or the wrong length.
    """
    try:
        raw = base58.b58decode(text.strip())
    except ValueError as exc:
        raise ValueError(f"Invalid base58 account identifier: {text!r}") from exc
    if len(raw) != PUBKEY_LENGTH:
        raise ValueError(
            f"Account identifier must decode to {PUBKEY_LENGTH} bytes, "
            f"got {len(raw)}"
        )
    return raw


def is_pubkey(text: str) -> bool:
    try:
        decode_pubkey(text)
    except ValueError:
        return False
    return True
