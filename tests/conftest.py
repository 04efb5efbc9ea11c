"""Shared fixtures for the event-relay test suite."""

from __future__ import annotations

from typing import Any

import pytest

from event_relay.bus.broadcaster import Broadcaster
from event_relay.core.ids import encode_pubkey
from event_relay.decoding.dispatcher import EventDecoder, default_decoder
from event_relay.decoding.extractor import encode_log_line
from event_relay.decoding.registry import compute_tag
from event_relay.decoding.schemas import KNOWN_SCHEMAS

ZERO_KEY = bytes(32)
ZERO_KEY_TEXT = "1" * 32  # base58 of 32 zero bytes


def pubkey(n: int) -> bytes:
    """Deterministic, distinct 32-byte account id for tests."""
    return bytes([n]) * 32


def program_data_line(event_name: str, **values: Any) -> str:
    """Encode *values* with the named schema into a ``Program data:`` line."""
    schema = next(s for s in KNOWN_SCHEMAS if s.name == event_name)
    return encode_log_line(compute_tag(event_name), schema.encode(values))


# ---------------------------------------------------------------------------
# Sample lines
# ---------------------------------------------------------------------------

@pytest.fixture
def order_created_line() -> str:
    return program_data_line(
        "OrderCreated",
        order=pubkey(7),
        order_id=42,
        customer=ZERO_KEY,
        amount=1000,
    )


@pytest.fixture
def order_accepted_line() -> str:
    return program_data_line("OrderAccepted", order=pubkey(7), courier=pubkey(9))


@pytest.fixture
def order_completed_line() -> str:
    return program_data_line(
        "OrderCompleted",
        order=pubkey(7),
        order_id=42,
        courier=pubkey(9),
        amount=1000,
    )


@pytest.fixture
def expected_order_created() -> dict:
    return {
        "type": "OrderCreated",
        "order": encode_pubkey(pubkey(7)),
        "order_id": 42,
        "customer": ZERO_KEY_TEXT,
        "amount": 1000,
    }


# ---------------------------------------------------------------------------
# Components
# ---------------------------------------------------------------------------

@pytest.fixture
def decoder() -> EventDecoder:
    return default_decoder()


@pytest.fixture
def broadcaster() -> Broadcaster:
    """Return a fresh Broadcaster with a small queue."""
    return Broadcaster(queue_size=4)


# ---------------------------------------------------------------------------
# Helper factories
# ---------------------------------------------------------------------------

@pytest.fixture
def key():
    """Factory: ``key(n)`` → deterministic 32-byte account id."""
    return pubkey


@pytest.fixture
def make_line():
    """Factory: ``make_line(event_name, **values)`` → program data line."""
    return program_data_line
