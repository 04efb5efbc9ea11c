"""Test domain event → wire event rendering."""

import json
from typing import Literal

import pytest
from pydantic import Field, TypeAdapter

from event_relay.core.enums import FieldKind
from event_relay.core.errors import DecodeError
from event_relay.core.events import (
    DomainEvent,
    NormalizedEvent,
    OrderAccepted,
    OrderAcceptedMessage,
    OrderCompleted,
    OrderCreated,
    OrderCreatedMessage,
    WireEvent,
)
from event_relay.core.ids import encode_pubkey
from event_relay.decoding.dispatcher import EventDecoder
from event_relay.decoding.normalizer import normalize, to_wire
from event_relay.decoding.schemas import EventSchema


class LevelSet(DomainEvent):
    account: bytes
    level: int


class LevelSetMessage(NormalizedEvent):
    type: Literal["LevelSet"] = "LevelSet"
    account: str
    level: int = Field(le=10)


LEVEL_SET = EventSchema(
    "LevelSet", (("account", FieldKind.PUBKEY), ("level", FieldKind.U8))
)


class TestNormalize:
    def test_order_created(self, key, expected_order_created):
        event = OrderCreated(order=key(7), order_id=42, customer=bytes(32), amount=1000)

        message = normalize(event)

        assert isinstance(message, OrderCreatedMessage)
        assert message.model_dump() == expected_order_created

    def test_zero_identifier_renders_as_ones(self):
        event = OrderAccepted(order=bytes(32), courier=bytes(32))
        message = normalize(event)
        assert message.order == "1" * 32

    def test_numbers_pass_through(self, key):
        big = 2**64 - 1
        message = normalize(
            OrderCompleted(order=key(1), order_id=big, courier=key(2), amount=0)
        )
        assert message.order_id == big
        assert message.amount == 0

    def test_identifiers_use_base58(self, key):
        message = normalize(OrderAccepted(order=key(1), courier=key(2)))
        assert isinstance(message, OrderAcceptedMessage)
        assert message.order == encode_pubkey(key(1))
        assert message.courier == encode_pubkey(key(2))

    def test_unmapped_event_type(self):
        class Unmapped(DomainEvent):
            n: int

        with pytest.raises(TypeError, match="Unmapped"):
            normalize(Unmapped(n=1))

    def test_uses_the_given_decoder(self, key):
        decoder = EventDecoder()
        decoder.register(LEVEL_SET, LevelSet, LevelSetMessage)

        message = normalize(LevelSet(account=key(3), level=5), decoder)

        assert message == LevelSetMessage(account=encode_pubkey(key(3)), level=5)
        with pytest.raises(TypeError):
            normalize(LevelSet(account=key(3), level=5))

    def test_rejected_wire_values_are_decode_errors(self, key):
        decoder = EventDecoder()
        decoder.register(LEVEL_SET, LevelSet, LevelSetMessage)

        with pytest.raises(DecodeError) as exc_info:
            normalize(LevelSet(account=key(3), level=11), decoder)
        assert exc_info.value.reason == "invalid_value"


class TestToWire:
    def test_type_comes_first(self, key):
        frame = to_wire(normalize(OrderAccepted(order=key(1), courier=key(2))))
        assert frame.startswith('{"type":"OrderAccepted"')

    def test_field_order_and_values(self, key, expected_order_created):
        frame = to_wire(
            normalize(OrderCreated(order=key(7), order_id=42, customer=bytes(32), amount=1000))
        )
        decoded = json.loads(frame)
        assert decoded == expected_order_created
        assert list(decoded) == ["type", "order", "order_id", "customer", "amount"]

    def test_large_integers_stay_exact(self, key):
        big = 2**64 - 1
        frame = to_wire(
            normalize(OrderCompleted(order=key(1), order_id=big, courier=key(2), amount=big))
        )
        assert json.loads(frame)["amount"] == big

    def test_frames_parse_back_into_wire_models(self, key):
        frame = to_wire(normalize(OrderAccepted(order=key(1), courier=key(2))))
        parsed = TypeAdapter(WireEvent).validate_json(frame)
        assert isinstance(parsed, OrderAcceptedMessage)
