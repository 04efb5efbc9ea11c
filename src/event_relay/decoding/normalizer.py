"""Domain event → wire event.

Account identifiers become base58 text, integers pass through unchanged,
and the result names its event kind in ``type``.  The wire model for each
domain event comes from the decoder it was registered with.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import ValidationError

from event_relay.core.errors import DecodeError
from event_relay.core.events import DomainEvent, NormalizedEvent
from event_relay.core.ids import encode_pubkey

from .dispatcher import EventDecoder, default_decoder


@lru_cache(maxsize=1)
def _default_decoder() -> EventDecoder:
    return default_decoder()


def normalize(
    event: DomainEvent, decoder: EventDecoder | None = None
) -> NormalizedEvent:
    """Render *event* into its transport-neutral form.

    Raises:
        TypeError: *event*'s class is not registered with *decoder*
            (the default order-event decoder when omitted).
        DecodeError: the wire model rejected the rendered values.
    """
    decoder = decoder or _default_decoder()
    try:
        message_cls = decoder.message_model_for(type(event))
    except KeyError:
        raise TypeError(f"No wire model for {type(event).__name__}") from None

    fields = {}
    for name, value in event:
        if isinstance(value, bytes):
            value = encode_pubkey(value)
        fields[name] = value
    try:
        return message_cls(**fields)
    except ValidationError as exc:
        raise DecodeError(
            f"{message_cls.__name__}: {exc.error_count()} invalid field(s)",
            reason="invalid_value",
        ) from exc


def to_wire(message: NormalizedEvent) -> str:
    """Serialize *message* as one compact JSON text frame."""
    return message.model_dump_json()
