"""Log payload decoding: discriminators, extraction, dispatch, normalization."""

from event_relay.decoding.dispatcher import EventDecoder, default_decoder
from event_relay.decoding.extractor import PayloadEnvelope, extract_payload
from event_relay.decoding.normalizer import normalize, to_wire
from event_relay.decoding.registry import DiscriminatorRegistry, compute_tag

__all__ = [
    "DiscriminatorRegistry",
    "EventDecoder",
    "PayloadEnvelope",
    "compute_tag",
    "default_decoder",
    "extract_payload",
    "normalize",
    "to_wire",
]
