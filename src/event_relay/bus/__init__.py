"""In-process fan-out of decoded events to live subscribers."""

from event_relay.bus.broadcaster import Broadcaster, Subscriber

__all__ = ["Broadcaster", "Subscriber"]
