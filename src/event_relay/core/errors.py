"""Custom exception hierarchy for the event relay."""


class RelayError(Exception):
    """Base exception for all relay errors."""


# --- Configuration ---
class ConfigError(RelayError):
    """Invalid or missing configuration."""


# --- Log feed ---
class FeedError(RelayError):
    """The upstream log feed failed. Fatal to the pipeline."""


class FeedConnectionError(FeedError):
    """The log-feed subscription could not be established."""


class FeedClosedError(FeedError):
    """The log-feed stream terminated."""


class FeedProtocolError(FeedError):
    """The node rejected or garbled the subscription."""


# --- Decoding ---
class DecodeError(RelayError):
    """A payload could not be turned into an event. Never fatal."""

    reason = "decode_error"

    def __init__(self, message: str, reason: str | None = None):
        if reason is not None:
            self.reason = reason
        super().__init__(message)


class MalformedPayloadError(DecodeError):
    """Log line carried a payload that is not valid base64 or is too short."""

    reason = "malformed"


class UnknownEventError(DecodeError):
    """Payload tag does not match any registered event schema."""

    reason = "unknown_tag"


class PayloadSizeError(DecodeError):
    """Payload body length differs from the schema's fixed width."""

    reason = "size_mismatch"


# --- Subscribers ---
class SessionClosedError(RelayError):
    """A subscriber session is closed; scoped to that subscriber only."""
