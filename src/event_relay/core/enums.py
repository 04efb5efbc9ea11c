"""Enumerations used across the relay."""

from enum import Enum


class EventType(str, Enum):
    """Known program events, in dispatch order."""

    ORDER_CREATED = "OrderCreated"
    ORDER_ACCEPTED = "OrderAccepted"
    ORDER_COMPLETED = "OrderCompleted"


class FieldKind(str, Enum):
    """Fixed-width field types of the canonical binary encoding."""

    PUBKEY = "pubkey"  # 32 raw bytes
    U8 = "u8"
    U16 = "u16"
    U32 = "u32"
    U64 = "u64"
    I64 = "i64"
    BOOL = "bool"


class SubscriberState(str, Enum):
    ACTIVE = "active"
    CLOSED = "closed"


class SessionState(str, Enum):
    CONNECTED = "connected"
    CLOSED = "closed"  # Terminal


class Commitment(str, Enum):
    PROCESSED = "processed"
    CONFIRMED = "confirmed"
    FINALIZED = "finalized"
