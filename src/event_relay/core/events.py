"""Event schemas for the relay.

Two families, both immutable Pydantic models:

* Domain events — decoded straight from program log payloads.  Account
  identifiers are kept as the raw 32 bytes.
* Normalized events — what subscribers receive.  Identifiers are rendered
  as base58 text and every model carries a literal ``type`` discriminator.
"""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from .ids import PUBKEY_LENGTH

AccountId = Annotated[bytes, Field(min_length=PUBKEY_LENGTH, max_length=PUBKEY_LENGTH)]
U64 = Annotated[int, Field(ge=0, le=2**64 - 1)]


class DomainEvent(BaseModel):
    """Base for all decoded program events."""

    model_config = ConfigDict(frozen=True)


# ===========================================================================
# Order lifecycle
# ===========================================================================

class OrderCreated(DomainEvent):
    order: AccountId
    order_id: U64
    customer: AccountId
    amount: U64


class OrderAccepted(DomainEvent):
    order: AccountId
    courier: AccountId


class OrderCompleted(DomainEvent):
    order: AccountId
    order_id: U64
    courier: AccountId
    amount: U64


# ===========================================================================
# Wire (normalized) events
# ===========================================================================

class NormalizedEvent(BaseModel):
    """Base for transport-neutral events. ``type`` is always the first field."""

    model_config = ConfigDict(frozen=True)


class OrderCreatedMessage(NormalizedEvent):
    type: Literal["OrderCreated"] = "OrderCreated"
    order: str
    order_id: int
    customer: str
    amount: int


class OrderAcceptedMessage(NormalizedEvent):
    type: Literal["OrderAccepted"] = "OrderAccepted"
    order: str
    courier: str


class OrderCompletedMessage(NormalizedEvent):
    type: Literal["OrderCompleted"] = "OrderCompleted"
    order: str
    order_id: int
    courier: str
    amount: int


WireEvent = Annotated[
    Union[OrderCreatedMessage, OrderAcceptedMessage, OrderCompletedMessage],
    Field(discriminator="type"),
]
