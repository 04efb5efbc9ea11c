"""Tag-based event dispatch.

``EventDecoder`` compares a payload's discriminator against the registered
schemas in a fixed order and deserializes the body of the first match into
its typed domain event.  Unknown tags and malformed bodies are dropped by
:meth:`EventDecoder.try_decode`; the stream is never aborted.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from pydantic import ValidationError

from event_relay.core.errors import DecodeError, UnknownEventError
from event_relay.core.events import (
    DomainEvent,
    NormalizedEvent,
    OrderAccepted,
    OrderAcceptedMessage,
    OrderCompleted,
    OrderCompletedMessage,
    OrderCreated,
    OrderCreatedMessage,
)

from .extractor import PayloadEnvelope
from .registry import DiscriminatorRegistry
from .schemas import ORDER_ACCEPTED, ORDER_COMPLETED, ORDER_CREATED, EventSchema

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Route:
    name: str
    tag: bytes
    schema: EventSchema
    model: type[DomainEvent]
    message_model: type[NormalizedEvent]


class EventDecoder:
    """Ordered tag → (schema, model, wire model) dispatch table.

    Routes are registered at startup and read-only afterwards, so one
    decoder can be shared without locking.
    """

    def __init__(self) -> None:
        self._routes: list[_Route] = []
        self._registry = DiscriminatorRegistry(())

    def register(
        self,
        schema: EventSchema,
        model: type[DomainEvent],
        message_model: type[NormalizedEvent],
    ) -> None:
        """Append *schema* to the end of the dispatch order.

        *model* receives the decoded fields; *message_model* is what
        subscribers are sent for it.
        """
        if any(r.name == schema.name for r in self._routes):
            raise ValueError(f"Event {schema.name!r} already registered")
        if any(r.model is model for r in self._routes):
            raise ValueError(f"Model {model.__name__} already registered")
        mismatch = set(model.model_fields) ^ set(schema.field_names)
        if mismatch:
            raise ValueError(
                f"Schema {schema.name!r} and model {model.__name__} "
                f"disagree on fields: {sorted(mismatch)}"
            )
        type_field = message_model.model_fields.get("type")
        if type_field is None or type_field.default != schema.name:
            raise ValueError(
                f"Wire model {message_model.__name__} must default type to "
                f"{schema.name!r}"
            )
        mismatch = (set(message_model.model_fields) - {"type"}) ^ set(schema.field_names)
        if mismatch:
            raise ValueError(
                f"Schema {schema.name!r} and wire model {message_model.__name__} "
                f"disagree on fields: {sorted(mismatch)}"
            )
        self._registry = DiscriminatorRegistry([*self.event_names, schema.name])
        self._routes.append(
            _Route(
                schema.name,
                self._registry.tag_for(schema.name),
                schema,
                model,
                message_model,
            )
        )

    @property
    def registry(self) -> DiscriminatorRegistry:
        return self._registry

    @property
    def event_names(self) -> list[str]:
        return [r.name for r in self._routes]

    def schema_for(self, name: str) -> EventSchema:
        for route in self._routes:
            if route.name == name:
                return route.schema
        raise KeyError(name)

    def message_model_for(self, model: type[DomainEvent]) -> type[NormalizedEvent]:
        """Wire model registered for the domain event class *model*."""
        for route in self._routes:
            if route.model is model:
                return route.message_model
        raise KeyError(model.__name__)

    def decode(self, envelope: PayloadEnvelope) -> DomainEvent:
        """Decode *envelope* into exactly one domain event.

        Raises:
            UnknownEventError: no registered schema has this tag.
            PayloadSizeError: body width differs from the schema's.
            DecodeError: field values rejected by the event model.
        """
        for route in self._routes:
            if envelope.tag != route.tag:
                continue
            values = route.schema.decode(envelope.body)
            try:
                return route.model(**values)
            except ValidationError as exc:
                raise DecodeError(
                    f"{route.name}: {exc.error_count()} invalid field(s)",
                    reason="invalid_value",
                ) from exc
        raise UnknownEventError(f"Unknown event tag {envelope.tag.hex()}")

    def try_decode(self, envelope: PayloadEnvelope) -> DomainEvent | None:
        """Like :meth:`decode` but drops failures, returning ``None``."""
        try:
            return self.decode(envelope)
        except DecodeError as exc:
            logger.debug("Dropped payload (%s): %s", exc.reason, exc)
            return None


def default_decoder() -> EventDecoder:
    """Decoder for the order lifecycle events, in canonical dispatch order."""
    decoder = EventDecoder()
    decoder.register(ORDER_CREATED, OrderCreated, OrderCreatedMessage)
    decoder.register(ORDER_ACCEPTED, OrderAccepted, OrderAcceptedMessage)
    decoder.register(ORDER_COMPLETED, OrderCompleted, OrderCompletedMessage)
    return decoder
