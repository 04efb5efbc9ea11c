"""Fixed-width event schemas and the canonical binary codec.

Fields are packed back to back in declared order with no padding: integers
little-endian, account identifiers as 32 raw bytes.  Every schema therefore
has a fixed byte width and a body must match it exactly.
"""

from __future__ import annotations

import struct
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from event_relay.core.enums import EventType, FieldKind
from event_relay.core.errors import DecodeError, PayloadSizeError
from event_relay.core.ids import PUBKEY_LENGTH

# struct codes, always used with the "<" (little-endian, unpadded) prefix
_STRUCT_CODES: dict[FieldKind, str] = {
    FieldKind.PUBKEY: f"{PUBKEY_LENGTH}s",
    FieldKind.U8: "B",
    FieldKind.U16: "H",
    FieldKind.U32: "I",
    FieldKind.U64: "Q",
    FieldKind.I64: "q",
    FieldKind.BOOL: "B",
}


@dataclass(frozen=True)
class EventSchema:
    """Name plus ordered ``(field_name, kind)`` pairs."""

    name: str
    fields: tuple[tuple[str, FieldKind], ...]
    _struct: struct.Struct = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        fmt = "<" + "".join(_STRUCT_CODES[kind] for _, kind in self.fields)
        object.__setattr__(self, "_struct", struct.Struct(fmt))

    @property
    def width(self) -> int:
        """Total encoded size in bytes."""
        return self._struct.size

    @property
    def field_names(self) -> tuple[str, ...]:
        return tuple(name for name, _ in self.fields)

    def decode(self, body: bytes) -> dict[str, Any]:
        """Unpack *body* into a field dict.

        Raises:
            PayloadSizeError: ``len(body)`` is not exactly ``width``.
            DecodeError: a bool field holds something other than 0 or 1.
        """
        if len(body) != self.width:
            raise PayloadSizeError(
                f"{self.name}: expected {self.width} bytes, got {len(body)}"
            )
        values = self._struct.unpack(body)
        decoded: dict[str, Any] = {}
        for (name, kind), value in zip(self.fields, values):
            if kind is FieldKind.BOOL:
                if value not in (0, 1):
                    raise DecodeError(
                        f"{self.name}.{name}: invalid bool byte {value}",
                        reason="invalid_value",
                    )
                value = bool(value)
            decoded[name] = value
        return decoded

    def encode(self, values: Mapping[str, Any]) -> bytes:
        """Pack *values* in declared order. Inverse of :meth:`decode`."""
        try:
            return self._struct.pack(*(values[name] for name in self.field_names))
        except KeyError as exc:
            raise ValueError(f"{self.name}: missing field {exc.args[0]!r}") from None
        except struct.error as exc:
            raise ValueError(f"{self.name}: {exc}") from exc


# ---------------------------------------------------------------------------
# Known program events
# ---------------------------------------------------------------------------

ORDER_CREATED = EventSchema(
    EventType.ORDER_CREATED.value,
    (
        ("order", FieldKind.PUBKEY),
        ("order_id", FieldKind.U64),
        ("customer", FieldKind.PUBKEY),
        ("amount", FieldKind.U64),
    ),
)

ORDER_ACCEPTED = EventSchema(
    EventType.ORDER_ACCEPTED.value,
    (
        ("order", FieldKind.PUBKEY),
        ("courier", FieldKind.PUBKEY),
    ),
)

ORDER_COMPLETED = EventSchema(
    EventType.ORDER_COMPLETED.value,
    (
        ("order", FieldKind.PUBKEY),
        ("order_id", FieldKind.U64),
        ("courier", FieldKind.PUBKEY),
        ("amount", FieldKind.U64),
    ),
)

KNOWN_SCHEMAS: tuple[EventSchema, ...] = (
    ORDER_CREATED,
    ORDER_ACCEPTED,
    ORDER_COMPLETED,
)
