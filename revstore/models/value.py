"""Dynamically typed metadata values, a closed, immutable tagged union.

Every metadata field attached to a revision is a ``Value``.  The tag is
part of the identity: ``Value.of(True) != Value.of(1)`` and
``Value.of(b"ab") != Value.of("ab")``.  Objects (string-keyed maps) keep
their insertion order for iteration but compare by key.

Values convert to and from a tagged, JSON-compatible form
(``{"type": ..., "value": ...}``) which is the canonical input of revision
hashing and the basis of the JSON codec.
"""

from __future__ import annotations

import base64
from collections.abc import Mapping
from datetime import datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, model_validator

from revstore.models.keys import Guid, Hash

INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class ValueType(str, Enum):
    """Tags of the value union."""

    NULL = "null"
    BOOLEAN = "boolean"
    INTEGER = "integer"
    DECIMAL = "decimal"
    STRING = "string"
    DATE = "date"
    BINARY = "binary"
    HASH = "hash"
    GUID = "guid"
    ARRAY = "array"
    OBJECT = "object"


# Python type expected in ``Value.raw`` for each tag.
_RAW_TYPES: dict[ValueType, type | tuple[type, ...]] = {
    ValueType.NULL: type(None),
    ValueType.BOOLEAN: bool,
    ValueType.INTEGER: int,
    ValueType.DECIMAL: Decimal,
    ValueType.STRING: str,
    ValueType.DATE: datetime,
    ValueType.BINARY: bytes,
    ValueType.HASH: Hash,
    ValueType.GUID: Guid,
    ValueType.ARRAY: tuple,
    ValueType.OBJECT: tuple,
}


def _to_epoch_millis(moment: datetime) -> int:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    delta = moment - _EPOCH
    return (delta.days * 86_400 + delta.seconds) * 1000 + delta.microseconds // 1000


def _from_epoch_millis(millis: int) -> datetime:
    return _EPOCH + timedelta(milliseconds=millis)


class Value(BaseModel):
    """A single immutable metadata value.

    Build instances with :meth:`of` (or :meth:`null`) rather than the raw
    constructor; :meth:`of` normalises dates to UTC milliseconds, nested
    containers to tuples of values, and validates integer range.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    type: ValueType
    raw: Any = None

    @model_validator(mode="after")
    def _check_raw(self) -> Value:
        expected = _RAW_TYPES[self.type]
        if not isinstance(self.raw, expected):
            raise ValueError(
                f"{self.type.value} value cannot hold {type(self.raw).__name__}"
            )
        if self.type is ValueType.INTEGER and isinstance(self.raw, bool):
            raise ValueError("integer value cannot hold bool")
        return self

    # ------------------------------------------------------------------
    # Factories
    # ------------------------------------------------------------------

    @classmethod
    def null(cls) -> Value:
        return _NULL

    @classmethod
    def of(cls, obj: Any) -> Value:
        """Wrap a plain Python object into a ``Value``.

        Raises
        ------
        TypeError
            If ``obj`` has no counterpart in the union.
        ValueError
            If an integer does not fit in 64 signed bits or a decimal is
            not finite.
        """
        if isinstance(obj, Value):
            return obj
        if obj is None:
            return _NULL
        # bool first: it is a subclass of int.
        if isinstance(obj, bool):
            return cls(type=ValueType.BOOLEAN, raw=obj)
        if isinstance(obj, int):
            if not INT64_MIN <= obj <= INT64_MAX:
                raise ValueError(f"Integer out of 64-bit range: {obj}")
            return cls(type=ValueType.INTEGER, raw=int(obj))
        if isinstance(obj, float):
            obj = Decimal(repr(obj))
        if isinstance(obj, Decimal):
            if not obj.is_finite():
                raise ValueError(f"Decimal must be finite: {obj}")
            return cls(type=ValueType.DECIMAL, raw=obj)
        if isinstance(obj, str):
            return cls(type=ValueType.STRING, raw=obj)
        if isinstance(obj, datetime):
            return cls(
                type=ValueType.DATE,
                raw=_from_epoch_millis(_to_epoch_millis(obj)),
            )
        if isinstance(obj, (bytes, bytearray, memoryview)):
            return cls(type=ValueType.BINARY, raw=bytes(obj))
        if isinstance(obj, Hash):
            return cls(type=ValueType.HASH, raw=obj)
        if isinstance(obj, Guid):
            return cls(type=ValueType.GUID, raw=obj)
        if isinstance(obj, Mapping):
            items = []
            for key, item in obj.items():
                if not isinstance(key, str):
                    raise TypeError(f"Object keys must be str, got {type(key).__name__}")
                items.append((key, cls.of(item)))
            return cls(type=ValueType.OBJECT, raw=tuple(items))
        if isinstance(obj, (list, tuple)):
            return cls(type=ValueType.ARRAY, raw=tuple(cls.of(item) for item in obj))
        raise TypeError(f"Unsupported value type: {type(obj).__name__}")

    # ------------------------------------------------------------------
    # Typed accessors
    # ------------------------------------------------------------------

    def _expect(self, value_type: ValueType) -> Any:
        if self.type is not value_type:
            raise TypeError(f"Expected {value_type.value} value, got {self.type.value}")
        return self.raw

    def is_null(self) -> bool:
        return self.type is ValueType.NULL

    def as_bool(self) -> bool:
        return self._expect(ValueType.BOOLEAN)

    def as_int(self) -> int:
        return self._expect(ValueType.INTEGER)

    def as_decimal(self) -> Decimal:
        return self._expect(ValueType.DECIMAL)

    def as_str(self) -> str:
        return self._expect(ValueType.STRING)

    def as_datetime(self) -> datetime:
        return self._expect(ValueType.DATE)

    def as_bytes(self) -> bytes:
        return self._expect(ValueType.BINARY)

    def as_hash(self) -> Hash:
        return self._expect(ValueType.HASH)

    def as_guid(self) -> Guid:
        return self._expect(ValueType.GUID)

    def as_list(self) -> list[Value]:
        return list(self._expect(ValueType.ARRAY))

    def as_map(self) -> dict[str, Value]:
        return dict(self._expect(ValueType.OBJECT))

    def to_python(self) -> Any:
        """Recursively unwrap into plain Python objects."""
        if self.type is ValueType.ARRAY:
            return [item.to_python() for item in self.raw]
        if self.type is ValueType.OBJECT:
            return {key: item.to_python() for key, item in self.raw}
        return self.raw

    # ------------------------------------------------------------------
    # Tagged JSON-compatible form
    # ------------------------------------------------------------------

    def to_json(self) -> dict[str, Any]:
        """Encode as ``{"type": tag, "value": payload}``.

        Payloads are JSON-native: hex for hash/guid, base64 for binary,
        text for decimals, epoch milliseconds for dates.
        """
        t = self.type
        if t is ValueType.NULL:
            payload: Any = None
        elif t in (ValueType.BOOLEAN, ValueType.INTEGER, ValueType.STRING):
            payload = self.raw
        elif t is ValueType.DECIMAL:
            payload = str(self.raw)
        elif t is ValueType.DATE:
            payload = _to_epoch_millis(self.raw)
        elif t is ValueType.BINARY:
            payload = base64.b64encode(self.raw).decode("ascii")
        elif t in (ValueType.HASH, ValueType.GUID):
            payload = self.raw.hex()
        elif t is ValueType.ARRAY:
            payload = [item.to_json() for item in self.raw]
        else:
            payload = {key: item.to_json() for key, item in self.raw}
        return {"type": t.value, "value": payload}

    @classmethod
    def from_json(cls, obj: Any) -> Value:
        """Decode the tagged form produced by :meth:`to_json`.

        Raises ``ValueError`` (or ``TypeError``) on malformed input.
        """
        if not isinstance(obj, Mapping) or "type" not in obj:
            raise ValueError(f"Not a tagged value: {obj!r}")
        t = ValueType(obj["type"])
        payload = obj.get("value")
        if t is ValueType.NULL:
            return _NULL
        if t is ValueType.BOOLEAN:
            if not isinstance(payload, bool):
                raise ValueError(f"Invalid boolean payload: {payload!r}")
            return cls.of(payload)
        if t is ValueType.INTEGER:
            if isinstance(payload, bool) or not isinstance(payload, int):
                raise ValueError(f"Invalid integer payload: {payload!r}")
            return cls.of(payload)
        if t is ValueType.DECIMAL:
            try:
                return cls.of(Decimal(str(payload)))
            except InvalidOperation as exc:
                raise ValueError(f"Invalid decimal payload: {payload!r}") from exc
        if t is ValueType.STRING:
            if not isinstance(payload, str):
                raise ValueError(f"Invalid string payload: {payload!r}")
            return cls.of(payload)
        if t is ValueType.DATE:
            if isinstance(payload, bool) or not isinstance(payload, int):
                raise ValueError(f"Invalid date payload: {payload!r}")
            return cls(type=ValueType.DATE, raw=_from_epoch_millis(payload))
        if t is ValueType.BINARY:
            return cls.of(base64.b64decode(payload, validate=True))
        if t is ValueType.HASH:
            return cls.of(Hash.from_hex(payload))
        if t is ValueType.GUID:
            return cls.of(Guid.from_hex(payload))
        if t is ValueType.ARRAY:
            if not isinstance(payload, list):
                raise ValueError(f"Invalid array payload: {payload!r}")
            return cls(type=ValueType.ARRAY, raw=tuple(cls.from_json(i) for i in payload))
        if not isinstance(payload, Mapping):
            raise ValueError(f"Invalid object payload: {payload!r}")
        return cls(
            type=ValueType.OBJECT,
            raw=tuple((str(k), cls.from_json(v)) for k, v in payload.items()),
        )

    # ------------------------------------------------------------------
    # Structural, tag-aware identity
    # ------------------------------------------------------------------

    def _identity(self) -> tuple[ValueType, Any]:
        t = self.type
        if t is ValueType.DECIMAL:
            # Exact textual identity: 1.0 and 1.00 are distinct values.
            return t, str(self.raw)
        if t is ValueType.OBJECT:
            return t, frozenset(self.raw)
        return t, self.raw

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Value):
            return NotImplemented
        return self._identity() == other._identity()

    def __hash__(self) -> int:
        return hash(self._identity())

    def __repr__(self) -> str:
        return f"Value.of({self.to_python()!r})"


_NULL = Value(type=ValueType.NULL, raw=None)
