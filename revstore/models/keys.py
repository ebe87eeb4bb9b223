"""Fixed-length binary identifiers: content/revision hashes and GUIDs.

Both kinds are compared and ordered by raw byte value and rendered as
lowercase hexadecimal.  A ``Hash`` is never equal to a ``Guid``, even when
their bytes happen to coincide.
"""

from __future__ import annotations

import binascii
import secrets
from functools import total_ordering
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field, field_validator


@total_ordering
class _Key(BaseModel):
    """Immutable byte string of a fixed length, ordered by byte value."""

    model_config = ConfigDict(frozen=True)

    LENGTH: ClassVar[int] = 0

    raw: bytes = Field(repr=False)

    @field_validator("raw")
    @classmethod
    def _check_length(cls, value: bytes) -> bytes:
        if len(value) != cls.LENGTH:
            raise ValueError(
                f"{cls.__name__} must be {cls.LENGTH} bytes, got {len(value)}"
            )
        return value

    @classmethod
    def from_bytes(cls, data: bytes | bytearray) -> Any:
        return cls(raw=bytes(data))

    @classmethod
    def from_hex(cls, text: str) -> Any:
        """Decode a hexadecimal string (case insensitive)."""
        if not isinstance(text, str):
            raise TypeError(f"Expected hexadecimal text, got {type(text).__name__}")
        try:
            data = binascii.unhexlify(text.strip())
        except (binascii.Error, ValueError) as exc:
            raise ValueError(f"Invalid hexadecimal {cls.__name__}: {text!r}") from exc
        return cls(raw=data)

    @classmethod
    def of(cls, value: Any) -> Any:
        """Coerce an instance, raw bytes or hex text into this key type."""
        if isinstance(value, cls):
            return value
        if isinstance(value, (bytes, bytearray)):
            return cls.from_bytes(value)
        if isinstance(value, str):
            return cls.from_hex(value)
        raise TypeError(f"Cannot build {cls.__name__} from {type(value).__name__}")

    @classmethod
    def is_valid(cls, text: str) -> bool:
        """Whether ``text`` is a well-formed hex encoding of this key type."""
        if len(text) != cls.LENGTH * 2:
            return False
        return all(c in "0123456789abcdefABCDEF" for c in text)

    def hex(self) -> str:
        return self.raw.hex()

    def __bytes__(self) -> bytes:
        return self.raw

    def __str__(self) -> str:
        return self.raw.hex()

    def __repr__(self) -> str:
        return f"{type(self).__name__}('{self.raw.hex()}')"

    def __lt__(self, other: object) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        return self.raw < other.raw  # type: ignore[attr-defined]

    def __hash__(self) -> int:
        return hash((type(self).__name__, self.raw))


class Hash(_Key):
    """A 20-byte content digest (SHA-1)."""

    LENGTH: ClassVar[int] = 20


class Guid(_Key):
    """A 16-byte globally unique identifier."""

    LENGTH: ClassVar[int] = 16

    @classmethod
    def random(cls) -> Guid:
        """Generate a new random GUID.  Thread-safe."""
        return cls(raw=secrets.token_bytes(cls.LENGTH))


class Digest(BaseModel):
    """Hash and byte length of a content blob."""

    model_config = ConfigDict(frozen=True)

    hash: Hash
    length: int = Field(ge=0)
