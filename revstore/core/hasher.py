"""Canonical hashing helpers for content addressing and revision sealing.

Revision hashes are SHA-1 digests of a canonical JSON document:
- sorted keys at every level
- no whitespace separators (",", ":")
- ensure_ascii=True
- UTF-8 encoding
so that identical logical revisions always produce identical bytes.
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Iterable, Mapping
from typing import Any

from revstore.models.keys import Digest, Hash
from revstore.models.value import Value


def canonical_json_bytes(obj: Any) -> bytes:
    """Produce canonical JSON bytes with sorted keys and compact separators."""
    return json.dumps(
        obj, sort_keys=True, separators=(",", ":"), ensure_ascii=True
    ).encode("utf-8")


def sha1_hash(data: bytes) -> Hash:
    """Return the SHA-1 digest of raw bytes as a ``Hash``."""
    return Hash.from_bytes(hashlib.sha1(data).digest())


def revision_payload(
    content: Hash,
    length: int,
    parents: Iterable[Hash],
    deleted: bool,
    metadata: Mapping[str, Value],
) -> dict[str, Any]:
    """The canonical document a revision hash is computed over.

    Parents are listed in ascending byte order; ``deleted`` is only present
    when true; metadata keys are sorted by the canonical serializer.
    """
    payload: dict[str, Any] = {
        "content": content.hex(),
        "length": length,
        "parents": [parent.hex() for parent in sorted(set(parents))],
        "metadata": {key: value.to_json() for key, value in metadata.items()},
    }
    if deleted:
        payload["deleted"] = True
    return payload


def revision_hash(
    content: Hash,
    length: int,
    parents: Iterable[Hash],
    deleted: bool,
    metadata: Mapping[str, Value],
) -> Hash:
    """SHA-1 of the canonical revision document."""
    return sha1_hash(
        canonical_json_bytes(
            revision_payload(content, length, parents, deleted, metadata)
        )
    )


class DigestBuilder:
    """Incrementally computes the hash and length of a content stream.

    Usage::

        builder = DigestBuilder()
        for chunk in chunks:
            builder.update(chunk)
        digest = builder.digest()
    """

    def __init__(self) -> None:
        self._sha1 = hashlib.sha1()
        self._length = 0

    def update(self, chunk: bytes) -> DigestBuilder:
        self._sha1.update(chunk)
        self._length += len(chunk)
        return self

    def digest(self) -> Digest:
        return Digest(hash=Hash.from_bytes(self._sha1.digest()), length=self._length)


def digest_of(data: bytes) -> Digest:
    """Hash and length of an in-memory blob."""
    return DigestBuilder().update(data).digest()
