"""Tests for ContentStore: content addressing and integrity."""

from __future__ import annotations

import hashlib

import pytest

from revstore.core.content_store import (
    ContentIntegrityError,
    ContentNotFoundError,
    ContentStore,
)
from revstore.models.keys import Hash


class TestContentStore:
    """Blobs are stored by SHA-1 and verified on the way in."""

    def test_put_and_get(self, content_store: ContentStore):
        """A stored blob reads back unchanged."""
        data = b"hello revstore"
        digest = content_store.put(data)
        assert digest.length == len(data)
        assert content_store.get(digest.hash) == data

    def test_content_addressing(self, content_store: ContentStore):
        """The digest is the SHA-1 and length of the bytes."""
        digest = content_store.put(b"deterministic")
        assert digest.hash.hex() == hashlib.sha1(b"deterministic").hexdigest()

    def test_layout(self, content_store: ContentStore, tmp_dir):
        """Blobs are sharded by the first two bytes of their hash."""
        digest = content_store.put(b"layout")
        hex_ = digest.hash.hex()
        assert (tmp_dir / "content" / hex_[:2] / hex_[2:4] / f"{hex_}.dat").exists()

    def test_idempotent_put(self, content_store: ContentStore):
        """Storing the same bytes twice gives the same digest."""
        assert content_store.put(b"twice") == content_store.put(b"twice")

    def test_exists_and_verify(self, content_store: ContentStore):
        """exists and verify track stored blobs."""
        digest = content_store.put(b"check")
        assert content_store.exists(digest.hash)
        assert content_store.verify(digest.hash)
        missing = Hash.from_hex("00" * 20)
        assert not content_store.exists(missing)
        assert not content_store.verify(missing)

    def test_get_missing(self, content_store: ContentStore):
        """Reading a missing blob raises ContentNotFoundError."""
        with pytest.raises(ContentNotFoundError):
            content_store.get(Hash.from_hex("00" * 20))

    def test_tampered_content_detected(self, content_store: ContentStore, tmp_dir):
        """A modified blob fails verification."""
        digest = content_store.put(b"original")
        hex_ = digest.hash.hex()
        (tmp_dir / "content" / hex_[:2] / hex_[2:4] / f"{hex_}.dat").write_bytes(b"tampered")
        assert not content_store.verify(digest.hash)
        with pytest.raises(ContentIntegrityError):
            content_store.put(b"original")

    def test_delete(self, content_store: ContentStore):
        """delete removes the blob and reports whether it existed."""
        digest = content_store.put(b"bye")
        assert content_store.delete(digest.hash) is True
        assert not content_store.exists(digest.hash)
        assert content_store.delete(digest.hash) is False
