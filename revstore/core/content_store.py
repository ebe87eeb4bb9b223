"""Content-addressed, immutable blob store.

Storage layout: {base_path}/{hex[0:2]}/{hex[2:4]}/{hex}.dat
Blobs are keyed by the SHA-1 of their bytes.  Storing the same content twice
is a no-op.  Deletion is physical only; the revision history of a deleted
content is kept by the revision store.
"""

from __future__ import annotations

import logging
from pathlib import Path

from revstore.core.hasher import digest_of, sha1_hash
from revstore.models.keys import Digest, Hash

logger = logging.getLogger(__name__)


class ContentNotFoundError(FileNotFoundError):
    """Raised when a content blob is not in the store."""


class ContentIntegrityError(RuntimeError):
    """Raised when stored bytes do not match their content hash."""


class ContentStore:
    """SHA-1 keyed blob store on the local filesystem.

    Parameters
    ----------
    base_path:
        Root directory for blob storage.  Created if missing.
    """

    def __init__(self, base_path: Path) -> None:
        self._base = Path(base_path)
        self._base.mkdir(parents=True, exist_ok=True)

    def _path(self, content: Hash) -> Path:
        digest = content.hex()
        return self._base / digest[:2] / digest[2:4] / f"{digest}.dat"

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def put(self, data: bytes) -> Digest:
        """Store ``data`` and return its digest.

        If the content already exists, verifies it instead of rewriting.
        """
        digest = digest_of(data)
        path = self._path(digest.hash)
        if path.exists():
            if not self.verify(digest.hash):
                raise ContentIntegrityError(
                    f"Existing content {digest.hash} failed integrity check"
                )
        else:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp = path.with_suffix(".tmp")
            tmp.write_bytes(data)
            tmp.replace(path)
            logger.debug("Stored content %s (%d bytes)", digest.hash, digest.length)
        return digest

    def delete(self, content: Hash) -> bool:
        """Remove a blob.  Returns False if it was not stored."""
        path = self._path(content)
        if not path.exists():
            return False
        path.unlink()
        logger.debug("Deleted content %s", content)
        return True

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def get(self, content: Hash) -> bytes:
        path = self._path(content)
        if not path.exists():
            raise ContentNotFoundError(f"Content not found: {content}")
        return path.read_bytes()

    def exists(self, content: Hash) -> bool:
        return self._path(content).exists()

    def verify(self, content: Hash) -> bool:
        """Re-hash stored bytes and compare with the content hash."""
        path = self._path(content)
        if not path.exists():
            return False
        return sha1_hash(path.read_bytes()) == content
