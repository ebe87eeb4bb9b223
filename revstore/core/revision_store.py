"""Revision trees persisted in SQLite, one row per content.

Each row carries a version counter.  Writers read a tree together with its
version and save it back conditionally (compare-and-swap); a concurrent
writer that got there first makes the save fail with
``ConcurrentModificationError`` so the caller can reload and retry.

Every save that records an operation also appends an ``Event`` to the
history table, in the same transaction as the tree itself.

Design:
- WAL journal mode for concurrent readers.
- The tree is stored as its canonical JSON document; ``head`` and
  ``deleted`` are denormalised for listing.
- Event sequence numbers come from an AUTOINCREMENT key and are never reused.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from contextlib import closing
from datetime import datetime, timezone
from pathlib import Path

from revstore.codec.json_codec import dumps_tree, loads_tree
from revstore.core.revision_tree import RevisionTree
from revstore.models.keys import Hash
from revstore.models.results import Event, Operation

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# DDL
# ---------------------------------------------------------------------------

_CREATE_TREES = """
CREATE TABLE IF NOT EXISTS revision_trees (
    content    TEXT PRIMARY KEY,
    version    INTEGER NOT NULL,
    length     INTEGER NOT NULL,
    head_json  TEXT NOT NULL DEFAULT '[]',
    deleted    INTEGER NOT NULL DEFAULT 0,
    tree_json  TEXT NOT NULL
);
"""

_CREATE_EVENTS = """
CREATE TABLE IF NOT EXISTS events (
    seq             INTEGER PRIMARY KEY AUTOINCREMENT,
    timestamp_utc   TEXT NOT NULL,
    operation       TEXT NOT NULL,
    content         TEXT NOT NULL,
    revisions_json  TEXT NOT NULL DEFAULT '[]'
);
"""


class ConcurrentModificationError(RuntimeError):
    """Raised when a tree changed between load and save."""

    def __init__(self, content: Hash, expected: int, actual: int) -> None:
        self.content = content
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Tree of {content} is at version {actual}, expected {expected}"
        )


class RevisionIntegrityError(RuntimeError):
    """Raised when a stored revision hash does not match its fields."""


class RevisionStore:
    """Versioned storage of revision trees, with a history of writes.

    Parameters
    ----------
    db_path:
        Path to the SQLite database file.  Created if it does not exist.
    verify:
        Recompute every revision hash when loading a tree.
    """

    def __init__(self, db_path: Path, *, verify: bool = False) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._verify = verify
        self._init_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), check_same_thread=False)
        conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _init_schema(self) -> None:
        with closing(self._connect()) as conn, conn:
            conn.execute(_CREATE_TREES)
            conn.execute(_CREATE_EVENTS)

    @staticmethod
    def _version(conn: sqlite3.Connection, content: Hash) -> int:
        row = conn.execute(
            "SELECT version FROM revision_trees WHERE content = ?",
            (content.hex(),),
        ).fetchone()
        return 0 if row is None else row[0]

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def load(self, content: Hash) -> RevisionTree | None:
        """The stored tree of ``content``, or ``None`` if it is unknown."""
        tree, _ = self.load_versioned(content)
        return tree

    def load_versioned(self, content: Hash) -> tuple[RevisionTree | None, int]:
        """The stored tree and its version (0 when nothing is stored)."""
        with closing(self._connect()) as conn:
            row = conn.execute(
                "SELECT version, tree_json FROM revision_trees WHERE content = ?",
                (content.hex(),),
            ).fetchone()
        if row is None:
            return None, 0
        version, tree_json = row
        tree = loads_tree(tree_json)
        if self._verify:
            for revision in tree.list():
                if not revision.verify():
                    raise RevisionIntegrityError(
                        f"Revision {revision.revision} of {content} failed verification"
                    )
        return tree, version

    def contents(self, *, include_deleted: bool = True) -> list[Hash]:
        """Hashes of all stored contents, ascending."""
        query = "SELECT content FROM revision_trees"
        if not include_deleted:
            query += " WHERE deleted = 0"
        query += " ORDER BY content"
        with closing(self._connect()) as conn:
            rows = conn.execute(query).fetchall()
        return [Hash.from_hex(row[0]) for row in rows]

    def history(
        self,
        *,
        chronological: bool = True,
        first: int | None = None,
        number: int = 100,
    ) -> list[Event]:
        """A page of at most ``number`` events.

        Parameters
        ----------
        chronological:
            Oldest first when true, newest first otherwise.
        first:
            Sequence number to start from, inclusive.  Defaults to the
            oldest event (chronological) or the newest one.
        number:
            Maximum number of events returned.
        """
        if number <= 0:
            return []
        query = "SELECT * FROM events"
        params: list[int] = []
        if first is not None:
            query += " WHERE seq >= ?" if chronological else " WHERE seq <= ?"
            params.append(first)
        query += " ORDER BY seq ASC" if chronological else " ORDER BY seq DESC"
        query += " LIMIT ?"
        params.append(number)
        with closing(self._connect()) as conn:
            conn.row_factory = sqlite3.Row
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_event(row) for row in rows]

    @staticmethod
    def _row_to_event(row: sqlite3.Row) -> Event:
        return Event(
            seq=row["seq"],
            timestamp=datetime.fromisoformat(row["timestamp_utc"]),
            operation=Operation(row["operation"]),
            content=Hash.from_hex(row["content"]),
            revisions=[Hash.from_hex(h) for h in json.loads(row["revisions_json"])],
        )

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def save(
        self,
        tree: RevisionTree,
        expected_version: int,
        operation: Operation | None = None,
    ) -> int:
        """Store ``tree`` if its row is still at ``expected_version``.

        When ``operation`` is given, an event recording it is appended to
        the history in the same transaction.  Returns the new version.

        Raises
        ------
        ConcurrentModificationError
            If another writer saved the tree in the meantime.
        """
        content = tree.content
        tree_json = dumps_tree(tree).decode("utf-8")
        head_json = json.dumps([h.hex() for h in tree.head])
        new_version = expected_version + 1
        with closing(self._connect()) as conn, conn:
            if expected_version == 0:
                cursor = conn.execute(
                    """
                    INSERT OR IGNORE INTO revision_trees
                        (content, version, length, head_json, deleted, tree_json)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (
                        content.hex(),
                        new_version,
                        tree.length,
                        head_json,
                        int(tree.is_deleted),
                        tree_json,
                    ),
                )
            else:
                cursor = conn.execute(
                    """
                    UPDATE revision_trees
                    SET version = ?, head_json = ?, deleted = ?, tree_json = ?
                    WHERE content = ? AND version = ?
                    """,
                    (
                        new_version,
                        head_json,
                        int(tree.is_deleted),
                        tree_json,
                        content.hex(),
                        expected_version,
                    ),
                )
            if cursor.rowcount != 1:
                actual = self._version(conn, content)
                raise ConcurrentModificationError(content, expected_version, actual)
            if operation is not None:
                conn.execute(
                    """
                    INSERT INTO events
                        (timestamp_utc, operation, content, revisions_json)
                    VALUES (?, ?, ?, ?)
                    """,
                    (
                        datetime.now(timezone.utc).isoformat(),
                        operation.value,
                        content.hex(),
                        head_json,
                    ),
                )
        logger.debug("Saved tree of %s at version %d", content, new_version)
        return new_version
