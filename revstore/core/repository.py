"""Repository write path: content blobs plus their revision trees.

Every write follows the same cycle: load the stored tree with its version,
derive the updated tree (add, then merge), and save it back with a
compare-and-swap on the version.  When another writer saved first the
cycle is retried, up to ``StoreConfig.max_write_retries`` times.

The effect of a write is reported as a ``CommandResult``.  Its operation is
derived from the tree before and after the write:

- unchanged tree: no-op
- absent or deleted before, live after: CREATE
- live before, deleted after: DELETE
- anything else: UPDATE

Every write that changes a tree is also appended to the repository history,
read back with :meth:`Repository.history`.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from revstore.config import StoreConfig
from revstore.config import config as default_config
from revstore.core.content_store import ContentStore
from revstore.core.revision_store import ConcurrentModificationError, RevisionStore
from revstore.core.revision_tree import EmptyTreeError, RevisionTree
from revstore.models.keys import Hash
from revstore.models.results import CommandResult, Event, Operation
from revstore.models.revision import Revision

logger = logging.getLogger(__name__)


class ConflictError(RuntimeError):
    """Raised when a write is based on a head that is not the current one."""


class UnknownContentError(LookupError):
    """Raised when a content is not known to the repository."""

    def __init__(self, content: Hash, reason: str = "Unknown content") -> None:
        self.content = content
        super().__init__(f"{reason}: {content}")


class UnknownRevisionError(RuntimeError):
    """Raised when a write would store a tree referencing absent revisions."""

    def __init__(self, content: Hash, revisions: Iterable[Hash]) -> None:
        self.content = content
        self.revisions = tuple(revisions)
        super().__init__(
            f"Tree of {content} references unknown revisions: "
            + ", ".join(str(r) for r in self.revisions)
        )


def _operation(before: RevisionTree | None, after: RevisionTree) -> Operation | None:
    if before is not None and before == after:
        return None
    before_deleted = before is None or before.is_deleted
    after_deleted = after.is_deleted
    if before_deleted and not after_deleted:
        return Operation.CREATE
    if not before_deleted and after_deleted:
        return Operation.DELETE
    return Operation.UPDATE


class Repository:
    """A local repository of contents and their revision histories.

    Parameters
    ----------
    config:
        Store configuration.  Defaults to the environment-driven singleton.
    """

    def __init__(self, config: StoreConfig | None = None) -> None:
        if config is None:
            config = default_config
        self._config = config
        self._contents = ContentStore(config.content_path)
        self._revisions = RevisionStore(
            config.revision_db_path, verify=config.verify_revisions
        )

    @property
    def config(self) -> StoreConfig:
        return self._config

    @property
    def content_store(self) -> ContentStore:
        return self._contents

    @property
    def revision_store(self) -> RevisionStore:
        return self._revisions

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def add_content(
        self, data: bytes, metadata: Mapping[str, Any] | None = None
    ) -> CommandResult:
        """Store a blob and describe it with a first revision.

        A content that was deleted is re-created on top of its tombstone.
        Adding a live content again with other metadata is a conflict; use
        :meth:`update` instead.
        """
        digest = self._contents.put(data)
        existing = self._revisions.load(digest.hash)
        if existing is not None and existing.is_deleted:
            revision = Revision(
                content=digest.hash,
                length=digest.length,
                parents=existing.head,
                metadata=metadata or {},
            )
        else:
            revision = Revision(
                content=digest.hash, length=digest.length, metadata=metadata or {}
            )
        return self.put_revision(revision)

    def put_revision(self, revision: Revision) -> CommandResult:
        """Add a revision written against the current head.

        Raises
        ------
        ConflictError
            If the content is unknown and the revision is not a root, or if
            its parents are not the current head.
        """
        logger.info(
            "Adding revision %s to %s, with parents %s",
            revision.revision,
            revision.content,
            [str(p) for p in revision.parents],
        )

        def build(existing: RevisionTree | None) -> RevisionTree:
            if existing is None:
                if revision.parents:
                    raise ConflictError(
                        f"Revision {revision.revision} has parents but "
                        f"{revision.content} is unknown"
                    )
                return RevisionTree.of(revision)
            if revision.revision in existing:
                return existing
            if existing.head != revision.parents:
                raise ConflictError(
                    f"Revision {revision.revision} is not based on the head of "
                    f"{revision.content}"
                )
            return self._merged(existing.add(revision))

        return self._write(revision.content, build)

    def put_tree(self, tree: RevisionTree) -> CommandResult:
        """Merge a (possibly partial) tree into the stored one.

        Raises
        ------
        EmptyTreeError
            If the tree holds no revision.
        UnknownRevisionError
            If the combined tree still references revisions it does not hold.
        """
        if not tree:
            raise EmptyTreeError("Cannot store a revision tree without revisions")
        logger.info("Merging revision tree of %s", tree.content)

        def build(existing: RevisionTree | None) -> RevisionTree:
            if existing is None:
                return tree
            return self._merged(existing.add(tree))

        return self._write(tree.content, build)

    def update(
        self,
        content: Hash,
        head: Iterable[Hash],
        metadata: Mapping[str, Any],
    ) -> CommandResult:
        """Replace the metadata of a content, based on ``head``."""
        tree = self.get_tree(content)
        revision = Revision(
            content=content, length=tree.length, parents=tuple(head), metadata=metadata
        )
        return self.put_revision(revision)

    def delete(self, content: Hash, head: Iterable[Hash]) -> CommandResult:
        """Append a tombstone revision on top of ``head``.

        Deleting a deleted content is a no-op.
        """
        expected = tuple(sorted(set(head)))
        logger.info("Deleting content %s, with head %s", content, [str(h) for h in expected])

        def build(existing: RevisionTree | None) -> RevisionTree:
            if existing is None:
                raise UnknownContentError(content)
            if existing.head != expected:
                raise ConflictError(f"Head of {content} has changed")
            if existing.is_deleted:
                return existing
            return existing.add(
                Revision(
                    content=content,
                    length=existing.length,
                    parents=existing.head,
                    deleted=True,
                )
            )

        return self._write(content, build)

    def merge(self, content: Hash) -> CommandResult:
        """Merge the heads of a stored tree, if they can be reconciled."""

        def build(existing: RevisionTree | None) -> RevisionTree:
            if existing is None:
                raise UnknownContentError(content)
            return existing.merge()

        return self._write(content, build)

    def _merged(self, tree: RevisionTree) -> RevisionTree:
        return tree.merge() if self._config.merge_on_write else tree

    def _write(
        self,
        content: Hash,
        build: Callable[[RevisionTree | None], RevisionTree],
    ) -> CommandResult:
        attempts = self._config.max_write_retries
        attempt = 0
        while True:
            attempt += 1
            before, version = self._revisions.load_versioned(content)
            after = build(before)
            operation = _operation(before, after)
            if operation is None:
                return CommandResult(content=content, head=after.head)
            if after.unknown_parents:
                raise UnknownRevisionError(content, after.unknown_parents)
            if operation is Operation.CREATE and not self._contents.exists(content):
                raise UnknownContentError(content, "Content is not stored")
            try:
                self._revisions.save(after, version, operation)
            except ConcurrentModificationError:
                if attempt == attempts:
                    raise
                logger.warning(
                    "Concurrent write on %s, retrying (%d/%d)", content, attempt, attempts
                )
                continue
            if operation is Operation.DELETE:
                self._contents.delete(content)
            logger.info(
                "%s %s, head %s", operation.value, content, [str(h) for h in after.head]
            )
            return CommandResult(operation=operation, content=content, head=after.head)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_tree(self, content: Hash) -> RevisionTree:
        tree = self._revisions.load(content)
        if tree is None:
            raise UnknownContentError(content)
        return tree

    def get_info(self, content: Hash) -> list[Revision]:
        """Head revisions of a content."""
        tree = self.get_tree(content)
        return tree.get_all(tree.head)

    def get_content(self, content: Hash) -> bytes:
        """Bytes of a live content."""
        tree = self.get_tree(content)
        if tree.is_deleted:
            raise UnknownContentError(content, "Content is deleted")
        return self._contents.get(content)

    def unknown_parents(self, content: Hash) -> tuple[Hash, ...]:
        return self.get_tree(content).unknown_parents

    def contents(self, *, include_deleted: bool = False) -> list[Hash]:
        return self._revisions.contents(include_deleted=include_deleted)

    def history(
        self,
        *,
        chronological: bool = True,
        first: int | None = None,
        number: int = 100,
    ) -> list[Event]:
        """Events of the writes that changed a tree, paged by sequence number.

        See :meth:`RevisionStore.history`.
        """
        return self._revisions.history(
            chronological=chronological, first=first, number=number
        )
