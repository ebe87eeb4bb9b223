"""Revision DAG of a single content, with automatic N-way merge.

A ``RevisionTree`` holds every known revision of one content, keyed by
revision hash.  It is immutable: ``add()`` and ``merge()`` return new trees
and never touch the receiver.  Partial histories are valid; parents that
are referenced but absent are reported by ``unknown_parents``.

Internally revisions live in an arena ordered by hash.  Parent links are
stored as index sets so that ancestor queries used by the merge engine
are plain integer-set operations.

Merge
-----
When concurrent writers leave several heads, ``merge()`` folds them pairwise
in ascending hash order.  Each pairwise merge resolves the lowest common
ancestors of both sides, recursively collapsing several of them (criss-cross
histories) into a virtual base, then applies the three-way field rule to
every metadata key and to the ``deleted`` flag.  The merge is a no-op,
returning the tree unchanged, when the history between the heads is
incomplete or when both sides changed the same field to different values.
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Collection, Iterable, Iterator, Mapping
from typing import NamedTuple

from revstore.core.diff import CONFLICT, Diff, three_way
from revstore.models.keys import Hash
from revstore.models.revision import Revision
from revstore.models.value import Value

logger = logging.getLogger(__name__)


class RevisionNotFoundError(LookupError):
    """Raised when a requested revision hash is absent from the tree."""

    def __init__(self, revision: Hash) -> None:
        self.revision = revision
        super().__init__(f"Unknown revision: {revision}")


class EmptyTreeError(ValueError):
    """Raised when content-level information is requested from an empty tree."""


class _Base(NamedTuple):
    """Field values a three-way merge is computed against."""

    deleted: bool
    metadata: Mapping[str, Value]


_EMPTY_BASE = _Base(deleted=False, metadata={})


class RevisionTree:
    """Immutable DAG of all known revisions of a content.

    Parameters
    ----------
    revisions:
        Revisions to include, in any order.  Duplicates (same revision hash)
        collapse into one node.
    """

    def __init__(self, revisions: Iterable[Revision] = ()) -> None:
        nodes: dict[Hash, Revision] = {}
        for rev in revisions:
            nodes.setdefault(rev.revision, rev)

        ordered = sorted(nodes)
        self._nodes = nodes
        self._index: dict[Hash, int] = {h: i for i, h in enumerate(ordered)}
        self._arena: tuple[Revision, ...] = tuple(nodes[h] for h in ordered)
        self._parent_ids: tuple[frozenset[int], ...] = tuple(
            frozenset(self._index[p] for p in rev.parents if p in self._index)
            for rev in self._arena
        )

        referenced = {p for rev in self._arena for p in rev.parents}
        self._head = tuple(h for h in ordered if h not in referenced)
        self._tail = tuple(
            rev.revision
            for rev in self._arena
            if rev.is_root or any(p not in nodes for p in rev.parents)
        )
        self._unknown_parents = tuple(sorted(p for p in referenced if p not in nodes))

        self._sorted: tuple[Revision, ...] | None = None
        self._ancestor_cache: dict[int, frozenset[int]] = {}

    @classmethod
    def of(cls, *revisions: Revision) -> RevisionTree:
        """Build a tree from the given revisions."""
        return cls(revisions)

    # ------------------------------------------------------------------
    # Content-level information
    # ------------------------------------------------------------------

    @property
    def content(self) -> Hash:
        """Hash of the content all revisions describe."""
        if not self._arena:
            raise EmptyTreeError("Empty revision tree has no content")
        return self._arena[0].content

    @property
    def length(self) -> int:
        """Length in bytes of the content."""
        if not self._arena:
            raise EmptyTreeError("Empty revision tree has no content")
        return self._arena[0].length

    @property
    def is_deleted(self) -> bool:
        """True if every head revision is a tombstone."""
        return bool(self._head) and all(self._nodes[h].deleted for h in self._head)

    # ------------------------------------------------------------------
    # Structural queries
    # ------------------------------------------------------------------

    @property
    def head(self) -> tuple[Hash, ...]:
        """Revisions that are not a parent of any other, ascending."""
        return self._head

    @property
    def tail(self) -> tuple[Hash, ...]:
        """Roots of the known sub-graph, ascending.

        A revision is part of the tail when it has no parent or when at
        least one of its parents is absent from the tree.
        """
        return self._tail

    @property
    def unknown_parents(self) -> tuple[Hash, ...]:
        """Parents referenced in the tree but absent from it, ascending."""
        return self._unknown_parents

    @property
    def is_converged(self) -> bool:
        """True when the tree has at most one head."""
        return len(self._head) <= 1

    def merge_status(self) -> str:
        """``"converged"`` (at most one head) or ``"diverged"``."""
        return "converged" if self.is_converged else "diverged"

    def get(self, revision: Hash) -> Revision:
        """Return the revision with this hash.

        Raises
        ------
        RevisionNotFoundError
            If the tree has no such revision.
        """
        try:
            return self._nodes[revision]
        except KeyError:
            raise RevisionNotFoundError(revision) from None

    def get_all(self, revisions: Iterable[Hash]) -> list[Revision]:
        """Bulk lookup, in the order of ``revisions``."""
        return [self.get(rev) for rev in revisions]

    def contains(self, revision: Hash) -> bool:
        """True if a revision with this hash is in the tree."""
        return revision in self._nodes

    def list(self) -> list[Revision]:
        """All revisions in topological order: parents before children.

        Order among unrelated revisions follows ascending revision hash and
        is stable for a given tree.
        """
        if self._sorted is None:
            self._sorted = self._topological_sort()
        return list(self._sorted)

    def _topological_sort(self) -> tuple[Revision, ...]:
        # Kahn's algorithm over in-tree parent links.
        in_degree = [len(ids) for ids in self._parent_ids]
        children: list[list[int]] = [[] for _ in self._arena]
        for child, parent_ids in enumerate(self._parent_ids):
            for parent in parent_ids:
                children[parent].append(child)

        queue = deque(i for i, degree in enumerate(in_degree) if degree == 0)
        result: list[Revision] = []
        while queue:
            node = queue.popleft()
            result.append(self._arena[node])
            for child in sorted(children[node]):
                in_degree[child] -= 1
                if in_degree[child] == 0:
                    queue.append(child)
        return tuple(result)

    # ------------------------------------------------------------------
    # Insertion
    # ------------------------------------------------------------------

    def add(self, other: Revision | RevisionTree) -> RevisionTree:
        """Return a tree with ``other`` (a revision or a whole tree) added.

        Adding revisions that are already present yields an equal tree.
        """
        if isinstance(other, RevisionTree):
            if all(h in self._nodes for h in other._nodes):
                return self
            return RevisionTree([*self._arena, *other._arena])
        if other.revision in self._nodes:
            return self
        return RevisionTree([*self._arena, other])

    # ------------------------------------------------------------------
    # Merge engine
    # ------------------------------------------------------------------

    def merge(self) -> RevisionTree:
        """Reconcile all heads into a single merge revision.

        Returns this tree unchanged when it already has a single head, when
        the ancestry between heads is not fully present, or when heads hold
        conflicting changes.  Callers detect unresolved divergence by
        checking ``len(tree.head)`` afterwards.
        """
        if len(self._head) <= 1:
            return self

        heads = self.get_all(self._head)
        folded = heads[0]
        work = self
        for position, other in enumerate(heads[1:], start=2):
            merged = work._merge_pair(folded, other)
            if merged is None:
                return self
            folded = merged
            if position < len(heads):
                work = work.add(folded)

        result = Revision(
            content=folded.content,
            length=folded.length,
            parents=self._head,
            deleted=folded.deleted,
            metadata=folded.metadata,
        )
        logger.debug(
            "Merged %d heads of %s into %s", len(self._head), self.content, result.revision
        )
        return self.add(result)

    def _merge_pair(self, left: Revision, right: Revision) -> Revision | None:
        """Merge two revisions of this tree into a new (unstored) revision."""
        base = self._merge_base(left, right)
        if base is None:
            return None

        deleted = three_way(base.deleted, left.deleted, right.deleted)
        left_diff = Diff.of(base.metadata, left.metadata)
        right_diff = Diff.of(base.metadata, right.metadata)
        diff = left_diff.merge(right_diff)
        if deleted is CONFLICT or diff is None:
            conflicts = left_diff.conflicts(right_diff)
            if deleted is CONFLICT:
                conflicts.append("<deleted>")
            logger.debug(
                "Conflict merging %s and %s on %s",
                left.revision,
                right.revision,
                ", ".join(conflicts),
            )
            return None

        return Revision(
            content=left.content,
            length=left.length,
            parents=(left.revision, right.revision),
            deleted=deleted,
            metadata=diff.apply(base.metadata),
        )

    def _merge_base(self, left: Revision, right: Revision) -> _Base | None:
        """Resolve the base two revisions are merged against.

        Returns ``None`` when it cannot be determined safely.
        """
        left_side = self._ancestors(self._index[left.revision]) | {self._index[left.revision]}
        right_side = self._ancestors(self._index[right.revision]) | {self._index[right.revision]}
        common = left_side & right_side

        # Every revision between the two sides and their common history must
        # have its parents present, otherwise a shared ancestor may be missing.
        for i in (left_side | right_side) - common:
            if any(p not in self._index for p in self._arena[i].parents):
                logger.debug(
                    "Incomplete history between %s and %s: %s has unknown parents",
                    left.revision,
                    right.revision,
                    self._arena[i].revision,
                )
                return None

        lowest = self._lowest(common)
        if not lowest:
            return _EMPTY_BASE
        if len(lowest) == 1:
            ancestor = self._arena[lowest[0]]
            return _Base(ancestor.deleted, ancestor.metadata)

        # Criss-cross: collapse all lowest common ancestors into a virtual one.
        ancestors = [self._arena[i] for i in lowest]
        virtual = ancestors[0]
        work = self
        for position, other in enumerate(ancestors[1:], start=2):
            merged = work._merge_pair(virtual, other)
            if merged is None:
                return None
            virtual = merged
            if position < len(ancestors):
                work = work.add(virtual)
        return _Base(virtual.deleted, virtual.metadata)

    def _lowest(self, common: Collection[int]) -> list[int]:
        """Common ancestors that are not an ancestor of another one, ascending."""
        below: set[int] = set()
        for i in common:
            below |= self._ancestors(i)
        return sorted(i for i in common if i not in below)

    def _ancestors(self, node: int) -> frozenset[int]:
        """Indexes of all in-tree ancestors of ``node`` (excluding itself)."""
        cached = self._ancestor_cache.get(node)
        if cached is not None:
            return cached
        seen: set[int] = set()
        stack = list(self._parent_ids[node])
        while stack:
            current = stack.pop()
            if current in seen:
                continue
            seen.add(current)
            stack.extend(self._parent_ids[current])
        result = frozenset(seen)
        self._ancestor_cache[node] = result
        return result

    # ------------------------------------------------------------------
    # Dunder
    # ------------------------------------------------------------------

    def __contains__(self, revision: object) -> bool:
        return revision in self._nodes

    def __len__(self) -> int:
        return len(self._arena)

    def __iter__(self) -> Iterator[Revision]:
        return iter(self.list())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RevisionTree):
            return NotImplemented
        return self._nodes == other._nodes

    def __hash__(self) -> int:
        return hash(frozenset(self._nodes))

    def __repr__(self) -> str:
        return f"RevisionTree(head={[str(h) for h in self._head]}, size={len(self._arena)})"


class RevisionTreeBuilder:
    """Collects revisions in any order, then builds a tree once."""

    def __init__(self) -> None:
        self._revisions: dict[Hash, Revision] = {}

    def add(self, revision: Revision) -> RevisionTreeBuilder:
        """Add one revision.  A later revision with the same hash replaces it."""
        self._revisions[revision.revision] = revision
        return self

    def add_all(self, revisions: Iterable[Revision]) -> RevisionTreeBuilder:
        """Add every revision of ``revisions``."""
        for revision in revisions:
            self.add(revision)
        return self

    def build(self) -> RevisionTree:
        """Build the tree of all collected revisions."""
        return RevisionTree(self._revisions.values())
