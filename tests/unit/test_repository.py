"""Tests for the repository write path and its conflict handling."""

from __future__ import annotations

import pytest

from revstore.config import StoreConfig
from revstore.core.repository import (
    ConflictError,
    Repository,
    UnknownContentError,
    UnknownRevisionError,
)
from revstore.core.revision_store import ConcurrentModificationError
from revstore.core.revision_tree import EmptyTreeError, RevisionTree
from revstore.models.keys import Hash
from revstore.models.results import Operation
from revstore.models.revision import Revision
from revstore.models.value import Value

DATA = b"some content"


def _root(repository: Repository) -> Revision:
    result = repository.add_content(DATA, {"name": "doc"})
    return repository.get_tree(result.content).get(result.head[0])


class TestAddContent:
    """Adding blobs and their first revision."""

    def test_create(self, repository: Repository):
        """A new blob is stored with a root revision."""
        result = repository.add_content(DATA, {"name": "doc"})
        assert result.operation is Operation.CREATE
        assert len(result.head) == 1
        assert repository.get_content(result.content) == DATA
        [head] = repository.get_info(result.content)
        assert head.metadata == {"name": Value.of("doc")}
        assert head.length == len(DATA)

    def test_same_content_twice_is_noop(self, repository: Repository):
        """Adding the same content and metadata again is a no-op."""
        first = repository.add_content(DATA, {"name": "doc"})
        second = repository.add_content(DATA, {"name": "doc"})
        assert second.is_no_op
        assert second.head == first.head

    def test_same_content_other_metadata_conflicts(self, repository: Repository):
        """Adding a live content with other metadata conflicts."""
        repository.add_content(DATA, {"name": "doc"})
        with pytest.raises(ConflictError):
            repository.add_content(DATA, {"name": "other"})

    def test_contents_listing(self, repository: Repository):
        """contents lists the stored content hashes."""
        result = repository.add_content(DATA)
        assert repository.contents() == [result.content]


class TestUpdateAndDelete:
    """Updates and tombstones based on the current head."""

    def test_update(self, repository: Repository):
        """An update appends a child of the head."""
        root = _root(repository)
        result = repository.update(root.content, [root.revision], {"name": "renamed"})
        assert result.operation is Operation.UPDATE
        [head] = repository.get_info(root.content)
        assert head.parents == (root.revision,)
        assert head.metadata == {"name": Value.of("renamed")}

    def test_update_with_stale_head_conflicts(self, repository: Repository):
        """An update based on an old head conflicts."""
        root = _root(repository)
        repository.update(root.content, [root.revision], {"name": "v2"})
        with pytest.raises(ConflictError):
            repository.update(root.content, [root.revision], {"name": "v3"})

    def test_update_unknown_content(self, repository: Repository):
        """Updating an unknown content raises UnknownContentError."""
        with pytest.raises(UnknownContentError):
            repository.update(Hash.from_hex("00" * 20), [], {})

    def test_delete(self, repository: Repository):
        """A delete tombstones the tree and removes the blob."""
        root = _root(repository)
        result = repository.delete(root.content, [root.revision])
        assert result.operation is Operation.DELETE
        assert repository.get_tree(root.content).is_deleted
        assert not repository.content_store.exists(root.content)
        with pytest.raises(UnknownContentError):
            repository.get_content(root.content)
        assert repository.contents() == []
        assert repository.contents(include_deleted=True) == [root.content]

    def test_delete_twice_is_noop(self, repository: Repository):
        """Deleting a deleted content is a no-op."""
        root = _root(repository)
        first = repository.delete(root.content, [root.revision])
        assert repository.delete(root.content, first.head).is_no_op

    def test_delete_with_stale_head_conflicts(self, repository: Repository):
        """A delete based on an old head conflicts."""
        root = _root(repository)
        repository.update(root.content, [root.revision], {"name": "v2"})
        with pytest.raises(ConflictError):
            repository.delete(root.content, [root.revision])

    def test_delete_unknown_content(self, repository: Repository):
        """Deleting an unknown content raises UnknownContentError."""
        with pytest.raises(UnknownContentError):
            repository.delete(Hash.from_hex("00" * 20), [])

    def test_recreate_after_delete(self, repository: Repository):
        """Re-adding a deleted content builds on the tombstone."""
        root = _root(repository)
        deleted = repository.delete(root.content, [root.revision])
        result = repository.add_content(DATA, {"name": "back"})
        assert result.operation is Operation.CREATE
        [head] = repository.get_info(root.content)
        assert head.parents == deleted.head
        assert repository.get_content(root.content) == DATA


class TestPutRevision:
    """Single revisions written against the current head."""

    def test_non_root_for_unknown_content_conflicts(self, repository: Repository, history):
        """A child revision of an unknown content conflicts."""
        with pytest.raises(ConflictError):
            repository.put_revision(history["a1"])

    def test_root_without_stored_content(self, repository: Repository, history):
        """A root revision needs its blob to be stored."""
        with pytest.raises(UnknownContentError):
            repository.put_revision(history["a0"])

    def test_known_revision_is_noop(self, repository: Repository):
        """A revision already in the tree is a no-op."""
        root = _root(repository)
        assert repository.put_revision(root).is_no_op

    def test_child_revision(self, repository: Repository):
        """A child of the head becomes the new head."""
        root = _root(repository)
        child = root.child({"name": "child"})
        result = repository.put_revision(child)
        assert result.operation is Operation.UPDATE
        assert result.head == (child.revision,)


class TestPutTree:
    """Ingesting whole or partial trees."""

    def test_merges_concurrent_branches(self, repository: Repository):
        """Concurrent branches are merged on write."""
        root = _root(repository)
        left = root.child({"name": "doc", "left": True})
        right = root.child({"name": "doc", "right": True})
        repository.put_revision(left)

        result = repository.put_tree(RevisionTree.of(root, right))
        assert result.operation is Operation.UPDATE
        [head] = repository.get_info(root.content)
        assert set(head.parents) == {left.revision, right.revision}
        assert head.metadata == {
            "left": Value.of(True),
            "name": Value.of("doc"),
            "right": Value.of(True),
        }

    def test_conflicting_branches_stay_diverged(self, repository: Repository):
        """Conflicting branches are stored with two heads."""
        root = _root(repository)
        repository.put_revision(root.child({"name": "left"}))
        result = repository.put_tree(RevisionTree.of(root, root.child({"name": "right"})))
        assert result.operation is Operation.UPDATE
        assert len(result.head) == 2

    def test_unknown_parents_rejected(self, repository: Repository):
        """A tree with unknown parents is refused."""
        root = _root(repository)
        orphan_parent = root.child({"name": "missing"})
        orphan = orphan_parent.child({"name": "orphan"})
        with pytest.raises(UnknownRevisionError) as excinfo:
            repository.put_tree(RevisionTree.of(orphan))
        assert excinfo.value.revisions == (orphan_parent.revision,)

    def test_same_tree_is_noop(self, repository: Repository):
        """Ingesting the stored tree changes nothing."""
        root = _root(repository)
        assert repository.put_tree(RevisionTree.of(root)).is_no_op

    def test_empty_tree_rejected(self, repository: Repository):
        """A tree without revisions is refused before any write."""
        with pytest.raises(EmptyTreeError):
            repository.put_tree(RevisionTree())
        assert repository.contents(include_deleted=True) == []

    def test_without_merge_on_write(self, store_config: StoreConfig):
        """With merge_on_write off, heads are merged on demand."""
        repository = Repository(store_config.model_copy(update={"merge_on_write": False}))
        root = _root(repository)
        repository.put_revision(root.child({"name": "doc", "a": 1}))
        repository.put_tree(RevisionTree.of(root, root.child({"name": "doc", "b": 2})))
        assert len(repository.get_tree(root.content).head) == 2

        result = repository.merge(root.content)
        assert result.operation is Operation.UPDATE
        assert len(result.head) == 1
        assert repository.merge(root.content).is_no_op


class TestRetries:
    """Compare-and-swap retries on concurrent writes."""

    def test_retries_after_concurrent_write(self, repository: Repository, store_config, monkeypatch):
        """A write that loses the race reloads and merges."""
        root = _root(repository)
        other = Repository(store_config)
        left = root.child({"name": "doc", "left": True})
        right = root.child({"name": "doc", "right": True})
        save = repository.revision_store.save
        calls = []

        def racing_save(tree, expected_version, operation=None):
            calls.append(expected_version)
            if len(calls) == 1:
                other.put_revision(left)
            return save(tree, expected_version, operation)

        monkeypatch.setattr(repository.revision_store, "save", racing_save)
        result = repository.put_tree(RevisionTree.of(root, right))

        assert len(calls) == 2
        [head] = repository.get_info(root.content)
        assert set(head.parents) == {left.revision, right.revision}
        assert result.head == (head.revision,)

    def test_gives_up_after_max_retries(self, repository: Repository, monkeypatch):
        """ConcurrentModificationError propagates after the last attempt."""
        root = _root(repository)

        def always_stale(tree, expected_version, operation=None):
            raise ConcurrentModificationError(tree.content, expected_version, expected_version + 1)

        monkeypatch.setattr(repository.revision_store, "save", always_stale)
        with pytest.raises(ConcurrentModificationError):
            repository.put_revision(root.child({"name": "x"}))


class TestReads:
    """Read accessors."""

    def test_unknown_content(self, repository: Repository):
        """get_tree of an unknown content raises UnknownContentError."""
        with pytest.raises(UnknownContentError):
            repository.get_tree(Hash.from_hex("00" * 20))

    def test_unknown_parents(self, repository: Repository):
        """A complete tree has no unknown parents."""
        root = _root(repository)
        assert repository.unknown_parents(root.content) == ()


class TestHistory:
    """Every write that changes a tree is recorded as an event."""

    def test_empty(self, repository: Repository):
        """A fresh repository has no events."""
        assert repository.history() == []

    def test_records_every_write(self, repository: Repository):
        """Create, update and delete are recorded in order with their heads."""
        root = _root(repository)
        updated = repository.update(root.content, [root.revision], {"name": "v2"})
        deleted = repository.delete(root.content, updated.head)

        events = repository.history()
        assert [e.seq for e in events] == [1, 2, 3]
        assert [e.operation for e in events] == [
            Operation.CREATE,
            Operation.UPDATE,
            Operation.DELETE,
        ]
        assert all(e.content == root.content for e in events)
        assert events[0].revisions == (root.revision,)
        assert events[2].revisions == deleted.head
        assert events[0].timestamp <= events[2].timestamp

    def test_no_op_is_not_recorded(self, repository: Repository):
        """No-op writes leave the history unchanged."""
        root = _root(repository)
        repository.put_revision(root)
        repository.add_content(DATA, {"name": "doc"})
        assert len(repository.history()) == 1

    def test_failed_write_is_not_recorded(self, repository: Repository):
        """A rejected write leaves the history unchanged."""
        root = _root(repository)
        with pytest.raises(ConflictError):
            repository.update(root.content, [], {"name": "stale"})
        assert len(repository.history()) == 1

    def test_paging(self, repository: Repository):
        """Events are paged by sequence number in both directions."""
        root = _root(repository)
        head = (root.revision,)
        for i in range(4):
            head = repository.update(root.content, head, {"name": f"v{i}"}).head

        assert [e.seq for e in repository.history(first=2, number=2)] == [2, 3]
        assert [e.seq for e in repository.history(chronological=False, number=2)] == [5, 4]
        assert [e.seq for e in repository.history(chronological=False, first=3)] == [3, 2, 1]
        assert repository.history(first=6) == []
        assert repository.history(number=0) == []
