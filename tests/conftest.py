"""Shared test fixtures for revstore."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from revstore.config import StoreConfig
from revstore.core.content_store import ContentStore
from revstore.core.repository import Repository
from revstore.core.revision_store import RevisionStore
from revstore.core.revision_tree import RevisionTree
from revstore.models.keys import Hash
from revstore.models.revision import Revision

CONTENT = Hash.from_hex("8d5f3c77e94a0cad3a32340d342135f43dbb7cbb")
LENGTH = 1024


def fixed_hash(name: str) -> Hash:
    """A readable, sortable revision hash: ``"a0"`` -> ``a000...0``."""
    return Hash.from_hex(name.ljust(40, "0"))


@pytest.fixture
def tmp_dir(tmp_path: Path) -> Path:
    """Provide a temporary directory for test data."""
    return tmp_path


@pytest.fixture
def store_config(tmp_dir: Path) -> StoreConfig:
    """Provide a configuration rooted in a temp directory."""
    return StoreConfig(data_path=tmp_dir / "store")


@pytest.fixture
def content_store(tmp_dir: Path) -> ContentStore:
    return ContentStore(tmp_dir / "content")


@pytest.fixture
def revision_store(tmp_dir: Path) -> RevisionStore:
    return RevisionStore(tmp_dir / "revisions.db")


@pytest.fixture
def repository(store_config: StoreConfig) -> Repository:
    return Repository(store_config)


@pytest.fixture
def h() -> Callable[[str], Hash]:
    """Provide the readable hash builder."""
    return fixed_hash


@pytest.fixture
def rev() -> Callable[..., Revision]:
    """Factory for revisions of a single content with fixed hashes.

    Usage: ``rev("a1", {"msg": "hello"}, "a0")``.
    """

    def _make(
        name: str,
        metadata: dict[str, Any] | None = None,
        *parents: str,
        deleted: bool = False,
    ) -> Revision:
        return Revision.restore(
            revision=fixed_hash(name),
            content=CONTENT,
            length=LENGTH,
            parents=[fixed_hash(p) for p in parents],
            deleted=deleted,
            metadata=metadata,
        )

    return _make


@pytest.fixture
def history(rev: Callable[..., Revision]) -> dict[str, Revision]:
    """A forked and merged history of one content.

    ::

        d5
        |  \\
        a4  \\   d4
        | \\  \\  /
        |  \\  c3
        a3 |  /
        |  b2
        a2 |
        |  /
        a1
        |
        a0
    """
    return {
        "a0": rev("a0", {"msg": "good morning"}),
        "a1": rev("a1", {"msg": "hello"}, "a0"),
        "a2": rev("a2", {"bool": False, "msg": "hello world"}, "a1"),
        "a3": rev("a3", {"bool": True, "msg": "hello world"}, "a2"),
        "b2": rev("b2", {"answer": 42, "msg": "hello"}, "a1"),
        "c3": rev("c3", {"answer": 42, "msg": "hello you"}, "b2"),
        "a4": rev("a4", {"answer": 42, "bool": True, "msg": "hello world"}, "a3", "b2"),
        "d4": rev("d4", None, "c3", deleted=True),
        "d5": rev("d5", None, "a4", "c3", deleted=True),
    }


@pytest.fixture
def tree_of(history: dict[str, Revision]) -> Callable[..., RevisionTree]:
    """Build a tree from names of the ``history`` fixture."""

    def _make(*names: str) -> RevisionTree:
        return RevisionTree(history[name] for name in names)

    return _make
