"""JSON mapping of revisions and revision trees.

Revision document::

    {"revision": <hex>, "content": <hex>, "length": <int>,
     "parents": [<hex>, ...], "deleted": true, "metadata": {key: <tagged value>}}

``deleted`` is omitted when false and ``metadata`` when empty.  A tree
document hoists ``content`` and ``length`` to the top level and lists its
revisions (without those two fields) in topological order.  Values use the
tagged form of :meth:`Value.to_json`.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

from revstore.core.hasher import canonical_json_bytes
from revstore.core.revision_tree import RevisionTree
from revstore.models.revision import Revision
from revstore.models.value import Value

CONTENT = "content"
LENGTH = "length"
REVISION = "revision"
PARENTS = "parents"
DELETED = "deleted"
METADATA = "metadata"
REVISIONS = "revisions"


class CodecError(ValueError):
    """Raised when a document cannot be decoded."""


def metadata_to_dict(metadata: Mapping[str, Value]) -> dict[str, Any]:
    return {key: value.to_json() for key, value in metadata.items()}


def metadata_from_dict(obj: Any) -> dict[str, Value]:
    if not isinstance(obj, Mapping):
        raise CodecError(f"Metadata must be an object, got {type(obj).__name__}")
    try:
        return {str(key): Value.from_json(value) for key, value in obj.items()}
    except (TypeError, ValueError) as exc:
        raise CodecError(f"Invalid metadata: {exc}") from exc


def revision_to_dict(revision: Revision) -> dict[str, Any]:
    doc: dict[str, Any] = {
        REVISION: revision.revision.hex(),
        CONTENT: revision.content.hex(),
        LENGTH: revision.length,
        PARENTS: [parent.hex() for parent in revision.parents],
    }
    if revision.deleted:
        doc[DELETED] = True
    if revision.metadata:
        doc[METADATA] = metadata_to_dict(revision.metadata)
    return doc


def revision_from_dict(doc: Mapping[str, Any]) -> Revision:
    """Decode a revision, keeping the recorded revision hash."""
    if not isinstance(doc, Mapping):
        raise CodecError(f"Revision must be an object, got {type(doc).__name__}")
    try:
        return Revision.restore(
            revision=doc[REVISION],
            content=doc[CONTENT],
            length=doc[LENGTH],
            parents=doc.get(PARENTS, ()),
            deleted=doc.get(DELETED, False),
            metadata=metadata_from_dict(doc.get(METADATA, {})),
        )
    except KeyError as exc:
        raise CodecError(f"Missing revision field: {exc.args[0]}") from exc
    except CodecError:
        raise
    except (TypeError, ValueError) as exc:
        raise CodecError(f"Invalid revision: {exc}") from exc


def tree_to_dict(tree: RevisionTree) -> dict[str, Any]:
    revisions = []
    for revision in tree.list():
        doc = revision_to_dict(revision)
        del doc[CONTENT]
        del doc[LENGTH]
        revisions.append(doc)
    return {
        CONTENT: tree.content.hex(),
        LENGTH: tree.length,
        REVISIONS: revisions,
    }


def tree_from_dict(doc: Mapping[str, Any]) -> RevisionTree:
    if not isinstance(doc, Mapping):
        raise CodecError(f"Tree must be an object, got {type(doc).__name__}")
    try:
        content = doc[CONTENT]
        length = doc[LENGTH]
        entries = doc[REVISIONS]
    except KeyError as exc:
        raise CodecError(f"Missing tree field: {exc.args[0]}") from exc
    if not isinstance(entries, list):
        raise CodecError("Tree revisions must be a list")
    revisions = []
    for entry in entries:
        if not isinstance(entry, Mapping):
            raise CodecError("Tree revisions must be objects")
        revisions.append(revision_from_dict({**entry, CONTENT: content, LENGTH: length}))
    return RevisionTree(revisions)


def dumps_tree(tree: RevisionTree) -> bytes:
    """Canonical JSON bytes of a tree document."""
    return canonical_json_bytes(tree_to_dict(tree))


def loads_tree(data: bytes | str) -> RevisionTree:
    try:
        doc = json.loads(data)
    except json.JSONDecodeError as exc:
        raise CodecError(f"Invalid JSON: {exc}") from exc
    return tree_from_dict(doc)
