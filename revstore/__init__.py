"""revstore: distributed content-addressed storage with revision DAGs.

Every content is described by a tree of immutable revisions.  Concurrent
writers may fork the tree; the merge engine reconciles the heads field by
field against their lowest common ancestors.
"""

__version__ = "0.1.0"

from revstore.models import (
    CommandResult,
    Digest,
    Event,
    Guid,
    Hash,
    Operation,
    Revision,
    Value,
    ValueType,
)
from revstore.core.revision_tree import (
    EmptyTreeError,
    RevisionNotFoundError,
    RevisionTree,
    RevisionTreeBuilder,
)
from revstore.core.repository import Repository

__all__ = [
    "CommandResult",
    "Digest",
    "EmptyTreeError",
    "Event",
    "Guid",
    "Hash",
    "Operation",
    "Repository",
    "Revision",
    "RevisionNotFoundError",
    "RevisionTree",
    "RevisionTreeBuilder",
    "Value",
    "ValueType",
    "__version__",
]
