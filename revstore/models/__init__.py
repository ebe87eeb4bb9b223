"""Value types of the store: keys, metadata values, revisions, results."""

from revstore.models.keys import Digest, Guid, Hash
from revstore.models.value import Value, ValueType
from revstore.models.revision import Revision
from revstore.models.results import CommandResult, Event, Operation

__all__ = [
    "CommandResult",
    "Digest",
    "Event",
    "Guid",
    "Hash",
    "Operation",
    "Revision",
    "Value",
    "ValueType",
]
