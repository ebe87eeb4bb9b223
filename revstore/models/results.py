"""Outcome of a repository write, and the history of writes."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from revstore.models.keys import Hash


class Operation(str, Enum):
    """Observable effect of a write on a content."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class CommandResult(BaseModel):
    """What a write did, and the head it left the content at.

    ``operation`` is ``None`` for a no-op (the stored tree did not change).
    """

    model_config = ConfigDict(frozen=True)

    operation: Operation | None = None
    content: Hash
    head: tuple[Hash, ...] = ()

    @property
    def is_no_op(self) -> bool:
        return self.operation is None


class Event(BaseModel):
    """An entry of the repository history: one write that changed a tree.

    Events are numbered by ``seq``, starting at 1, in the order the writes
    were committed.  ``revisions`` is the head the write left the content at.
    """

    model_config = ConfigDict(frozen=True)

    seq: int = Field(ge=1)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    operation: Operation
    content: Hash
    revisions: tuple[Hash, ...] = ()
