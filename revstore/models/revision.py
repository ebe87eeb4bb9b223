"""Revision model: one immutable, self-identified node of a revision DAG.

A revision describes a content blob (hash and length), links to its parent
revisions and carries the metadata of the content at that point in its
history.  Its own ``revision`` hash is sealed at construction from all the
other fields, so two revisions with the same logical content are the same
revision.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from revstore.core.hasher import revision_hash
from revstore.models.keys import Hash
from revstore.models.value import Value


class Revision(BaseModel):
    """A revision of the metadata attached to a content.

    ``parents`` has set semantics: it is stored deduplicated and sorted in
    ascending order.  Metadata values may be given as plain Python objects;
    they are wrapped with :meth:`Value.of`.

    When ``revision`` is supplied (a revision decoded from storage), it is
    trusted as-is.  Use :meth:`verify` to check it against the other fields.
    """

    model_config = ConfigDict(frozen=True)

    content: Hash
    length: int = Field(ge=0)
    parents: tuple[Hash, ...] = ()
    deleted: bool = False
    metadata: dict[str, Value] = Field(default_factory=dict)
    revision: Hash

    @model_validator(mode="before")
    @classmethod
    def _normalize_and_seal(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if data.get("content") is not None:
            data["content"] = Hash.of(data["content"])
        data["parents"] = tuple(sorted({Hash.of(p) for p in data.get("parents") or ()}))
        data["metadata"] = {
            str(key): Value.of(value)
            for key, value in (data.get("metadata") or {}).items()
        }
        data["deleted"] = bool(data.get("deleted", False))
        if data.get("revision") is not None:
            data["revision"] = Hash.of(data["revision"])
        elif data.get("content") is not None and isinstance(data.get("length"), int):
            data["revision"] = revision_hash(
                data["content"],
                data["length"],
                data["parents"],
                data["deleted"],
                data["metadata"],
            )
        return data

    # ------------------------------------------------------------------
    # Construction helpers
    # ------------------------------------------------------------------

    @classmethod
    def restore(
        cls,
        *,
        revision: Hash | str,
        content: Hash | str,
        length: int,
        parents: Iterable[Hash | str] = (),
        deleted: bool = False,
        metadata: Mapping[str, Any] | None = None,
    ) -> Revision:
        """Rebuild a stored revision, keeping its recorded hash."""
        return cls(
            revision=revision,
            content=content,
            length=length,
            parents=tuple(parents),
            deleted=deleted,
            metadata=dict(metadata or {}),
        )

    def child(
        self,
        metadata: Mapping[str, Any] | None = None,
        *,
        deleted: bool = False,
    ) -> Revision:
        """A new revision of the same content whose only parent is this one."""
        return Revision(
            content=self.content,
            length=self.length,
            parents=(self.revision,),
            deleted=deleted,
            metadata=dict(metadata or {}),
        )

    # ------------------------------------------------------------------
    # Checks
    # ------------------------------------------------------------------

    def compute_revision(self) -> Hash:
        """Recompute the revision hash from the other fields."""
        return revision_hash(
            self.content, self.length, self.parents, self.deleted, self.metadata
        )

    def verify(self) -> bool:
        """Whether the recorded revision hash matches the fields."""
        return self.compute_revision() == self.revision

    @property
    def is_root(self) -> bool:
        return not self.parents

    def __hash__(self) -> int:
        return hash(self.revision)

    def __repr__(self) -> str:
        return (
            f"Revision(revision={self.revision}, parents={[str(p) for p in self.parents]}, "
            f"deleted={self.deleted}, metadata={ {k: v.to_python() for k, v in self.metadata.items()} })"
        )
