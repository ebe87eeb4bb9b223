"""Metadata diffs and the three-way field rule used by revision merges.

A ``Diff`` records, for every key that differs between a base metadata set
and a target one, the target value or ``ABSENT`` when the key was removed.
Two diffs taken from the same base merge cleanly unless they set the same
key to different outcomes.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from revstore.models.value import Value


class _Marker:
    """Singleton marker with a readable repr."""

    def __init__(self, name: str) -> None:
        self._name = name

    def __repr__(self) -> str:
        return self._name


ABSENT: Any = _Marker("ABSENT")
CONFLICT: Any = _Marker("CONFLICT")


def three_way(base: Any, left: Any, right: Any) -> Any:
    """Resolve one field from its base, left and right values.

    Returns ``CONFLICT`` when both sides changed the field to different
    values.
    """
    if left == right:
        return left
    if left == base:
        return right
    if right == base:
        return left
    return CONFLICT


class Diff:
    """Changes turning one metadata set into another."""

    def __init__(self, changes: Mapping[str, Any]) -> None:
        self._changes: dict[str, Any] = dict(sorted(changes.items()))

    @classmethod
    def of(cls, base: Mapping[str, Value], target: Mapping[str, Value]) -> Diff:
        changes: dict[str, Any] = {
            key: value for key, value in target.items() if base.get(key) != value
        }
        for key in base:
            if key not in target:
                changes[key] = ABSENT
        return cls(changes)

    @property
    def changes(self) -> dict[str, Any]:
        return dict(self._changes)

    def conflicts(self, other: Diff) -> list[str]:
        """Keys both diffs change to different outcomes."""
        return [
            key
            for key, value in self._changes.items()
            if key in other._changes and other._changes[key] != value
        ]

    def merge(self, other: Diff) -> Diff | None:
        """Union of both diffs, or ``None`` if they conflict."""
        if self.conflicts(other):
            return None
        merged = dict(self._changes)
        for key, value in other._changes.items():
            merged.setdefault(key, value)
        return Diff(merged)

    def apply(self, base: Mapping[str, Value]) -> dict[str, Value]:
        """Metadata obtained by applying this diff to ``base``, keys sorted."""
        result = dict(base)
        for key, value in self._changes.items():
            if value is ABSENT:
                result.pop(key, None)
            else:
                result[key] = value
        return dict(sorted(result.items()))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Diff):
            return NotImplemented
        return self._changes == other._changes

    def __repr__(self) -> str:
        return f"Diff({self._changes!r})"
