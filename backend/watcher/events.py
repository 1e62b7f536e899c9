"""
Relaunch Change Events.

Data model shared by the event source, debouncer and supervisor.
Requires Python 3.11+.
"""

import os
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from watcher.errors import WatchSetupError


class ChangeKind(str, Enum):
    """Classification of a raw filesystem notification."""

    CREATE = "create"
    MODIFY = "modify"
    REMOVE = "remove"
    OTHER = "other"


RELEVANT_KINDS = frozenset({ChangeKind.CREATE, ChangeKind.MODIFY, ChangeKind.REMOVE})


@dataclass(frozen=True)
class ChangeEvent:
    """A single notification from the event source."""

    kind: ChangeKind
    paths: frozenset[Path] = field(default_factory=frozenset)

    @classmethod
    def of(cls, kind: ChangeKind, *paths: str | os.PathLike[str]) -> "ChangeEvent":
        """Build an event from any number of path-like values."""
        return cls(kind=kind, paths=frozenset(Path(p) for p in paths))

    @property
    def is_relevant(self) -> bool:
        """Only create, modify and remove notifications count as changes."""
        return self.kind in RELEVANT_KINDS


@dataclass(frozen=True)
class WatchSet:
    """
    Ordered, de-duplicated set of paths watched by one session.

    The set is fixed once built; each path is watched non-recursively
    exactly once.
    """

    paths: tuple[Path, ...]

    def __post_init__(self) -> None:
        if not self.paths:
            raise WatchSetupError("watch set must contain at least one path")

    @classmethod
    def from_paths(cls, paths: Iterable[str | os.PathLike[str]]) -> "WatchSet":
        """Build a watch set, keeping the first occurrence of each path."""
        unique: dict[Path, None] = {}
        for p in paths:
            unique.setdefault(Path(p), None)
        return cls(paths=tuple(unique))

    def __iter__(self) -> Iterator[Path]:
        return iter(self.paths)

    def __len__(self) -> int:
        return len(self.paths)
