"""Change sets: what a run has to ingest."""

from __future__ import annotations

import enum
from collections.abc import Iterator
from dataclasses import dataclass
from typing import TYPE_CHECKING, Union

from . import _store
from ._store import Revision
from .events import EventSink, default_sink

if TYPE_CHECKING:
    from .mirror import Mirror


class DeletionPolicy(enum.Enum):
    """How pure deletions show up in an incremental change set."""

    OMIT = "omit"
    INCLUDE = "include"


@dataclass(frozen=True)
class Full:
    """No checkpoint: the caller must process the entire tree."""

    @property
    def count(self) -> None:
        return None


@dataclass(frozen=True)
class Incremental:
    """Paths (relative, ``/``-separated) changed since the checkpoint."""

    paths: frozenset[str] = frozenset()

    def __len__(self) -> int:
        return len(self.paths)

    def __iter__(self) -> Iterator[str]:
        return iter(self.paths)

    def __contains__(self, path: object) -> bool:
        return path in self.paths

    @property
    def count(self) -> int:
        return len(self.paths)


ChangeSet = Union[Full, Incremental]


def compute(
    mirror: Mirror,
    from_revision: Revision | None,
    *,
    deletions: DeletionPolicy = DeletionPolicy.OMIT,
    sink: EventSink | None = None,
) -> ChangeSet:
    """Diff *from_revision* against the mirror head.

    Returns `Full` when there is no checkpoint.  Otherwise collects the new
    path of every delta; pure deletions have none and are left out unless
    *deletions* is `DeletionPolicy.INCLUDE`.
    """
    sink = default_sink(sink)
    if from_revision is None:
        sink.emit("changes.full")
        return Full()

    files: set[str] = set()
    for delta in _store.diff_trees(mirror.repo, from_revision, mirror.head):
        path = delta.new_path
        if path is None and deletions is DeletionPolicy.INCLUDE:
            path = delta.old_path
        if path is None:
            continue
        sink.emit("changes.record", level="debug", path=path)
        files.add(path)

    sink.emit("changes.detected", count=len(files), start=str(from_revision), head=str(mirror.head))
    return Incremental(frozenset(files))
