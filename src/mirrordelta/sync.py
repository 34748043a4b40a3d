"""One synchronization run: mirror, resolve checkpoint, compute changes."""

from __future__ import annotations

import asyncio
import os
from collections.abc import Callable
from dataclasses import dataclass

from . import _store
from ._store import Revision
from .changes import ChangeSet, DeletionPolicy, compute
from .checkpoint import resolve
from .events import EventSink, default_sink
from .mirror import Mirror, ensure_mirror

DEFAULT_SOURCE = "https://github.com/CVEProject/cvelistV5.git"


@dataclass
class SyncConfig:
    """Settings for a run.

    Attributes:
        path: Mirror destination directory.
        source: Remote URL to mirror.
        continuation: Head reported by a previous run, or None for a full ingest.
        deletions: Whether deleted files count as changes.
        require_ancestor: Reject checkpoints that are not ancestors of the new head.
    """
    path: str | os.PathLike[str]
    source: str = DEFAULT_SOURCE
    continuation: str | None = None
    deletions: DeletionPolicy = DeletionPolicy.OMIT
    require_ancestor: bool = False


@dataclass
class SyncResult:
    head: Revision
    change_set: ChangeSet
    mirror_created: bool

    @property
    def continuation(self) -> str:
        """Token to pass as ``continuation`` on the next run."""
        return str(self.head)


def run(
    config: SyncConfig,
    *,
    sink: EventSink | None = None,
    walker: Callable[[Mirror, ChangeSet], None] | None = None,
) -> SyncResult:
    """Synchronize the mirror and compute what changed since the checkpoint.

    Blocking; callers on an event loop should use `run_async`.  *walker*,
    if given, is called with the open mirror and the change set before the
    mirror is closed.  Callers must not run two syncs on the same path at
    once.
    """
    sink = default_sink(sink)
    with ensure_mirror(config.source, config.path, sink=sink) as mirror:
        start = resolve(mirror, config.continuation, require_ancestor=config.require_ancestor, sink=sink)
        change_set = compute(mirror, start, deletions=config.deletions, sink=sink)
        if walker is not None:
            walker(mirror, change_set)
        head = _store.head_revision(mirror.repo)

    sink.emit("sync.complete", continuation=str(head), count=change_set.count)
    return SyncResult(head=head, change_set=change_set, mirror_created=mirror.created)


async def run_async(
    config: SyncConfig,
    *,
    sink: EventSink | None = None,
    walker: Callable[[Mirror, ChangeSet], None] | None = None,
) -> SyncResult:
    """Run `run` on a worker thread."""
    return await asyncio.to_thread(run, config, sink=sink, walker=walker)
