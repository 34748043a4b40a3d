"""Resolve a continuation token to the commit a run diffs against."""

from __future__ import annotations

from typing import TYPE_CHECKING

from . import _store
from ._store import Revision
from .events import EventSink, default_sink
from .exceptions import DivergedCheckpoint

if TYPE_CHECKING:
    from .mirror import Mirror


def resolve(
    mirror: Mirror,
    token: str | None,
    *,
    require_ancestor: bool = False,
    sink: EventSink | None = None,
) -> Revision | None:
    """Return the commit named by *token*, or None for a full ingest.

    *token* may be a full or abbreviated commit id, a branch, or a tag.
    Raises `RevisionNotFound` when it names nothing in the mirror.  A
    checkpoint that is not an ancestor of the mirror head is reported as a
    ``checkpoint.diverged`` warning, or rejected with `DivergedCheckpoint`
    when *require_ancestor* is set.
    """
    sink = default_sink(sink)
    if token is None:
        sink.emit("checkpoint.full")
        return None

    revision = _store.resolve_revision(mirror.repo, token)
    sink.emit("checkpoint.resolved", token=token, revision=str(revision))

    if not _store.is_ancestor(mirror.repo, revision, mirror.head):
        if require_ancestor:
            raise DivergedCheckpoint(
                f"Checkpoint {revision.short} is not an ancestor of {mirror.head.short}"
            )
        sink.emit("checkpoint.diverged", level="warning", revision=str(revision), head=str(mirror.head))
    return revision
