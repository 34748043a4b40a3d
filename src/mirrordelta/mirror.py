"""Mirror management: keep a local clone identical to its remote.

``ensure_mirror`` clones when the destination holds no repository and
otherwise fetches from ``origin`` and hard-resets to the remote HEAD, so
calling it repeatedly is safe.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from dulwich.repo import Repo

from . import _store
from ._store import Created, Failed, Revision
from .exceptions import RemoteUnavailable, RevisionNotFound
from .events import EventSink, ProgressReporter, RefChange, default_sink


# ---------------------------------------------------------------------------
# Data structures
# ---------------------------------------------------------------------------

@dataclass
class Mirror:
    """A local clone bound to one remote URL and one path.

    Attributes:
        path: Working tree root.
        remote_url: URL the mirror was synchronized from.
        head: Commit the working tree was left at.
        created: True if this invocation cloned the mirror.
        ref_changes: Refs moved by the clone/fetch.
    """
    path: str
    remote_url: str
    head: Revision
    created: bool
    repo: Repo = field(repr=False, compare=False)
    ref_changes: list[RefChange] = field(default_factory=list)

    def close(self) -> None:
        self.repo.close()

    def __enter__(self) -> Mirror:
        return self

    def __exit__(self, *exc) -> None:
        self.close()


# ---------------------------------------------------------------------------
# Core mirror functions
# ---------------------------------------------------------------------------

def _update(repo: Repo, remote_url: str, reporter: ProgressReporter, sink: EventSink) -> Revision:
    try:
        configured = _store.remote_url(repo, "origin")
    except RemoteUnavailable:
        # Interrupted clone: the repository exists but origin was never recorded.
        _store.set_remote_url(repo, "origin", remote_url)
        sink.emit("mirror.remote_restored", remote="origin", url=remote_url)
        configured = remote_url
    if _store.normalize_url(configured) != _store.normalize_url(remote_url):
        sink.emit("mirror.remote_mismatch", level="warning", requested=remote_url, origin=configured)
    try:
        previous = _store.head_revision(repo)
    except RevisionNotFound:
        previous = None
    sink.emit("mirror.fetch", remote="origin", url=configured)
    head = _store.fetch(repo, reporter, "origin")
    _store.reset_hard(repo, head)
    sink.emit("mirror.updated", previous=str(previous) if previous else None, head=str(head))
    return head


def ensure_mirror(
    remote_url: str,
    local_path: str | os.PathLike[str],
    *,
    sink: EventSink | None = None,
) -> Mirror:
    """Clone *remote_url* into *local_path*, or bring an existing clone up to date.

    Returns an open `Mirror`; close it (or use it as a context manager)
    when done.  Raises a `MirrorError` subclass on any failure other than
    the destination already holding a repository.
    """
    sink = default_sink(sink)
    path = os.fspath(local_path)
    reporter = ProgressReporter(sink)

    sink.emit("mirror.clone", url=remote_url, path=path)
    result = _store.clone(remote_url, path, reporter)

    if isinstance(result, Failed):
        err = result.error
        sink.emit("mirror.clone_failed", level="error", code=err.code, category=err.category)
        raise err
    if isinstance(result, Created):
        repo = result.repo
        try:
            head = _store.head_revision(repo)
        except BaseException:
            repo.close()
            raise
        sink.emit("mirror.cloned", head=str(head), refs=len(reporter.ref_changes))
        created = True
    else:
        sink.emit("mirror.exists", path=path)
        repo = _store.open_repo(path)
        try:
            head = _update(repo, remote_url, reporter, sink)
        except BaseException:
            repo.close()
            raise
        created = False

    return Mirror(
        path=path,
        remote_url=remote_url,
        head=head,
        created=created,
        repo=repo,
        ref_changes=list(reporter.ref_changes),
    )


def open_mirror(local_path: str | os.PathLike[str]) -> Mirror:
    """Open an existing mirror as-is, without contacting the remote."""
    path = os.fspath(local_path)
    repo = _store.open_repo(path)
    try:
        url = _store.remote_url(repo, "origin")
        head = _store.head_revision(repo)
    except BaseException:
        repo.close()
        raise
    return Mirror(path=path, remote_url=url, head=head, created=False, repo=repo)
