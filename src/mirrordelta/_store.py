"""dulwich adapter exposing the store primitives the sync core consumes.

Every direct use of dulwich lives here, so the rest of mirrordelta works
with :class:`Revision`, :class:`DeltaEntry` and the clone result variants
instead of raw SHA bytes and dulwich objects.
"""

from __future__ import annotations

import errno
import os
import socket
from urllib.parse import unquote, urlsplit
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterator, Union

from dulwich import porcelain
from dulwich.client import HTTPUnauthorized
from dulwich.client import get_transport_and_path as _get_transport_and_path
from dulwich.diff_tree import tree_changes
from dulwich.errors import GitProtocolError, HangupException, NotGitRepository
from dulwich.graph import can_fast_forward
from dulwich.index import Index
from dulwich.object_store import iter_tree_contents
from dulwich.objects import Commit, S_ISGITLINK, Tag
from dulwich.objectspec import AmbiguousShortId, parse_commit
from dulwich.protocol import ZERO_SHA
from dulwich.repo import Repo
from urllib3.exceptions import HTTPError as _UrllibHTTPError

from .exceptions import (
    AuthFailure,
    DiffFailure,
    MirrorError,
    MirrorFilesystemError,
    RemoteUnavailable,
    ResetFailure,
    RevisionNotFound,
)

if TYPE_CHECKING:
    from .events import ProgressReporter


# ---------------------------------------------------------------------------
# Revision
# ---------------------------------------------------------------------------

class Revision:
    """Immutable content-addressed commit id (40-char hex)."""

    __slots__ = ("_sha",)

    def __init__(self, sha: bytes | str):
        if isinstance(sha, str):
            sha = sha.encode("ascii")
        if len(sha) not in (40, 64):
            raise ValueError(f"Not a full hex object id: {sha!r}")
        try:
            int(sha, 16)
        except ValueError:
            raise ValueError(f"Not a hex object id: {sha!r}") from None
        object.__setattr__(self, "_sha", sha.lower())

    def __setattr__(self, name, value):
        raise AttributeError("Revision is immutable")

    def __str__(self) -> str:
        return self._sha.decode()

    def __repr__(self) -> str:
        return f"Revision({self.short})"

    def __eq__(self, other):
        if isinstance(other, Revision):
            return self._sha == other._sha
        return NotImplemented

    def __lt__(self, other):
        if isinstance(other, Revision):
            return self._sha < other._sha
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._sha)

    @property
    def raw(self) -> bytes:
        """The hex bytes (dulwich native format)."""
        return self._sha

    @property
    def short(self) -> str:
        return self._sha[:7].decode()

    @property
    def is_zero(self) -> bool:
        return self._sha.strip(b"0") == b""


ZERO = Revision(ZERO_SHA)


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DeltaEntry:
    """One row of a tree-to-tree diff. ``new_path`` is None for deletions."""
    old_path: str | None
    new_path: str | None


@dataclass(frozen=True)
class Created:
    repo: Repo


@dataclass(frozen=True)
class AlreadyPresent:
    path: str


@dataclass(frozen=True)
class Failed:
    error: MirrorError


CloneResult = Union[Created, AlreadyPresent, Failed]


# ---------------------------------------------------------------------------
# Error translation
# ---------------------------------------------------------------------------

def _translate(exc: BaseException, action: str) -> MirrorError | None:
    """Map a dulwich/transport failure onto the mirrordelta taxonomy."""
    message = f"{action} failed: {exc}"
    if isinstance(exc, HTTPUnauthorized):
        return AuthFailure(message, code="401")
    if isinstance(exc, NotGitRepository):
        return RemoteUnavailable(message, code="notfound", category="repository")
    if isinstance(exc, HangupException):
        return RemoteUnavailable(message, code="hangup")
    if isinstance(exc, GitProtocolError):
        if "403" in str(exc):
            return AuthFailure(message, code="403")
        return RemoteUnavailable(message, code="protocol")
    if isinstance(exc, _UrllibHTTPError):
        return RemoteUnavailable(message, code=type(exc).__name__, category="http")
    if isinstance(exc, (ConnectionError, socket.gaierror, TimeoutError)):
        return RemoteUnavailable(message, code=type(exc).__name__)
    if isinstance(exc, OSError):
        code = errno.errorcode.get(exc.errno, "io") if exc.errno else "io"
        return MirrorFilesystemError(message, code=code)
    return None


def _path(raw: bytes | None) -> str | None:
    if raw is None:
        return None
    return raw.decode("utf-8", "surrogateescape")


def _entry_path(entry) -> str | None:
    # dulwich uses a null TreeEntry (or None, in newer releases) for the
    # missing side of an add/delete.
    return None if entry is None else _path(entry.path)


# ---------------------------------------------------------------------------
# Clone / open
# ---------------------------------------------------------------------------

def holds_repository(path: str) -> bool:
    try:
        Repo(path).close()
    except NotGitRepository:
        return False
    return True


def clone(url: str, path: str | os.PathLike[str], reporter: ProgressReporter) -> CloneResult:
    """Clone *url* into *path*.

    Returns `AlreadyPresent` when *path* already holds a repository rather
    than treating it as a failure.  Failures we can classify come back as
    `Failed`; anything else propagates.
    """
    path = os.fspath(path)
    if holds_repository(path):
        return AlreadyPresent(path)
    try:
        repo = porcelain.clone(url, path, errstream=reporter)
    except FileExistsError:
        return AlreadyPresent(path)
    except Exception as exc:
        error = _translate(exc, f"clone {url}")
        if error is None:
            raise
        error.__cause__ = exc
        return Failed(error)
    reporter.flush()
    # Reopen so packs written by the clone are visible to object lookups.
    repo.close()
    repo = Repo(path)
    for ref, sha in sorted(repo.get_refs().items()):
        if ref != b"HEAD" and sha is not None:
            reporter.on_ref_update(_path(ref), str(ZERO), sha.decode())
    return Created(repo)


def open_repo(path: str | os.PathLike[str]) -> Repo:
    try:
        return Repo(os.fspath(path))
    except NotGitRepository as exc:
        raise MirrorFilesystemError(f"No repository at {os.fspath(path)}", code="notfound") from exc


def normalize_url(url: str) -> str:
    """Canonical form for comparing remote URLs; local paths become absolute."""
    if url.startswith("file://"):
        return os.path.normpath(unquote(urlsplit(url).path))
    if os.path.isabs(url) or url.startswith("."):
        return os.path.normpath(os.path.abspath(url))
    return url


def remote_url(repo: Repo, remote: str = "origin") -> str:
    """Return the configured URL of *remote*."""
    try:
        url = repo.get_config().get((b"remote", remote.encode()), b"url")
    except KeyError:
        raise RemoteUnavailable(
            f"Mirror has no remote {remote!r}", code="notfound", category="config",
        ) from None
    return url.decode() if isinstance(url, bytes) else url


def set_remote_url(repo: Repo, remote: str, url: str) -> None:
    """Record *url* as the fetch source of *remote*."""
    section = (b"remote", remote.encode())
    config = repo.get_config()
    config.set(section, b"url", url.encode())
    config.set(section, b"fetch", b"+refs/heads/*:refs/remotes/" + remote.encode() + b"/*")
    config.write_to_path()


# ---------------------------------------------------------------------------
# Fetch
# ---------------------------------------------------------------------------

def _disconnect(client) -> None:
    close = getattr(client, "close", None)
    if close is not None:
        close()


def _tracking_ref(ref: bytes, remote: bytes) -> bytes | None:
    """Map a remote ref onto where a fetch stores it locally."""
    if ref.startswith(b"refs/heads/"):
        return b"refs/remotes/" + remote + b"/" + ref[len(b"refs/heads/"):]
    if ref.startswith(b"refs/tags/") and not ref.endswith(b"^{}"):
        return ref
    return None


def fetch(repo: Repo, reporter: ProgressReporter, remote: str = "origin") -> Revision:
    """Fetch all refs from *remote* and return the remote HEAD commit."""
    url = remote_url(repo, remote)
    client, remote_path = _get_transport_and_path(url)
    try:
        result = client.fetch(remote_path, repo, progress=reporter.write)
    except Exception as exc:
        error = _translate(exc, f"fetch {url}")
        if error is None:
            raise
        raise error from exc
    finally:
        _disconnect(client)
    reporter.flush()

    remote_bytes = remote.encode()
    for ref, sha in sorted(result.refs.items()):
        local = _tracking_ref(ref, remote_bytes)
        if local is None or sha is None:
            continue
        old = repo.refs[local] if local in repo.refs else ZERO_SHA
        if old != sha:
            repo.refs[local] = sha
            reporter.on_ref_update(_path(local), old.decode(), sha.decode())

    head = result.refs.get(b"HEAD")
    if head is None:
        target = (getattr(result, "symrefs", None) or {}).get(b"HEAD")
        head = result.refs.get(target) if target is not None else None
    if head is None:
        raise RemoteUnavailable(f"Remote {url} has no HEAD", code="notfound", category="reference")
    return _peel(repo, head)


# ---------------------------------------------------------------------------
# Revisions
# ---------------------------------------------------------------------------

def _peel_tags(repo: Repo, obj):
    while isinstance(obj, Tag):
        obj = repo[obj.object[1]]
    return obj


def _peel(repo: Repo, sha: bytes) -> Revision:
    obj = _peel_tags(repo, parse_commit(repo, sha))
    return Revision(obj.id)


def head_revision(repo: Repo) -> Revision:
    try:
        return Revision(repo.head())
    except KeyError:
        raise RevisionNotFound("Mirror has no HEAD commit") from None


def resolve_revision(repo: Repo, token: str) -> Revision:
    """Resolve a full/abbreviated id or symbolic name to a commit."""
    try:
        obj = _peel_tags(repo, parse_commit(repo, token.encode()))
    except (KeyError, ValueError, AmbiguousShortId) as exc:
        raise RevisionNotFound(f"Cannot resolve revision {token!r}") from exc
    if not isinstance(obj, Commit):
        raise RevisionNotFound(f"Revision {token!r} is not a commit")
    return Revision(obj.id)


def is_ancestor(repo: Repo, ancestor: Revision, descendant: Revision) -> bool:
    """True if *ancestor* is reachable from *descendant* (or equal to it)."""
    if ancestor == descendant:
        return True
    return can_fast_forward(repo, ancestor.raw, descendant.raw)


def _tree_id(repo: Repo, revision: Revision) -> bytes:
    commit = repo[revision.raw]
    if not isinstance(commit, Commit):
        raise ValueError(f"{revision} is not a commit")
    return commit.tree


# ---------------------------------------------------------------------------
# Trees
# ---------------------------------------------------------------------------

def diff_trees(repo: Repo, old: Revision, new: Revision) -> list[DeltaEntry]:
    """Diff the trees of two commits (no rename detection)."""
    try:
        old_tree = _tree_id(repo, old)
        new_tree = _tree_id(repo, new)
        changes = list(tree_changes(repo.object_store, old_tree, new_tree))
    except (KeyError, ValueError) as exc:
        raise DiffFailure(f"Cannot diff {old.short}..{new.short}: {exc}") from exc
    return [
        DeltaEntry(old_path=_entry_path(change.old), new_path=_entry_path(change.new))
        for change in changes
    ]


def iter_tree_paths(repo: Repo, revision: Revision) -> Iterator[str]:
    """Yield every file path in the tree of *revision* (submodules skipped)."""
    for entry in iter_tree_contents(repo.object_store, _tree_id(repo, revision)):
        if S_ISGITLINK(entry.mode):
            continue
        yield _path(entry.path)


# ---------------------------------------------------------------------------
# Reset
# ---------------------------------------------------------------------------

def _index_paths(repo: Repo) -> set[bytes]:
    if not os.path.exists(repo.index_path()):
        return set()
    return set(repo.open_index())


def _remove_stale(root: str, rel: bytes) -> None:
    """Remove a no-longer-tracked file and any directories it leaves empty."""
    full = os.path.join(root, os.fsdecode(rel))
    try:
        os.unlink(full)
    except FileNotFoundError:
        return
    parent = os.path.dirname(full)
    while os.path.normpath(parent) != os.path.normpath(root):
        try:
            os.rmdir(parent)
        except OSError:
            break
        parent = os.path.dirname(parent)


def reset_hard(repo: Repo, revision: Revision) -> None:
    """Point HEAD at *revision* and force index and working tree to match.

    Local modifications are overwritten; files tracked before the reset
    but absent from *revision* are deleted.
    """
    try:
        _tree_id(repo, revision)
        before = _index_paths(repo)
        if not os.path.exists(repo.index_path()):
            Index(repo.index_path(), read=False).write()
        porcelain.reset(repo, "hard", revision.raw)
        repo.refs[b"HEAD"] = revision.raw
        after = _index_paths(repo)
        for rel in sorted(before - after):
            _remove_stale(repo.path, rel)
    except (KeyError, ValueError, OSError, porcelain.Error) as exc:
        raise ResetFailure(f"Cannot reset to {revision.short}: {exc}") from exc
