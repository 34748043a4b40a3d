"""List the files a change set selects in the mirror head."""

from __future__ import annotations

import os
from collections.abc import Iterator
from typing import TYPE_CHECKING

from . import _store
from .changes import ChangeSet, Full
from .exceptions import InvalidBasePath

if TYPE_CHECKING:
    from .mirror import Mirror


def _normalize_base(base: str | os.PathLike[str] | None) -> str | None:
    """Normalize a base sub-directory; None or root means the whole tree."""
    if base is None:
        return None
    path = os.fspath(base)
    if os.name == "nt":
        path = path.replace("\\", "/")
    if path.startswith("/"):
        raise InvalidBasePath(f"Base must be relative to the repository: {path!r}")
    segments = [seg for seg in path.split("/") if seg not in ("", ".")]
    if ".." in segments:
        raise InvalidBasePath(f"Base escapes the repository: {path!r}")
    return "/".join(segments) or None


def iter_files(
    mirror: Mirror,
    change_set: ChangeSet,
    base: str | os.PathLike[str] | None = None,
) -> Iterator[str]:
    """Yield repository-relative paths to ingest.

    `Full` walks the head tree; `Incremental` yields its paths sorted.
    With *base*, only paths under that sub-directory are yielded.
    """
    prefix = _normalize_base(base)
    if isinstance(change_set, Full):
        paths = _store.iter_tree_paths(mirror.repo, mirror.head)
    else:
        paths = iter(sorted(change_set.paths))
    for path in paths:
        if prefix is None or path == prefix or path.startswith(prefix + "/"):
            yield path
