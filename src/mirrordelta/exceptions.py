"""Exceptions for mirrordelta."""

from __future__ import annotations


class MirrorError(Exception):
    """Base class for every failure raised by the sync core.

    ``code`` and ``category`` describe the underlying store failure so a
    caller can tell a flaky network apart from a corrupt mirror.
    """

    code = "error"
    category = "mirror"

    def __init__(self, message: str, *, code: str | None = None, category: str | None = None):
        super().__init__(message)
        if code is not None:
            self.code = code
        if category is not None:
            self.category = category

    def __str__(self) -> str:
        return f"{self.args[0]} (code: {self.code}, class: {self.category})"


class RemoteUnavailable(MirrorError):
    """The remote could not be reached or is not a repository."""

    code = "unavailable"
    category = "net"


class AuthFailure(MirrorError):
    """The remote rejected our credentials."""

    code = "auth"
    category = "http"


class RevisionNotFound(MirrorError):
    """A checkpoint token does not resolve to a commit in the mirror."""

    code = "notfound"
    category = "reference"


class DivergedCheckpoint(MirrorError):
    """A checkpoint resolved, but is not an ancestor of the mirror head.

    Only raised when ancestry checking was requested.
    """

    code = "diverged"
    category = "reference"


class DiffFailure(MirrorError):
    """Tree diff failed; the mirror's object store is inconsistent."""

    code = "diff"
    category = "odb"


class ResetFailure(MirrorError):
    """Hard reset of the working tree failed."""

    code = "reset"
    category = "checkout"


class MirrorFilesystemError(MirrorError):
    """A local filesystem operation on the mirror failed."""

    code = "io"
    category = "os"


class InvalidBasePath(ValueError):
    """A walk base directory escapes the repository root."""
