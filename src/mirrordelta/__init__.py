from ._store import Revision, DeltaEntry
from .mirror import Mirror, ensure_mirror, open_mirror
from .checkpoint import resolve
from .changes import ChangeSet, Full, Incremental, DeletionPolicy, compute
from .events import EventSink, StructlogSink, NullSink, RecordingSink, ProgressReporter, RefChange
from .walk import iter_files
from .sync import SyncConfig, SyncResult, run, run_async, DEFAULT_SOURCE
from .exceptions import (
    MirrorError, RemoteUnavailable, AuthFailure, RevisionNotFound, DivergedCheckpoint,
    DiffFailure, ResetFailure, MirrorFilesystemError, InvalidBasePath,
)

__all__ = [
    "Revision", "DeltaEntry",
    "Mirror", "ensure_mirror", "open_mirror",
    "resolve",
    "ChangeSet", "Full", "Incremental", "DeletionPolicy", "compute",
    "EventSink", "StructlogSink", "NullSink", "RecordingSink", "ProgressReporter", "RefChange",
    "iter_files",
    "SyncConfig", "SyncResult", "run", "run_async", "DEFAULT_SOURCE",
    "MirrorError", "RemoteUnavailable", "AuthFailure", "RevisionNotFound", "DivergedCheckpoint",
    "DiffFailure", "ResetFailure", "MirrorFilesystemError", "InvalidBasePath",
]
