"""Structured event sinks and the clone/fetch progress reporter.

Components never log through a module-level logger; they receive an
:class:`EventSink` and emit named events with keyword fields.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Protocol

import structlog


class EventSink(Protocol):
    def emit(self, event: str, *, level: str = "info", **fields: Any) -> None: ...


class StructlogSink:
    """Forward events to a structlog logger."""

    def __init__(self, logger=None):
        self._log = logger if logger is not None else structlog.stdlib.get_logger("mirrordelta")

    def emit(self, event: str, *, level: str = "info", **fields: Any) -> None:
        getattr(self._log, level)(event, **fields)


class NullSink:
    def emit(self, event: str, *, level: str = "info", **fields: Any) -> None:
        pass


@dataclass
class RecordedEvent:
    event: str
    level: str
    fields: dict[str, Any]


class RecordingSink:
    """Keep every event in memory."""

    def __init__(self):
        self.events: list[RecordedEvent] = []

    def emit(self, event: str, *, level: str = "info", **fields: Any) -> None:
        self.events.append(RecordedEvent(event, level, fields))

    def names(self) -> list[str]:
        return [e.event for e in self.events]

    def find(self, event: str) -> list[RecordedEvent]:
        return [e for e in self.events if e.event == event]


def default_sink(sink: EventSink | None) -> EventSink:
    return sink if sink is not None else StructlogSink()


# ---------------------------------------------------------------------------
# Progress reporting
# ---------------------------------------------------------------------------

@dataclass
class RefChange:
    """A ref moved by a clone or fetch.

    Attributes:
        ref: Full ref name (e.g. ``"refs/remotes/origin/main"``).
        old_target: Previous hex SHA; all zeros for a newly created ref.
        new_target: New hex SHA.
    """
    ref: str
    old_target: str
    new_target: str

    @property
    def created(self) -> bool:
        return self.old_target.strip("0") == ""


@dataclass
class TransferProgress:
    phase: str
    received_objects: int
    total_objects: int
    received_bytes: int


_PROGRESS_RE = re.compile(
    r"^(?:remote:\s*)?(?P<phase>[A-Za-z ]+?):\s+\d+%\s+\((?P<done>\d+)/(?P<total>\d+)\)"
    r"(?:,\s+(?P<size>[\d.]+)\s+(?P<unit>bytes|[KMGT]iB))?"
)

_UNITS = {
    "bytes": 1,
    "KiB": 1024,
    "MiB": 1024 ** 2,
    "GiB": 1024 ** 3,
    "TiB": 1024 ** 4,
}


def parse_progress_line(line: str) -> TransferProgress | None:
    """Parse one git sideband progress line, e.g.

    ``Receiving objects:  50% (5/10), 1.00 MiB | 2.00 MiB/s``
    """
    m = _PROGRESS_RE.match(line.strip())
    if m is None:
        return None
    size = 0
    if m.group("size"):
        size = int(float(m.group("size")) * _UNITS[m.group("unit")])
    return TransferProgress(
        phase=m.group("phase").strip(),
        received_objects=int(m.group("done")),
        total_objects=int(m.group("total")),
        received_bytes=size,
    )


@dataclass
class ProgressReporter:
    """Observe a clone/fetch: transfer progress and ref updates.

    Acts as the byte stream dulwich writes sideband progress to
    (``write``/``flush``).  Every callback returns True (continue).
    Exceptions from the sink are counted in ``failures`` and never reach
    the transfer.
    """

    sink: EventSink = field(default_factory=NullSink)
    ref_changes: list[RefChange] = field(default_factory=list)
    last_progress: TransferProgress | None = None
    failures: int = 0
    _buffer: str = ""

    def _emit(self, event: str, **fields) -> None:
        try:
            self.sink.emit(event, level="debug", **fields)
        except Exception:
            self.failures += 1

    def on_transfer_progress(
        self, received_objects: int, total_objects: int, received_bytes: int, *, phase: str = "Receiving objects",
    ) -> bool:
        self.last_progress = TransferProgress(phase, received_objects, total_objects, received_bytes)
        self._emit(
            "transfer.progress",
            phase=phase,
            objects=received_objects,
            total=total_objects,
            bytes=received_bytes,
        )
        return True

    def on_ref_update(self, ref_name: str, old_id: str, new_id: str) -> bool:
        change = RefChange(ref=ref_name, old_target=old_id, new_target=new_id)
        self.ref_changes.append(change)
        if change.created:
            self._emit("ref.update", status="new", ref=ref_name, new=new_id)
        else:
            self._emit("ref.update", status="updated", ref=ref_name, old=old_id[:10], new=new_id[:10])
        return True

    # -- sideband stream ---------------------------------------------------

    def write(self, data: bytes | str) -> int:
        text = data.decode("utf-8", "replace") if isinstance(data, bytes) else data
        self._buffer += text
        *lines, self._buffer = re.split(r"[\r\n]", self._buffer)
        for line in lines:
            self._feed(line)
        return len(data)

    def flush(self) -> None:
        if self._buffer:
            line, self._buffer = self._buffer, ""
            self._feed(line)

    def _feed(self, line: str) -> None:
        progress = parse_progress_line(line)
        if progress is not None:
            self.on_transfer_progress(
                progress.received_objects,
                progress.total_objects,
                progress.received_bytes,
                phase=progress.phase,
            )
