"""Tests for event sinks and the progress reporter."""

from mirrordelta.events import (
    NullSink,
    ProgressReporter,
    RecordingSink,
    StructlogSink,
    parse_progress_line,
)

ZERO = "0" * 40
A = "a" * 40
B = "b" * 40


class _Exploding:
    def emit(self, event, *, level="info", **fields):
        raise RuntimeError("sink is broken")


class TestParseProgressLine:
    def test_receiving_with_size(self):
        p = parse_progress_line("Receiving objects:  50% (5/10), 1.50 MiB | 2.00 MiB/s")
        assert p.phase == "Receiving objects"
        assert (p.received_objects, p.total_objects) == (5, 10)
        assert p.received_bytes == int(1.5 * 1024 * 1024)

    def test_remote_prefix_without_size(self):
        p = parse_progress_line("remote: Counting objects: 100% (7/7), done.")
        assert p.phase == "Counting objects"
        assert (p.received_objects, p.total_objects, p.received_bytes) == (7, 7, 0)

    def test_bytes_unit(self):
        p = parse_progress_line("Receiving objects: 100% (3/3), 812 bytes | 0 bytes/s, done.")
        assert p.received_bytes == 812

    def test_unrelated_line(self):
        assert parse_progress_line("Total 3 (delta 0), reused 0 (delta 0)") is None
        assert parse_progress_line("") is None


class TestProgressReporter:
    def test_stream_splits_on_carriage_returns(self):
        sink = RecordingSink()
        reporter = ProgressReporter(sink)
        reporter.write(b"Receiving objects:  10% (1/10)\rReceiving obj")
        reporter.write(b"ects:  20% (2/10)\r")
        events = sink.find("transfer.progress")
        assert [e.fields["objects"] for e in events] == [1, 2]
        assert all(e.level == "debug" for e in events)

    def test_flush_feeds_partial_line(self):
        sink = RecordingSink()
        reporter = ProgressReporter(sink)
        reporter.write(b"Receiving objects: 100% (10/10)")
        assert sink.find("transfer.progress") == []
        reporter.flush()
        assert reporter.last_progress.received_objects == 10

    def test_write_returns_length(self):
        assert ProgressReporter().write(b"abc") == 3

    def test_callbacks_continue(self):
        reporter = ProgressReporter()
        assert reporter.on_transfer_progress(1, 2, 3) is True
        assert reporter.on_ref_update("refs/heads/main", ZERO, A) is True

    def test_ref_update_new_and_updated(self):
        sink = RecordingSink()
        reporter = ProgressReporter(sink)
        reporter.on_ref_update("refs/heads/main", ZERO, A)
        reporter.on_ref_update("refs/heads/main", A, B)
        statuses = [e.fields["status"] for e in sink.find("ref.update")]
        assert statuses == ["new", "updated"]
        assert reporter.ref_changes[0].created
        assert not reporter.ref_changes[1].created

    def test_sink_failure_does_not_propagate(self):
        reporter = ProgressReporter(_Exploding())
        assert reporter.on_transfer_progress(1, 2, 3) is True
        assert reporter.on_ref_update("refs/heads/main", ZERO, A) is True
        reporter.write(b"Receiving objects:  50% (1/2)\n")
        assert reporter.failures == 3
        assert len(reporter.ref_changes) == 1


class TestSinks:
    def test_null_sink(self):
        NullSink().emit("anything", level="debug", x=1)

    def test_recording_sink(self):
        sink = RecordingSink()
        sink.emit("a", x=1)
        sink.emit("b", level="warning")
        assert sink.names() == ["a", "b"]
        assert sink.find("a")[0].fields == {"x": 1}
        assert sink.find("b")[0].level == "warning"

    def test_structlog_sink_dispatches_on_level(self):
        calls = []

        class _Logger:
            def info(self, event, **kw):
                calls.append(("info", event, kw))

            def warning(self, event, **kw):
                calls.append(("warning", event, kw))

        sink = StructlogSink(_Logger())
        sink.emit("mirror.cloned", head="abc")
        sink.emit("checkpoint.diverged", level="warning")
        assert calls == [("info", "mirror.cloned", {"head": "abc"}), ("warning", "checkpoint.diverged", {})]
