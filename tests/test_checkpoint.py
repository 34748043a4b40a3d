"""Tests for checkpoint resolution."""

import pytest

from mirrordelta import ensure_mirror, resolve
from mirrordelta.exceptions import DivergedCheckpoint, RevisionNotFound

from conftest import MAIN, commit_files, tag_commit, worktree_files


@pytest.fixture
def mirror(remote, mirror_path):
    m = ensure_mirror(str(remote), mirror_path)
    yield m
    m.close()


class TestResolve:
    def test_none_means_full_ingest(self, mirror, sink):
        assert resolve(mirror, None, sink=sink) is None
        assert sink.names() == ["checkpoint.full"]

    def test_full_id(self, mirror, c1, sink):
        rev = resolve(mirror, c1, sink=sink)
        assert str(rev) == c1
        assert sink.find("checkpoint.resolved")[0].fields["revision"] == c1

    def test_abbreviated_id(self, mirror, c1):
        assert str(resolve(mirror, c1[:8])) == c1

    def test_branch_name(self, mirror, c1):
        assert str(resolve(mirror, "main")) == c1

    def test_not_found(self, mirror, mirror_path):
        before = worktree_files(mirror_path)
        head = mirror.repo.head()
        with pytest.raises(RevisionNotFound):
            resolve(mirror, "deadbeef")
        assert worktree_files(mirror_path) == before
        assert mirror.repo.head() == head

    def test_ancestor_passes_strict_check(self, remote, mirror_path, c1):
        ensure_mirror(str(remote), mirror_path).close()
        commit_files(remote, {"a.txt": b"alpha 2\n"})
        with ensure_mirror(str(remote), mirror_path) as m:
            assert str(resolve(m, c1, require_ancestor=True)) == c1


class TestDivergedCheckpoint:
    @pytest.fixture
    def diverged(self, remote, mirror_path):
        """A mirror plus a commit on a side branch not reachable from head."""
        side = commit_files(remote, {"side.txt": b"side\n"}, ref=b"refs/heads/side")
        commit_files(remote, {"a.txt": b"alpha 2\n"}, ref=MAIN)
        m = ensure_mirror(str(remote), mirror_path)
        yield m, side
        m.close()

    def test_warns_by_default(self, diverged, sink):
        mirror, side = diverged
        assert str(resolve(mirror, side, sink=sink)) == side
        warning = sink.find("checkpoint.diverged")
        assert warning and warning[0].level == "warning"

    def test_rejected_when_required(self, diverged):
        mirror, side = diverged
        with pytest.raises(DivergedCheckpoint):
            resolve(mirror, side, require_ancestor=True)


class TestFreshlyClonedMirror:
    def test_abbreviated_id_and_tag(self, remote, mirror_path, c1):
        tag_commit(remote, "v1", c1)
        with ensure_mirror(str(remote), mirror_path) as m:
            assert m.created
            assert str(resolve(m, c1[:7])) == c1
            assert str(resolve(m, "v1")) == c1
