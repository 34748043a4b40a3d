"""Shared fixtures for mirrordelta tests."""

import time

import pytest
from click.testing import CliRunner
from dulwich.index import commit_tree
from dulwich.objects import Blob, Commit, Tag
from dulwich.repo import Repo as DulwichRepo

from mirrordelta import RecordingSink

MAIN = b"refs/heads/main"


def commit_files(repo_path, files, message="update", ref=MAIN):
    """Commit a full snapshot of *files* ({path: bytes}) on top of *ref*.

    Returns the new commit's hex SHA as str.
    """
    repo = DulwichRepo(str(repo_path))
    try:
        store = repo.object_store
        blobs = []
        for path, data in sorted(files.items()):
            blob = Blob.from_string(data)
            store.add_object(blob)
            blobs.append((path.encode(), blob.id, 0o100644))
        c = Commit()
        c.tree = commit_tree(store, blobs)
        c.parents = [repo.refs[ref]] if ref in repo.refs else []
        c.author = c.committer = b"test <test@localhost>"
        c.author_time = c.commit_time = int(time.time())
        c.author_timezone = c.commit_timezone = 0
        c.encoding = b"UTF-8"
        c.message = message.encode() + b"\n"
        store.add_object(c)
        repo.refs[ref] = c.id
        return c.id.decode()
    finally:
        repo.close()


def tag_commit(repo_path, name, sha):
    """Create an annotated tag *name* pointing at commit *sha*."""
    repo = DulwichRepo(str(repo_path))
    try:
        tag = Tag()
        tag.name = name.encode()
        tag.object = (Commit, sha.encode())
        tag.tagger = b"test <test@localhost>"
        tag.tag_time = int(time.time())
        tag.tag_timezone = 0
        tag.message = b"tag\n"
        repo.object_store.add_object(tag)
        repo.refs[b"refs/tags/" + name.encode()] = tag.id
    finally:
        repo.close()


def worktree_files(path):
    """Return {relative_path: bytes} of a working tree, ignoring .git."""
    out = {}
    for p in sorted(path.rglob("*")):
        rel = p.relative_to(path)
        if rel.parts[0] == ".git" or not p.is_file():
            continue
        out[rel.as_posix()] = p.read_bytes()
    return out


@pytest.fixture
def remote(tmp_path):
    """A bare remote whose HEAD is refs/heads/main, holding C1 = {a.txt, b.txt}."""
    p = tmp_path / "remote.git"
    repo = DulwichRepo.init_bare(str(p), mkdir=True)
    repo.refs.set_symbolic_ref(b"HEAD", MAIN)
    repo.close()
    commit_files(p, {"a.txt": b"alpha\n", "b.txt": b"beta\n"}, message="C1")
    return p


@pytest.fixture
def c1(remote):
    repo = DulwichRepo(str(remote))
    try:
        return repo.refs[MAIN].decode()
    finally:
        repo.close()


@pytest.fixture
def mirror_path(tmp_path):
    """Return a path to a not-yet-created mirror."""
    return tmp_path / "mirror"


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def runner():
    return CliRunner()
