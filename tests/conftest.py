from __future__ import annotations

from pathlib import Path

import pytest
from dulwich.objects import Blob, Commit, Tree
from dulwich.repo import MemoryRepo, Repo

from blobtrace import config as config_module
from blobtrace.repository import GitObjectStore

FILE_MODE = 0o100644
DIR_MODE = 0o040000
LINK_MODE = 0o120000
GITLINK_MODE = 0o160000


class RepoBuilder:
    """Write blobs, trees and commits straight into a dulwich repository."""

    def __init__(self, repo) -> None:
        self.repo = repo
        self.clock = 1_700_000_000
        repo.refs.set_symbolic_ref(b"HEAD", b"refs/heads/master")

    def blob(self, data: bytes) -> bytes:
        blob = Blob.from_string(data)
        self.repo.object_store.add_object(blob)
        return blob.id

    def tree(self, entries: dict) -> bytes:
        """Build a tree from ``{name: bytes | dict | (mode, sha)}``."""
        tree = Tree()
        for name, value in entries.items():
            if isinstance(value, dict):
                tree.add(name.encode(), DIR_MODE, self.tree(value))
            elif isinstance(value, tuple):
                mode, sha = value
                tree.add(name.encode(), mode, sha)
            else:
                tree.add(name.encode(), FILE_MODE, self.blob(value))
        self.repo.object_store.add_object(tree)
        return tree.id

    def commit(self, entries: dict, parents=(), *, when: int | None = None) -> bytes:
        if when is None:
            self.clock += 60
            when = self.clock
        commit = Commit()
        commit.tree = self.tree(entries)
        commit.parents = list(parents)
        commit.author = commit.committer = b"Tester <tester@example.com>"
        commit.author_time = commit.commit_time = when
        commit.author_timezone = commit.commit_timezone = 0
        commit.message = f"commit at {when}\n".encode()
        self.repo.object_store.add_object(commit)
        return commit.id

    def branch(self, name: str, commit_id: bytes) -> None:
        self.repo.refs[b"refs/heads/" + name.encode()] = commit_id

    def remote(self, name: str, commit_id: bytes) -> None:
        self.repo.refs[b"refs/remotes/" + name.encode()] = commit_id


@pytest.fixture
def memory_builder():
    return RepoBuilder(MemoryRepo())


@pytest.fixture
def memory_store(memory_builder):
    return GitObjectStore(memory_builder.repo)


@pytest.fixture
def disk_builder(tmp_path):
    repo_dir = tmp_path / "repo"
    repo_dir.mkdir()
    repo = Repo.init(str(repo_dir))
    builder = RepoBuilder(repo)
    yield builder
    repo.close()


@pytest.fixture
def history(disk_builder):
    """Two commits on master plus one on a side branch.

    c0 adds README and a.txt; c1 replaces a.txt; side adds extra.txt on
    top of c0.
    """
    c0 = disk_builder.commit({"README": b"readme\n", "a.txt": b"first\n"})
    c1 = disk_builder.commit({"README": b"readme\n", "a.txt": b"second\n"}, [c0])
    side = disk_builder.commit(
        {"README": b"readme\n", "a.txt": b"first\n", "extra.txt": b"side only\n"},
        [c0],
    )
    disk_builder.branch("master", c1)
    disk_builder.branch("side", side)
    return {"path": Path(disk_builder.repo.path), "c0": c0, "c1": c1, "side": side}


@pytest.fixture(autouse=True)
def temp_config_home(tmp_path, monkeypatch):
    config_dir = tmp_path / "config"
    config_file = config_dir / "config.json"
    monkeypatch.setattr(config_module, "CONFIG_DIR", config_dir)
    monkeypatch.setattr(config_module, "CONFIG_FILE", config_file)
    return config_file
