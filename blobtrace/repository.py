"""Read-only access to a git object store through dulwich."""

from __future__ import annotations

import zlib
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

from dulwich.errors import ChecksumMismatch, NotGitRepository, ObjectFormatException
from dulwich.objects import Commit, Tree
from dulwich.repo import BaseRepo, Repo

from .errors import RepositoryError
from .objects import format_object_id
from .text import Messages

HEAD_REF = b"HEAD"
TIP_NAMESPACES: tuple[bytes, ...] = (b"refs/heads", b"refs/remotes")

_READ_ERRORS = (ObjectFormatException, ChecksumMismatch, OSError, ValueError, zlib.error)


@dataclass(frozen=True, slots=True)
class CommitInfo:
    """The parts of a commit the index cares about."""

    id: bytes
    tree: bytes
    parents: tuple[bytes, ...]
    commit_time: int = 0


@dataclass(frozen=True, slots=True)
class TreeItem:
    name: bytes
    mode: int
    sha: bytes


@dataclass(frozen=True, slots=True)
class TipSelection:
    tips: tuple[bytes, ...]
    head_only: bool
    fell_back_to_head: bool = False


class GitObjectStore:
    """Commit and tree retrieval with failures mapped to RepositoryError."""

    def __init__(self, repo: BaseRepo, *, path: Path | None = None) -> None:
        self._repo = repo
        self.path = path

    @classmethod
    def open(cls, path: Path | str) -> "GitObjectStore":
        repo_path = Path(path).expanduser().resolve()
        try:
            repo = Repo(str(repo_path))
        except (NotGitRepository, OSError) as exc:
            raise RepositoryError(
                Messages.ERROR_NOT_A_REPOSITORY.format(path=repo_path)
            ) from exc
        return cls(repo, path=repo_path)

    @property
    def repo(self) -> BaseRepo:
        return self._repo

    def for_worker(self) -> "GitObjectStore":
        """Return a store safe to use from another thread.

        On-disk repositories are reopened so pack file handles are not shared;
        in-memory repositories are plain dictionaries and can be shared.
        """
        if self.path is None:
            return self
        return GitObjectStore.open(self.path)

    def close(self) -> None:
        if self.path is not None:
            self._repo.close()

    def __enter__(self) -> "GitObjectStore":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def resolve_tips(self, head_only: bool) -> TipSelection:
        """Return the commits a walk starts from."""

        if head_only:
            return TipSelection(tips=(self._resolve_head(),), head_only=True)
        tips: set[bytes] = set()
        for namespace in TIP_NAMESPACES:
            try:
                refs = self._repo.refs.as_dict(namespace)
            except _READ_ERRORS as exc:
                raise RepositoryError(
                    Messages.ERROR_REF_UNREADABLE.format(
                        ref=namespace.decode("utf-8", "replace"), reason=exc
                    )
                ) from exc
            tips.update(refs.values())
        if not tips:
            return TipSelection(
                tips=(self._resolve_head(),),
                head_only=False,
                fell_back_to_head=True,
            )
        return TipSelection(tips=tuple(sorted(tips)), head_only=False)

    def _resolve_head(self) -> bytes:
        try:
            return self._repo.refs[HEAD_REF]
        except KeyError as exc:
            raise RepositoryError(Messages.ERROR_HEAD_MISSING) from exc
        except _READ_ERRORS as exc:
            raise RepositoryError(
                Messages.ERROR_REF_UNREADABLE.format(ref="HEAD", reason=exc)
            ) from exc

    def read_commit(self, oid: bytes) -> CommitInfo:
        obj = self._read(oid, Commit, "commit")
        try:
            return CommitInfo(
                id=oid,
                tree=obj.tree,
                parents=tuple(obj.parents),
                commit_time=int(obj.commit_time or 0),
            )
        except _READ_ERRORS as exc:
            raise RepositoryError(
                Messages.ERROR_OBJECT_CORRUPT.format(oid=format_object_id(oid), reason=exc)
            ) from exc

    def read_tree(self, oid: bytes) -> Sequence[TreeItem]:
        obj = self._read(oid, Tree, "tree")
        try:
            return [TreeItem(entry.path, entry.mode, entry.sha) for entry in obj.iteritems()]
        except _READ_ERRORS as exc:
            raise RepositoryError(
                Messages.ERROR_OBJECT_CORRUPT.format(oid=format_object_id(oid), reason=exc)
            ) from exc

    def _read(self, oid: bytes, expected: type, label: str):
        try:
            obj = self._repo.object_store[oid]
        except KeyError as exc:
            raise RepositoryError(
                Messages.ERROR_OBJECT_MISSING.format(oid=format_object_id(oid))
            ) from exc
        except _READ_ERRORS as exc:
            raise RepositoryError(
                Messages.ERROR_OBJECT_CORRUPT.format(oid=format_object_id(oid), reason=exc)
            ) from exc
        if not isinstance(obj, expected):
            raise RepositoryError(
                Messages.ERROR_OBJECT_TYPE.format(
                    oid=format_object_id(oid),
                    actual=obj.type_name.decode("ascii"),
                    expected=label,
                )
            )
        return obj
