"""Flatten git trees and on-disk directories into content sets."""

from __future__ import annotations

import stat
from collections import OrderedDict
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, FrozenSet, Iterable

from dulwich.objects import S_ISGITLINK

from .config import DEFAULT_TREE_CACHE_ENTRIES
from .objects import hash_path
from .repository import GitObjectStore
from .utils import collect_files, relative_posix, resolve_directory

ContentSet = FrozenSet[bytes]


@dataclass(frozen=True, slots=True)
class ContentEntry:
    """One file of an on-disk tree and the blob id git would give it."""

    path: Path
    rel_path: str
    blob_id: bytes


class TreeFlattener:
    """Expand trees into the set of blob ids they transitively contain.

    Flattened subtrees are memoised in a bounded LRU keyed by tree id, so the
    directories most commits share are only read once.
    """

    def __init__(
        self,
        store: GitObjectStore,
        *,
        cache_entries: int = DEFAULT_TREE_CACHE_ENTRIES,
    ) -> None:
        self._store = store
        self._cache_entries = max(int(cache_entries), 0)
        self._memo: "OrderedDict[bytes, ContentSet]" = OrderedDict()

    @property
    def store(self) -> GitObjectStore:
        return self._store

    def flatten(self, tree_id: bytes) -> ContentSet:
        cached = self._memo_get(tree_id)
        if cached is not None:
            return cached
        blobs: set[bytes] = set()
        for item in self._store.read_tree(tree_id):
            if S_ISGITLINK(item.mode):
                continue
            if stat.S_ISDIR(item.mode):
                blobs.update(self.flatten(item.sha))
                continue
            blobs.add(item.sha)
        result = frozenset(blobs)
        self._memo_put(tree_id, result)
        return result

    def _memo_get(self, tree_id: bytes) -> ContentSet | None:
        if self._cache_entries <= 0:
            return None
        cached = self._memo.pop(tree_id, None)
        if cached is not None:
            self._memo[tree_id] = cached
        return cached

    def _memo_put(self, tree_id: bytes, content: ContentSet) -> None:
        if self._cache_entries <= 0:
            return
        self._memo[tree_id] = content
        while len(self._memo) > self._cache_entries:
            self._memo.popitem(last=False)


def scan_directory(
    root: Path | str,
    *,
    on_file: Callable[[Path], None] | None = None,
) -> list[ContentEntry]:
    """Hash every file under *root* the way git would store it."""

    directory = resolve_directory(root)
    entries: list[ContentEntry] = []
    for path in collect_files(directory):
        entries.append(
            ContentEntry(
                path=path,
                rel_path=relative_posix(path, directory),
                blob_id=hash_path(path),
            )
        )
        if on_file is not None:
            on_file(path)
    return entries


def content_set(entries: Iterable[ContentEntry]) -> ContentSet:
    return frozenset(entry.blob_id for entry in entries)

