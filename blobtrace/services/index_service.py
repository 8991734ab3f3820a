"""Logic helpers for building, loading and persisting the blob index."""

from __future__ import annotations

import threading
from collections import deque
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Iterable, Iterator, Sequence

from ..cache import CachePolicy, CacheNotFoundError, load_index, save_index
from ..config import DEFAULT_THREADS, DEFAULT_TREE_CACHE_ENTRIES
from ..flatten import ContentSet, TreeFlattener
from ..index import ContentIndex, new_index
from ..repository import CommitInfo, GitObjectStore, TipSelection
from ..walker import discover_commits, topological_order

COMPACTION_INTERVAL = 1_000
PROGRESS_RATE = 100
_WINDOW_PER_THREAD = 4

ProgressCallback = Callable[[int, int, str], None]


class IndexStatus(str, Enum):
    BUILT = "built"
    LOADED = "loaded"
    REBUILT_STALE = "rebuilt_stale"


@dataclass(slots=True)
class IndexRequest:
    repository: Path
    head_only: bool = False
    compact: bool = True
    threads: int = DEFAULT_THREADS
    tree_cache_entries: int = DEFAULT_TREE_CACHE_ENTRIES
    cache_path: Path | None = None
    cache_policy: CachePolicy = CachePolicy.VERIFY


@dataclass(slots=True)
class IndexResult:
    index: ContentIndex
    status: IndexStatus
    head_only: bool
    tips: tuple[bytes, ...]
    fell_back_to_head: bool = False
    cache_path: Path | None = None
    cache_saved: bool = False
    generated_at: str | None = None


def _flatten_sequential(
    store: GitObjectStore,
    commits: Iterable[CommitInfo],
    tree_cache_entries: int,
) -> Iterator[tuple[CommitInfo, ContentSet]]:
    flattener = TreeFlattener(store, cache_entries=tree_cache_entries)
    for info in commits:
        yield info, flattener.flatten(info.tree)


def _flatten_parallel(
    store: GitObjectStore,
    commits: Iterable[CommitInfo],
    threads: int,
    tree_cache_entries: int,
) -> Iterator[tuple[CommitInfo, ContentSet]]:
    """Flatten trees on a thread pool, yielding results in walk order.

    Each worker owns a store handle and a subtree memo. At most
    ``threads * _WINDOW_PER_THREAD`` trees are in flight at once.
    """
    local = threading.local()
    opened: list[GitObjectStore] = []
    opened_lock = threading.Lock()

    def _flatten(info: CommitInfo) -> ContentSet:
        flattener = getattr(local, "flattener", None)
        if flattener is None:
            worker_store = store.for_worker()
            if worker_store is not store:
                with opened_lock:
                    opened.append(worker_store)
            flattener = TreeFlattener(worker_store, cache_entries=tree_cache_entries)
            local.flattener = flattener
        return flattener.flatten(info.tree)

    window = max(threads * _WINDOW_PER_THREAD, 1)
    pending: deque[tuple[CommitInfo, Future[ContentSet]]] = deque()
    try:
        with ThreadPoolExecutor(max_workers=threads) as executor:
            try:
                for info in commits:
                    pending.append((info, executor.submit(_flatten, info)))
                    if len(pending) >= window:
                        head, future = pending.popleft()
                        yield head, future.result()
                while pending:
                    head, future = pending.popleft()
                    yield head, future.result()
            finally:
                for _, future in pending:
                    future.cancel()
    finally:
        for worker_store in opened:
            worker_store.close()


def build_index(
    store: GitObjectStore,
    tips: Sequence[bytes],
    *,
    compact: bool = True,
    threads: int = DEFAULT_THREADS,
    tree_cache_entries: int = DEFAULT_TREE_CACHE_ENTRIES,
    progress: ProgressCallback | None = None,
) -> ContentIndex:
    """Walk every commit reachable from *tips* and index its snapshot."""

    commits = discover_commits(store, tips)
    total = len(commits)
    if progress is not None:
        progress(0, total, "")
    ordered = topological_order(commits)
    if threads > 1:
        snapshots = _flatten_parallel(store, ordered, threads, tree_cache_entries)
    else:
        snapshots = _flatten_sequential(store, ordered, tree_cache_entries)

    index = new_index(compact=compact)
    references = 0
    for done, (info, content) in enumerate(snapshots, start=1):
        index.add_snapshot(info.id, content)
        references += len(content)
        if compact and done % COMPACTION_INTERVAL == 0:
            index.compact()
        if progress is not None and (done % PROGRESS_RATE == 0 or done == total):
            progress(done, total, f"{len(index)} blobs, {references} references")
    if compact:
        index.compact()
    return index


def _result_from_cache(request: IndexRequest, cached, *, tips: TipSelection | None) -> IndexResult:
    return IndexResult(
        index=cached.index,
        status=IndexStatus.LOADED,
        head_only=cached.metadata.head_only,
        tips=cached.metadata.tips,
        fell_back_to_head=bool(tips and tips.fell_back_to_head),
        cache_path=request.cache_path,
        generated_at=cached.metadata.generated_at,
    )


def open_index(
    request: IndexRequest,
    *,
    progress: ProgressCallback | None = None,
) -> IndexResult:
    """Load the index from the cache when the policy allows it, otherwise build it.

    A fresh build is written back to ``request.cache_path`` when one is set.
    """

    policy = CachePolicy(request.cache_policy)
    use_cache = request.cache_path is not None and policy != CachePolicy.REBUILD
    cached = None
    if use_cache:
        try:
            cached = load_index(request.cache_path)
        except CacheNotFoundError:
            cached = None
        if cached is not None and policy == CachePolicy.TRUST:
            return _result_from_cache(request, cached, tips=None)

    with GitObjectStore.open(request.repository) as store:
        selection = store.resolve_tips(request.head_only)
        stale = False
        if cached is not None:
            if cached.metadata.matches(head_only=selection.head_only, tips=selection.tips):
                return _result_from_cache(request, cached, tips=selection)
            stale = True
        index = build_index(
            store,
            selection.tips,
            compact=request.compact,
            threads=request.threads,
            tree_cache_entries=request.tree_cache_entries,
            progress=progress,
        )

    saved = False
    if request.cache_path is not None:
        save_index(
            request.cache_path,
            index,
            head_only=selection.head_only,
            tips=selection.tips,
        )
        saved = True
    return IndexResult(
        index=index,
        status=IndexStatus.REBUILT_STALE if stale else IndexStatus.BUILT,
        head_only=selection.head_only,
        tips=selection.tips,
        fell_back_to_head=selection.fell_back_to_head,
        cache_path=request.cache_path,
        cache_saved=saved,
    )
