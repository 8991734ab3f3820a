"""Commit graph traversal."""

from __future__ import annotations

import heapq
from typing import Iterable, Iterator

from .repository import CommitInfo, GitObjectStore


def discover_commits(store: GitObjectStore, tips: Iterable[bytes]) -> dict[bytes, CommitInfo]:
    """Read every commit reachable from *tips* exactly once.

    Uses an explicit frontier and a visited set so shared ancestors of
    merge-heavy histories are expanded a single time.
    """
    frontier = list(tips)
    commits: dict[bytes, CommitInfo] = {}
    while frontier:
        oid = frontier.pop()
        if oid in commits:
            continue
        info = store.read_commit(oid)
        commits[oid] = info
        frontier.extend(parent for parent in info.parents if parent not in commits)
    return commits


def topological_order(commits: dict[bytes, CommitInfo]) -> Iterator[CommitInfo]:
    """Yield *commits* children-first.

    Commits that become ready at the same time are ordered by newest commit
    time, then by id.
    """
    pending_children: dict[bytes, int] = dict.fromkeys(commits, 0)
    for info in commits.values():
        for parent in set(info.parents):
            if parent in pending_children:
                pending_children[parent] += 1

    ready = [
        (-info.commit_time, oid)
        for oid, info in commits.items()
        if pending_children[oid] == 0
    ]
    heapq.heapify(ready)
    while ready:
        _, oid = heapq.heappop(ready)
        info = commits[oid]
        yield info
        for parent in set(info.parents):
            if parent not in pending_children:
                continue
            pending_children[parent] -= 1
            if pending_children[parent] == 0:
                heapq.heappush(ready, (-commits[parent].commit_time, parent))


def walk_commits(store: GitObjectStore, tips: Iterable[bytes]) -> Iterator[CommitInfo]:
    """Yield every commit reachable from *tips*, most recent first.

    Every reachable commit is read before the first one is yielded, since
    the topological order needs the whole subgraph.
    """
    yield from topological_order(discover_commits(store, tips))
