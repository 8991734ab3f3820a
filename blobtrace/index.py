"""Inverted blob -> commit indices.

Two interchangeable representations are provided:

``PlainIndex``
    Posting lists are Python sets of hex commit ids. Cheap to build, heavy to
    keep around.

``CompactIndex``
    Every object id is interned once into a dense integer, posting lists are
    sorted ``uint32`` arrays, and identical posting lists are stored once and
    shared between blobs. ``lookup`` results are identical to ``PlainIndex``.
"""

from __future__ import annotations

import binascii
from collections import Counter
from dataclasses import dataclass
from typing import Iterable, Iterator, Protocol

import numpy as np

from .objects import HEX_WIDTH

POSTING_DTYPE = np.uint32
_EMPTY_POSTING = np.empty(0, dtype=POSTING_DTYPE)
_EMPTY_POSTING.setflags(write=False)


@dataclass(frozen=True, slots=True)
class CommitRecord:
    """Per-commit facts used for ordering and tie-breaking.

    ``rank`` is the commit's position in the walk (0 = most recent) and
    ``content_count`` the number of distinct blobs in its snapshot.
    """

    rank: int
    content_count: int


@dataclass(frozen=True, slots=True)
class IndexStats:
    commits: int
    blobs: int
    references: int
    stored_posting_lists: int


class ContentIndex(Protocol):
    """Operations shared by both index representations."""

    compacted: bool

    def register_commit(self, commit_id: bytes, content_count: int | None = None) -> int: ...

    def insert(self, content_id: bytes, commit_id: bytes) -> None: ...

    def add_snapshot(self, commit_id: bytes, content: Iterable[bytes]) -> None: ...

    def lookup(self, content_id: bytes) -> frozenset[bytes]: ...

    def hit_counts(self, content_ids: Iterable[bytes]) -> dict[bytes, int]: ...

    def commit_record(self, commit_id: bytes) -> CommitRecord | None: ...

    def commits(self) -> list[bytes]: ...

    def content_ids(self) -> Iterator[bytes]: ...

    def sort_commits(self, commit_ids: Iterable[bytes]) -> list[bytes]: ...

    def stats(self) -> IndexStats: ...

    def compact(self) -> int: ...

    def __contains__(self, content_id: object) -> bool: ...

    def __len__(self) -> int: ...


class _CommitOrderMixin:
    def sort_commits(self, commit_ids: Iterable[bytes]) -> list[bytes]:
        """Order *commit_ids* most recent first; unknown ids go last."""

        def _key(commit_id: bytes) -> tuple[int, bytes]:
            record = self.commit_record(commit_id)
            if record is None:
                return (1 << 62, commit_id)
            return (record.rank, commit_id)

        return sorted(set(commit_ids), key=_key)


class PlainIndex(_CommitOrderMixin):
    """Uncompacted index keyed by raw hex ids."""

    compacted = False

    def __init__(self) -> None:
        self._postings: dict[bytes, set[bytes]] = {}
        self._commits: dict[bytes, CommitRecord] = {}

    def register_commit(self, commit_id: bytes, content_count: int | None = None) -> int:
        record = self._commits.get(commit_id)
        if record is None:
            record = CommitRecord(rank=len(self._commits), content_count=content_count or 0)
        elif content_count is not None:
            record = CommitRecord(rank=record.rank, content_count=content_count)
        self._commits[commit_id] = record
        return record.rank

    def insert(self, content_id: bytes, commit_id: bytes) -> None:
        if commit_id not in self._commits:
            self.register_commit(commit_id)
        self._postings.setdefault(content_id, set()).add(commit_id)

    def add_snapshot(self, commit_id: bytes, content: Iterable[bytes]) -> None:
        blobs = frozenset(content)
        self.register_commit(commit_id, len(blobs))
        for content_id in blobs:
            self._postings.setdefault(content_id, set()).add(commit_id)

    def lookup(self, content_id: bytes) -> frozenset[bytes]:
        return frozenset(self._postings.get(content_id, ()))

    def hit_counts(self, content_ids: Iterable[bytes]) -> dict[bytes, int]:
        counts: Counter[bytes] = Counter()
        for content_id in set(content_ids):
            counts.update(self._postings.get(content_id, ()))
        return dict(counts)

    def commit_record(self, commit_id: bytes) -> CommitRecord | None:
        return self._commits.get(commit_id)

    def commits(self) -> list[bytes]:
        return sorted(self._commits, key=lambda commit_id: self._commits[commit_id].rank)

    def content_ids(self) -> Iterator[bytes]:
        return iter(self._postings)

    def stats(self) -> IndexStats:
        return IndexStats(
            commits=len(self._commits),
            blobs=len(self._postings),
            references=sum(len(commits) for commits in self._postings.values()),
            stored_posting_lists=len(self._postings),
        )

    def compact(self) -> int:
        """Nothing to fold; every posting list is stored on its own."""
        return len(self._postings)

    def to_compact(self) -> "CompactIndex":
        compact = CompactIndex()
        for commit_id in self.commits():
            compact.register_commit(commit_id, self._commits[commit_id].content_count)
        for content_id, commits in self._postings.items():
            for commit_id in commits:
                compact.insert(content_id, commit_id)
        compact.compact()
        return compact

    def __contains__(self, content_id: object) -> bool:
        return content_id in self._postings

    def __len__(self) -> int:
        return len(self._postings)


class IdTable:
    """The single owning table mapping object ids to dense integers and back."""

    def __init__(self, ids: Iterable[bytes] = ()) -> None:
        self._ids: list[bytes] = []
        self._slots: dict[bytes, int] = {}
        for oid in ids:
            self.intern(oid)

    def intern(self, oid: bytes) -> int:
        slot = self._slots.get(oid)
        if slot is None:
            slot = len(self._ids)
            self._ids.append(oid)
            self._slots[oid] = slot
        return slot

    def get(self, oid: bytes) -> int | None:
        return self._slots.get(oid)

    def __getitem__(self, slot: int) -> bytes:
        return self._ids[slot]

    def __len__(self) -> int:
        return len(self._ids)

    def __iter__(self) -> Iterator[bytes]:
        return iter(self._ids)


@dataclass(slots=True)
class IndexArrays:
    """Flat array form of a compacted index, as written to the cache."""

    object_ids: np.ndarray
    commit_slots: np.ndarray
    commit_sizes: np.ndarray
    content_slots: np.ndarray
    content_postings: np.ndarray
    posting_offsets: np.ndarray
    posting_data: np.ndarray


class CompactIndex(_CommitOrderMixin):
    """Interned, deduplicated index.

    Insertions land in per-blob pending sets; ``compact`` folds them into
    sorted read-only arrays and shares arrays that are byte-for-byte equal.
    Queries see pending and compacted data alike.
    """

    compacted = True

    def __init__(self) -> None:
        self._table = IdTable()
        self._commit_order: list[int] = []
        self._commit_rank: dict[int, int] = {}
        self._commit_size: dict[int, int] = {}
        self._pending: dict[int, set[int]] = {}
        self._posting_of: dict[int, int] = {}
        self._postings: list[np.ndarray] = []

    def _register_slot(self, slot: int, content_count: int | None) -> bool:
        if slot not in self._commit_rank:
            self._commit_rank[slot] = len(self._commit_order)
            self._commit_order.append(slot)
            self._commit_size[slot] = content_count or 0
            return True
        if content_count is not None:
            self._commit_size[slot] = content_count
        return False

    def register_commit(self, commit_id: bytes, content_count: int | None = None) -> int:
        slot = self._table.intern(commit_id)
        self._register_slot(slot, content_count)
        return self._commit_rank[slot]

    def insert(self, content_id: bytes, commit_id: bytes) -> None:
        commit = self._table.intern(commit_id)
        self._register_slot(commit, None)
        content = self._table.intern(content_id)
        posting = self._posting_of.get(content)
        if posting is not None:
            existing = self._postings[posting]
            position = int(np.searchsorted(existing, commit))
            if position < existing.size and int(existing[position]) == commit:
                return
        self._pending.setdefault(content, set()).add(commit)

    def add_snapshot(self, commit_id: bytes, content: Iterable[bytes]) -> None:
        blobs = frozenset(content)
        commit = self._table.intern(commit_id)
        if not self._register_slot(commit, len(blobs)):
            for content_id in blobs:
                self.insert(content_id, commit_id)
            return
        # A commit seen for the first time cannot be in any compacted list yet.
        intern = self._table.intern
        pending = self._pending
        for content_id in blobs:
            pending.setdefault(intern(content_id), set()).add(commit)

    def compact(self) -> int:
        """Fold pending insertions into shared arrays; return the number of stored lists."""

        if not self._pending:
            return len(self._postings)
        unique: dict[bytes, int] = {}
        postings: list[np.ndarray] = []
        posting_of: dict[int, int] = {}
        for content in sorted(self._posting_of.keys() | self._pending.keys()):
            array = self._materialize(content)
            key = array.tobytes()
            slot = unique.get(key)
            if slot is None:
                slot = len(postings)
                array.setflags(write=False)
                unique[key] = slot
                postings.append(array)
            posting_of[content] = slot
        self._postings = postings
        self._posting_of = posting_of
        self._pending = {}
        return len(postings)

    def _materialize(self, content: int) -> np.ndarray:
        posting = self._posting_of.get(content)
        existing = self._postings[posting] if posting is not None else _EMPTY_POSTING
        extra = self._pending.get(content)
        if not extra:
            return existing
        added = np.fromiter(extra, dtype=POSTING_DTYPE, count=len(extra))
        return np.union1d(existing, added).astype(POSTING_DTYPE, copy=False)

    def lookup(self, content_id: bytes) -> frozenset[bytes]:
        content = self._table.get(content_id)
        if content is None:
            return frozenset()
        table = self._table
        return frozenset(table[slot] for slot in self._materialize(content).tolist())

    def hit_counts(self, content_ids: Iterable[bytes]) -> dict[bytes, int]:
        arrays: list[np.ndarray] = []
        for content_id in set(content_ids):
            content = self._table.get(content_id)
            if content is None:
                continue
            array = self._materialize(content)
            if array.size:
                arrays.append(array)
        if not arrays:
            return {}
        slots, counts = np.unique(np.concatenate(arrays), return_counts=True)
        table = self._table
        return {
            table[slot]: count
            for slot, count in zip(slots.tolist(), counts.tolist())
        }

    def commit_record(self, commit_id: bytes) -> CommitRecord | None:
        slot = self._table.get(commit_id)
        if slot is None or slot not in self._commit_rank:
            return None
        return CommitRecord(rank=self._commit_rank[slot], content_count=self._commit_size[slot])

    def commits(self) -> list[bytes]:
        return [self._table[slot] for slot in self._commit_order]

    def _content_slots(self) -> set[int]:
        return self._posting_of.keys() | self._pending.keys()

    def content_ids(self) -> Iterator[bytes]:
        table = self._table
        return (table[slot] for slot in sorted(self._content_slots()))

    def stats(self) -> IndexStats:
        contents = self._content_slots()
        references = sum(self._materialize(content).size for content in contents)
        return IndexStats(
            commits=len(self._commit_order),
            blobs=len(contents),
            references=int(references),
            stored_posting_lists=len(self._postings) + len(self._pending),
        )

    def to_arrays(self) -> IndexArrays:
        self.compact()
        ids = list(self._table)
        id_bytes = (ids and len(ids[0]) // 2) or HEX_WIDTH // 2
        if any(len(oid) != id_bytes * 2 for oid in ids):
            raise ValueError("object ids of mixed width cannot be stored")
        raw = b"".join(binascii.unhexlify(oid) for oid in ids)
        object_ids = np.frombuffer(raw, dtype=np.uint8).reshape(len(ids), id_bytes)
        contents = sorted(self._posting_of)
        lengths = np.fromiter(
            (array.size for array in self._postings), dtype=np.uint64, count=len(self._postings)
        )
        offsets = np.zeros(len(self._postings) + 1, dtype=np.uint64)
        np.cumsum(lengths, out=offsets[1:])
        data = (
            np.concatenate(self._postings).astype(POSTING_DTYPE, copy=False)
            if self._postings
            else np.empty(0, dtype=POSTING_DTYPE)
        )
        return IndexArrays(
            object_ids=object_ids,
            commit_slots=np.asarray(self._commit_order, dtype=POSTING_DTYPE),
            commit_sizes=np.asarray(
                [self._commit_size[slot] for slot in self._commit_order], dtype=np.uint64
            ),
            content_slots=np.asarray(contents, dtype=POSTING_DTYPE),
            content_postings=np.asarray(
                [self._posting_of[content] for content in contents], dtype=POSTING_DTYPE
            ),
            posting_offsets=offsets,
            posting_data=data,
        )

    @classmethod
    def from_arrays(cls, arrays: IndexArrays) -> "CompactIndex":
        """Rebuild an index from :meth:`to_arrays` output, validating every reference."""

        object_ids = np.asarray(arrays.object_ids, dtype=np.uint8)
        if object_ids.ndim != 2:
            raise ValueError("object id table must be two dimensional")
        total = object_ids.shape[0]
        commit_slots = np.asarray(arrays.commit_slots)
        commit_sizes = np.asarray(arrays.commit_sizes)
        content_slots = np.asarray(arrays.content_slots)
        content_postings = np.asarray(arrays.content_postings)
        offsets = np.asarray(arrays.posting_offsets)
        data = np.asarray(arrays.posting_data)
        if commit_slots.shape != commit_sizes.shape:
            raise ValueError("commit tables disagree in length")
        if content_slots.shape != content_postings.shape:
            raise ValueError("content tables disagree in length")
        if offsets.ndim != 1 or offsets.size == 0:
            raise ValueError("posting offsets are missing")
        if (
            int(offsets[0]) != 0
            or int(offsets[-1]) != data.size
            or np.any(np.diff(offsets.astype(np.int64)) < 0)
        ):
            raise ValueError("posting offsets are inconsistent")
        for name, values in (
            ("commit", commit_slots),
            ("content", content_slots),
            ("posting", data),
        ):
            if values.size and int(values.max()) >= total:
                raise ValueError(f"{name} slot out of range")
        if content_postings.size and int(content_postings.max()) >= offsets.size - 1:
            raise ValueError("posting reference out of range")
        contents = content_slots.tolist()
        if len(set(contents)) != len(contents):
            raise ValueError("content listed twice")
        if not set(commit_slots.tolist()).isdisjoint(contents):
            raise ValueError("slot listed as both commit and content")
        if data.size and not np.all(np.isin(data, commit_slots)):
            raise ValueError("posting references a non-commit")

        index = cls()
        for row in object_ids:
            index._table.intern(binascii.hexlify(row.tobytes()))
        if len(index._table) != total:
            raise ValueError("object id table contains duplicates")
        for slot, size in zip(commit_slots.tolist(), commit_sizes.tolist()):
            if not index._register_slot(slot, int(size)):
                raise ValueError("commit listed twice")
        postings: list[np.ndarray] = []
        bounds = offsets.tolist()
        for start, end in zip(bounds[:-1], bounds[1:]):
            array = np.array(data[start:end], dtype=POSTING_DTYPE)
            if array.size > 1 and np.any(np.diff(array.astype(np.int64)) <= 0):
                raise ValueError("posting list is not strictly sorted")
            array.setflags(write=False)
            postings.append(array)
        index._postings = postings
        index._posting_of = dict(zip(contents, content_postings.tolist()))
        return index

    def __contains__(self, content_id: object) -> bool:
        if not isinstance(content_id, bytes):
            return False
        slot = self._table.get(content_id)
        return slot is not None and (slot in self._posting_of or slot in self._pending)

    def __len__(self) -> int:
        return len(self._posting_of) + sum(
            1 for content in self._pending if content not in self._posting_of
        )


def new_index(*, compact: bool = True) -> ContentIndex:
    return CompactIndex() if compact else PlainIndex()
