import numpy as np
import pytest

from blobtrace.index import CompactIndex, PlainIndex, new_index


def _oid(n: int) -> bytes:
    return f"{n:040x}".encode()


SNAPSHOTS = [
    (_oid(100), [_oid(1), _oid(2), _oid(3)]),
    (_oid(101), [_oid(1), _oid(2)]),
    (_oid(102), [_oid(2), _oid(4)]),
    (_oid(103), [_oid(1), _oid(2), _oid(3)]),
]


def _fill(index, snapshots=SNAPSHOTS):
    for commit, content in snapshots:
        index.add_snapshot(commit, content)
    index.compact()
    return index


def _lookups(index):
    return {content: index.lookup(content) for content in index.content_ids()}


def test_new_index_kinds():
    assert isinstance(new_index(), CompactIndex)
    assert isinstance(new_index(compact=False), PlainIndex)


def test_lookup_completeness_and_soundness():
    index = _fill(CompactIndex())
    for content in {blob for _, blobs in SNAPSHOTS for blob in blobs}:
        expected = {commit for commit, blobs in SNAPSHOTS if content in blobs}
        assert index.lookup(content) == expected
    assert index.lookup(_oid(999)) == frozenset()


def test_compact_and_plain_agree():
    plain = _fill(PlainIndex())
    compact = _fill(CompactIndex())

    assert _lookups(plain) == _lookups(compact)
    assert plain.commits() == compact.commits()
    assert plain.stats().references == compact.stats().references
    query = [_oid(1), _oid(3), _oid(4), _oid(999)]
    assert plain.hit_counts(query) == compact.hit_counts(query)


def test_compaction_does_not_change_lookups():
    index = CompactIndex()
    index.add_snapshot(*SNAPSHOTS[0])
    index.add_snapshot(*SNAPSHOTS[1])
    before = _lookups(index)
    index.compact()
    assert _lookups(index) == before

    index.add_snapshot(*SNAPSHOTS[2])
    index.insert(_oid(1), _oid(102))
    pending = _lookups(index)
    index.compact()
    assert _lookups(index) == pending
    assert _oid(102) in index.lookup(_oid(1))


def test_identical_posting_lists_are_shared():
    index = _fill(CompactIndex())
    stats = index.stats()
    assert stats.stored_posting_lists == stats.blobs
    index.insert(_oid(5), _oid(100))
    index.insert(_oid(5), _oid(103))
    index.compact()
    assert index.stats().stored_posting_lists == stats.blobs
    assert index.stats().blobs == stats.blobs + 1


def test_posting_arrays_are_sorted_and_read_only():
    index = _fill(CompactIndex())
    for array in index._postings:
        assert array.dtype == np.uint32
        assert not array.flags.writeable
        assert np.all(np.diff(array.astype(np.int64)) > 0)


def test_insert_is_idempotent():
    for index in (PlainIndex(), CompactIndex()):
        _fill(index)
        before = index.stats()
        for commit, blobs in SNAPSHOTS:
            index.add_snapshot(commit, blobs)
            for blob in blobs:
                index.insert(blob, commit)
        index.compact()
        assert index.stats() == before


def test_ranks_follow_registration_order():
    index = _fill(CompactIndex())
    assert [index.commit_record(commit).rank for commit, _ in SNAPSHOTS] == [0, 1, 2, 3]
    assert index.commit_record(_oid(101)).content_count == 2
    assert index.commit_record(_oid(999)) is None
    assert index.sort_commits([_oid(103), _oid(999), _oid(100)]) == [
        _oid(100),
        _oid(103),
        _oid(999),
    ]


def test_contains_and_len():
    index = CompactIndex()
    index.add_snapshot(_oid(100), [_oid(1)])
    assert _oid(1) in index
    assert _oid(100) not in index
    assert "not bytes" not in index
    assert len(index) == 1
    index.compact()
    index.insert(_oid(1), _oid(101))
    index.insert(_oid(2), _oid(101))
    assert len(index) == 2


def test_array_form_round_trip():
    index = _fill(CompactIndex())
    restored = CompactIndex.from_arrays(index.to_arrays())

    assert _lookups(restored) == _lookups(index)
    assert restored.commits() == index.commits()
    assert restored.commit_record(_oid(102)) == index.commit_record(_oid(102))


def test_plain_to_compact():
    plain = _fill(PlainIndex())
    compact = plain.to_compact()
    assert _lookups(compact) == _lookups(plain)
    assert compact.commits() == plain.commits()


@pytest.mark.parametrize(
    "field, value",
    [
        ("posting_data", np.array([0, 99], dtype=np.uint32)),
        ("posting_offsets", np.array([0, 5], dtype=np.uint64)),
        ("commit_sizes", np.array([1], dtype=np.uint64)),
        ("object_ids", np.zeros(20, dtype=np.uint8)),
    ],
)
def test_from_arrays_rejects_inconsistent_data(field, value):
    arrays = _fill(CompactIndex()).to_arrays()
    setattr(arrays, field, value)
    with pytest.raises(ValueError):
        CompactIndex.from_arrays(arrays)


def test_empty_index_round_trip():
    restored = CompactIndex.from_arrays(CompactIndex().to_arrays())
    assert len(restored) == 0
    assert restored.commits() == []


def test_from_arrays_rejects_postings_pointing_at_blobs():
    index = CompactIndex()
    index.add_snapshot(_oid(100), [_oid(1)])
    arrays = index.to_arrays()
    blob_slot = int(arrays.content_slots[0])
    arrays.posting_data = np.array([blob_slot], dtype=np.uint32)

    with pytest.raises(ValueError, match="non-commit"):
        CompactIndex.from_arrays(arrays)


def test_from_arrays_rejects_duplicate_or_overlapping_content_slots():
    arrays = _fill(CompactIndex()).to_arrays()
    arrays.content_slots = np.array(
        [arrays.content_slots[0]] * arrays.content_slots.size, dtype=np.uint32
    )
    with pytest.raises(ValueError, match="content listed twice"):
        CompactIndex.from_arrays(arrays)

    arrays = _fill(CompactIndex()).to_arrays()
    content_slots = arrays.content_slots.copy()
    content_slots[0] = arrays.commit_slots[0]
    arrays.content_slots = content_slots
    with pytest.raises(ValueError, match="both commit and content"):
        CompactIndex.from_arrays(arrays)
