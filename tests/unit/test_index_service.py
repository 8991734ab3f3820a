import pytest

from blobtrace.cache import CachePolicy, load_index, save_index
from blobtrace.errors import CacheError, RepositoryError
from blobtrace.index import CompactIndex, PlainIndex
from blobtrace.objects import hash_blob
from blobtrace.repository import GitObjectStore
from blobtrace.services import index_service
from blobtrace.services.index_service import (
    IndexRequest,
    IndexStatus,
    build_index,
    open_index,
)


def _lookups(index):
    return {content: index.lookup(content) for content in index.content_ids()}


def _linear_history(builder, count):
    parent = []
    tip = None
    for n in range(count):
        tip = builder.commit(
            {"shared": {"lib.py": b"lib"}, "counter": f"{n}\n".encode(), "even": f"{n % 2}".encode()},
            parent,
        )
        parent = [tip]
    builder.branch("master", tip)
    return tip


def test_build_index_ranks_and_content(memory_builder, memory_store):
    tip = _linear_history(memory_builder, 3)

    index = build_index(memory_store, [tip])

    assert index.commits()[0] == tip
    assert index.stats().commits == 3
    assert len(index.lookup(hash_blob(b"lib"))) == 3
    assert len(index.lookup(hash_blob(b"0"))) == 2
    assert index.commit_record(tip).content_count == 3


def test_plain_and_compact_builds_agree(memory_builder, memory_store):
    tip = _linear_history(memory_builder, 5)

    compact = build_index(memory_store, [tip])
    plain = build_index(memory_store, [tip], compact=False)

    assert isinstance(compact, CompactIndex)
    assert isinstance(plain, PlainIndex)
    assert _lookups(compact) == _lookups(plain)
    assert compact.commits() == plain.commits()


def test_periodic_compaction_is_equivalent(memory_builder, memory_store, monkeypatch):
    tip = _linear_history(memory_builder, 7)
    expected = _lookups(build_index(memory_store, [tip]))

    monkeypatch.setattr(index_service, "COMPACTION_INTERVAL", 2)

    assert _lookups(build_index(memory_store, [tip])) == expected


def test_parallel_build_matches_sequential(history):
    with GitObjectStore.open(history["path"]) as store:
        tips = store.resolve_tips(head_only=False).tips
        sequential = build_index(store, tips)
        parallel = build_index(store, tips, threads=3, tree_cache_entries=0)

    assert _lookups(parallel) == _lookups(sequential)
    assert parallel.commits() == sequential.commits()


def test_build_reports_progress(memory_builder, memory_store):
    tip = _linear_history(memory_builder, 2)
    calls = []

    build_index(memory_store, [tip], progress=lambda *args: calls.append(args))

    assert calls[0] == (0, 2, "")
    assert calls[-1][:2] == (2, 2)


def test_open_index_without_cache_builds(history):
    result = open_index(IndexRequest(repository=history["path"]))

    assert result.status == IndexStatus.BUILT
    assert result.cache_saved is False
    assert result.index.lookup(hash_blob(b"side only\n")) == {history["side"]}


def test_open_index_writes_then_reuses_cache(history, tmp_path):
    cache_path = tmp_path / "cache" / "index.npz"
    request = IndexRequest(repository=history["path"], cache_path=cache_path)

    first = open_index(request)
    second = open_index(request)

    assert first.status == IndexStatus.BUILT
    assert first.cache_saved is True
    assert second.status == IndexStatus.LOADED
    assert second.generated_at
    assert _lookups(second.index) == _lookups(first.index)


def test_verify_policy_rebuilds_stale_cache(history, tmp_path):
    cache_path = tmp_path / "index.npz"
    open_index(IndexRequest(repository=history["path"], cache_path=cache_path, head_only=True))

    result = open_index(IndexRequest(repository=history["path"], cache_path=cache_path))

    assert result.status == IndexStatus.REBUILT_STALE
    assert result.cache_saved is True
    assert history["side"] in result.index.commits()
    assert load_index(cache_path).metadata.head_only is False


def test_trust_policy_skips_repository(history, tmp_path):
    cache_path = tmp_path / "index.npz"
    open_index(IndexRequest(repository=history["path"], cache_path=cache_path, head_only=True))

    result = open_index(
        IndexRequest(
            repository=tmp_path / "no-such-repo",
            cache_path=cache_path,
            cache_policy=CachePolicy.TRUST,
        )
    )

    assert result.status == IndexStatus.LOADED
    assert result.head_only is True
    assert history["side"] not in result.index.commits()


def test_rebuild_policy_ignores_cache(history, tmp_path):
    cache_path = tmp_path / "index.npz"
    save_index(cache_path, CompactIndex(), head_only=False, tips=[])

    result = open_index(
        IndexRequest(
            repository=history["path"],
            cache_path=cache_path,
            cache_policy=CachePolicy.REBUILD,
        )
    )

    assert result.status == IndexStatus.BUILT
    assert len(load_index(cache_path).index.commits()) == 3


def test_corrupt_cache_is_fatal(history, tmp_path):
    cache_path = tmp_path / "index.npz"
    cache_path.write_bytes(b"junk")
    with pytest.raises(CacheError):
        open_index(IndexRequest(repository=history["path"], cache_path=cache_path))


def test_missing_repository_is_fatal(tmp_path):
    with pytest.raises(RepositoryError):
        open_index(IndexRequest(repository=tmp_path / "missing"))
