"""Public Python API for blobtrace."""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Iterable, Sequence

from .cache import CachePolicy
from .config import (
    Config,
    config_dir_context,
    config_from_json,
    load_config,
    set_config_dir,
)
from .errors import InputError
from .index import ContentIndex
from .objects import parse_object_id
from .services.index_service import IndexRequest, IndexResult, open_index as _open_index
from .services.match_service import MatchPolicy, MatchResult
from .services.match_service import reconstruct as _reconstruct
from .services.match_service import reconstruct_directory as _reconstruct_directory
from .text import Messages
from .utils import resolve_directory

ConfigInput = Config | Mapping[str, object] | str


def _resolve_settings(
    config: ConfigInput | None,
    config_dir: Path | str | None,
) -> Config:
    """Return *config* as a Config, layered over the stored config when partial.

    A mapping or JSON string only overrides the keys it names; *config_dir*
    chooses which stored config it is layered over.
    """
    if isinstance(config, Config):
        return config
    with config_dir_context(config_dir):
        base = load_config()
    if config is None:
        return base
    try:
        return config_from_json(config, base=base)
    except ValueError as exc:
        raise InputError(str(exc)) from exc


def use_config_dir(path: Path | str | None) -> None:
    """Set the directory holding config.json for later calls; None restores the default."""
    set_config_dir(path)


def open_index(
    repository: Path | str,
    *,
    head_only: bool = False,
    compact: bool = True,
    cache_path: Path | str | None = None,
    cache_policy: CachePolicy | str | None = None,
    threads: int | None = None,
    config: ConfigInput | None = None,
    config_dir: Path | str | None = None,
) -> IndexResult:
    """Build the blob index for *repository*, or load it from *cache_path*."""

    settings = _resolve_settings(config, config_dir)
    try:
        policy = CachePolicy(cache_policy or settings.cache_policy)
    except ValueError as exc:
        raise InputError(
            Messages.ERROR_CACHE_POLICY_INVALID.format(
                value=cache_policy,
                allowed=", ".join(item.value for item in CachePolicy),
            )
        ) from exc
    resolved_threads = settings.threads if threads is None else threads
    if resolved_threads < 1:
        raise InputError(Messages.ERROR_THREADS_INVALID)
    request = IndexRequest(
        repository=Path(repository),
        head_only=head_only,
        compact=compact,
        threads=resolved_threads,
        tree_cache_entries=settings.tree_cache_entries,
        cache_path=Path(cache_path) if cache_path is not None else None,
        cache_policy=policy,
    )
    return _open_index(request)


def lookup(index: ContentIndex, blob_id: str | bytes) -> list[str]:
    """Return the hex ids of every commit containing *blob_id*, most recent first."""
    commits = index.sort_commits(index.lookup(parse_object_id(blob_id)))
    return [commit.decode("ascii") for commit in commits]


def _policy(
    min_score: float | None,
    tie_break: Sequence[str] | None,
    config: ConfigInput | None,
    config_dir: Path | str | None,
) -> MatchPolicy:
    settings = _resolve_settings(config, config_dir)
    score = settings.min_score if min_score is None else min_score
    if not 0.0 <= score <= 1.0:
        raise InputError(Messages.ERROR_MIN_SCORE_RANGE.format(value=score))
    return MatchPolicy(
        min_score=score,
        tie_break=tuple(tie_break) if tie_break is not None else tuple(settings.tie_break),
    )


def reconstruct(
    index: ContentIndex,
    blob_ids: Iterable[str | bytes],
    *,
    min_score: float | None = None,
    tie_break: Sequence[str] | None = None,
    config: ConfigInput | None = None,
    config_dir: Path | str | None = None,
) -> MatchResult:
    """Pick the commit that best explains a set of blob ids."""
    query = [parse_object_id(blob_id) for blob_id in blob_ids]
    return _reconstruct(index, query, _policy(min_score, tie_break, config, config_dir))


def reconstruct_directory(
    index: ContentIndex,
    directory: Path | str,
    *,
    min_score: float | None = None,
    tie_break: Sequence[str] | None = None,
    config: ConfigInput | None = None,
    config_dir: Path | str | None = None,
) -> MatchResult:
    """Pick the commit that best explains the files under *directory*."""
    return _reconstruct_directory(
        index,
        resolve_directory(directory),
        _policy(min_score, tie_break, config, config_dir),
    )
