"""Logic helpers for the `blobtrace config` command."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from ..config import (
    Config,
    load_config,
    set_cache_policy,
    set_min_score,
    set_threads,
    set_tie_break,
    set_tree_cache_entries,
)


@dataclass(slots=True)
class ConfigUpdateResult:
    min_score_set: bool = False
    threads_set: bool = False
    cache_policy_set: bool = False
    tie_break_set: bool = False
    tree_cache_entries_set: bool = False

    @property
    def changed(self) -> bool:
        return any(
            (
                self.min_score_set,
                self.threads_set,
                self.cache_policy_set,
                self.tie_break_set,
                self.tree_cache_entries_set,
            )
        )


def apply_config_updates(
    *,
    min_score: float | None = None,
    threads: int | None = None,
    cache_policy: str | None = None,
    tie_break: Sequence[str] | str | None = None,
    tree_cache_entries: int | None = None,
) -> ConfigUpdateResult:
    """Apply config mutations and report which fields were updated."""

    result = ConfigUpdateResult()
    if min_score is not None:
        set_min_score(min_score)
        result.min_score_set = True
    if threads is not None:
        set_threads(threads)
        result.threads_set = True
    if cache_policy is not None:
        set_cache_policy(cache_policy)
        result.cache_policy_set = True
    if tie_break is not None:
        set_tie_break(tie_break)
        result.tie_break_set = True
    if tree_cache_entries is not None:
        set_tree_cache_entries(tree_cache_entries)
        result.tree_cache_entries_set = True
    return result


def get_config_snapshot() -> Config:
    """Return the current configuration dataclass."""

    return load_config()
