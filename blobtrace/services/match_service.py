"""Logic helpers for matching a source tree against the index."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Iterable, Sequence

from ..config import DEFAULT_MIN_SCORE, DEFAULT_TIE_BREAK, SUPPORTED_TIE_BREAKS
from ..errors import InputError
from ..flatten import ContentEntry, content_set, scan_directory
from ..index import CommitRecord, ContentIndex
from ..text import Messages

DEFAULT_TOP_CANDIDATES = 5


class MatchStatus(str, Enum):
    MATCHED = "matched"
    NO_MATCH = "no_match"


@dataclass(slots=True)
class MatchPolicy:
    """Threshold and ordering rules for picking a commit.

    ``min_score`` is the smallest fraction of query files that must be found
    in a commit for it to be reported. ``tie_break`` orders commits with equal
    scores; the commit id is always the final key.
    """

    min_score: float = DEFAULT_MIN_SCORE
    tie_break: tuple[str, ...] = DEFAULT_TIE_BREAK
    top: int = DEFAULT_TOP_CANDIDATES


@dataclass(frozen=True, slots=True)
class Candidate:
    commit: bytes
    hits: int
    score: float
    content_count: int
    rank: int


@dataclass(slots=True)
class MatchResult:
    status: MatchStatus
    query_size: int
    commit: bytes | None = None
    score: float = 0.0
    hits: int = 0
    candidates: Sequence[Candidate] = field(default_factory=tuple)
    entries: Sequence[ContentEntry] = field(default_factory=tuple)

    @property
    def matched(self) -> bool:
        return self.status == MatchStatus.MATCHED


_TIE_BREAK_KEYS: dict[str, Callable[[Candidate], int]] = {
    "smallest-snapshot": lambda candidate: candidate.content_count,
    "largest-snapshot": lambda candidate: -candidate.content_count,
    "most-recent": lambda candidate: candidate.rank,
    "oldest": lambda candidate: -candidate.rank,
}


def _ranking_key(tie_break: Sequence[str]) -> Callable[[Candidate], tuple]:
    unknown = [name for name in tie_break if name not in _TIE_BREAK_KEYS]
    if unknown:
        allowed = ", ".join(SUPPORTED_TIE_BREAKS)
        raise InputError(Messages.ERROR_TIE_BREAK_INVALID.format(value=unknown[0], allowed=allowed))
    extractors = [_TIE_BREAK_KEYS[name] for name in tie_break]

    def _key(candidate: Candidate) -> tuple:
        return (
            -candidate.hits,
            *(extract(candidate) for extract in extractors),
            candidate.commit,
        )

    return _key


def rank_candidates(
    index: ContentIndex,
    query: frozenset[bytes],
    tie_break: Sequence[str] = DEFAULT_TIE_BREAK,
) -> list[Candidate]:
    """Return every commit sharing content with *query*, best first.

    Scores share the denominator ``len(query)``, so sorting by hit count is
    the same as sorting by score.
    """

    total = len(query)
    if total == 0:
        raise InputError(Messages.ERROR_EMPTY_QUERY_SET)
    key = _ranking_key(tie_break)
    candidates: list[Candidate] = []
    for commit, hits in index.hit_counts(query).items():
        record = index.commit_record(commit) or CommitRecord(rank=1 << 62, content_count=0)
        candidates.append(
            Candidate(
                commit=commit,
                hits=hits,
                score=hits / total,
                content_count=record.content_count,
                rank=record.rank,
            )
        )
    candidates.sort(key=key)
    return candidates


def reconstruct(
    index: ContentIndex,
    query: Iterable[bytes],
    policy: MatchPolicy | None = None,
) -> MatchResult:
    """Pick the commit whose snapshot best explains *query*."""

    policy = policy or MatchPolicy()
    query_set = frozenset(query)
    candidates = rank_candidates(index, query_set, policy.tie_break)
    shown = tuple(candidates[: max(policy.top, 1)])
    if not candidates:
        return MatchResult(status=MatchStatus.NO_MATCH, query_size=len(query_set))
    best = candidates[0]
    if best.score < policy.min_score:
        return MatchResult(
            status=MatchStatus.NO_MATCH,
            query_size=len(query_set),
            score=best.score,
            hits=best.hits,
            candidates=shown,
        )
    return MatchResult(
        status=MatchStatus.MATCHED,
        query_size=len(query_set),
        commit=best.commit,
        score=best.score,
        hits=best.hits,
        candidates=shown,
    )


def reconstruct_directory(
    index: ContentIndex,
    directory: Path,
    policy: MatchPolicy | None = None,
    *,
    on_file: Callable[[Path], None] | None = None,
) -> MatchResult:
    """Hash every file under *directory* and reconstruct its commit."""

    entries = scan_directory(directory, on_file=on_file)
    if not entries:
        raise InputError(Messages.ERROR_EMPTY_QUERY.format(path=directory))
    result = reconstruct(index, content_set(entries), policy)
    result.entries = tuple(entries)
    return result
