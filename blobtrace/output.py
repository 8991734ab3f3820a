"""Helpers for rendering diagnostics and results with Rich.

Standard output carries the lookup protocol and match results, so every
human-oriented message goes through ``err_console`` on standard error.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from rich.console import Console
from rich.markup import escape
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

from .index import IndexStats
from .objects import format_object_id
from .services.index_service import ProgressCallback
from .services.match_service import MatchResult
from .text import Messages, Styles

err_console = Console(stderr=True)


def styled(text: str, style: str) -> str:
    return f"[{style}]{escape(text)}[/{style}]"


def report(message: str, style: str = Styles.INFO, *, quiet: bool = False) -> None:
    """Print *message* on stderr unless *quiet*; errors and warnings always show."""
    if quiet and style == Styles.INFO:
        return
    err_console.print(styled(message, style), highlight=False)


@contextmanager
def build_progress(description: str, *, quiet: bool = False) -> Iterator[ProgressCallback | None]:
    """Yield a ``(current, total, status)`` callback driving a transient progress bar."""

    if quiet:
        yield None
        return
    progress = Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TextColumn("{task.fields[status]}"),
        TimeElapsedColumn(),
        console=err_console,
        transient=True,
    )
    task_id = progress.add_task(description, total=None, status="")

    def _callback(current: int, total: int, status: str) -> None:
        progress.update(
            task_id,
            completed=current,
            total=total if total > 0 else None,
            status=status,
        )

    with progress:
        yield _callback


def format_ready(stats: IndexStats) -> str:
    return Messages.INFO_READY.format(
        commits=stats.commits,
        blobs=stats.blobs,
        references=stats.references,
        postings=stats.blobs,
        unique=stats.stored_posting_lists,
    )


def render_match_table(result: MatchResult, label: str, console: Console) -> None:
    table = Table(
        title=Messages.TABLE_TITLE.format(path=label),
        header_style=Styles.TABLE_HEADER,
        title_style=Styles.TITLE,
    )
    table.add_column(Messages.TABLE_HEADER_INDEX, justify="right")
    table.add_column(Messages.TABLE_HEADER_COMMIT, overflow="fold")
    table.add_column(Messages.TABLE_HEADER_SCORE, justify="right")
    table.add_column(Messages.TABLE_HEADER_HITS, justify="right")
    table.add_column(Messages.TABLE_HEADER_SNAPSHOT, justify="right")
    for position, candidate in enumerate(result.candidates, start=1):
        commit = format_object_id(candidate.commit)
        if result.commit == candidate.commit:
            commit = styled(commit, Styles.SUCCESS)
        table.add_row(
            str(position),
            commit,
            f"{candidate.score:.3f}",
            f"{candidate.hits}/{result.query_size}",
            str(candidate.content_count),
        )
    console.print(table)
