"""Command line interface for blobtrace."""

from __future__ import annotations

import sys
from enum import Enum
from pathlib import Path
from typing import NoReturn

import click
import typer
from rich.console import Console
from typer.core import TyperGroup

from . import __version__
from .cache import CachePolicy
from .config import (
    SUPPORTED_TIE_BREAKS,
    load_config,
    normalize_cache_policy,
    normalize_min_score,
)
from .errors import CacheError, InputError, RepositoryError
from .index import ContentIndex
from .objects import format_object_id
from .output import build_progress, format_ready, render_match_table, report
from .services.config_service import apply_config_updates, get_config_snapshot
from .services.index_service import IndexRequest, IndexResult, IndexStatus, open_index
from .services.match_service import (
    DEFAULT_TOP_CANDIDATES,
    MatchPolicy,
    MatchResult,
    reconstruct_directory,
)
from .services.query_service import serve_lookups
from .text import Messages, Styles
from .utils import ensure_positive, resolve_directory

DEFAULT_COMMAND = "find"
_GROUP_TOKENS = frozenset({"--version", "-V", "--help", "-h"})

console = Console()


class DefaultFindGroup(TyperGroup):
    """Route anything that is not a subcommand to `find`.

    This keeps `blobtrace [OPTIONS] REPOSITORY [TREE]` working without
    naming the command.
    """

    def parse_args(self, ctx: click.Context, args: list[str]) -> list[str]:
        if args and args[0] not in self.commands and args[0] not in _GROUP_TOKENS:
            args = [DEFAULT_COMMAND, *args]
        return super().parse_args(ctx, args)


app = typer.Typer(
    help=Messages.APP_HELP,
    no_args_is_help=True,
    context_settings={"help_option_names": ["-h", "--help"]},
    cls=DefaultFindGroup,
)


class MatchOutputFormat(str, Enum):
    porcelain = "porcelain"
    rich = "rich"


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"blobtrace v{__version__}")
        raise typer.Exit()


def _fail(message: object) -> NoReturn:
    report(str(message), Styles.ERROR)
    raise typer.Exit(code=1)


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=_version_callback,
        is_eager=True,
        help=Messages.HELP_VERSION,
    )
) -> None:
    """Global Typer callback for shared options."""
    return None


@app.command(help=Messages.HELP_FIND)
def find(
    repository: Path = typer.Argument(..., help=Messages.HELP_REPOSITORY),
    tree: Path | None = typer.Argument(None, help=Messages.HELP_TREE),
    head_only: bool = typer.Option(False, "--head-only", help=Messages.HELP_HEAD_ONLY),
    cache_path: Path | None = typer.Option(
        None,
        "--cache-path",
        help=Messages.HELP_CACHE_PATH,
    ),
    no_compact: bool = typer.Option(False, "--no-compact", help=Messages.HELP_NO_COMPACT),
    cache_policy: str | None = typer.Option(
        None,
        "--cache-policy",
        help=Messages.HELP_CACHE_POLICY,
    ),
    threads: int | None = typer.Option(None, "--threads", "-t", help=Messages.HELP_THREADS),
    min_score: float | None = typer.Option(None, "--min-score", help=Messages.HELP_MIN_SCORE),
    output_format: MatchOutputFormat = typer.Option(
        MatchOutputFormat.porcelain,
        "--format",
        help=Messages.HELP_FORMAT,
    ),
    top: int = typer.Option(DEFAULT_TOP_CANDIDATES, "--top", "-k", help=Messages.HELP_TOP),
    quiet: bool = typer.Option(False, "--quiet", "-q", help=Messages.HELP_QUIET),
) -> None:
    """Index a repository, then answer lookups or match a tree."""
    config = load_config()
    try:
        policy_value = (
            normalize_cache_policy(cache_policy)
            if cache_policy is not None
            else config.cache_policy
        )
        score = normalize_min_score(min_score) if min_score is not None else config.min_score
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc
    thread_count = threads if threads is not None else config.threads
    if thread_count < 1:
        raise typer.BadParameter(Messages.ERROR_THREADS_INVALID)
    try:
        ensure_positive(top, "top")
    except ValueError as exc:
        raise typer.BadParameter(Messages.ERROR_TOP_INVALID) from exc

    tree_dir: Path | None = None
    if tree is not None:
        try:
            tree_dir = resolve_directory(tree)
        except (FileNotFoundError, NotADirectoryError) as exc:
            _fail(exc)

    request = IndexRequest(
        repository=repository,
        head_only=head_only,
        compact=not no_compact,
        threads=thread_count,
        tree_cache_entries=config.tree_cache_entries,
        cache_path=cache_path,
        cache_policy=CachePolicy(policy_value),
    )
    report(Messages.INFO_WALKING.format(path=repository), quiet=quiet)
    try:
        with build_progress(Messages.INFO_PROGRESS_COMMITS, quiet=quiet) as progress:
            result = open_index(request, progress=progress)
    except (RepositoryError, CacheError, OSError) as exc:
        _fail(exc)
    _report_index(result, quiet=quiet)

    if tree_dir is None:
        _serve_stdin(result.index, quiet=quiet)
        return
    policy = MatchPolicy(min_score=score, tie_break=tuple(config.tie_break), top=top)
    _match_tree(result.index, tree_dir, policy, output_format, quiet=quiet)


def _report_index(result: IndexResult, *, quiet: bool) -> None:
    if result.fell_back_to_head:
        report(Messages.WARNING_NO_BRANCH_TIPS, Styles.WARNING)
    if result.status == IndexStatus.LOADED:
        report(
            Messages.INFO_CACHE_LOADED.format(
                path=result.cache_path, generated_at=result.generated_at
            ),
            quiet=quiet,
        )
    elif result.status == IndexStatus.REBUILT_STALE:
        report(Messages.WARNING_CACHE_STALE.format(path=result.cache_path), Styles.WARNING)
    if result.cache_saved:
        report(Messages.INFO_CACHE_SAVED.format(path=result.cache_path), quiet=quiet)
    report(format_ready(result.index.stats()), quiet=quiet)


def _serve_stdin(index: ContentIndex, *, quiet: bool) -> None:
    report(Messages.INFO_WAITING, quiet=quiet)
    try:
        served = serve_lookups(index, sys.stdin, sys.stdout)
    except InputError as exc:
        _fail(exc)
    except OSError as exc:
        _fail(exc)
    plural = "" if served == 1 else "s"
    report(Messages.INFO_SERVED.format(count=served, plural=plural), quiet=quiet)


def _match_tree(
    index: ContentIndex,
    tree_dir: Path,
    policy: MatchPolicy,
    output_format: MatchOutputFormat,
    *,
    quiet: bool,
) -> None:
    try:
        with build_progress(Messages.INFO_PROGRESS_HASHING, quiet=quiet) as progress:
            hashed = 0

            def _on_file(path: Path) -> None:
                nonlocal hashed
                hashed += 1
                if progress is not None:
                    progress(hashed, 0, path.name)

            result = reconstruct_directory(index, tree_dir, policy, on_file=_on_file)
    except InputError as exc:
        _fail(exc)
    except OSError as exc:
        _fail(exc)

    if output_format == MatchOutputFormat.rich:
        render_match_table(result, str(tree_dir), console)
    else:
        typer.echo(
            format_object_id(result.commit)
            if result.commit is not None
            else Messages.NO_MATCH_INDICATOR
        )
    _report_match(result, tree_dir, policy, quiet=quiet)


def _report_match(result: MatchResult, tree_dir: Path, policy: MatchPolicy, *, quiet: bool) -> None:
    if result.matched and result.commit is not None:
        report(
            Messages.INFO_MATCH.format(
                commit=format_object_id(result.commit),
                hits=result.hits,
                total=result.query_size,
                score=result.score,
            ),
            Styles.SUCCESS,
            quiet=quiet,
        )
        return
    if result.candidates:
        best = result.candidates[0]
        report(
            Messages.INFO_BELOW_THRESHOLD.format(
                commit=format_object_id(best.commit),
                hits=best.hits,
                total=result.query_size,
                score=best.score,
                minimum=policy.min_score,
            ),
            Styles.WARNING,
        )
        return
    report(Messages.INFO_NO_MATCH.format(path=tree_dir), Styles.WARNING)


@app.command(help=Messages.HELP_CONFIG)
def config(
    set_min_score_option: float | None = typer.Option(
        None,
        "--set-min-score",
        help=Messages.HELP_SET_MIN_SCORE,
    ),
    set_threads_option: int | None = typer.Option(
        None,
        "--set-threads",
        help=Messages.HELP_SET_THREADS,
    ),
    set_cache_policy_option: str | None = typer.Option(
        None,
        "--set-cache-policy",
        help=Messages.HELP_SET_CACHE_POLICY,
    ),
    set_tie_break_option: str | None = typer.Option(
        None,
        "--set-tie-break",
        help=Messages.HELP_SET_TIE_BREAK.format(allowed=", ".join(SUPPORTED_TIE_BREAKS)),
    ),
    set_tree_cache_option: int | None = typer.Option(
        None,
        "--set-tree-cache",
        help=Messages.HELP_SET_TREE_CACHE,
    ),
    show: bool = typer.Option(False, "--show", help=Messages.HELP_SHOW_CONFIG),
) -> None:
    """Manage blobtrace configuration stored in ~/.blobtrace/config.json."""
    try:
        updates = apply_config_updates(
            min_score=set_min_score_option,
            threads=set_threads_option,
            cache_policy=set_cache_policy_option,
            tie_break=set_tie_break_option,
            tree_cache_entries=set_tree_cache_option,
        )
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc

    snapshot = get_config_snapshot()
    if updates.min_score_set:
        console.print(
            f"[{Styles.SUCCESS}]{Messages.INFO_MIN_SCORE_SET.format(value=snapshot.min_score)}[/{Styles.SUCCESS}]"
        )
    if updates.threads_set:
        console.print(
            f"[{Styles.SUCCESS}]{Messages.INFO_THREADS_SET.format(value=snapshot.threads)}[/{Styles.SUCCESS}]"
        )
    if updates.cache_policy_set:
        console.print(
            f"[{Styles.SUCCESS}]{Messages.INFO_CACHE_POLICY_SET.format(value=snapshot.cache_policy)}[/{Styles.SUCCESS}]"
        )
    if updates.tie_break_set:
        console.print(
            f"[{Styles.SUCCESS}]{Messages.INFO_TIE_BREAK_SET.format(value=', '.join(snapshot.tie_break))}[/{Styles.SUCCESS}]"
        )
    if updates.tree_cache_entries_set:
        console.print(
            f"[{Styles.SUCCESS}]{Messages.INFO_TREE_CACHE_SET.format(value=snapshot.tree_cache_entries)}[/{Styles.SUCCESS}]"
        )
    if show or not updates.changed:
        console.print(
            Messages.INFO_CONFIG_SUMMARY.format(
                min_score=snapshot.min_score,
                tie_break=", ".join(snapshot.tie_break),
                threads=snapshot.threads,
                cache_policy=snapshot.cache_policy,
                tree_cache_entries=snapshot.tree_cache_entries,
            ),
            highlight=False,
        )


def run(argv: list[str] | None = None) -> None:
    """Entry point wrapper allowing optional argument override."""
    if argv is None:
        app()
    else:
        app(args=list(argv))
