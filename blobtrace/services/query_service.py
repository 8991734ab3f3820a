"""Line protocol for answering blob lookups."""

from __future__ import annotations

from typing import Iterable, TextIO

from ..errors import InputError
from ..index import ContentIndex
from ..objects import HEX_WIDTH, format_object_id, parse_object_id
from ..text import Messages


def lookup_line(index: ContentIndex, line: str, *, width: int = HEX_WIDTH) -> str:
    """Answer one protocol line: the commits containing the blob, most recent first."""
    blob_id = parse_object_id(line.rstrip("\r\n"), width=width)
    commits = index.sort_commits(index.lookup(blob_id))
    return " ".join(format_object_id(commit) for commit in commits)


def serve_lookups(
    index: ContentIndex,
    lines: Iterable[str],
    out: TextIO,
    *,
    width: int = HEX_WIDTH,
) -> int:
    """Write exactly one answer line per input line, flushing after each.

    A malformed line aborts the whole run with an InputError naming the line.
    """

    served = 0
    for number, line in enumerate(lines, start=1):
        try:
            answer = lookup_line(index, line, width=width)
        except InputError as exc:
            raise InputError(Messages.ERROR_LINE_INVALID.format(line=number, reason=exc)) from exc
        out.write(answer)
        out.write("\n")
        out.flush()
        served += 1
    return served
