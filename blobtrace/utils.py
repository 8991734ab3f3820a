"""Utility helpers for filesystem access and path handling."""

from __future__ import annotations

from pathlib import Path
from typing import List
import os
import stat

from .text import Messages

VCS_METADATA_DIRS = frozenset({".git", ".hg", ".svn", ".bzr", "CVS"})


def resolve_directory(path: Path | str) -> Path:
    """Resolve and validate a user supplied directory path."""
    dir_path = Path(path).expanduser().resolve()
    if not dir_path.exists():
        raise FileNotFoundError(Messages.ERROR_DIRECTORY_MISSING.format(path=dir_path))
    if not dir_path.is_dir():
        raise NotADirectoryError(Messages.ERROR_NOT_A_DIRECTORY.format(path=dir_path))
    return dir_path


def relative_posix(path: Path, root: Path) -> str:
    rel = path.relative_to(root)
    if rel == Path("."):
        return ""
    return rel.as_posix()


def collect_files(root: Path | str) -> List[Path]:
    """Collect every regular file and symlink under *root*, skipping VCS metadata.

    Symbolic links are returned as entries and never followed, including
    links that point at directories. FIFOs, sockets and device nodes are
    skipped since git cannot store them.
    """

    directory = resolve_directory(root)
    files: List[Path] = []
    for dirpath, dirnames, filenames in os.walk(directory, topdown=True, followlinks=False):
        current_dir = Path(dirpath)
        kept: list[str] = []
        for dirname in dirnames:
            if dirname in VCS_METADATA_DIRS:
                continue
            candidate = current_dir / dirname
            if candidate.is_symlink():
                files.append(candidate)
                continue
            kept.append(dirname)
        dirnames[:] = kept
        for filename in filenames:
            if filename in VCS_METADATA_DIRS:
                continue
            candidate = current_dir / filename
            if _is_storable(candidate):
                files.append(candidate)

    files.sort(key=lambda item: relative_posix(item, directory))
    return files


def _is_storable(path: Path) -> bool:
    mode = os.lstat(path).st_mode
    return stat.S_ISREG(mode) or stat.S_ISLNK(mode)


def ensure_positive(value: int, name: str) -> int:
    """Validate that *value* is positive."""
    if value <= 0:
        raise ValueError(f"{name} must be greater than 0")
    return value
