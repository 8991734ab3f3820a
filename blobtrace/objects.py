"""Object id helpers and git-compatible blob hashing."""

from __future__ import annotations

import os
import re
from pathlib import Path

from dulwich.objects import Blob

from .errors import InputError
from .text import Messages

HEX_WIDTH = 40

_HEX_RE = re.compile(rb"[0-9a-fA-F]+")


def parse_object_id(value: str | bytes, *, width: int = HEX_WIDTH) -> bytes:
    """Return *value* as a lowercase hex object id, raising InputError when malformed."""

    if isinstance(value, str):
        try:
            raw = value.strip().encode("ascii")
        except UnicodeEncodeError as exc:
            raise InputError(
                Messages.ERROR_OBJECT_ID_INVALID.format(value=value, width=width)
            ) from exc
    else:
        raw = bytes(value).strip()
    if len(raw) != width or _HEX_RE.fullmatch(raw) is None:
        shown = raw.decode("ascii", errors="replace")
        raise InputError(Messages.ERROR_OBJECT_ID_INVALID.format(value=shown, width=width))
    return raw.lower()


def format_object_id(oid: bytes) -> str:
    return oid.decode("ascii")


def hash_blob(data: bytes) -> bytes:
    """Return the id git assigns to a blob holding *data*."""
    return Blob.from_string(data).id


def hash_path(path: Path) -> bytes:
    """Hash a file the way git stores it.

    Symbolic links are not followed: git records a link as a blob holding the
    target path, so that string is what gets hashed.
    """
    if path.is_symlink():
        return hash_blob(os.fsencode(os.readlink(path)))
    return hash_blob(path.read_bytes())
