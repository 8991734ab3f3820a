"""Binary persistence of compacted indices.

A cache file is a numpy ``.npz`` archive holding the arrays of
:class:`~blobtrace.index.IndexArrays` plus a small metadata block: a format
marker, the format version, the traversal mode and the starting commits the
index was built from.
"""

from __future__ import annotations

import binascii
import os
import tempfile
import zipfile
from dataclasses import dataclass, fields
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Sequence

import numpy as np

from .errors import CacheError, CacheNotFoundError
from .index import CompactIndex, ContentIndex, IndexArrays, PlainIndex
from .text import Messages

CACHE_MAGIC = "blobtrace-index"
CACHE_VERSION = 1

_ARRAY_FIELDS = tuple(field.name for field in fields(IndexArrays))


class CachePolicy(str, Enum):
    """How an existing cache file is treated when an index is requested."""

    VERIFY = "verify"
    TRUST = "trust"
    REBUILD = "rebuild"


@dataclass(frozen=True, slots=True)
class CacheMetadata:
    version: int
    generated_at: str
    head_only: bool
    tips: tuple[bytes, ...]

    def matches(self, *, head_only: bool, tips: Sequence[bytes]) -> bool:
        """Return True if the cache was built from the same starting refs."""
        return self.head_only == head_only and set(self.tips) == set(tips)


@dataclass(slots=True)
class CachedIndex:
    index: CompactIndex
    metadata: CacheMetadata


def _tips_to_array(tips: Sequence[bytes]) -> np.ndarray:
    raw = [binascii.unhexlify(tip) for tip in sorted(set(tips))]
    width = len(raw[0]) if raw else 20
    return np.frombuffer(b"".join(raw), dtype=np.uint8).reshape(len(raw), width)


def _tips_from_array(array: np.ndarray) -> tuple[bytes, ...]:
    if array.ndim != 2:
        raise ValueError("tip table must be two dimensional")
    return tuple(binascii.hexlify(row.tobytes()) for row in np.asarray(array, dtype=np.uint8))


def save_index(
    path: Path | str,
    index: ContentIndex,
    *,
    head_only: bool,
    tips: Sequence[bytes],
) -> Path:
    """Write *index* to *path*, replacing any existing file atomically."""

    target = Path(path).expanduser()
    if isinstance(index, PlainIndex):
        compact = index.to_compact()
    elif isinstance(index, CompactIndex):
        compact = index
    else:  # pragma: no cover - only two index kinds exist
        raise TypeError(f"cannot persist {type(index).__name__}")
    arrays = compact.to_arrays()
    payload = {name: getattr(arrays, name) for name in _ARRAY_FIELDS}
    payload.update(
        magic=np.array(CACHE_MAGIC),
        version=np.array(CACHE_VERSION, dtype=np.int64),
        generated_at=np.array(datetime.now(timezone.utc).isoformat()),
        head_only=np.array(bool(head_only)),
        tips=_tips_to_array(tips),
    )
    tmp_name: str | None = None
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{target.name}.", suffix=".tmp", dir=target.parent
        )
        with os.fdopen(fd, "wb") as handle:
            np.savez_compressed(handle, **payload)
        os.replace(tmp_name, target)
        tmp_name = None
    except OSError as exc:
        raise CacheError(Messages.ERROR_CACHE_WRITE.format(path=target, reason=exc)) from exc
    finally:
        if tmp_name is not None and os.path.exists(tmp_name):
            os.unlink(tmp_name)
    return target


def load_index(path: Path | str) -> CachedIndex:
    """Read a cache file written by :func:`save_index`.

    Raises CacheNotFoundError when *path* does not exist and CacheError when
    it cannot be read, is not a blobtrace cache, or has another version.
    """

    source = Path(path).expanduser()
    if not source.is_file():
        raise CacheNotFoundError(Messages.ERROR_CACHE_MISSING.format(path=source))
    try:
        data = np.load(source, allow_pickle=False)
        if not isinstance(data, np.lib.npyio.NpzFile):
            raise CacheError(Messages.ERROR_CACHE_MAGIC.format(path=source))
        with data:
            if "magic" not in data.files:
                raise CacheError(Messages.ERROR_CACHE_MAGIC.format(path=source))
            if str(data["magic"]) != CACHE_MAGIC:
                raise CacheError(Messages.ERROR_CACHE_MAGIC.format(path=source))
            version = int(data["version"]) if "version" in data.files else -1
            if version != CACHE_VERSION:
                raise CacheError(
                    Messages.ERROR_CACHE_VERSION.format(
                        path=source, found=version, expected=CACHE_VERSION
                    )
                )
            metadata = CacheMetadata(
                version=version,
                generated_at=str(data["generated_at"]),
                head_only=bool(data["head_only"]),
                tips=_tips_from_array(data["tips"]),
            )
            arrays = IndexArrays(**{name: data[name] for name in _ARRAY_FIELDS})
        index = CompactIndex.from_arrays(arrays)
    except CacheError:
        raise
    except (OSError, ValueError, KeyError, EOFError, zipfile.BadZipFile) as exc:
        raise CacheError(
            Messages.ERROR_CACHE_UNREADABLE.format(path=source, reason=exc)
        ) from exc
    return CachedIndex(index=index, metadata=metadata)
