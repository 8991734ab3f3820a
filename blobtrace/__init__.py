"""blobtrace package initialization."""

from __future__ import annotations

from .api import lookup, open_index, reconstruct, reconstruct_directory, use_config_dir
from .errors import BlobtraceError, CacheError, InputError, RepositoryError

__all__ = [
    "__version__",
    "BlobtraceError",
    "CacheError",
    "InputError",
    "RepositoryError",
    "get_version",
    "lookup",
    "open_index",
    "reconstruct",
    "reconstruct_directory",
    "use_config_dir",
]

__version__ = "0.1.0"


def get_version() -> str:
    """Return the current package version."""
    return __version__
