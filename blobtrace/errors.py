"""Exception taxonomy shared by the blobtrace engine and CLI."""

from __future__ import annotations


class BlobtraceError(Exception):
    """Base class for fatal blobtrace failures."""


class InputError(BlobtraceError, ValueError):
    """Raised for malformed arguments, malformed object ids or empty queries."""


class RepositoryError(BlobtraceError, RuntimeError):
    """Raised when the object store is unreadable, corrupt or lacks a starting ref."""


class CacheError(BlobtraceError, RuntimeError):
    """Raised when an index cache file is unreadable, corrupt or incompatible."""


class CacheNotFoundError(CacheError, FileNotFoundError):
    """Raised when no cache file exists at the requested path."""
