from blobtrace.errors import (
    BlobtraceError,
    CacheError,
    CacheNotFoundError,
    InputError,
    RepositoryError,
)


def test_error_taxonomy():
    assert issubclass(InputError, BlobtraceError)
    assert issubclass(InputError, ValueError)
    assert issubclass(RepositoryError, BlobtraceError)
    assert issubclass(CacheError, BlobtraceError)
    assert issubclass(CacheNotFoundError, CacheError)
    assert issubclass(CacheNotFoundError, FileNotFoundError)
    assert not issubclass(RepositoryError, ValueError)
