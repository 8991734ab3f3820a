import os

import pytest

from blobtrace.errors import InputError
from blobtrace.objects import format_object_id, hash_blob, hash_path, parse_object_id

EMPTY_BLOB = b"e69de29bb2d1d6434b8b29ae775ad8c2e48c5391"
HELLO_BLOB = b"ce013625030ba8dba906f756967f9e9ca394464a"


def test_hash_blob_matches_git():
    assert hash_blob(b"") == EMPTY_BLOB
    assert hash_blob(b"hello\n") == HELLO_BLOB


def test_parse_object_id_normalizes_case_and_whitespace():
    upper = HELLO_BLOB.decode().upper()
    assert parse_object_id(f"  {upper}\n") == HELLO_BLOB
    assert parse_object_id(HELLO_BLOB) == HELLO_BLOB


@pytest.mark.parametrize(
    "value",
    ["", "abc", "g" * 40, "a" * 41, "é" * 40, "a" * 20 + " " + "a" * 19],
)
def test_parse_object_id_rejects_malformed(value):
    with pytest.raises(InputError):
        parse_object_id(value)


def test_parse_object_id_custom_width():
    assert parse_object_id("ABCD", width=4) == b"abcd"


def test_format_object_id():
    assert format_object_id(HELLO_BLOB) == HELLO_BLOB.decode()


def test_hash_path_regular_file(tmp_path):
    target = tmp_path / "hello.txt"
    target.write_bytes(b"hello\n")
    assert hash_path(target) == HELLO_BLOB


@pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks unavailable")
def test_hash_path_symlink_hashes_target_string(tmp_path):
    (tmp_path / "hello.txt").write_bytes(b"hello\n")
    link = tmp_path / "link"
    link.symlink_to("hello.txt")
    assert hash_path(link) == hash_blob(b"hello.txt")
