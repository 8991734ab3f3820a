from __future__ import annotations

import os

import pytest

import blobtrace.utils as utils


def test_resolve_directory_validates(tmp_path):
    with pytest.raises(FileNotFoundError):
        utils.resolve_directory(tmp_path / "missing")

    file_path = tmp_path / "file.txt"
    file_path.write_text("x", encoding="utf-8")
    with pytest.raises(NotADirectoryError):
        utils.resolve_directory(file_path)

    assert utils.resolve_directory(tmp_path) == tmp_path.resolve()


def test_relative_posix(tmp_path):
    assert utils.relative_posix(tmp_path, tmp_path) == ""
    assert utils.relative_posix(tmp_path / "a" / "b.txt", tmp_path) == "a/b.txt"


def test_collect_files_skips_vcs_metadata(tmp_path):
    root = tmp_path.resolve()
    for name in (".git", ".hg", ".svn", "CVS"):
        (root / name).mkdir()
        (root / name / "data").write_text("x")
    (root / "pkg").mkdir()
    (root / "pkg" / ".hgignore").write_text("x")
    (root / "top.txt").write_text("x")

    files = utils.collect_files(root)

    assert [utils.relative_posix(path, root) for path in files] == [
        "pkg/.hgignore",
        "top.txt",
    ]


def test_ensure_positive():
    assert utils.ensure_positive(3, "top") == 3
    with pytest.raises(ValueError, match="top"):
        utils.ensure_positive(0, "top")


@pytest.mark.skipif(not hasattr(os, "mkfifo"), reason="named pipes unavailable")
def test_collect_files_keeps_only_regular_files_and_links(tmp_path):
    root = tmp_path.resolve()
    (root / "file.txt").write_text("x")
    (root / "link").symlink_to("file.txt")
    os.mkfifo(root / "pipe")

    files = utils.collect_files(root)

    assert [path.name for path in files] == ["file.txt", "link"]
