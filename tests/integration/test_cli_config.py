import json
import re

from typer.testing import CliRunner

from blobtrace.cli import app
from blobtrace.config import DEFAULT_TREE_CACHE_ENTRIES


ANSI_RE = re.compile(r"\x1b\[[0-9;]*m")


def strip_ansi(text: str) -> str:
    return ANSI_RE.sub("", text)


def test_config_show_defaults(temp_config_home):
    runner = CliRunner()
    result = runner.invoke(app, ["config", "--show"])

    assert result.exit_code == 0
    output = strip_ansi(result.stdout)
    assert "Minimum score: 0.0" in output
    assert "smallest-snapshot, most-recent" in output
    assert f"Tree cache entries: {DEFAULT_TREE_CACHE_ENTRIES}" in output


def test_config_updates_are_stored(temp_config_home):
    runner = CliRunner()
    result = runner.invoke(
        app,
        [
            "config",
            "--set-min-score",
            "0.6",
            "--set-threads",
            "2",
            "--set-cache-policy",
            "rebuild",
            "--set-tie-break",
            "oldest,largest-snapshot",
            "--set-tree-cache",
            "16",
        ],
    )

    assert result.exit_code == 0
    output = strip_ansi(result.stdout)
    assert "Default minimum score set to 0.6" in output
    assert "Tie-break order set to oldest, largest-snapshot" in output
    stored = json.loads(temp_config_home.read_text())
    assert stored["threads"] == 2
    assert stored["cache_policy"] == "rebuild"
    assert stored["tie_break"] == ["oldest", "largest-snapshot"]
    assert stored["tree_cache_entries"] == 16


def test_config_rejects_invalid_values(temp_config_home):
    runner = CliRunner()
    result = runner.invoke(app, ["config", "--set-tie-break", "alphabetical"])

    assert result.exit_code == 2
    assert not temp_config_home.exists()


def test_config_min_score_applies_to_find(history, tmp_path, temp_config_home):
    tree = tmp_path / "export"
    tree.mkdir()
    (tree / "README").write_bytes(b"readme\n")
    (tree / "x.txt").write_bytes(b"x\n")
    runner = CliRunner()

    runner.invoke(app, ["config", "--set-min-score", "0.9"])
    from_config = runner.invoke(app, ["--quiet", str(history["path"]), str(tree)])
    overridden = runner.invoke(
        app, ["--quiet", "--min-score", "0", str(history["path"]), str(tree)]
    )

    assert from_config.stdout.strip() == "no-match"
    assert overridden.stdout.strip() != "no-match"
