"""Global configuration management for blobtrace."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from contextlib import contextmanager
from contextvars import ContextVar
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Dict, Sequence

from .text import Messages

DEFAULT_CONFIG_DIR = Path(os.path.expanduser("~")) / ".blobtrace"
CONFIG_DIR = DEFAULT_CONFIG_DIR
CONFIG_FILE = CONFIG_DIR / "config.json"
_CONFIG_DIR_OVERRIDE: ContextVar[Path | None] = ContextVar(
    "blobtrace_config_dir_override",
    default=None,
)
DEFAULT_MIN_SCORE = 0.0
DEFAULT_THREADS = 1
DEFAULT_CACHE_POLICY = "verify"
DEFAULT_TREE_CACHE_ENTRIES = 4_096
DEFAULT_TIE_BREAK: tuple[str, ...] = ("smallest-snapshot", "most-recent")
SUPPORTED_CACHE_POLICIES: tuple[str, ...] = (DEFAULT_CACHE_POLICY, "trust", "rebuild")
SUPPORTED_TIE_BREAKS: tuple[str, ...] = (
    "smallest-snapshot",
    "largest-snapshot",
    "most-recent",
    "oldest",
)
MAX_THREADS = max(1, os.cpu_count() or 1) * 4


@dataclass
class Config:
    min_score: float = DEFAULT_MIN_SCORE
    tie_break: tuple[str, ...] = field(default_factory=lambda: DEFAULT_TIE_BREAK)
    threads: int = DEFAULT_THREADS
    cache_policy: str = DEFAULT_CACHE_POLICY
    tree_cache_entries: int = DEFAULT_TREE_CACHE_ENTRIES


def _resolve_config_dir() -> Path:
    override = _CONFIG_DIR_OVERRIDE.get()
    return override if override is not None else CONFIG_DIR


def _resolve_config_file() -> Path:
    override = _CONFIG_DIR_OVERRIDE.get()
    if override is not None:
        return override / "config.json"
    return CONFIG_FILE


@contextmanager
def config_dir_context(path: Path | str | None):
    """Temporarily override the config directory for the current context."""

    if path is None:
        yield
        return
    dir_path = Path(path).expanduser().resolve()
    if dir_path.exists() and not dir_path.is_dir():
        raise NotADirectoryError(Messages.ERROR_NOT_A_DIRECTORY.format(path=dir_path))
    token = _CONFIG_DIR_OVERRIDE.set(dir_path)
    try:
        yield
    finally:
        _CONFIG_DIR_OVERRIDE.reset(token)


def set_config_dir(path: Path | str | None) -> None:
    global CONFIG_DIR, CONFIG_FILE
    if path is None:
        CONFIG_DIR = DEFAULT_CONFIG_DIR
    else:
        dir_path = Path(path).expanduser().resolve()
        if dir_path.exists() and not dir_path.is_dir():
            raise NotADirectoryError(Messages.ERROR_NOT_A_DIRECTORY.format(path=dir_path))
        CONFIG_DIR = dir_path
    CONFIG_FILE = CONFIG_DIR / "config.json"


def load_config() -> Config:
    """Read the config file, falling back to defaults for absent or unusable values."""
    config_file = _resolve_config_file()
    if not config_file.exists():
        return Config()
    raw = json.loads(config_file.read_text(encoding="utf-8"))
    if not isinstance(raw, Mapping):
        return Config()
    config = Config()
    for key, apply in (
        ("min_score", _apply_min_score),
        ("tie_break", _apply_tie_break),
        ("threads", _apply_threads),
        ("cache_policy", _apply_cache_policy),
        ("tree_cache_entries", _apply_tree_cache_entries),
    ):
        if key not in raw:
            continue
        try:
            apply(config, raw[key])
        except ValueError:
            continue
    return config


def save_config(config: Config) -> None:
    config_dir = _resolve_config_dir()
    config_dir.mkdir(parents=True, exist_ok=True)
    data: Dict[str, Any] = {
        "min_score": config.min_score,
        "tie_break": list(config.tie_break),
        "threads": config.threads,
        "cache_policy": config.cache_policy,
        "tree_cache_entries": config.tree_cache_entries,
    }
    config_file = _resolve_config_file()
    config_file.write_text(
        json.dumps(data, ensure_ascii=False, indent=2),
        encoding="utf-8",
    )


def config_from_json(
    payload: str | Mapping[str, object], *, base: Config | None = None
) -> Config:
    """Return a Config from a JSON string or mapping without saving it."""
    data = _coerce_config_payload(payload)
    config = Config() if base is None else _clone_config(base)
    _apply_config_payload(config, data)
    return config


def set_min_score(value: float) -> None:
    config = load_config()
    _apply_min_score(config, value)
    save_config(config)


def set_threads(value: int) -> None:
    config = load_config()
    _apply_threads(config, value)
    save_config(config)


def set_cache_policy(value: str) -> None:
    config = load_config()
    _apply_cache_policy(config, value)
    save_config(config)


def set_tie_break(value: Sequence[str] | str) -> None:
    config = load_config()
    _apply_tie_break(config, value)
    save_config(config)


def set_tree_cache_entries(value: int) -> None:
    config = load_config()
    _apply_tree_cache_entries(config, value)
    save_config(config)


def normalize_min_score(value: object) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        raise ValueError(Messages.ERROR_CONFIG_VALUE_INVALID.format(field="min_score"))
    try:
        score = float(value)
    except ValueError as exc:
        raise ValueError(Messages.ERROR_CONFIG_VALUE_INVALID.format(field="min_score")) from exc
    if not 0.0 <= score <= 1.0:
        raise ValueError(Messages.ERROR_MIN_SCORE_RANGE.format(value=value))
    return score


def normalize_cache_policy(value: object) -> str:
    if value is None:
        return DEFAULT_CACHE_POLICY
    if isinstance(value, str):
        normalized = value.strip().lower() or DEFAULT_CACHE_POLICY
        if normalized in SUPPORTED_CACHE_POLICIES:
            return normalized
    allowed = ", ".join(SUPPORTED_CACHE_POLICIES)
    raise ValueError(Messages.ERROR_CACHE_POLICY_INVALID.format(value=value, allowed=allowed))


def normalize_tie_break(value: object) -> tuple[str, ...]:
    """Parse a tie-break chain from a comma separated string or a sequence."""
    if value is None:
        return DEFAULT_TIE_BREAK
    if isinstance(value, str):
        tokens = [token.strip().lower() for token in value.split(",")]
    elif isinstance(value, Sequence):
        tokens = []
        for token in value:
            if not isinstance(token, str):
                raise ValueError(Messages.ERROR_CONFIG_VALUE_INVALID.format(field="tie_break"))
            tokens.append(token.strip().lower())
    else:
        raise ValueError(Messages.ERROR_CONFIG_VALUE_INVALID.format(field="tie_break"))
    normalized: list[str] = []
    allowed = ", ".join(SUPPORTED_TIE_BREAKS)
    for token in tokens:
        if not token:
            continue
        if token not in SUPPORTED_TIE_BREAKS:
            raise ValueError(Messages.ERROR_TIE_BREAK_INVALID.format(value=token, allowed=allowed))
        if token not in normalized:
            normalized.append(token)
    return tuple(normalized)


def _coerce_config_payload(payload: str | Mapping[str, object]) -> Mapping[str, object]:
    if isinstance(payload, str):
        try:
            data = json.loads(payload)
        except json.JSONDecodeError as exc:
            raise ValueError(Messages.ERROR_CONFIG_JSON_INVALID) from exc
    elif isinstance(payload, Mapping):
        data = dict(payload)
    else:
        raise ValueError(Messages.ERROR_CONFIG_JSON_INVALID)
    if not isinstance(data, Mapping):
        raise ValueError(Messages.ERROR_CONFIG_JSON_INVALID)
    return data


def _clone_config(config: Config) -> Config:
    return Config(
        min_score=config.min_score,
        tie_break=tuple(config.tie_break),
        threads=config.threads,
        cache_policy=config.cache_policy,
        tree_cache_entries=config.tree_cache_entries,
    )


def _apply_config_payload(config: Config, payload: Mapping[str, object]) -> None:
    if "min_score" in payload:
        _apply_min_score(config, payload["min_score"])
    if "tie_break" in payload:
        _apply_tie_break(config, payload["tie_break"])
    if "threads" in payload:
        _apply_threads(config, payload["threads"])
    if "cache_policy" in payload:
        _apply_cache_policy(config, payload["cache_policy"])
    if "tree_cache_entries" in payload:
        _apply_tree_cache_entries(config, payload["tree_cache_entries"])


def _apply_min_score(config: Config, value: object) -> None:
    config.min_score = normalize_min_score(value)


def _apply_tie_break(config: Config, value: object) -> None:
    config.tie_break = normalize_tie_break(value)


def _apply_threads(config: Config, value: object) -> None:
    threads = _coerce_int(value, "threads", DEFAULT_THREADS)
    if threads < 1:
        raise ValueError(Messages.ERROR_THREADS_INVALID)
    config.threads = min(threads, MAX_THREADS)


def _apply_cache_policy(config: Config, value: object) -> None:
    config.cache_policy = normalize_cache_policy(value)


def _apply_tree_cache_entries(config: Config, value: object) -> None:
    entries = _coerce_int(value, "tree_cache_entries", DEFAULT_TREE_CACHE_ENTRIES)
    if entries < 0:
        raise ValueError(Messages.ERROR_TREE_CACHE_INVALID)
    config.tree_cache_entries = entries


def _coerce_int(value: object, field: str, default: int) -> int:
    if value is None:
        return default
    if isinstance(value, bool):
        raise ValueError(Messages.ERROR_CONFIG_VALUE_INVALID.format(field=field))
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if value.is_integer():
            return int(value)
        raise ValueError(Messages.ERROR_CONFIG_VALUE_INVALID.format(field=field))
    if isinstance(value, str):
        cleaned = value.strip()
        if not cleaned:
            return default
        try:
            return int(cleaned)
        except ValueError as exc:
            raise ValueError(Messages.ERROR_CONFIG_VALUE_INVALID.format(field=field)) from exc
    raise ValueError(Messages.ERROR_CONFIG_VALUE_INVALID.format(field=field))
