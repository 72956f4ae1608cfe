from __future__ import annotations

import json
import math
import os
import re
import tomllib
from pathlib import Path
from typing import Any, Mapping

import tomli_w

from lingo.app.errors import AppError
from lingo.app.execution.writer import write_atomically

DEFAULT_CONFIG_PATH = "~/.config/lingo/config.toml"
CONFIG_ENV_KEY = "LINGO_CONFIG"

_INTEGER = re.compile(r"[+-]?\d+")
_MISSING = object()


def expand_path(raw: str, cwd: Path, home: Path) -> Path:
    trimmed = raw.strip()
    if trimmed.startswith("~"):
        suffix = trimmed[1:].lstrip("/")
        candidate = home / suffix if suffix else home
    else:
        candidate = Path(trimmed)
        if not candidate.is_absolute():
            candidate = cwd / candidate
    return Path(os.path.normpath(candidate))


def resolve_config_path(
    cli_path: str | None,
    env: Mapping[str, str],
    cwd: Path,
    home: Path,
) -> Path:
    raw = cli_path or env.get(CONFIG_ENV_KEY) or DEFAULT_CONFIG_PATH
    return expand_path(raw, cwd, home)


def load_config_table(path: Path) -> dict[str, Any]:
    if not path.is_file():
        return {}

    raw = path.read_bytes()
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise AppError.runtime(f"Error: Config file '{path}' contains invalid UTF-8.") from exc

    try:
        return tomllib.loads(text)
    except tomllib.TOMLDecodeError as exc:
        raise AppError.runtime(f"Error: Failed to parse config file '{path}': {exc}") from exc


def lookup_key(table: Mapping[str, Any], key: str) -> Any:
    segments = key_segments(key)
    if not segments:
        return None
    current: Any = table
    for segment in segments:
        if not isinstance(current, Mapping) or segment not in current:
            return None
        current = current[segment]
    return current


def format_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (Mapping, list)):
        return json.dumps(value, indent=2, ensure_ascii=False, default=str)
    return str(value)


def key_segments(key: str) -> list[str]:
    return [segment.strip() for segment in key.split(".") if segment.strip()]


def parse_scalar(raw: str) -> bool | int | float | str:
    trimmed = raw.strip()
    lowered = trimmed.lower()
    if lowered in {"true", "false"}:
        return lowered == "true"
    if _INTEGER.fullmatch(trimmed):
        return int(trimmed)
    if "." in trimmed:
        try:
            number = float(trimmed)
        except ValueError:
            return trimmed
        if math.isfinite(number):
            return number
    return trimmed


def set_key(table: dict[str, Any], key: str, value: Any) -> None:
    segments = key_segments(key)
    if not segments:
        raise AppError.invalid_arguments("Error: Config key must not be empty.")
    current = table
    for segment in segments[:-1]:
        child = current.get(segment)
        if not isinstance(child, dict):
            child = {}
            current[segment] = child
        current = child
    current[segments[-1]] = value


def unset_key(table: dict[str, Any], key: str) -> bool:
    segments = key_segments(key)
    if not segments:
        return False
    return _unset(table, segments)


def _unset(table: dict[str, Any], segments: list[str]) -> bool:
    head = segments[0]
    if len(segments) == 1:
        return table.pop(head, _MISSING) is not _MISSING

    child = table.get(head)
    if not isinstance(child, dict):
        return False
    removed = _unset(child, segments[1:])
    # Tables emptied by the removal are dropped as well.
    if not child:
        del table[head]
    return removed


def save_config_table(table: Mapping[str, Any], path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    if not path.exists():
        path.touch(mode=0o600)
    try:
        write_atomically(path, tomli_w.dumps(table))
    except OSError as exc:
        raise AppError.runtime(f"Error: Failed to write config file '{path}': {exc}") from exc
