from __future__ import annotations

import os
from pathlib import Path

from lingo.app.errors import AppError
from lingo.app.inputs.globbing import expand_glob, looks_like_glob
from lingo.app.inputs.types import (
    FilesInput,
    InlineTextInput,
    InputMode,
    ResolvedInputFile,
    StdinInput,
)
from lingo.app.terminal import Terminal

_EMPTY_INPUT_MESSAGE = "Error: Input text is empty."


def _resolve_path(raw: str, cwd: Path) -> Path:
    candidate = Path(raw).expanduser()
    if not candidate.is_absolute():
        candidate = cwd / candidate
    return Path(os.path.normpath(candidate))


class InputResolver:
    def __init__(self, terminal: Terminal, cwd: Path) -> None:
        self._terminal = terminal
        self._cwd = cwd

    def resolve(self, positional: list[str], force_text: bool = False) -> InputMode:
        if force_text:
            if len(positional) != 1:
                raise AppError.invalid_arguments(
                    "--text requires exactly one positional argument."
                )
            if not positional[0]:
                raise AppError.runtime(_EMPTY_INPUT_MESSAGE)
            return InlineTextInput(positional[0])

        if not positional:
            return self._read_stdin()

        if len(positional) == 1:
            return self._resolve_single(positional[0])

        files: list[ResolvedInputFile] = []
        saw_glob = False
        for argument in positional:
            if looks_like_glob(argument):
                saw_glob = True
                files.extend(
                    ResolvedInputFile(path=path, matched_by_glob=True)
                    for path in expand_glob(argument, self._cwd)
                )
                continue

            path = _resolve_path(argument, self._cwd)
            if not path.is_file():
                raise AppError.invalid_arguments(
                    f"Argument '{argument}' is not a valid file path. "
                    "To translate a literal string, use --text."
                )
            files.append(ResolvedInputFile(path=path, matched_by_glob=False))

        if not files:
            raise AppError.runtime(_EMPTY_INPUT_MESSAGE)
        return FilesInput(files=_dedupe(files), came_from_glob=saw_glob)

    def _read_stdin(self) -> StdinInput:
        if self._terminal.stdin_is_tty:
            raise AppError.invalid_arguments(
                "No input provided. Provide text, file path(s), or pipe stdin."
            )
        text = self._terminal.read_stdin()
        if not text.strip():
            raise AppError.runtime(_EMPTY_INPUT_MESSAGE)
        return StdinInput(text)

    def _resolve_single(self, candidate: str) -> InputMode:
        if looks_like_glob(candidate):
            files = [
                ResolvedInputFile(path=path, matched_by_glob=True)
                for path in expand_glob(candidate, self._cwd)
            ]
            return FilesInput(files=tuple(files), came_from_glob=True)

        if candidate:
            path = _resolve_path(candidate, self._cwd)
            if path.is_file():
                return FilesInput(files=(ResolvedInputFile(path=path),), came_from_glob=False)

        if not candidate:
            raise AppError.runtime(_EMPTY_INPUT_MESSAGE)
        return InlineTextInput(candidate)


def _dedupe(files: list[ResolvedInputFile]) -> tuple[ResolvedInputFile, ...]:
    by_path: dict[Path, ResolvedInputFile] = {}
    for file in files:
        existing = by_path.get(file.path)
        if existing is None or (existing.matched_by_glob and not file.matched_by_glob):
            by_path[file.path] = file
    return tuple(by_path[path] for path in sorted(by_path))
