from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Union


@dataclass(frozen=True)
class ResolvedInputFile:
    path: Path
    matched_by_glob: bool = False


@dataclass(frozen=True)
class InlineTextInput:
    text: str


@dataclass(frozen=True)
class StdinInput:
    text: str


@dataclass(frozen=True)
class FilesInput:
    files: tuple[ResolvedInputFile, ...]
    came_from_glob: bool = False


InputMode = Union[InlineTextInput, StdinInput, FilesInput]


@dataclass(frozen=True)
class OutputTarget:
    source: ResolvedInputFile
    destination: Path
    in_place: bool = False


@dataclass(frozen=True)
class StdoutOutput:
    pass


@dataclass(frozen=True)
class SingleFileOutput:
    path: Path


@dataclass(frozen=True)
class PerFileOutput:
    targets: tuple[OutputTarget, ...]
    in_place: bool = False


OutputMode = Union[StdoutOutput, SingleFileOutput, PerFileOutput]


@dataclass(frozen=True)
class FileInspection:
    file: ResolvedInputFile
    content: str | None = None
    warning: str | None = None
    error: str | None = None
