from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from lingo.app.errors import AppError
from lingo.app.inputs.types import (
    FilesInput,
    InputMode,
    OutputMode,
    OutputTarget,
    PerFileOutput,
    SingleFileOutput,
    StdoutOutput,
)
from lingo.app.translation.types import NormalizedLanguage


@dataclass(frozen=True)
class OutputPlanningRequest:
    input_mode: InputMode
    target_language: NormalizedLanguage
    cwd: Path
    output_path: str | None = None
    in_place: bool = False
    suffix: str | None = None


@dataclass(frozen=True)
class OutputPlan:
    mode: OutputMode
    warnings: list[str] = field(default_factory=list)


def apply_suffix(file_name: str, suffix: str) -> str:
    stem, dot, extension = file_name.rpartition(".")
    if not dot:
        return file_name + suffix
    return f"{stem}{suffix}.{extension}"


class OutputPlanner:
    def plan(self, request: OutputPlanningRequest) -> OutputPlan:
        if request.in_place and request.output_path is not None:
            raise AppError.invalid_arguments("--in-place and --output cannot be used together.")
        if request.in_place and request.suffix is not None:
            raise AppError.invalid_arguments(
                "--in-place and --suffix cannot be used together. --in-place overwrites "
                "the original file; --suffix creates a new file."
            )

        if not isinstance(request.input_mode, FilesInput):
            if request.in_place:
                raise AppError.invalid_arguments("--in-place requires file input.")
            if request.output_path is not None:
                return OutputPlan(SingleFileOutput(self._resolve(request.output_path, request.cwd)))
            return OutputPlan(StdoutOutput())

        files = request.input_mode.files
        any_glob = request.input_mode.came_from_glob or any(f.matched_by_glob for f in files)

        if request.output_path is not None and (len(files) > 1 or any_glob):
            raise AppError.invalid_arguments(
                "--output can only be used with a single input. Use --suffix for multiple files."
            )

        if request.in_place:
            targets = tuple(
                OutputTarget(source=file, destination=file.path, in_place=True) for file in files
            )
            return OutputPlan(PerFileOutput(targets=targets, in_place=True))

        if request.output_path is not None:
            return OutputPlan(SingleFileOutput(self._resolve(request.output_path, request.cwd)))

        if len(files) == 1 and not any_glob:
            warnings: list[str] = []
            if request.suffix is not None:
                warnings.append(
                    "--suffix has no effect when outputting to stdout. "
                    "Use --output to write to a file."
                )
            return OutputPlan(StdoutOutput(), warnings)

        suffix = request.suffix
        if suffix is None:
            suffix = f"_{request.target_language.output_suffix_code}"
        targets = tuple(
            OutputTarget(
                source=file,
                destination=file.path.with_name(apply_suffix(file.path.name, suffix)),
            )
            for file in files
        )
        return OutputPlan(PerFileOutput(targets=targets, in_place=False))

    def _resolve(self, raw: str, cwd: Path) -> Path:
        candidate = Path(raw).expanduser()
        if not candidate.is_absolute():
            candidate = cwd / candidate
        return Path(os.path.normpath(candidate))
