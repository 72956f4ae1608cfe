from __future__ import annotations

import glob
import os
from pathlib import Path

from lingo.app.errors import AppError

_GLOB_CHARACTERS = ("*", "?", "[")


def looks_like_glob(value: str) -> bool:
    return any(character in value for character in _GLOB_CHARACTERS)


def expand_glob(pattern: str, cwd: Path) -> list[Path]:
    matches = glob.glob(pattern, root_dir=str(cwd), recursive=True)
    files = {
        Path(os.path.normpath(cwd / match))
        for match in matches
        if (cwd / match).is_file()
    }
    if not files:
        raise AppError.runtime(f"No files matched the pattern '{pattern}'.")
    return sorted(files)
