from __future__ import annotations

import os
import shutil
import tempfile
from pathlib import Path

from lingo.app.errors import AppError
from lingo.app.terminal import Terminal


class ConfirmationPrompter:
    def __init__(self, terminal: Terminal, assume_yes: bool) -> None:
        self._terminal = terminal
        self._assume_yes = assume_yes

    def confirm(self, prompt: str) -> None:
        if self._assume_yes:
            return
        if not self._terminal.stdin_is_tty:
            raise AppError.aborted(
                "Error: Interactive confirmation required but stdin is not a TTY. "
                "Use --yes to confirm non-interactively."
            )

        self._terminal.write_stderr(prompt, end=" ")
        answer = self._terminal.read_line().strip().lower()
        if answer not in {"y", "yes"}:
            raise AppError.aborted("Aborted.")


def _default_file_mode() -> int:
    umask = os.umask(0)
    os.umask(umask)
    return 0o666 & ~umask


def write_atomically(destination: Path, text: str) -> None:
    destination.parent.mkdir(parents=True, exist_ok=True)
    fd, temp_name = tempfile.mkstemp(
        prefix=f".{destination.name}.", suffix=".tmp", dir=destination.parent
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as handle:
            handle.write(text)
        # mkstemp creates 0600; keep the replaced file's mode or honor the umask.
        if destination.exists():
            shutil.copymode(destination, temp_name)
        else:
            os.chmod(temp_name, _default_file_mode())
        os.replace(temp_name, destination)
    except BaseException:
        Path(temp_name).unlink(missing_ok=True)
        raise


class OutputWriter:
    def __init__(self, terminal: Terminal, prompter: ConfirmationPrompter) -> None:
        self._terminal = terminal
        self._prompter = prompter

    def write_stdout(self, text: str) -> None:
        self._terminal.write_stdout(text)

    def write_file(self, text: str, destination: Path, confirm_overwrite: bool = True) -> None:
        if confirm_overwrite and destination.exists():
            self._prompter.confirm(
                f"Output file '{destination.name}' already exists. Overwrite? [y/N]"
            )
        write_atomically(destination, text)
