from __future__ import annotations

import sys
from typing import TextIO


class Terminal:
    """User-facing output sink."""

    def __init__(
        self,
        stdout: TextIO | None = None,
        stderr: TextIO | None = None,
        stdin: TextIO | None = None,
        quiet: bool = False,
        verbose: bool = False,
    ) -> None:
        self._stdout = stdout or sys.stdout
        self._stderr = stderr or sys.stderr
        self._stdin = stdin or sys.stdin
        self.quiet = quiet
        self.verbose = verbose

    def write_stdout(self, text: str, end: str = "\n") -> None:
        self._stdout.write(text + end)
        self._stdout.flush()

    def write_stderr(self, text: str, end: str = "\n") -> None:
        self._stderr.write(text + end)
        self._stderr.flush()

    def info(self, text: str) -> None:
        if not self.quiet:
            self.write_stderr(f"Info: {text}")

    def warn(self, text: str) -> None:
        if not self.quiet:
            self.write_stderr(f"Warning: {text}")

    def error(self, text: str) -> None:
        self.write_stderr(text)

    @property
    def stdin_is_tty(self) -> bool:
        isatty = getattr(self._stdin, "isatty", None)
        return bool(isatty and isatty())

    def read_stdin(self) -> str:
        return self._stdin.read()

    def read_line(self) -> str:
        return self._stdin.readline()
