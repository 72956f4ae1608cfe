from __future__ import annotations

from enum import IntEnum


class ExitCode(IntEnum):
    SUCCESS = 0
    RUNTIME_ERROR = 1
    INVALID_ARGUMENTS = 2
    ABORTED = 3


class AppError(Exception):
    def __init__(self, message: str, exit_code: ExitCode) -> None:
        super().__init__(message)
        self.message = message
        self.exit_code = exit_code

    def __str__(self) -> str:
        return self.message

    @classmethod
    def invalid_arguments(cls, message: str) -> AppError:
        return cls(message, ExitCode.INVALID_ARGUMENTS)

    @classmethod
    def runtime(cls, message: str) -> AppError:
        return cls(message, ExitCode.RUNTIME_ERROR)

    @classmethod
    def aborted(cls, message: str) -> AppError:
        return cls(message, ExitCode.ABORTED)
