from __future__ import annotations

from abc import ABC, abstractmethod
from typing import AsyncIterator

from lingo.app.translation.types import ProviderRequest, ProviderResult

HTTP = "http"
TIMEOUT = "timeout"
INVALID_RESPONSE = "invalid_response"
TRANSPORT = "transport"
UNSUPPORTED = "unsupported"

CONTEXT_WINDOW_MESSAGE = (
    "Error: Input exceeds the model's context window. Consider a model with a "
    "larger context window, or split the input into smaller files."
)
EMPTY_RESPONSE_MESSAGE = "Provider returned an empty response."
INVALID_JSON_MESSAGE = "Provider returned invalid JSON response."


class ProviderError(Exception):
    """Raised when a translation backend call fails."""

    def __init__(
        self,
        kind: str,
        message: str,
        *,
        status_code: int | None = None,
        headers: dict[str, str] | None = None,
        body: str | None = None,
        seconds: int | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.status_code = status_code
        self.headers = dict(headers or {})
        self.body = body
        self.seconds = seconds

    def __str__(self) -> str:
        return self.message

    @classmethod
    def http(
        cls,
        status_code: int,
        headers: dict[str, str] | None = None,
        body: str = "",
    ) -> ProviderError:
        trimmed = body.strip()
        if trimmed:
            message = f"API error (HTTP {status_code}): {trimmed}"
        else:
            message = f"API error (HTTP {status_code})."
        return cls(HTTP, message, status_code=status_code, headers=headers, body=body)

    @classmethod
    def timeout(cls, seconds: int) -> ProviderError:
        return cls(
            TIMEOUT,
            f"Error: Request timed out after {seconds}s. Use "
            "'network.timeout_seconds' in the config file to increase the limit.",
            seconds=seconds,
        )

    @classmethod
    def invalid_response(cls, message: str) -> ProviderError:
        return cls(INVALID_RESPONSE, message)

    @classmethod
    def transport(cls, message: str) -> ProviderError:
        return cls(TRANSPORT, message)

    @classmethod
    def unsupported(cls, message: str) -> ProviderError:
        return cls(UNSUPPORTED, message)

    @property
    def retryable(self) -> bool:
        return self.kind in {TIMEOUT, TRANSPORT}


class TranslationProvider(ABC):
    @property
    @abstractmethod
    def name(self) -> str:
        raise NotImplementedError

    @abstractmethod
    async def translate(self, request: ProviderRequest) -> ProviderResult:
        raise NotImplementedError

    def stream_translate(self, request: ProviderRequest) -> AsyncIterator[str] | None:
        return None


def is_context_window_error(status_code: int, body: str) -> bool:
    if status_code != 400:
        return False
    lowered = body.lower()
    if "context" not in lowered:
        return False
    return any(term in lowered for term in ("length", "token", "window"))


def raise_for_status(status_code: int, headers: dict[str, str], body: str) -> None:
    if 200 <= status_code < 300:
        return
    if is_context_window_error(status_code, body):
        raise ProviderError.invalid_response(CONTEXT_WINDOW_MESSAGE)
    raise ProviderError.http(status_code, headers, body)


def require_text(text: str | None) -> str:
    if text is None or not text.strip():
        raise ProviderError.invalid_response(EMPTY_RESPONSE_MESSAGE)
    return text


def optional_int(value: object) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value
