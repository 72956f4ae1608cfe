from __future__ import annotations

import json
from abc import ABC, abstractmethod
from contextlib import aclosing
from typing import AsyncIterator, Callable
from urllib.parse import urlsplit, urlunsplit

from lingo.app.translation.http.client import HttpClient, HttpRequest
from lingo.app.translation.providers.base import (
    INVALID_JSON_MESSAGE,
    ProviderError,
    TranslationProvider,
    optional_int,
    raise_for_status,
    require_text,
)
from lingo.app.translation.streaming import StreamAggregator
from lingo.app.translation.types import ProviderRequest, ProviderResult, UsageInfo


class ModelSession(ABC):
    """Conversational model handle whose stream yields cumulative snapshots."""

    @abstractmethod
    async def respond(self, prompt: str) -> ProviderResult:
        raise NotImplementedError

    @abstractmethod
    def stream_response(self, prompt: str) -> AsyncIterator[str]:
        raise NotImplementedError


SessionFactory = Callable[[ProviderRequest], ModelSession]


def map_session_error(
    exc: BaseException, provider_name: str, timeout_seconds: int
) -> ProviderError:
    if isinstance(exc, ProviderError):
        return exc
    if isinstance(exc, TimeoutError):
        return ProviderError.timeout(timeout_seconds)
    message = str(exc).strip() or exc.__class__.__name__
    if "timed out" in message.lower():
        return ProviderError.timeout(timeout_seconds)
    return ProviderError.transport(f"Error: {provider_name} request failed: {message}")


class SessionProvider(TranslationProvider):
    def __init__(self, provider_name: str, session_factory: SessionFactory) -> None:
        self._provider_name = provider_name
        self._session_factory = session_factory

    @property
    def name(self) -> str:
        return self._provider_name

    async def translate(self, request: ProviderRequest) -> ProviderResult:
        try:
            session = self._session_factory(request)
            result = await session.respond(request.prompt_text)
            require_text(result.text)
        except ProviderError:
            raise
        except Exception as exc:
            raise map_session_error(exc, self.name, request.timeout_seconds) from exc
        return result

    def stream_translate(self, request: ProviderRequest) -> AsyncIterator[str] | None:
        return self._stream(request)

    async def _stream(self, request: ProviderRequest) -> AsyncIterator[str]:
        aggregator = StreamAggregator()
        try:
            session = self._session_factory(request)
            async for snapshot in session.stream_response(request.prompt_text):
                chunk = aggregator.push(snapshot)
                if chunk is not None:
                    yield chunk
            aggregator.finish()
        except ProviderError:
            raise
        except Exception as exc:
            raise map_session_error(exc, self.name, request.timeout_seconds) from exc


def ollama_base_url(raw: str) -> str:
    parts = urlsplit(raw.strip())
    if parts.scheme not in {"http", "https"} or not parts.netloc:
        raise ProviderError.transport(f"Invalid base URL '{raw}' for ollama provider.")
    segments = [segment for segment in parts.path.split("/") if segment]
    if segments and segments[-1] == "v1":
        segments.pop()
    path = "/" + "/".join(segments) if segments else ""
    return urlunsplit((parts.scheme, parts.netloc, path, "", ""))


class OllamaSession(ModelSession):
    """Session over Ollama's native ``/api/chat`` endpoint."""

    def __init__(
        self,
        base_url: str,
        model: str,
        request: ProviderRequest,
        http_client: HttpClient,
    ) -> None:
        self._endpoint = f"{ollama_base_url(base_url)}/api/chat"
        self._model = model
        self._request = request
        self._http = http_client

    def _http_request(self, prompt: str, stream: bool) -> HttpRequest:
        messages: list[dict[str, str]] = []
        instructions = (self._request.system_prompt or "").strip()
        if instructions:
            messages.append({"role": "system", "content": instructions})
        messages.append({"role": "user", "content": prompt})
        return HttpRequest(
            url=self._endpoint,
            timeout_seconds=self._request.timeout_seconds,
            network=self._request.network,
            headers={"Content-Type": "application/json"},
            json_body={"model": self._model, "messages": messages, "stream": stream},
        )

    async def respond(self, prompt: str) -> ProviderResult:
        response = await self._http.send(self._http_request(prompt, stream=False))
        raise_for_status(response.status_code, response.headers, response.text)
        payload = response.json()
        if not isinstance(payload, dict):
            payload = {}
        message = payload.get("message")
        content = message.get("content") if isinstance(message, dict) else None
        return ProviderResult(
            text=content if isinstance(content, str) else "",
            usage=UsageInfo(
                input_tokens=optional_int(payload.get("prompt_eval_count")),
                output_tokens=optional_int(payload.get("eval_count")),
            ),
            status_code=response.status_code,
            headers=response.headers,
        )

    async def stream_response(self, prompt: str) -> AsyncIterator[str]:
        accumulated = ""
        http_request = self._http_request(prompt, stream=True)
        async with aclosing(self._http.stream_lines(http_request)) as lines:
            async for line in lines:
                if not line.strip():
                    continue
                try:
                    event = json.loads(line)
                except ValueError as exc:
                    raise ProviderError.invalid_response(INVALID_JSON_MESSAGE) from exc
                if not isinstance(event, dict):
                    continue
                if isinstance(event.get("error"), str):
                    raise ProviderError.transport(event["error"])
                message = event.get("message")
                piece = message.get("content") if isinstance(message, dict) else None
                if isinstance(piece, str) and piece:
                    accumulated += piece
                    yield accumulated
                if event.get("done") is True:
                    break
