from __future__ import annotations

import json
from contextlib import aclosing
from typing import Any, AsyncIterator

from lingo.app.translation.http.client import HttpClient, HttpRequest
from lingo.app.translation.providers.base import (
    TranslationProvider,
    optional_int,
    raise_for_status,
    require_text,
)
from lingo.app.translation.providers.urls import versioned_endpoint
from lingo.app.translation.streaming import StreamAggregator
from lingo.app.translation.types import ProviderRequest, ProviderResult, UsageInfo

_SSE_DATA_PREFIX = "data:"
_SSE_DONE = "[DONE]"


class OpenAICompatibleProvider(TranslationProvider):
    def __init__(
        self,
        provider_name: str,
        base_url: str,
        model: str,
        api_key: str | None,
        http_client: HttpClient,
    ) -> None:
        self._provider_name = provider_name
        self._base_url = base_url
        self._model = model
        self._api_key = api_key
        self._http = http_client

    @property
    def name(self) -> str:
        return self._provider_name

    def endpoint(self) -> str:
        return versioned_endpoint(self._base_url, "chat/completions", self._provider_name)

    async def translate(self, request: ProviderRequest) -> ProviderResult:
        response = await self._http.send(self._build_request(request, stream=False))
        raise_for_status(response.status_code, response.headers, response.text)

        payload = response.json()
        if not isinstance(payload, dict):
            payload = {}
        text = require_text(_extract_message_content(payload))

        usage = payload.get("usage")
        if not isinstance(usage, dict):
            usage = {}
        return ProviderResult(
            text=text,
            usage=UsageInfo(
                input_tokens=optional_int(usage.get("prompt_tokens")),
                output_tokens=optional_int(usage.get("completion_tokens")),
            ),
            status_code=response.status_code,
            headers=response.headers,
        )

    def stream_translate(self, request: ProviderRequest) -> AsyncIterator[str] | None:
        return self._stream(request)

    async def _stream(self, request: ProviderRequest) -> AsyncIterator[str]:
        aggregator = StreamAggregator()
        http_request = self._build_request(request, stream=True)
        async with aclosing(self._http.stream_lines(http_request)) as lines:
            async for line in lines:
                data = line.strip()
                if not data.startswith(_SSE_DATA_PREFIX):
                    continue
                data = data[len(_SSE_DATA_PREFIX) :].strip()
                if data == _SSE_DONE:
                    break
                try:
                    event = json.loads(data)
                except ValueError:
                    continue
                chunk = aggregator.push_delta(_extract_delta_content(event))
                if chunk is not None:
                    yield chunk
        aggregator.finish()

    def _build_request(self, request: ProviderRequest, stream: bool) -> HttpRequest:
        messages: list[dict[str, str]] = []
        if request.system_prompt:
            messages.append({"role": "system", "content": request.system_prompt})
        messages.append({"role": "user", "content": request.prompt_text})

        headers = {
            "Content-Type": "application/json",
            "Accept": "text/event-stream" if stream else "application/json",
        }
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"

        return HttpRequest(
            url=self.endpoint(),
            timeout_seconds=request.timeout_seconds,
            network=request.network,
            headers=headers,
            json_body={"model": self._model, "stream": stream, "messages": messages},
        )


def _extract_message_content(payload: dict[str, Any]) -> str:
    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return ""
    message = choices[0].get("message")
    if not isinstance(message, dict):
        return ""
    return _content_text(message.get("content"))


def _extract_delta_content(event: Any) -> str:
    if not isinstance(event, dict):
        return ""
    choices = event.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return ""
    delta = choices[0].get("delta")
    if not isinstance(delta, dict):
        return ""
    return _content_text(delta.get("content"))


def _content_text(content: Any) -> str:
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return "".join(
            part["text"]
            for part in content
            if isinstance(part, dict) and isinstance(part.get("text"), str)
        )
    return ""
