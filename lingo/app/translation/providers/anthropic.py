from __future__ import annotations

from typing import Any

from lingo.app.translation.http.client import HttpClient, HttpRequest
from lingo.app.translation.providers.base import (
    TranslationProvider,
    optional_int,
    raise_for_status,
    require_text,
)
from lingo.app.translation.providers.urls import versioned_endpoint
from lingo.app.translation.types import ProviderRequest, ProviderResult, UsageInfo

ANTHROPIC_VERSION = "2023-06-01"
MAX_OUTPUT_TOKENS = 4096


class AnthropicProvider(TranslationProvider):
    def __init__(
        self,
        base_url: str,
        model: str,
        api_key: str,
        http_client: HttpClient,
    ) -> None:
        self._base_url = base_url
        self._model = model
        self._api_key = api_key
        self._http = http_client

    @property
    def name(self) -> str:
        return "anthropic"

    def endpoint(self) -> str:
        return versioned_endpoint(self._base_url, "messages", self.name)

    async def translate(self, request: ProviderRequest) -> ProviderResult:
        body: dict[str, Any] = {
            "model": self._model,
            "max_tokens": MAX_OUTPUT_TOKENS,
            "messages": [
                {
                    "role": "user",
                    "content": [{"type": "text", "text": request.prompt_text}],
                }
            ],
        }
        if request.system_prompt:
            body["system"] = request.system_prompt

        response = await self._http.send(
            HttpRequest(
                url=self.endpoint(),
                timeout_seconds=request.timeout_seconds,
                network=request.network,
                headers={
                    "Content-Type": "application/json",
                    "Accept": "application/json",
                    "x-api-key": self._api_key,
                    "anthropic-version": ANTHROPIC_VERSION,
                },
                json_body=body,
            )
        )
        raise_for_status(response.status_code, response.headers, response.text)

        payload = response.json()
        if not isinstance(payload, dict):
            payload = {}
        text = require_text(self._extract_text(payload))

        usage = payload.get("usage")
        if not isinstance(usage, dict):
            usage = {}
        return ProviderResult(
            text=text,
            usage=UsageInfo(
                input_tokens=optional_int(usage.get("input_tokens")),
                output_tokens=optional_int(usage.get("output_tokens")),
            ),
            status_code=response.status_code,
            headers=response.headers,
        )

    def _extract_text(self, payload: dict[str, Any]) -> str:
        blocks = payload.get("content")
        if not isinstance(blocks, list):
            return ""
        return "".join(
            block["text"]
            for block in blocks
            if isinstance(block, dict) and isinstance(block.get("text"), str)
        )
