from __future__ import annotations

from typing import Any

from lingo.app.translation.http.client import HttpClient, HttpRequest
from lingo.app.translation.providers.base import (
    EMPTY_RESPONSE_MESSAGE,
    ProviderError,
    TranslationProvider,
    optional_int,
    raise_for_status,
)
from lingo.app.translation.providers.urls import joined_endpoint
from lingo.app.translation.types import ProviderRequest, ProviderResult, UsageInfo


class GeminiTranslationProvider(TranslationProvider):
    def __init__(
        self,
        base_url: str,
        model: str,
        api_key: str,
        http_client: HttpClient,
    ) -> None:
        self._base_url = base_url
        self._model_name = model.removeprefix("models/")
        self._api_key = api_key
        self._http = http_client

    @property
    def name(self) -> str:
        return "gemini"

    def endpoint(self) -> str:
        return joined_endpoint(
            self._base_url,
            f"models/{self._model_name}:generateContent",
            self.name,
        )

    async def translate(self, request: ProviderRequest) -> ProviderResult:
        body: dict[str, Any] = {
            "contents": [{"role": "user", "parts": [{"text": request.prompt_text}]}],
            "generationConfig": {"responseMimeType": "text/plain"},
        }
        if request.system_prompt:
            body["systemInstruction"] = {"parts": [{"text": request.system_prompt}]}

        response = await self._http.send(
            HttpRequest(
                url=self.endpoint(),
                timeout_seconds=request.timeout_seconds,
                network=request.network,
                headers={
                    "Content-Type": "application/json",
                    "x-goog-api-key": self._api_key,
                },
                json_body=body,
            )
        )
        raise_for_status(response.status_code, response.headers, response.text)

        payload = response.json()
        if not isinstance(payload, dict):
            payload = {}
        text, finish_reason = self._extract_text(payload)
        if not text.strip():
            reason = f" (finish reason: {finish_reason})" if finish_reason else ""
            raise ProviderError.invalid_response(f"{EMPTY_RESPONSE_MESSAGE}{reason}")

        usage = payload.get("usageMetadata")
        if not isinstance(usage, dict):
            usage = {}
        return ProviderResult(
            text=text,
            usage=UsageInfo(
                input_tokens=optional_int(usage.get("promptTokenCount")),
                output_tokens=optional_int(usage.get("candidatesTokenCount")),
            ),
            status_code=response.status_code,
            headers=response.headers,
        )

    def _extract_text(self, payload: dict[str, Any]) -> tuple[str, str | None]:
        candidates = payload.get("candidates")
        if not isinstance(candidates, list) or not candidates:
            return "", None

        first = candidates[0]
        if not isinstance(first, dict):
            return "", None
        finish_reason = first.get("finishReason")
        content = first.get("content", {})
        parts = content.get("parts", []) if isinstance(content, dict) else []
        if not isinstance(parts, list):
            return "", str(finish_reason) if finish_reason else None

        segments: list[str] = []
        for part in parts:
            if isinstance(part, dict) and isinstance(part.get("text"), str):
                segments.append(part["text"])

        return "".join(segments), str(finish_reason) if finish_reason else None
