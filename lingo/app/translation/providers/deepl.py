from __future__ import annotations

from typing import Any

from lingo.app.translation.http.client import HttpClient, HttpRequest
from lingo.app.translation.providers.base import (
    ProviderError,
    TranslationProvider,
    raise_for_status,
    require_text,
)
from lingo.app.translation.types import NormalizedLanguage, ProviderRequest, ProviderResult

FREE_API_BASE_URL = "https://api-free.deepl.com"
PRO_API_BASE_URL = "https://api.deepl.com"

SOURCE_LANGUAGES = frozenset(
    {
        "AR", "BG", "CS", "DA", "DE", "EL", "EN", "ES", "ET", "FI", "FR", "HE",
        "HU", "ID", "IT", "JA", "KO", "LT", "LV", "NB", "NL", "PL", "PT", "RO",
        "RU", "SK", "SL", "SV", "TH", "TR", "UK", "VI", "ZH",
    }
)
TARGET_LANGUAGES = frozenset(
    {
        "AR", "BG", "CS", "DA", "DE", "EL", "EN", "EN-GB", "EN-US", "ES", "ET",
        "FI", "FR", "HE", "HU", "ID", "IT", "JA", "KO", "LT", "LV", "NB", "NL",
        "PL", "PT", "PT-BR", "PT-PT", "RO", "RU", "SK", "SL", "SV", "TH", "TR",
        "UK", "VI", "ZH", "ZH-HANS", "ZH-HANT",
    }
)

_SOURCE_ALIASES = {
    "ZH-CN": "ZH",
    "ZH-TW": "ZH",
    "ZH-HANS": "ZH",
    "ZH-HANT": "ZH",
    "EN-GB": "EN",
    "EN-US": "EN",
}
_TARGET_ALIASES = {
    "ZH-CN": "ZH-HANS",
    "ZH-TW": "ZH-HANT",
}


def default_base_url(api_key: str) -> str:
    return FREE_API_BASE_URL if api_key.endswith(":fx") else PRO_API_BASE_URL


def _canonical(code: str) -> str:
    return code.replace("_", "-").upper()


def source_language_code(language: NormalizedLanguage) -> str | None:
    if language.is_auto:
        return None
    canonical = _canonical(language.provider_code)
    code = _SOURCE_ALIASES.get(canonical, canonical)
    if code not in SOURCE_LANGUAGES:
        raise ProviderError.unsupported(
            f"Error: Source language '{language.input}' is not supported by provider 'deepl'."
        )
    return code


def target_language_code(language: NormalizedLanguage) -> str:
    canonical = _canonical(language.provider_code)
    code = _TARGET_ALIASES.get(canonical, canonical)
    if code not in TARGET_LANGUAGES:
        raise ProviderError.unsupported(
            f"Error: Target language '{language.input}' is not supported by provider 'deepl'."
        )
    return code


class DeepLProvider(TranslationProvider):
    """Dedicated translation API; prompt templates never reach it."""

    def __init__(
        self,
        api_key: str,
        http_client: HttpClient,
        base_url: str | None = None,
    ) -> None:
        self._api_key = api_key
        self._base_url = (base_url or default_base_url(api_key)).rstrip("/")
        self._http = http_client

    @property
    def name(self) -> str:
        return "deepl"

    async def translate(self, request: ProviderRequest) -> ProviderResult:
        body: dict[str, Any] = {
            "text": [request.text],
            "target_lang": target_language_code(request.target),
        }
        source = source_language_code(request.source)
        if source is not None:
            body["source_lang"] = source

        response = await self._http.send(
            HttpRequest(
                url=f"{self._base_url}/v2/translate",
                timeout_seconds=request.timeout_seconds,
                network=request.network,
                headers={
                    "Content-Type": "application/json",
                    "Authorization": f"DeepL-Auth-Key {self._api_key}",
                },
                json_body=body,
            )
        )
        raise_for_status(response.status_code, response.headers, response.text)

        payload = response.json()
        translations = payload.get("translations") if isinstance(payload, dict) else None
        text = None
        if isinstance(translations, list) and translations and isinstance(translations[0], dict):
            raw = translations[0].get("text")
            if isinstance(raw, str):
                text = raw.strip()

        return ProviderResult(
            text=require_text(text),
            usage=None,
            status_code=response.status_code,
            headers=response.headers,
        )
