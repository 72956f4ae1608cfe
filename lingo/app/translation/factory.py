from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping

from lingo.app.config.resolver import (
    ANTHROPIC,
    APPLE_INTELLIGENCE,
    APPLE_TRANSLATE,
    BUILT_IN_PROVIDERS,
    DEEPL,
    GEMINI,
    OLLAMA,
    OPENAI,
    OPENAI_COMPATIBLE,
    ProviderConfigEntry,
    ResolvedConfig,
)
from lingo.app.errors import AppError
from lingo.app.translation.http.client import HttpClient
from lingo.app.translation.providers import deepl
from lingo.app.translation.providers.anthropic import AnthropicProvider
from lingo.app.translation.providers.base import TranslationProvider
from lingo.app.translation.providers.deepl import DeepLProvider
from lingo.app.translation.providers.gemini import GeminiTranslationProvider
from lingo.app.translation.providers.openai_compatible import OpenAICompatibleProvider
from lingo.app.translation.providers.session import OllamaSession, SessionProvider
from lingo.app.translation.providers.unavailable import OnDeviceProvider
from lingo.app.translation.types import ProviderRequest

OPENAI_BASE_URL = "https://api.openai.com"
ANTHROPIC_BASE_URL = "https://api.anthropic.com"
GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
OLLAMA_BASE_URL = "http://localhost:11434"

OPENAI_MODEL = "gpt-4o-mini"
ANTHROPIC_MODEL = "claude-3-5-haiku-latest"
GEMINI_MODEL = "gemini-2.0-flash"
OLLAMA_MODEL = "llama3.2"


@dataclass(frozen=True)
class _HostedDefaults:
    base_url: str
    model: str
    env_key: str


_HOSTED = {
    OPENAI: _HostedDefaults(OPENAI_BASE_URL, OPENAI_MODEL, "OPENAI_API_KEY"),
    ANTHROPIC: _HostedDefaults(ANTHROPIC_BASE_URL, ANTHROPIC_MODEL, "ANTHROPIC_API_KEY"),
    GEMINI: _HostedDefaults(GEMINI_BASE_URL, GEMINI_MODEL, "GEMINI_API_KEY"),
}


@dataclass(frozen=True)
class ProviderSelection:
    name: str
    provider: TranslationProvider
    backend_id: str | None = None
    model: str | None = None
    base_url: str | None = None
    api_key: str | None = None
    promptless: bool = False


class ProviderFactory:
    def __init__(
        self,
        config: ResolvedConfig,
        env: Mapping[str, str],
        http_client: HttpClient,
    ) -> None:
        self._config = config
        self._env = env
        self._http = http_client

    def make(
        self,
        provider_name: str,
        model_override: str | None = None,
        base_url_override: str | None = None,
        api_key_override: str | None = None,
        explicit_provider: bool = False,
        require_credentials: bool = True,
    ) -> ProviderSelection:
        lowered = provider_name.lower()
        if lowered in BUILT_IN_PROVIDERS:
            return self._built_in(
                lowered,
                model_override,
                base_url_override,
                api_key_override,
                explicit_provider,
                require_credentials,
            )

        named = self._config.named_endpoints.get(provider_name)
        if named is not None:
            return self._openai_compatible(
                provider_name,
                None,
                named,
                model_override,
                base_url_override,
                api_key_override,
            )

        raise AppError.invalid_arguments(
            f"Unknown provider '{provider_name}'. Run lingo --help for valid providers."
        )

    def _built_in(
        self,
        name: str,
        model_override: str | None,
        base_url_override: str | None,
        api_key_override: str | None,
        explicit_provider: bool,
        require_credentials: bool,
    ) -> ProviderSelection:
        if name == OPENAI_COMPATIBLE:
            return self._openai_compatible(
                name,
                name,
                self._config.provider_entry(name),
                model_override,
                base_url_override,
                api_key_override,
            )

        if explicit_provider and base_url_override is not None:
            raise AppError.invalid_arguments(
                f"--base-url cannot be used with --provider {name}. "
                "It is only valid for openai-compatible providers."
            )

        entry = self._config.provider_entry(name)

        if name in _HOSTED:
            defaults = _HOSTED[name]
            model = model_override or entry.model or defaults.model
            base_url = entry.base_url or defaults.base_url
            api_key = self._require_key(
                name, defaults.env_key, api_key_override or entry.api_key, require_credentials
            )
            return ProviderSelection(
                name=name,
                provider=self._hosted_provider(name, base_url, model, api_key),
                backend_id=name,
                model=model,
                base_url=base_url,
                api_key=api_key,
            )

        if name == OLLAMA:
            model = model_override or entry.model or OLLAMA_MODEL
            base_url = entry.base_url or OLLAMA_BASE_URL
            http_client = self._http

            def session_factory(request: ProviderRequest) -> OllamaSession:
                return OllamaSession(base_url, model, request, http_client)

            return ProviderSelection(
                name=name,
                provider=SessionProvider(name, session_factory),
                backend_id=name,
                model=model,
                base_url=base_url,
                api_key=None,
            )

        if name == DEEPL:
            if model_override is not None:
                raise AppError.invalid_arguments(
                    "--model is not applicable for deepl. This provider does not use a model."
                )
            api_key = self._require_key(
                name, "DEEPL_API_KEY", api_key_override or entry.api_key, require_credentials
            )
            base_url = entry.base_url or deepl.default_base_url(api_key or "")
            return ProviderSelection(
                name=name,
                provider=DeepLProvider(api_key or "", self._http, base_url=base_url),
                backend_id=name,
                base_url=base_url,
                api_key=api_key,
                promptless=True,
            )

        if api_key_override is not None:
            raise AppError.invalid_arguments(f"--api-key is not applicable for {name}.")
        if name == APPLE_TRANSLATE and model_override is not None:
            raise AppError.invalid_arguments(
                "--model is not applicable for apple-translate. This provider does not use a model."
            )
        return ProviderSelection(
            name=name,
            provider=OnDeviceProvider(name),
            backend_id=name,
            model=model_override if name == APPLE_INTELLIGENCE else None,
            promptless=name == APPLE_TRANSLATE,
        )

    def _openai_compatible(
        self,
        name: str,
        backend_id: str | None,
        entry: ProviderConfigEntry,
        model_override: str | None,
        base_url_override: str | None,
        api_key_override: str | None,
    ) -> ProviderSelection:
        base_url = base_url_override or entry.base_url
        model = model_override or entry.model
        api_key = api_key_override or entry.api_key
        if not base_url:
            raise AppError.invalid_arguments(
                "--base-url is required when using openai-compatible."
            )
        if not model:
            raise AppError.invalid_arguments("--model is required when using openai-compatible.")

        return ProviderSelection(
            name=name,
            provider=OpenAICompatibleProvider(name, base_url, model, api_key, self._http),
            backend_id=backend_id,
            model=model,
            base_url=base_url,
            api_key=api_key,
        )

    def _hosted_provider(
        self,
        name: str,
        base_url: str,
        model: str,
        api_key: str | None,
    ) -> TranslationProvider:
        if name == ANTHROPIC:
            return AnthropicProvider(base_url, model, api_key or "", self._http)
        if name == GEMINI:
            return GeminiTranslationProvider(base_url, model, api_key or "", self._http)
        return OpenAICompatibleProvider(name, base_url, model, api_key, self._http)

    def _require_key(
        self,
        name: str,
        env_key: str,
        configured: str | None,
        require_credentials: bool,
    ) -> str | None:
        api_key = configured or self._env.get(env_key)
        if not api_key and require_credentials:
            raise AppError.runtime(f"Error: {env_key} is required for provider '{name}'.")
        return api_key or None
