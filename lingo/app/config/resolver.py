from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

from lingo.app.prompts.presets import PresetDefinition
from lingo.app.translation.types import NetworkRuntimeConfig

DEFAULT_PROVIDER = "openai"
DEFAULT_FROM = "auto"
DEFAULT_TO = "en"
DEFAULT_PRESET = "general"
DEFAULT_FORMAT = "auto"
DEFAULT_STREAM = False
DEFAULT_YES = False
DEFAULT_JOBS = 1

DEFAULT_TIMEOUT_SECONDS = 120
DEFAULT_RETRIES = 3
DEFAULT_RETRY_BASE_DELAY_SECONDS = 1

FORMAT_HINTS = ("auto", "text", "markdown", "html")

OPENAI = "openai"
ANTHROPIC = "anthropic"
GEMINI = "gemini"
OLLAMA = "ollama"
OPENAI_COMPATIBLE = "openai-compatible"
DEEPL = "deepl"
APPLE_INTELLIGENCE = "apple-intelligence"
APPLE_TRANSLATE = "apple-translate"

BUILT_IN_PROVIDERS = (
    OPENAI,
    ANTHROPIC,
    GEMINI,
    OLLAMA,
    OPENAI_COMPATIBLE,
    DEEPL,
    APPLE_INTELLIGENCE,
    APPLE_TRANSLATE,
)

_CONFIGURABLE_PROVIDERS = (OPENAI, ANTHROPIC, GEMINI, OLLAMA, OPENAI_COMPATIBLE, DEEPL)
_ENTRY_KEYS = ("base_url", "model", "api_key")


@dataclass(frozen=True)
class ProviderConfigEntry:
    base_url: str | None = None
    model: str | None = None
    api_key: str | None = None


@dataclass(frozen=True)
class ResolvedConfig:
    path: Path
    table: dict[str, Any] = field(default_factory=dict)
    defaults_provider: str = DEFAULT_PROVIDER
    defaults_from: str = DEFAULT_FROM
    defaults_to: str = DEFAULT_TO
    defaults_preset: str = DEFAULT_PRESET
    defaults_format: str = DEFAULT_FORMAT
    defaults_stream: bool = DEFAULT_STREAM
    defaults_yes: bool = DEFAULT_YES
    defaults_jobs: int = DEFAULT_JOBS
    network: NetworkRuntimeConfig = field(default_factory=NetworkRuntimeConfig)
    providers: dict[str, ProviderConfigEntry] = field(default_factory=dict)
    named_endpoints: dict[str, ProviderConfigEntry] = field(default_factory=dict)
    presets: dict[str, PresetDefinition] = field(default_factory=dict)

    def provider_entry(self, name: str) -> ProviderConfigEntry:
        return self.providers.get(name) or ProviderConfigEntry()


def _value(table: Mapping[str, Any], *path: str) -> Any:
    current: Any = table
    for segment in path:
        if not isinstance(current, Mapping):
            return None
        current = current.get(segment)
    return current


def _string(table: Mapping[str, Any], *path: str) -> str | None:
    value = _value(table, *path)
    return value if isinstance(value, str) else None


def _int(table: Mapping[str, Any], *path: str) -> int | None:
    value = _value(table, *path)
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


def _bool(table: Mapping[str, Any], *path: str) -> bool | None:
    value = _value(table, *path)
    return value if isinstance(value, bool) else None


def _entry(table: Mapping[str, Any]) -> ProviderConfigEntry:
    return ProviderConfigEntry(
        base_url=_string(table, "base_url"),
        model=_string(table, "model"),
        api_key=_string(table, "api_key"),
    )


class ConfigResolver:
    def resolve(self, path: Path, table: Mapping[str, Any]) -> ResolvedConfig:
        format_hint = (_string(table, "defaults", "format") or DEFAULT_FORMAT).lower()
        if format_hint not in FORMAT_HINTS:
            format_hint = DEFAULT_FORMAT

        network = NetworkRuntimeConfig.clamped(
            timeout_seconds=_pick(
                _int(table, "network", "timeout_seconds"), DEFAULT_TIMEOUT_SECONDS
            ),
            retries=_pick(_int(table, "network", "retries"), DEFAULT_RETRIES),
            retry_base_delay_seconds=_pick(
                _int(table, "network", "retry_base_delay_seconds"),
                DEFAULT_RETRY_BASE_DELAY_SECONDS,
            ),
        )

        return ResolvedConfig(
            path=path,
            table=dict(table),
            defaults_provider=_string(table, "defaults", "provider") or DEFAULT_PROVIDER,
            defaults_from=_string(table, "defaults", "from") or DEFAULT_FROM,
            defaults_to=_string(table, "defaults", "to") or DEFAULT_TO,
            defaults_preset=_string(table, "defaults", "preset") or DEFAULT_PRESET,
            defaults_format=format_hint,
            defaults_stream=_pick(_bool(table, "defaults", "stream"), DEFAULT_STREAM),
            defaults_yes=_pick(_bool(table, "defaults", "yes"), DEFAULT_YES),
            defaults_jobs=max(1, _pick(_int(table, "defaults", "jobs"), DEFAULT_JOBS)),
            network=network,
            providers=self._provider_entries(table),
            named_endpoints=self._named_endpoints(table),
            presets=self._user_presets(table),
        )

    def collision_warnings(self, config: ResolvedConfig) -> list[str]:
        return [
            f"Named endpoint '{name}' in config has the same name as a built-in provider "
            "and will never be used. Rename the endpoint to avoid this conflict."
            for name in sorted(config.named_endpoints)
            if name in BUILT_IN_PROVIDERS
        ]

    def effective_config(self, config: ResolvedConfig) -> dict[str, Any]:
        effective: dict[str, Any] = {
            "defaults": {
                "provider": config.defaults_provider,
                "from": config.defaults_from,
                "to": config.defaults_to,
                "preset": config.defaults_preset,
                "format": config.defaults_format,
                "stream": config.defaults_stream,
                "yes": config.defaults_yes,
                "jobs": config.defaults_jobs,
            },
            "network": {
                "timeout_seconds": config.network.timeout_seconds,
                "retries": config.network.retries,
                "retry_base_delay_seconds": config.network.retry_base_delay_seconds,
            },
        }
        for section in ("providers", "presets"):
            value = config.table.get(section)
            if isinstance(value, Mapping):
                effective[section] = _redact_keys(value)
        return effective

    def _provider_entries(self, table: Mapping[str, Any]) -> dict[str, ProviderConfigEntry]:
        entries: dict[str, ProviderConfigEntry] = {}
        for name in _CONFIGURABLE_PROVIDERS:
            section = _value(table, "providers", name)
            if isinstance(section, Mapping):
                entries[name] = _entry(section)
            else:
                entries[name] = ProviderConfigEntry()
        return entries

    def _named_endpoints(self, table: Mapping[str, Any]) -> dict[str, ProviderConfigEntry]:
        parent = _value(table, "providers", OPENAI_COMPATIBLE)
        if not isinstance(parent, Mapping):
            return {}
        return {
            key: _entry(value)
            for key, value in parent.items()
            if key not in _ENTRY_KEYS and isinstance(value, Mapping)
        }

    def _user_presets(self, table: Mapping[str, Any]) -> dict[str, PresetDefinition]:
        section = table.get("presets")
        if not isinstance(section, Mapping):
            return {}
        presets: dict[str, PresetDefinition] = {}
        for name, value in section.items():
            if not isinstance(value, Mapping):
                continue
            presets[name] = PresetDefinition(
                name=name,
                description=_string(value, "description"),
                system_prompt=_string(value, "system_prompt"),
                system_prompt_file=_string(value, "system_prompt_file"),
                user_prompt=_string(value, "user_prompt"),
                user_prompt_file=_string(value, "user_prompt_file"),
                provider=_string(value, "provider"),
                model=_string(value, "model"),
                from_language=_string(value, "from"),
                to_language=_string(value, "to"),
                format=_string(value, "format"),
            )
        return presets


def _pick(value: Any, default: Any) -> Any:
    return default if value is None else value


def _redact_keys(table: Mapping[str, Any]) -> dict[str, Any]:
    redacted: dict[str, Any] = {}
    for key, value in table.items():
        if isinstance(value, Mapping):
            redacted[key] = _redact_keys(value)
        elif key == "api_key" and isinstance(value, str) and value:
            redacted[key] = "********"
        else:
            redacted[key] = value
    return redacted
