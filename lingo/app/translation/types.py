from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

SOURCE_LANGUAGE_PLACEHOLDER = "the source language"


@dataclass(frozen=True)
class NormalizedLanguage:
    input: str
    display_name: str
    provider_code: str
    is_auto: bool = False

    @property
    def output_suffix_code(self) -> str:
        return self.provider_code.split("-")[0].upper()


@dataclass(frozen=True)
class NetworkRuntimeConfig:
    timeout_seconds: int = 120
    retries: int = 3
    retry_base_delay_seconds: int = 1

    @classmethod
    def clamped(
        cls,
        timeout_seconds: int,
        retries: int,
        retry_base_delay_seconds: int,
    ) -> NetworkRuntimeConfig:
        return cls(
            timeout_seconds=max(1, int(timeout_seconds)),
            retries=max(0, int(retries)),
            retry_base_delay_seconds=max(1, int(retry_base_delay_seconds)),
        )

    @property
    def max_attempts(self) -> int:
        return max(1, self.retries + 1)


@dataclass(frozen=True)
class ProviderRequest:
    source: NormalizedLanguage
    target: NormalizedLanguage
    system_prompt: str | None
    user_prompt: str | None
    text: str
    timeout_seconds: int
    network: NetworkRuntimeConfig

    @property
    def prompt_text(self) -> str:
        return self.user_prompt or self.text


@dataclass(frozen=True)
class UsageInfo:
    input_tokens: int | None = None
    output_tokens: int | None = None


@dataclass(frozen=True)
class ProviderResult:
    text: str
    usage: UsageInfo | None = None
    status_code: int | None = None
    headers: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class TranslationTask:
    index: int
    key: str
    request: ProviderRequest


@dataclass(frozen=True)
class TaskOutcome:
    index: int
    key: str
    text: str | None
    error: str | None
    usage: UsageInfo | None = None
    elapsed_ms: int = 0
    stripped_fence: bool = False

    @property
    def succeeded(self) -> bool:
        return self.error is None and self.text is not None


@dataclass(frozen=True)
class TranslationFileResult:
    file: Path
    destination: Path | None
    success: bool
    error_message: str | None = None
