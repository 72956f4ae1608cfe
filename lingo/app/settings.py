from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


def _strip_quotes(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in {'"', "'"}:
        return value[1:-1]
    return value


def load_env_file(env_path: Path) -> None:
    if not env_path.is_file():
        return

    for raw_line in env_path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue

        if line.startswith("export "):
            line = line[len("export ") :]

        key, separator, value = line.partition("=")
        if not separator:
            continue

        env_key = key.strip()
        if not env_key:
            continue

        os.environ.setdefault(env_key, _strip_quotes(value.strip()))


def _env_optional(key: str) -> str | None:
    value = os.getenv(key)
    if value is None or not value.strip():
        return None
    return value.strip()


def _env_level(key: str, default: str) -> str:
    value = os.getenv(key, default).strip().upper()
    allowed = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
    if value not in allowed:
        allowed_csv = ", ".join(allowed)
        raise ValueError(f"{key} must be one of: {allowed_csv}")
    return value


@dataclass(frozen=True)
class Settings:
    service_name: str = "lingo"
    service_version: str = "0.1.0"
    log_level: str = "WARNING"
    config_path: str | None = None
    editor: str | None = None
    openai_api_key: str | None = None
    anthropic_api_key: str | None = None
    gemini_api_key: str | None = None
    deepl_api_key: str | None = None

    def env_credentials(self) -> dict[str, str]:
        values = {
            "OPENAI_API_KEY": self.openai_api_key,
            "ANTHROPIC_API_KEY": self.anthropic_api_key,
            "GEMINI_API_KEY": self.gemini_api_key,
            "DEEPL_API_KEY": self.deepl_api_key,
        }
        return {key: value for key, value in values.items() if value}

    def config_env(self) -> dict[str, str]:
        values = {"LINGO_CONFIG": self.config_path, "EDITOR": self.editor}
        return {key: value for key, value in values.items() if value}

    def redacted(self) -> dict[str, str | bool | None]:
        return {
            "service_name": self.service_name,
            "service_version": self.service_version,
            "log_level": self.log_level,
            "config_path": self.config_path,
            "editor": self.editor,
            "openai_key_configured": bool(self.openai_api_key),
            "anthropic_key_configured": bool(self.anthropic_api_key),
            "gemini_key_configured": bool(self.gemini_api_key),
            "deepl_key_configured": bool(self.deepl_api_key),
        }


def build_settings(project_root: Path) -> Settings:
    load_env_file(project_root / ".env")

    return Settings(
        service_name=os.getenv("LINGO_SERVICE_NAME", "lingo"),
        service_version=os.getenv("LINGO_VERSION", "0.1.0"),
        log_level=_env_level("LINGO_LOG_LEVEL", "WARNING"),
        config_path=_env_optional("LINGO_CONFIG"),
        editor=_env_optional("EDITOR"),
        openai_api_key=_env_optional("OPENAI_API_KEY"),
        anthropic_api_key=_env_optional("ANTHROPIC_API_KEY"),
        gemini_api_key=_env_optional("GEMINI_API_KEY"),
        deepl_api_key=_env_optional("DEEPL_API_KEY"),
    )
