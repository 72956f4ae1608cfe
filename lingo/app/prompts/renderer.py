from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from lingo.app.config.store import expand_path
from lingo.app.errors import AppError
from lingo.app.prompts.presets import USER_DEFINED, PresetDefinition
from lingo.app.translation.types import SOURCE_LANGUAGE_PLACEHOLDER, NormalizedLanguage

TEXT = "text"
MARKDOWN = "markdown"
HTML = "html"

_PROMPT_FORMAT_NAMES = {TEXT: "text", MARKDOWN: "markdown", HTML: "HTML"}
_EXTENSION_FORMATS = {
    ".md": MARKDOWN,
    ".markdown": MARKDOWN,
    ".mdx": MARKDOWN,
    ".html": HTML,
    ".htm": HTML,
}


def detect_format(format_hint: str, input_file: Path | None) -> str:
    hint = format_hint.lower()
    if hint in _PROMPT_FORMAT_NAMES:
        return hint
    if input_file is None:
        return TEXT
    return _EXTENSION_FORMATS.get(input_file.suffix.lower(), TEXT)


@dataclass(frozen=True)
class PromptSet:
    system_prompt: str
    user_prompt: str
    custom_prompt_active: bool = False


@dataclass(frozen=True)
class PromptContext:
    text: str
    source: NormalizedLanguage
    target: NormalizedLanguage
    context: str = ""
    filename: str = ""
    format: str = TEXT


class PromptRenderer:
    def __init__(self, cwd: Path, home: Path) -> None:
        self._cwd = cwd
        self._home = home

    def resolve(
        self,
        preset: PresetDefinition,
        system_override: str | None,
        user_override: str | None,
        no_lang: bool,
    ) -> tuple[PromptSet, list[str]]:
        system_template = self._template(
            system_override, preset.system_prompt, preset.system_prompt_file, "system"
        )
        user_template = self._template(
            user_override, preset.user_prompt, preset.user_prompt_file, "user"
        )

        custom = (
            system_override is not None
            or user_override is not None
            or preset.system_prompt_file is not None
            or preset.user_prompt_file is not None
            or preset.source == USER_DEFINED
        )

        warnings: list[str] = []
        if no_lang and not custom:
            warnings.append("--no-lang has no effect when using default prompts.")
        if custom and not no_lang:
            body = f"{system_template}\n{user_template}"
            if "{from}" not in body and "{to}" not in body:
                warnings.append(
                    "Your custom prompt does not contain {from} or {to} placeholders. "
                    "If you have hardcoded languages, pass --no-lang to suppress this warning."
                )

        return PromptSet(system_template, user_template, custom), warnings

    def render(self, templates: PromptSet, context: PromptContext) -> PromptSet:
        values = self._placeholders(context)
        return PromptSet(
            system_prompt=_substitute(templates.system_prompt, values),
            user_prompt=_substitute(templates.user_prompt, values),
            custom_prompt_active=templates.custom_prompt_active,
        )

    def _template(
        self,
        override: str | None,
        preset_inline: str | None,
        preset_file: str | None,
        label: str,
    ) -> str:
        if override is not None:
            return self._inline_or_file(override, label)
        if preset_inline is not None:
            return preset_inline
        if preset_file is not None:
            return self._inline_or_file(f"@{preset_file}", label)
        return ""

    def _inline_or_file(self, value: str, label: str) -> str:
        if not value.startswith("@"):
            return value

        raw_path = value[1:]
        path = expand_path(raw_path, self._cwd, self._home)
        if not path.is_file():
            raise AppError.runtime(f"Prompt file '{raw_path}' not found.")
        try:
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise AppError.runtime(
                f"Error: Failed to read {label} prompt file '{raw_path}': {exc}"
            ) from exc

    def _placeholders(self, context: PromptContext) -> dict[str, str]:
        trimmed = context.context.strip()
        source = context.source
        return {
            "{from}": SOURCE_LANGUAGE_PLACEHOLDER if source.is_auto else source.display_name,
            "{to}": context.target.display_name,
            "{text}": context.text,
            "{context}": trimmed,
            "{context_block}": f"\nAdditional context: {trimmed}" if trimmed else "",
            "{filename}": context.filename,
            "{format}": _PROMPT_FORMAT_NAMES.get(context.format, context.format),
        }


def _substitute(template: str, values: dict[str, str]) -> str:
    # Single pass so placeholder-like text inside the source is left alone.
    output: list[str] = []
    index = 0
    while index < len(template):
        if template[index] == "{":
            for placeholder, value in values.items():
                if template.startswith(placeholder, index):
                    output.append(value)
                    index += len(placeholder)
                    break
            else:
                output.append("{")
                index += 1
            continue
        output.append(template[index])
        index += 1
    return "".join(output)
