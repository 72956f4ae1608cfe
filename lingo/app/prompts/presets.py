from __future__ import annotations

from dataclasses import dataclass, replace

from lingo.app.errors import AppError

BUILT_IN = "built-in"
USER_DEFINED = "user-defined"


@dataclass(frozen=True)
class PresetDefinition:
    name: str
    source: str = USER_DEFINED
    description: str | None = None
    system_prompt: str | None = None
    system_prompt_file: str | None = None
    user_prompt: str | None = None
    user_prompt_file: str | None = None
    provider: str | None = None
    model: str | None = None
    from_language: str | None = None
    to_language: str | None = None
    format: str | None = None


def _user_template(subject: str) -> str:
    return (
        f"Translate the following {subject} from {{from}} to {{to}}.{{context_block}}\n"
        "\n"
        "<source_text>\n"
        "{text}\n"
        "</source_text>"
    )


BUILT_IN_PRESETS: dict[str, PresetDefinition] = {
    "general": PresetDefinition(
        name="general",
        source=BUILT_IN,
        description="General-purpose translation",
        system_prompt=(
            "You are a skilled translator with expertise in translating {from} to {to}, "
            "preserving the original meaning, tone, and nuance.\n"
            "Maintain any formatting present in the source text.\n"
            "Only output the translation. Do not include explanations, commentary, or original text.\n"
            "Do not wrap your output in backticks or code blocks."
        ),
        user_prompt=_user_template("{format}"),
    ),
    "markdown": PresetDefinition(
        name="markdown",
        source=BUILT_IN,
        description="Preserves markdown formatting",
        system_prompt=(
            "You are a skilled translator with extensive experience in translating {from} text "
            "to {to} while maintaining all markdown formatting.\n"
            "Preserve heading levels (e.g. # for H1, ## for H2), bullet points, numbered lists, "
            "bold (**text**), italics (*text*), inline code (`code`), code blocks, links, and "
            "line breaks exactly as in the source.\n"
            "Do not translate URLs, href destinations, anchor link targets, image src values, "
            "code content, frontmatter keys, or other technical identifiers.\n"
            "Do not wrap your output in backticks or a code block."
        ),
        user_prompt=_user_template("markdown"),
    ),
    "xcode-strings": PresetDefinition(
        name="xcode-strings",
        source=BUILT_IN,
        description="Xcode string catalogs with format specifiers",
        system_prompt=(
            "You are a skilled translator with extensive experience in translating {from} UI "
            "text to {to} for macOS and iOS applications.\n"
            "The text was taken from an Xcode string catalog (.xcstrings).\n"
            "Preserve all format specifiers such as %@, %lld, %.2f, %1$@, %2$@, %3$@, %1$lld, "
            "%2$lld and similar placeholders. Place them at the contextually appropriate "
            "position in the translated string.\n"
            "If there is markdown formatting, keep it intact.\n"
            "Preserve the meaning and tone appropriate for a macOS/iOS user interface.\n"
            "If multiple valid translations exist, use the context provided to choose the most "
            "natural and idiomatic option for a native {to} speaker.\n"
            "Only output the translation. Do not include explanations, original text, or "
            "wrapping backticks."
        ),
        user_prompt=(
            "Translate the following {from} UI string to {to}.{context_block}\n"
            "\n"
            "<source_text>\n"
            "{text}\n"
            "</source_text>"
        ),
    ),
    "legal": PresetDefinition(
        name="legal",
        source=BUILT_IN,
        description="Formal, strict fidelity",
        system_prompt=(
            "You are a professional legal translator with expertise in translating legal and "
            "formal documents from {from} to {to}.\n"
            "Your translation must be faithful to the source: do not paraphrase, simplify, "
            "omit, or add content.\n"
            "Preserve the formal register, legal terminology, and document structure.\n"
            "Only output the translated text. Do not include explanations, commentary, or "
            "wrapping backticks."
        ),
        user_prompt=_user_template("legal text"),
    ),
    "ui": PresetDefinition(
        name="ui",
        source=BUILT_IN,
        description="Short UI strings, button labels",
        system_prompt=(
            "You are a translator specializing in software UI copy. Translate {from} text to {to}.\n"
            "Output concise, natural translations appropriate for buttons, labels, menu items, "
            "tooltips, and other interface elements.\n"
            "Use standard UI conventions and terminology for {to}-speaking users of macOS and iOS.\n"
            "Only output the translated string. Do not include backticks, quotation marks, or "
            "explanation."
        ),
        user_prompt=_user_template("UI string"),
    ),
}


class PresetResolver:
    def __init__(self, user_presets: dict[str, PresetDefinition]) -> None:
        self._user_presets = user_presets

    def resolve(self, name: str) -> PresetDefinition:
        user = self._user_presets.get(name)
        if user is not None:
            return self._merge(user)
        built_in = BUILT_IN_PRESETS.get(name)
        if built_in is not None:
            return built_in
        raise AppError.invalid_arguments(
            f"Unknown preset '{name}'. Run lingo presets list to see available presets."
        )

    def list(self) -> tuple[list[PresetDefinition], list[PresetDefinition]]:
        built_in = [
            self._merge(self._user_presets[name]) if name in self._user_presets else preset
            for name, preset in sorted(BUILT_IN_PRESETS.items())
        ]
        user_only = [
            preset
            for name, preset in sorted(self._user_presets.items())
            if name not in BUILT_IN_PRESETS
        ]
        return built_in, user_only

    def _merge(self, user: PresetDefinition) -> PresetDefinition:
        built_in = BUILT_IN_PRESETS.get(user.name)
        if built_in is None:
            return user
        return replace(
            user,
            source=USER_DEFINED,
            description=user.description or built_in.description,
            system_prompt=(
                user.system_prompt
                if user.system_prompt is not None or user.system_prompt_file
                else built_in.system_prompt
            ),
            user_prompt=(
                user.user_prompt
                if user.user_prompt is not None or user.user_prompt_file
                else built_in.user_prompt
            ),
            provider=user.provider or built_in.provider,
            model=user.model or built_in.model,
            from_language=user.from_language or built_in.from_language,
            to_language=user.to_language or built_in.to_language,
            format=user.format or built_in.format,
        )
