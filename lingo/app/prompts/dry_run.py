from __future__ import annotations

from lingo.app.prompts.renderer import PromptSet
from lingo.app.translation.types import SOURCE_LANGUAGE_PLACEHOLDER, NormalizedLanguage

PREVIEW_CHARACTERS = 500


def render_dry_run(
    provider: str,
    model: str | None,
    source: NormalizedLanguage,
    target: NormalizedLanguage,
    prompts: PromptSet,
    input_text: str,
) -> str:
    preview = input_text
    if len(preview) > PREVIEW_CHARACTERS:
        preview = preview[:PREVIEW_CHARACTERS] + "..."
    source_label = (
        f"{SOURCE_LANGUAGE_PLACEHOLDER} (auto-detect)" if source.is_auto else source.display_name
    )

    return "\n".join(
        [
            "=== DRY RUN ===",
            "",
            f"Provider:       {provider}",
            f"Model:          {model or '(provider default)'}",
            f"Source lang:    {source_label}",
            f"Target lang:    {target.display_name}",
            "",
            "--- SYSTEM PROMPT ---",
            prompts.system_prompt,
            "",
            "--- USER PROMPT ---",
            prompts.user_prompt,
            "",
            f"--- INPUT (first {PREVIEW_CHARACTERS} chars) ---",
            preview,
        ]
    )
