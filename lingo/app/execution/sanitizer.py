from __future__ import annotations

FENCE = "```"


def strip_wrapping_code_fence(text: str) -> tuple[str, bool]:
    trimmed = text.strip()
    if not trimmed.startswith(FENCE):
        return text, False

    lines = trimmed.splitlines()
    if len(lines) < 2:
        return text, False

    first = lines[0].strip()
    last = lines[-1].strip()
    if not first.startswith(FENCE) or last != FENCE:
        return text, False
    return "\n".join(lines[1:-1]), True
