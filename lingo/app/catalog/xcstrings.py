from __future__ import annotations

import copy
import json
import logging
from dataclasses import dataclass
from typing import Any, Callable

from lingo.app.catalog.segments import BatchReport, BatchSegmentTranslator, Segment
from lingo.app.errors import AppError
from lingo.app.translation.providers.base import TranslationProvider
from lingo.app.translation.types import ProviderRequest

CATALOG_EXTENSION = ".xcstrings"
TRANSLATED = "translated"

_SCRIPT_TAGS = {"zh-cn": "zh-Hans", "zh-sg": "zh-Hans", "zh-tw": "zh-Hant", "zh-hk": "zh-Hant"}


def catalog_language_code(provider_code: str) -> str:
    lowered = provider_code.lower()
    if lowered in _SCRIPT_TAGS:
        return _SCRIPT_TAGS[lowered]
    base, separator, region = provider_code.partition("-")
    if not separator:
        return base.lower()
    if region.lower() in {"hans", "hant"}:
        return f"{base.lower()}-{region.capitalize()}"
    return f"{base.lower()}-{region.upper()}"


def _string_unit_value(localization: Any) -> str | None:
    if not isinstance(localization, dict):
        return None
    unit = localization.get("stringUnit")
    if not isinstance(unit, dict):
        return None
    value = unit.get("value")
    return value if isinstance(value, str) else None


class StringCatalog:
    def __init__(self, document: dict[str, Any]) -> None:
        self._document = document

    @classmethod
    def parse(cls, text: str, name: str) -> StringCatalog:
        try:
            document = json.loads(text)
        except ValueError as exc:
            raise AppError.runtime(
                f"Error: '{name}' is not a valid string catalog: {exc}"
            ) from exc
        if not isinstance(document, dict) or not isinstance(document.get("strings", {}), dict):
            raise AppError.runtime(f"Error: '{name}' is not a valid string catalog.")
        return cls(document)

    @property
    def source_language(self) -> str:
        value = self._document.get("sourceLanguage")
        return value if isinstance(value, str) and value else "en"

    @property
    def strings(self) -> dict[str, Any]:
        return self._document.get("strings", {})

    def segments(self, target_code: str) -> list[Segment]:
        segments: list[Segment] = []
        for key, entry in self.strings.items():
            if not isinstance(entry, dict):
                entry = {}
            if entry.get("shouldTranslate") is False:
                continue

            localizations = entry.get("localizations")
            if not isinstance(localizations, dict):
                localizations = {}

            existing = localizations.get(target_code)
            if _string_unit_value(existing) and existing["stringUnit"].get("state") == TRANSLATED:
                continue

            if self.source_language in localizations:
                source_text = _string_unit_value(localizations[self.source_language])
            else:
                source_text = key
            if not source_text:
                continue

            comment = entry.get("comment")
            context = comment if isinstance(comment, str) else ""
            segments.append(Segment(key=key, text=source_text, context=context))
        return segments

    def with_translations(self, target_code: str, translations: dict[str, str]) -> StringCatalog:
        document = copy.deepcopy(self._document)
        strings = document.setdefault("strings", {})
        for key, value in translations.items():
            entry = strings.get(key)
            if not isinstance(entry, dict):
                entry = {}
                strings[key] = entry
            localizations = entry.setdefault("localizations", {})
            localizations[target_code] = {"stringUnit": {"state": TRANSLATED, "value": value}}
        return StringCatalog(document)

    def encode(self) -> str:
        return json.dumps(
            self._document,
            indent=2,
            ensure_ascii=False,
            sort_keys=True,
            separators=(",", " : "),
        ) + "\n"


@dataclass(frozen=True)
class CatalogTranslation:
    text: str
    report: BatchReport

    @property
    def failure_summary(self) -> str | None:
        if not self.report.failures:
            return None
        return (
            f"{len(self.report.failures)} segment(s) failed in catalog translation. "
            f"First failure: {self.report.first_failure_reason}"
        )


class CatalogWorkflow:
    def __init__(
        self,
        provider: TranslationProvider,
        jobs: int,
        logger: logging.Logger,
    ) -> None:
        self._translator = BatchSegmentTranslator(provider, jobs, logger)
        self._logger = logger

    async def translate(
        self,
        content: str,
        name: str,
        target_provider_code: str,
        build_request: Callable[[StringCatalog, Segment], ProviderRequest],
    ) -> CatalogTranslation:
        catalog = StringCatalog.parse(content, name)
        target_code = catalog_language_code(target_provider_code)
        segments = catalog.segments(target_code)

        result = await self._translator.translate(
            segments, lambda segment: build_request(catalog, segment)
        )
        self._logger.info(
            "catalog_translated",
            extra={
                "event": "catalog_translated",
                "catalog": name,
                "segments": len(segments),
                "failed": len(result.report.failures),
            },
        )
        updated = catalog.with_translations(target_code, result.translations)
        return CatalogTranslation(text=updated.encode(), report=result.report)


def is_catalog_file(name: str) -> bool:
    return name.lower().endswith(CATALOG_EXTENSION)


def dry_run_description(
    provider_name: str,
    model: str | None,
    target_display_name: str,
    target_code: str,
    jobs: int,
    files: list[str],
) -> str:
    lines = [
        "--- DRY RUN ---",
        "Mode: .xcstrings catalog translation",
        f"Provider: {provider_name}",
        f"Model: {model or 'n/a'}",
        f"Target language: {target_display_name} ({target_code})",
        f"Max concurrent catalog requests: {max(1, jobs)}",
        "Files:",
    ]
    lines.extend(f"- {path}" for path in files)
    return "\n".join(lines)
