from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Sequence

from lingo.app.translation.providers.base import TranslationProvider
from lingo.app.translation.scheduler import TranslationScheduler
from lingo.app.translation.types import ProviderRequest, TranslationTask


@dataclass(frozen=True)
class Segment:
    key: str
    text: str
    context: str = ""


@dataclass(frozen=True)
class SegmentFailure:
    key: str
    reason: str


@dataclass(frozen=True)
class BatchReport:
    translated: int = 0
    failures: list[SegmentFailure] = field(default_factory=list)

    @property
    def first_failure_reason(self) -> str | None:
        return self.failures[0].reason if self.failures else None


@dataclass(frozen=True)
class BatchResult:
    translations: dict[str, str]
    report: BatchReport


RequestBuilder = Callable[[Segment], ProviderRequest]


class BatchSegmentTranslator:
    """Best-effort translation of many short segments."""

    def __init__(self, provider: TranslationProvider, jobs: int, logger: logging.Logger) -> None:
        self._provider = provider
        self._jobs = jobs
        self._logger = logger

    async def translate(
        self,
        segments: Sequence[Segment],
        build_request: RequestBuilder,
    ) -> BatchResult:
        tasks = [
            TranslationTask(index=index, key=segment.key, request=build_request(segment))
            for index, segment in enumerate(segments)
        ]
        scheduler = TranslationScheduler(self._provider, self._jobs, self._logger)
        outcomes = await scheduler.run(tasks)

        translations: dict[str, str] = {}
        failures: list[SegmentFailure] = []
        for outcome in outcomes:
            if outcome.succeeded and outcome.text is not None:
                translations[outcome.key] = outcome.text
                continue
            reason = outcome.error or "unknown failure"
            failures.append(SegmentFailure(key=outcome.key, reason=reason))
            self._logger.warning(
                "catalog_segment_failed",
                extra={
                    "event": "catalog_segment_failed",
                    "segment_key": outcome.key,
                    "provider_name": self._provider.name,
                },
            )

        return BatchResult(
            translations=translations,
            report=BatchReport(translated=len(translations), failures=failures),
        )
