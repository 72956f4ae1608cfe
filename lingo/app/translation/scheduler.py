from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from time import monotonic
from typing import Sequence

from lingo.app.execution.sanitizer import strip_wrapping_code_fence
from lingo.app.translation.providers.base import ProviderError, TranslationProvider
from lingo.app.translation.types import TaskOutcome, TranslationTask

MISSING_RESULT_MESSAGE = "Translation task did not produce a result."


@dataclass
class SchedulerMetrics:
    provider_name: str | None = None
    jobs: int = 1
    tasks_total: int = 0
    tasks_started: int = 0
    tasks_succeeded: int = 0
    tasks_failed: int = 0
    in_flight: int = 0
    peak_in_flight: int = 0
    fences_stripped: int = 0
    started_at: str | None = None
    elapsed_ms: float = 0.0
    last_error: str | None = None


class TranslationScheduler:
    """Runs translation tasks through one provider with bounded parallelism."""

    def __init__(
        self,
        provider: TranslationProvider,
        jobs: int,
        logger: logging.Logger,
        strip_fences: bool = True,
    ) -> None:
        self._provider = provider
        self._jobs = max(1, jobs)
        self._logger = logger
        self._strip_fences = strip_fences
        self._metrics = SchedulerMetrics(provider_name=provider.name, jobs=self._jobs)

    def snapshot(self) -> dict[str, object]:
        return asdict(self._metrics)

    async def run(self, tasks: Sequence[TranslationTask]) -> list[TaskOutcome]:
        started = monotonic()
        self._metrics.tasks_total += len(tasks)
        self._metrics.started_at = datetime.now(timezone.utc).isoformat()
        if not tasks:
            return []

        bound = min(self._jobs, len(tasks))
        outcomes: list[TaskOutcome | None] = [None] * len(tasks)
        pending = iter(range(len(tasks)))
        in_flight: dict[asyncio.Task[TaskOutcome], int] = {}

        def start_next() -> None:
            position = next(pending, None)
            if position is None:
                return
            task = tasks[position]
            in_flight[
                asyncio.create_task(self._execute(task), name=f"translation-task-{task.index}")
            ] = position
            self._metrics.tasks_started += 1
            self._metrics.in_flight = len(in_flight)
            self._metrics.peak_in_flight = max(self._metrics.peak_in_flight, len(in_flight))

        for _ in range(bound):
            start_next()

        while in_flight:
            done, _ = await asyncio.wait(in_flight, return_when=asyncio.FIRST_COMPLETED)
            for finished in done:
                position = in_flight.pop(finished)
                outcomes[position] = finished.result()
            self._metrics.in_flight = len(in_flight)
            for _ in done:
                start_next()

        self._metrics.elapsed_ms = round((monotonic() - started) * 1000.0, 3)
        return [
            outcome
            if outcome is not None
            else TaskOutcome(
                index=task.index, key=task.key, text=None, error=MISSING_RESULT_MESSAGE
            )
            for task, outcome in zip(tasks, outcomes)
        ]

    async def _execute(self, task: TranslationTask) -> TaskOutcome:
        started = monotonic()
        try:
            result = await self._provider.translate(task.request)
        except ProviderError as exc:
            return self._failed(task, exc.message, started, kind=exc.kind)
        except Exception as exc:
            self._logger.error(
                "translation_task_crashed",
                exc_info=True,
                extra={"event": "translation_task_crashed", "task_key": task.key},
            )
            return self._failed(task, str(exc) or exc.__class__.__name__, started, kind="crash")

        text = result.text
        stripped = False
        if self._strip_fences:
            text, stripped = strip_wrapping_code_fence(text)
            if stripped:
                self._metrics.fences_stripped += 1
        self._metrics.tasks_succeeded += 1

        elapsed_ms = int((monotonic() - started) * 1000)
        self._logger.info(
            "translation_task_completed",
            extra={
                "event": "translation_task_completed",
                "provider_name": self._provider.name,
                "task_index": task.index,
                "task_key": task.key,
                "elapsed_ms": elapsed_ms,
            },
        )
        return TaskOutcome(
            index=task.index,
            key=task.key,
            text=text,
            error=None,
            usage=result.usage,
            elapsed_ms=elapsed_ms,
            stripped_fence=stripped,
        )

    def _failed(
        self,
        task: TranslationTask,
        message: str,
        started: float,
        kind: str,
    ) -> TaskOutcome:
        elapsed_ms = int((monotonic() - started) * 1000)
        self._metrics.tasks_failed += 1
        self._metrics.last_error = message
        self._logger.warning(
            "translation_task_failed",
            extra={
                "event": "translation_task_failed",
                "provider_name": self._provider.name,
                "task_index": task.index,
                "task_key": task.key,
                "error_kind": kind,
                "elapsed_ms": elapsed_ms,
            },
        )
        return TaskOutcome(
            index=task.index,
            key=task.key,
            text=None,
            error=message,
            elapsed_ms=elapsed_ms,
        )
