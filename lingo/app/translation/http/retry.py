from __future__ import annotations

import asyncio
import math
import random
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Awaitable, Callable, Mapping

from lingo.app.translation.providers.base import ProviderError
from lingo.app.translation.types import NetworkRuntimeConfig

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})
MAX_BACKOFF_SECONDS = 30.0
JITTER_RATIO = 0.2

Sleeper = Callable[[float], Awaitable[None]]
Clock = Callable[[], datetime]
Jitter = Callable[[float, float], float]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RetryPolicy:
    def __init__(
        self,
        max_attempts: int,
        base_delay_seconds: int,
        sleeper: Sleeper | None = None,
        now: Clock | None = None,
        jitter: Jitter | None = None,
    ) -> None:
        self.max_attempts = max(1, int(max_attempts))
        self.base_delay_seconds = max(1, int(base_delay_seconds))
        self._sleeper = sleeper or asyncio.sleep
        self._now = now or _utc_now
        self._jitter = jitter or random.uniform

    @classmethod
    def from_network(
        cls,
        network: NetworkRuntimeConfig,
        sleeper: Sleeper | None = None,
        now: Clock | None = None,
        jitter: Jitter | None = None,
    ) -> RetryPolicy:
        return cls(
            max_attempts=max(1, network.retries + 1),
            base_delay_seconds=network.retry_base_delay_seconds,
            sleeper=sleeper,
            now=now,
            jitter=jitter,
        )

    @staticmethod
    def is_retryable_status(status_code: int) -> bool:
        return status_code in RETRYABLE_STATUS_CODES

    def should_retry(self, status_code: int, attempt: int) -> bool:
        return attempt < self.max_attempts and self.is_retryable_status(status_code)

    def should_retry_error(self, error: ProviderError, attempt: int) -> bool:
        if attempt >= self.max_attempts:
            return False
        if error.status_code is not None:
            return self.is_retryable_status(error.status_code)
        return error.retryable

    def delay_seconds(self, attempt: int, headers: Mapping[str, str] | None = None) -> float:
        retry_after = self._retry_after(headers or {})
        if retry_after is not None:
            return retry_after

        exponent = max(1, attempt) - 1
        exponential = min(self.base_delay_seconds * (2.0**exponent), MAX_BACKOFF_SECONDS)
        spread = exponential * JITTER_RATIO
        return max(0.0, exponential + self._jitter(-spread, spread))

    async def sleep(self, delay: float) -> None:
        await self._sleeper(delay)

    def _retry_after(self, headers: Mapping[str, str]) -> float | None:
        raw = None
        for key, value in headers.items():
            if key.lower() == "retry-after":
                raw = value
                break
        if raw is None:
            return None

        value = raw.strip()
        if not value:
            return None
        try:
            seconds = float(value)
        except ValueError:
            seconds = None
        if seconds is not None:
            return seconds if math.isfinite(seconds) and seconds >= 0 else None

        try:
            when = parsedate_to_datetime(value)
        except (TypeError, ValueError):
            return None
        if when.tzinfo is None:
            when = when.replace(tzinfo=timezone.utc)
        return max(0.0, (when - self._now()).total_seconds())
