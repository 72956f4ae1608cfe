from __future__ import annotations

import unittest
from datetime import datetime, timedelta, timezone
from email.utils import format_datetime

from lingo.app.translation.http.retry import MAX_BACKOFF_SECONDS, RetryPolicy
from lingo.app.translation.providers.base import ProviderError
from lingo.app.translation.types import NetworkRuntimeConfig

_FIXED_NOW = datetime(2026, 3, 14, 12, 0, 0, tzinfo=timezone.utc)


def _no_jitter(low: float, high: float) -> float:
    return 0.0


def _policy(max_attempts: int = 4, base_delay_seconds: int = 2) -> RetryPolicy:
    return RetryPolicy(
        max_attempts=max_attempts,
        base_delay_seconds=base_delay_seconds,
        now=lambda: _FIXED_NOW,
        jitter=_no_jitter,
    )


class RetryPolicyDecisionTest(unittest.TestCase):
    def test_retryable_statuses_retry_while_attempts_remain(self) -> None:
        policy = _policy(max_attempts=3)
        for status in (429, 500, 502, 503, 504):
            self.assertTrue(policy.should_retry(status, 1), status)
            self.assertTrue(policy.should_retry(status, 2), status)
            self.assertFalse(policy.should_retry(status, 3), status)

    def test_client_errors_never_retry(self) -> None:
        policy = _policy(max_attempts=10)
        for status in (400, 401, 403, 404, 409, 422):
            self.assertFalse(policy.should_retry(status, 1), status)

    def test_max_attempts_follow_network_retries(self) -> None:
        policy = RetryPolicy.from_network(NetworkRuntimeConfig(retries=2))
        self.assertEqual(policy.max_attempts, 3)

        no_retries = RetryPolicy.from_network(NetworkRuntimeConfig(retries=0))
        self.assertEqual(no_retries.max_attempts, 1)
        self.assertFalse(no_retries.should_retry(503, 1))

    def test_error_kinds(self) -> None:
        policy = _policy(max_attempts=3)
        self.assertTrue(policy.should_retry_error(ProviderError.timeout(5), 1))
        self.assertTrue(policy.should_retry_error(ProviderError.transport("reset"), 1))
        self.assertFalse(policy.should_retry_error(ProviderError.invalid_response("bad"), 1))
        self.assertFalse(policy.should_retry_error(ProviderError.unsupported("nope"), 1))
        self.assertFalse(policy.should_retry_error(ProviderError.http(404), 1))
        self.assertTrue(policy.should_retry_error(ProviderError.http(503), 1))
        self.assertFalse(policy.should_retry_error(ProviderError.timeout(5), 3))


class RetryPolicyDelayTest(unittest.TestCase):
    def test_retry_after_seconds(self) -> None:
        self.assertEqual(_policy().delay_seconds(1, {"Retry-After": "7"}), 7.0)

    def test_retry_after_header_name_is_case_insensitive(self) -> None:
        self.assertEqual(_policy().delay_seconds(3, {"retry-after": "0"}), 0.0)

    def test_retry_after_http_date(self) -> None:
        header = format_datetime(_FIXED_NOW + timedelta(seconds=9), usegmt=True)
        self.assertEqual(_policy().delay_seconds(1, {"Retry-After": header}), 9.0)

    def test_retry_after_date_in_the_past_clamps_to_zero(self) -> None:
        header = format_datetime(_FIXED_NOW - timedelta(minutes=5), usegmt=True)
        self.assertEqual(_policy().delay_seconds(1, {"Retry-After": header}), 0.0)

    def test_invalid_retry_after_falls_back_to_backoff(self) -> None:
        self.assertEqual(_policy().delay_seconds(1, {"Retry-After": "soon"}), 2.0)
        self.assertEqual(_policy().delay_seconds(1, {"Retry-After": "-3"}), 2.0)

    def test_non_finite_retry_after_falls_back_to_backoff(self) -> None:
        for value in ("inf", "Infinity", "nan", "1e999"):
            self.assertEqual(_policy().delay_seconds(1, {"Retry-After": value}), 2.0, value)

    def test_exponential_backoff(self) -> None:
        policy = _policy(base_delay_seconds=2)
        self.assertEqual(policy.delay_seconds(1), 2.0)
        self.assertEqual(policy.delay_seconds(2), 4.0)
        self.assertEqual(policy.delay_seconds(3), 8.0)

    def test_backoff_is_capped(self) -> None:
        self.assertEqual(_policy(base_delay_seconds=2).delay_seconds(12), MAX_BACKOFF_SECONDS)

    def test_jitter_is_symmetric_twenty_percent(self) -> None:
        bounds: list[tuple[float, float]] = []

        def recording_jitter(low: float, high: float) -> float:
            bounds.append((low, high))
            return high

        policy = RetryPolicy(max_attempts=3, base_delay_seconds=10, jitter=recording_jitter)
        self.assertAlmostEqual(policy.delay_seconds(1), 12.0)
        self.assertEqual(len(bounds), 1)
        self.assertAlmostEqual(bounds[0][0], -2.0)
        self.assertAlmostEqual(bounds[0][1], 2.0)

    def test_delay_is_never_negative(self) -> None:
        policy = RetryPolicy(max_attempts=3, base_delay_seconds=1, jitter=lambda low, high: -50.0)
        self.assertEqual(policy.delay_seconds(1), 0.0)


class RetryPolicySleepTest(unittest.IsolatedAsyncioTestCase):
    async def test_sleep_uses_injected_sleeper(self) -> None:
        slept: list[float] = []

        async def fake_sleep(delay: float) -> None:
            slept.append(delay)

        policy = RetryPolicy(
            max_attempts=3,
            base_delay_seconds=1,
            sleeper=fake_sleep,
            jitter=_no_jitter,
        )
        await policy.sleep(policy.delay_seconds(2))

        self.assertEqual(slept, [2.0])


if __name__ == "__main__":
    unittest.main()
