from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterator

import httpx

from lingo.app.translation.http.retry import Clock, Jitter, RetryPolicy, Sleeper
from lingo.app.translation.providers.base import (
    INVALID_JSON_MESSAGE,
    ProviderError,
    raise_for_status,
)
from lingo.app.translation.types import NetworkRuntimeConfig


@dataclass(frozen=True)
class HttpRequest:
    url: str
    timeout_seconds: int
    network: NetworkRuntimeConfig
    method: str = "POST"
    headers: dict[str, str] = field(default_factory=dict)
    json_body: Any = None


@dataclass(frozen=True)
class HttpResponse:
    status_code: int
    headers: dict[str, str]
    body: bytes

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")

    def json(self) -> Any:
        try:
            return json.loads(self.body)
        except ValueError as exc:
            raise ProviderError.invalid_response(INVALID_JSON_MESSAGE) from exc


class HttpClient:
    def __init__(
        self,
        logger: logging.Logger | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        sleeper: Sleeper | None = None,
        now: Clock | None = None,
        jitter: Jitter | None = None,
    ) -> None:
        self._logger = logger or logging.getLogger("lingo.http")
        self._transport = transport
        self._sleeper = sleeper
        self._now = now
        self._jitter = jitter

    def retry_policy(self, network: NetworkRuntimeConfig) -> RetryPolicy:
        return RetryPolicy.from_network(
            network,
            sleeper=self._sleeper,
            now=self._now,
            jitter=self._jitter,
        )

    async def send(self, request: HttpRequest) -> HttpResponse:
        policy = self.retry_policy(request.network)
        attempt = 1
        while True:
            try:
                response = await self._single_attempt(request)
            except ProviderError as exc:
                if not policy.should_retry_error(exc, attempt):
                    raise
                await self._backoff(policy, attempt, exc.headers, reason=exc.kind)
                attempt += 1
                continue

            if policy.should_retry(response.status_code, attempt):
                await self._backoff(
                    policy,
                    attempt,
                    response.headers,
                    reason=f"http_{response.status_code}",
                )
                attempt += 1
                continue
            return response

    async def stream_lines(self, request: HttpRequest) -> AsyncIterator[str]:
        policy = self.retry_policy(request.network)
        attempt = 1
        while True:
            retry_headers: dict[str, str] = {}
            started = False
            try:
                async with self._client(request) as client:
                    async with client.stream(
                        request.method,
                        request.url,
                        headers=request.headers,
                        json=request.json_body,
                    ) as response:
                        headers = dict(response.headers)
                        if not 200 <= response.status_code < 300:
                            body = (await response.aread()).decode("utf-8", errors="replace")
                            if not policy.should_retry(response.status_code, attempt):
                                raise_for_status(response.status_code, headers, body)
                            retry_headers = headers
                        else:
                            # Lines already handed out cannot be replayed.
                            started = True
                            async for line in response.aiter_lines():
                                yield line
                            return
            except httpx.TimeoutException as exc:
                error = ProviderError.timeout(request.timeout_seconds)
                if started or not policy.should_retry_error(error, attempt):
                    raise error from exc
            except httpx.HTTPError as exc:
                error = ProviderError.transport(_describe(exc))
                if started or not policy.should_retry_error(error, attempt):
                    raise error from exc

            await self._backoff(policy, attempt, retry_headers, reason="stream")
            attempt += 1

    def _client(self, request: HttpRequest) -> httpx.AsyncClient:
        timeout = httpx.Timeout(float(request.timeout_seconds))
        return httpx.AsyncClient(timeout=timeout, transport=self._transport)

    async def _single_attempt(self, request: HttpRequest) -> HttpResponse:
        try:
            async with self._client(request) as client:
                response = await client.request(
                    request.method,
                    request.url,
                    headers=request.headers,
                    json=request.json_body,
                )
        except httpx.TimeoutException as exc:
            raise ProviderError.timeout(request.timeout_seconds) from exc
        except httpx.HTTPError as exc:
            raise ProviderError.transport(_describe(exc)) from exc

        return HttpResponse(
            status_code=response.status_code,
            headers=dict(response.headers),
            body=response.content,
        )

    async def _backoff(
        self,
        policy: RetryPolicy,
        attempt: int,
        headers: dict[str, str],
        reason: str,
    ) -> None:
        delay = policy.delay_seconds(attempt, headers)
        self._logger.info(
            "http_retry_scheduled",
            extra={
                "event": "http_retry_scheduled",
                "attempt": attempt,
                "max_attempts": policy.max_attempts,
                "delay_seconds": round(delay, 3),
                "reason": reason,
            },
        )
        await policy.sleep(delay)


def _describe(exc: Exception) -> str:
    message = str(exc).strip()
    return message or exc.__class__.__name__
