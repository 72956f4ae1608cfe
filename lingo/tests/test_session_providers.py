from __future__ import annotations

import json
import logging
import unittest
from typing import AsyncIterator

import httpx

from lingo.app.translation.http.client import HttpClient
from lingo.app.translation.providers.base import (
    INVALID_RESPONSE,
    TIMEOUT,
    TRANSPORT,
    ProviderError,
)
from lingo.app.translation.providers.session import (
    ModelSession,
    OllamaSession,
    SessionProvider,
    map_session_error,
    ollama_base_url,
)
from lingo.app.translation.types import (
    NetworkRuntimeConfig,
    NormalizedLanguage,
    ProviderRequest,
    ProviderResult,
)


def _request(system_prompt: str | None = "Translate to French.") -> ProviderRequest:
    network = NetworkRuntimeConfig(timeout_seconds=9, retries=0)
    return ProviderRequest(
        source=NormalizedLanguage(input="en", display_name="English", provider_code="en"),
        target=NormalizedLanguage(input="fr", display_name="French", provider_code="fr"),
        system_prompt=system_prompt,
        user_prompt="Translate: Hello",
        text="Hello",
        timeout_seconds=network.timeout_seconds,
        network=network,
    )


class _FakeSession(ModelSession):
    def __init__(
        self,
        reply: str = "Bonjour",
        snapshots: list[str] | None = None,
        error: BaseException | None = None,
    ) -> None:
        self._reply = reply
        self._snapshots = snapshots or []
        self._error = error
        self.prompts: list[str] = []

    async def respond(self, prompt: str) -> ProviderResult:
        self.prompts.append(prompt)
        if self._error is not None:
            raise self._error
        return ProviderResult(text=self._reply)

    async def stream_response(self, prompt: str) -> AsyncIterator[str]:
        self.prompts.append(prompt)
        for snapshot in self._snapshots:
            yield snapshot
        if self._error is not None:
            raise self._error


class MapSessionErrorTest(unittest.TestCase):
    def test_timeouts(self) -> None:
        self.assertEqual(map_session_error(TimeoutError(), "ollama", 30).kind, TIMEOUT)
        mapped = map_session_error(RuntimeError("The request timed out."), "ollama", 30)
        self.assertEqual(mapped.kind, TIMEOUT)
        self.assertEqual(mapped.seconds, 30)

    def test_generic_failure(self) -> None:
        mapped = map_session_error(RuntimeError("model not loaded"), "ollama", 30)
        self.assertEqual(mapped.kind, TRANSPORT)
        self.assertEqual(mapped.message, "Error: ollama request failed: model not loaded")

    def test_provider_errors_pass_through(self) -> None:
        original = ProviderError.invalid_response("bad")
        self.assertIs(map_session_error(original, "ollama", 30), original)


class SessionProviderTest(unittest.IsolatedAsyncioTestCase):
    async def test_translate_uses_rendered_prompt(self) -> None:
        session = _FakeSession()
        provider = SessionProvider("ollama", lambda request: session)

        result = await provider.translate(_request())

        self.assertEqual(provider.name, "ollama")
        self.assertEqual(result.text, "Bonjour")
        self.assertEqual(session.prompts, ["Translate: Hello"])

    async def test_blank_reply_is_invalid(self) -> None:
        provider = SessionProvider("ollama", lambda request: _FakeSession(reply="  "))

        with self.assertRaises(ProviderError) as raised:
            await provider.translate(_request())

        self.assertEqual(raised.exception.kind, INVALID_RESPONSE)

    async def test_session_exception_is_mapped(self) -> None:
        session = _FakeSession(error=ConnectionResetError("peer went away"))
        provider = SessionProvider("ollama", lambda request: session)

        with self.assertRaises(ProviderError) as raised:
            await provider.translate(_request())

        self.assertEqual(raised.exception.kind, TRANSPORT)
        self.assertIn("peer went away", raised.exception.message)

    async def test_stream_emits_deltas_across_resets(self) -> None:
        session = _FakeSession(snapshots=["Bon", "Bonjour", "Bonjour", "Salut", "Salut !"])
        provider = SessionProvider("ollama", lambda request: session)

        chunks = [chunk async for chunk in provider.stream_translate(_request())]

        self.assertEqual(chunks, ["Bon", "jour", "Salut", " !"])

    async def test_stream_timeout_is_mapped(self) -> None:
        session = _FakeSession(snapshots=["Bon"], error=TimeoutError())
        provider = SessionProvider("ollama", lambda request: session)

        received: list[str] = []
        with self.assertRaises(ProviderError) as raised:
            async for chunk in provider.stream_translate(_request()):
                received.append(chunk)

        self.assertEqual(received, ["Bon"])
        self.assertEqual(raised.exception.kind, TIMEOUT)
        self.assertEqual(raised.exception.seconds, 9)

    async def test_empty_stream_is_invalid(self) -> None:
        provider = SessionProvider("ollama", lambda request: _FakeSession(snapshots=[""]))

        with self.assertRaises(ProviderError) as raised:
            async for _ in provider.stream_translate(_request()):
                pass

        self.assertEqual(raised.exception.kind, INVALID_RESPONSE)


class _Recorder:
    def __init__(self, response: httpx.Response) -> None:
        self._response = response
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self._response


def _http(recorder: _Recorder) -> HttpClient:
    async def no_sleep(delay: float) -> None:
        return None

    return HttpClient(
        logger=logging.getLogger("lingo.test.ollama"),
        transport=httpx.MockTransport(recorder),
        sleeper=no_sleep,
        jitter=lambda low, high: 0.0,
    )


class OllamaSessionTest(unittest.IsolatedAsyncioTestCase):
    def test_base_url_drops_openai_suffix(self) -> None:
        self.assertEqual(ollama_base_url("http://localhost:11434/v1"), "http://localhost:11434")
        self.assertEqual(ollama_base_url("http://localhost:11434/"), "http://localhost:11434")
        self.assertEqual(ollama_base_url("http://box/proxy/v1/"), "http://box/proxy")
        with self.assertRaises(ProviderError):
            ollama_base_url("localhost")

    async def test_respond(self) -> None:
        payload = {
            "message": {"role": "assistant", "content": "Bonjour"},
            "prompt_eval_count": 31,
            "eval_count": 4,
        }
        recorder = _Recorder(httpx.Response(200, json=payload))
        session = OllamaSession(
            "http://localhost:11434/v1", "llama3.2", _request(), _http(recorder)
        )

        result = await session.respond("Translate: Hello")

        self.assertEqual(result.text, "Bonjour")
        self.assertEqual((result.usage.input_tokens, result.usage.output_tokens), (31, 4))
        sent = recorder.requests[0]
        self.assertEqual(str(sent.url), "http://localhost:11434/api/chat")
        self.assertEqual(
            json.loads(sent.content),
            {
                "model": "llama3.2",
                "stream": False,
                "messages": [
                    {"role": "system", "content": "Translate to French."},
                    {"role": "user", "content": "Translate: Hello"},
                ],
            },
        )

    async def test_blank_system_prompt_is_omitted(self) -> None:
        recorder = _Recorder(httpx.Response(200, json={"message": {"content": "Hi"}}))
        session = OllamaSession(
            "http://localhost:11434", "llama3.2", _request(system_prompt="  "), _http(recorder)
        )

        await session.respond("Hello")

        messages = json.loads(recorder.requests[0].content)["messages"]
        self.assertEqual(messages, [{"role": "user", "content": "Hello"}])

    async def test_stream_response_yields_cumulative_snapshots(self) -> None:
        lines = [
            {"message": {"content": "Bon"}, "done": False},
            {"message": {"content": "jour"}, "done": False},
            {"message": {"content": ""}, "done": True},
        ]
        body = "\n".join(json.dumps(line) for line in lines) + "\n"
        recorder = _Recorder(httpx.Response(200, text=body))
        session = OllamaSession("http://localhost:11434", "llama3.2", _request(), _http(recorder))

        snapshots = [snapshot async for snapshot in session.stream_response("Hello")]

        self.assertEqual(snapshots, ["Bon", "Bonjour"])
        self.assertTrue(json.loads(recorder.requests[0].content)["stream"])

    async def test_stream_error_event(self) -> None:
        recorder = _Recorder(httpx.Response(200, text='{"error": "model not found"}\n'))
        session = OllamaSession("http://localhost:11434", "missing", _request(), _http(recorder))

        with self.assertRaises(ProviderError) as raised:
            async for _ in session.stream_response("Hello"):
                pass

        self.assertEqual(raised.exception.message, "model not found")


if __name__ == "__main__":
    unittest.main()
