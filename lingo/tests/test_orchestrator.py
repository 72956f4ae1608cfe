from __future__ import annotations

import io
import json
import logging
import tempfile
import unittest
from pathlib import Path
from typing import AsyncIterator

from lingo.app.errors import AppError, ExitCode
from lingo.app.execution.orchestrator import (
    FILES_FAILED_MESSAGE,
    TranslateOptions,
    TranslationOrchestrator,
)
from lingo.app.terminal import Terminal
from lingo.app.translation.providers.base import ProviderError, TranslationProvider
from lingo.app.translation.types import ProviderRequest, ProviderResult, UsageInfo

_LOGGER = logging.getLogger("lingo.test.orchestrator")


class _FakeProvider(TranslationProvider):
    """Prefixes text with ``FR:``; texts containing ``fail`` raise an HTTP error."""

    def __init__(self, chunks: list[str] | None = None, fenced: bool = False) -> None:
        self._chunks = chunks
        self._fenced = fenced
        self.requests: list[ProviderRequest] = []

    @property
    def name(self) -> str:
        return "fake"

    async def translate(self, request: ProviderRequest) -> ProviderResult:
        self.requests.append(request)
        if "fail" in request.text:
            raise ProviderError.http(502, body="upstream unavailable")
        text = f"FR:{request.text.strip()}"
        if self._fenced:
            text = f"```\n{text}\n```"
        return ProviderResult(text=text, usage=UsageInfo(input_tokens=5, output_tokens=2))

    def stream_translate(self, request: ProviderRequest) -> AsyncIterator[str] | None:
        if self._chunks is None:
            return None
        return self._stream(request)

    async def _stream(self, request: ProviderRequest) -> AsyncIterator[str]:
        self.requests.append(request)
        for chunk in self._chunks:
            yield chunk


class OrchestratorTestCase(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.cwd = Path(self._tmp.name)
        self.home = self.cwd / "home"
        self.stdout = io.StringIO()
        self.stderr = io.StringIO()
        self.provider = _FakeProvider()

    def write(self, name: str, content: str) -> Path:
        path = self.cwd / name
        path.write_text(content, encoding="utf-8")
        return path

    async def run_options(
        self,
        env: dict[str, str] | None = None,
        provider_override: TranslationProvider | None = None,
        **kwargs,
    ):
        terminal = Terminal(
            stdout=self.stdout,
            stderr=self.stderr,
            stdin=io.StringIO(),
            quiet=kwargs.get("quiet", False),
            verbose=kwargs.get("verbose", False),
        )
        orchestrator = TranslationOrchestrator(
            terminal=terminal,
            logger=_LOGGER,
            env={"OPENAI_API_KEY": "sk-test"} if env is None else env,
            cwd=self.cwd,
            home=self.home,
            provider_override=provider_override or self.provider,
        )
        return await orchestrator.run(TranslateOptions(**kwargs))


class TextInputTest(OrchestratorTestCase):
    async def test_inline_text_to_stdout_strips_fence(self) -> None:
        provider = _FakeProvider(fenced=True)

        await self.run_options(provider_override=provider, inputs=["Hello world"], to_language="fr")

        self.assertEqual(self.stdout.getvalue(), "FR:Hello world\n")
        request = provider.requests[0]
        self.assertEqual(request.target.display_name, "French")
        self.assertTrue(request.source.is_auto)
        self.assertIn("from the source language to French", request.user_prompt)

    async def test_verbose_report(self) -> None:
        provider = _FakeProvider(fenced=True)

        await self.run_options(provider_override=provider, inputs=["Hello"], verbose=True)

        report = self.stderr.getvalue()
        self.assertIn("Info: Stripped wrapping code fence from LLM response.", report)
        self.assertIn("Info: Provider: openai", report)
        self.assertIn("Info: Model: gpt-4o-mini", report)
        self.assertIn("Info: Tokens: input=5, output=2", report)
        self.assertIn("Info: Output: stdout", report)

    async def test_streaming_writes_chunks(self) -> None:
        provider = _FakeProvider(chunks=["Bon", "jour"])

        await self.run_options(provider_override=provider, inputs=["Hello"], stream=True)

        self.assertEqual(self.stdout.getvalue(), "Bonjour\n")

    async def test_stream_ignored_when_writing_a_file(self) -> None:
        provider = _FakeProvider(chunks=["never"])

        await self.run_options(
            provider_override=provider, inputs=["Hello"], stream=True, output="out.txt"
        )

        self.assertEqual(self.stdout.getvalue(), "")
        self.assertEqual((self.cwd / "out.txt").read_text(encoding="utf-8"), "FR:Hello")

    async def test_verbose_and_quiet_conflict(self) -> None:
        with self.assertRaises(AppError) as raised:
            await self.run_options(inputs=["Hello"], verbose=True, quiet=True)
        self.assertEqual(raised.exception.exit_code, ExitCode.INVALID_ARGUMENTS)

    async def test_missing_api_key(self) -> None:
        with self.assertRaises(AppError) as raised:
            await self.run_options(env={}, inputs=["Hello"])
        self.assertEqual(raised.exception.exit_code, ExitCode.RUNTIME_ERROR)
        self.assertIn("OPENAI_API_KEY is required", raised.exception.message)

    async def test_dry_run_needs_no_credentials_and_sends_nothing(self) -> None:
        await self.run_options(env={}, inputs=["Hello"], dry_run=True, to_language="de")

        self.assertEqual(self.provider.requests, [])
        output = self.stdout.getvalue()
        self.assertTrue(output.startswith("=== DRY RUN ==="))
        self.assertIn("Target lang:    German", output)

    async def test_base_url_selects_openai_compatible(self) -> None:
        await self.run_options(
            env={}, inputs=["Hello"], base_url="http://localhost:1234/v1", model="qwen2.5"
        )

        self.assertIn(
            "Info: --base-url provided; provider set to openai-compatible.",
            self.stderr.getvalue(),
        )
        self.assertEqual(self.stdout.getvalue(), "FR:Hello\n")

    async def test_promptless_provider_ignores_prompt_flags(self) -> None:
        await self.run_options(
            env={"DEEPL_API_KEY": "key:fx"},
            inputs=["Hello"],
            provider="deepl",
            context="Greeting on a button",
        )

        self.assertIn(
            "Warning: --context is ignored when using deepl. "
            "This provider does not support custom prompts.",
            self.stderr.getvalue(),
        )
        request = self.provider.requests[0]
        self.assertIsNone(request.system_prompt)
        self.assertIsNone(request.user_prompt)
        self.assertEqual(request.prompt_text, "Hello")

    async def test_config_defaults_apply(self) -> None:
        self.home.mkdir()
        config = self.cwd / "lingo.toml"
        config.write_text('[defaults]\nto = "es"\npreset = "legal"\n', encoding="utf-8")

        await self.run_options(inputs=["Hello"], config=str(config))

        request = self.provider.requests[0]
        self.assertEqual(request.target.display_name, "Spanish")
        self.assertIn("legal translator", request.system_prompt)


class FileInputTest(OrchestratorTestCase):
    async def test_glob_writes_suffixed_files(self) -> None:
        self.write("a.md", "# Alpha\n")
        self.write("b.md", "# Beta\n")

        results = await self.run_options(inputs=["*.md"], to_language="fr", jobs=2)

        self.assertEqual([r.success for r in results], [True, True])
        self.assertEqual((self.cwd / "a_FR.md").read_text(encoding="utf-8"), "FR:# Alpha")
        self.assertEqual((self.cwd / "b_FR.md").read_text(encoding="utf-8"), "FR:# Beta")
        self.assertEqual(self.stdout.getvalue(), "")
        for request in self.provider.requests:
            self.assertIn("Translate the following markdown", request.user_prompt)

    async def test_single_file_goes_to_stdout(self) -> None:
        self.write("notes.txt", "Hello\n")

        results = await self.run_options(inputs=["notes.txt"])

        self.assertEqual(self.stdout.getvalue(), "FR:Hello\n")
        self.assertTrue(results[0].success)
        self.assertIsNone(results[0].destination)

    async def test_partial_failure_writes_the_rest(self) -> None:
        self.write("good.txt", "fine\n")
        self.write("bad.txt", "please fail\n")

        with self.assertRaises(AppError) as raised:
            await self.run_options(inputs=["good.txt", "bad.txt"], suffix=".fr")

        self.assertEqual(raised.exception.message, FILES_FAILED_MESSAGE)
        self.assertEqual((self.cwd / "good.fr.txt").read_text(encoding="utf-8"), "FR:fine")
        self.assertFalse((self.cwd / "bad.fr.txt").exists())
        errors = self.stderr.getvalue()
        self.assertIn("Translation complete: 1 succeeded, 1 failed.", errors)
        self.assertIn("  - bad.txt: API error (HTTP 502): upstream unavailable", errors)

    async def test_write_failure_marks_only_that_file_failed(self) -> None:
        self.write("a.md", "# Alpha\n")
        self.write("b.md", "# Beta\n")
        (self.cwd / "a_FR.md").mkdir()

        with self.assertRaises(AppError) as raised:
            await self.run_options(inputs=["*.md"], to_language="fr", jobs=2, yes=True)

        self.assertEqual(raised.exception.message, FILES_FAILED_MESSAGE)
        self.assertTrue((self.cwd / "a_FR.md").is_dir())
        self.assertEqual((self.cwd / "b_FR.md").read_text(encoding="utf-8"), "FR:# Beta")
        self.assertEqual(sorted(r.text for r in self.provider.requests), ["# Alpha\n", "# Beta\n"])
        errors = self.stderr.getvalue()
        self.assertIn("Translation complete: 1 succeeded, 1 failed.", errors)
        self.assertIn("  - a.md: Failed to write ", errors)

    async def test_unreadable_files_are_reported(self) -> None:
        self.write("good.txt", "fine\n")
        (self.cwd / "blob.bin").write_bytes(b"\x00\x01\x02")
        self.write("empty.txt", "")

        with self.assertRaises(AppError):
            await self.run_options(inputs=["good.txt", "blob.bin", "empty.txt"])

        errors = self.stderr.getvalue()
        self.assertIn("Warning: 'empty.txt' is empty. Skipping.", errors)
        self.assertIn("Error: 'blob.bin' appears to be a binary file", errors)
        self.assertEqual((self.cwd / "good_EN.txt").read_text(encoding="utf-8"), "FR:fine")

    async def test_only_empty_files_is_a_no_op(self) -> None:
        self.write("empty.txt", "  \n")

        results = await self.run_options(inputs=["empty.txt"])

        self.assertEqual(results, [])
        self.assertEqual(self.provider.requests, [])

    async def test_in_place_requires_confirmation(self) -> None:
        source = self.write("a.txt", "original\n")

        with self.assertRaises(AppError) as raised:
            await self.run_options(inputs=["a.txt"], in_place=True)

        self.assertEqual(raised.exception.exit_code, ExitCode.ABORTED)
        self.assertEqual(source.read_text(encoding="utf-8"), "original\n")
        self.assertEqual(self.provider.requests, [])

    async def test_in_place_with_yes(self) -> None:
        source = self.write("a.txt", "original\n")

        await self.run_options(inputs=["a.txt"], in_place=True, yes=True)

        self.assertEqual(source.read_text(encoding="utf-8"), "FR:original")

    async def test_existing_output_is_not_overwritten_without_confirmation(self) -> None:
        self.write("a.txt", "one\n")
        self.write("b.txt", "two\n")
        existing = self.write("a_EN.txt", "keep me")

        with self.assertRaises(AppError):
            await self.run_options(inputs=["a.txt", "b.txt"])

        self.assertEqual(existing.read_text(encoding="utf-8"), "keep me")
        self.assertEqual((self.cwd / "b_EN.txt").read_text(encoding="utf-8"), "FR:two")

    async def test_jobs_warning_for_text_input(self) -> None:
        await self.run_options(inputs=["Hello"], jobs=4)
        self.assertIn("Warning: --jobs has no effect for non-file input.", self.stderr.getvalue())


class CatalogInputTest(OrchestratorTestCase):
    def _catalog(self) -> Path:
        document = {
            "sourceLanguage": "en",
            "version": "1.0",
            "strings": {
                "greeting": {
                    "comment": "Home screen title",
                    "localizations": {
                        "en": {"stringUnit": {"state": "translated", "value": "Hello"}}
                    },
                },
                "Settings": {},
                "broken": {
                    "localizations": {
                        "en": {"stringUnit": {"state": "translated", "value": "fail me"}}
                    }
                },
            },
        }
        return self.write("Localizable.xcstrings", json.dumps(document))

    async def test_catalog_is_written_even_with_failed_segments(self) -> None:
        self._catalog()

        with self.assertRaises(AppError):
            await self.run_options(
                inputs=["Localizable.xcstrings"], to_language="zh-TW", output="out.xcstrings"
            )

        written = json.loads((self.cwd / "out.xcstrings").read_text(encoding="utf-8"))
        greeting = written["strings"]["greeting"]["localizations"]["zh-Hant"]["stringUnit"]
        self.assertEqual(greeting, {"state": "translated", "value": "FR:Hello"})
        self.assertEqual(
            written["strings"]["Settings"]["localizations"]["zh-Hant"]["stringUnit"]["value"],
            "FR:Settings",
        )
        self.assertNotIn("zh-Hant", written["strings"]["broken"]["localizations"])
        self.assertIn(
            "1 segment(s) failed in catalog translation.", self.stderr.getvalue()
        )

        greeting_request = next(r for r in self.provider.requests if r.text == "Hello")
        self.assertIn("Xcode string catalog", greeting_request.system_prompt)
        self.assertIn("Additional context: Home screen title", greeting_request.user_prompt)
        self.assertEqual(greeting_request.source.display_name, "English")

    async def test_catalog_dry_run(self) -> None:
        self._catalog()

        await self.run_options(inputs=["*.xcstrings"], to_language="fr", dry_run=True, jobs=3)

        output = self.stdout.getvalue()
        self.assertTrue(output.startswith("--- DRY RUN ---"))
        self.assertIn("Target language: French (fr)", output)
        self.assertIn("Max concurrent catalog requests: 3", output)
        self.assertEqual(self.provider.requests, [])


if __name__ == "__main__":
    unittest.main()
