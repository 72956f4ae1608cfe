from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from pathlib import Path
from time import monotonic
from typing import Callable, Mapping

from lingo.app.catalog.segments import Segment
from lingo.app.catalog.xcstrings import (
    CatalogWorkflow,
    StringCatalog,
    dry_run_description,
    is_catalog_file,
)
from lingo.app.config.resolver import (
    FORMAT_HINTS,
    OPENAI_COMPATIBLE,
    ConfigResolver,
    ResolvedConfig,
)
from lingo.app.config.store import load_config_table, resolve_config_path
from lingo.app.errors import AppError
from lingo.app.execution.sanitizer import strip_wrapping_code_fence
from lingo.app.execution.writer import ConfirmationPrompter, OutputWriter
from lingo.app.inputs.inspector import inspect_file
from lingo.app.inputs.planner import OutputPlanner, OutputPlanningRequest
from lingo.app.inputs.resolver import InputResolver
from lingo.app.inputs.types import (
    FileInspection,
    FilesInput,
    OutputMode,
    PerFileOutput,
    ResolvedInputFile,
    SingleFileOutput,
    StdoutOutput,
)
from lingo.app.languages import normalize_from, normalize_to
from lingo.app.prompts.dry_run import render_dry_run
from lingo.app.prompts.presets import PresetDefinition, PresetResolver
from lingo.app.prompts.renderer import TEXT, PromptContext, PromptRenderer, PromptSet, detect_format
from lingo.app.terminal import Terminal
from lingo.app.translation.factory import ProviderFactory, ProviderSelection
from lingo.app.translation.http.client import HttpClient
from lingo.app.translation.providers.base import ProviderError, TranslationProvider
from lingo.app.translation.scheduler import TranslationScheduler
from lingo.app.translation.types import (
    NetworkRuntimeConfig,
    NormalizedLanguage,
    ProviderRequest,
    TaskOutcome,
    TranslationFileResult,
    TranslationTask,
    UsageInfo,
)

CATALOG_PRESET = "xcode-strings"
NO_TARGET_MESSAGE = "No output target was planned for this file."
FILES_FAILED_MESSAGE = "One or more files failed."
STRIPPED_FENCE_MESSAGE = "Stripped wrapping code fence from LLM response."


@dataclass(frozen=True)
class TranslateOptions:
    inputs: list[str] = field(default_factory=list)
    text: bool = False
    output: str | None = None
    in_place: bool = False
    suffix: str | None = None
    stream: bool = False
    yes: bool = False
    jobs: int | None = None
    from_language: str | None = None
    to_language: str | None = None
    provider: str | None = None
    model: str | None = None
    base_url: str | None = None
    api_key: str | None = None
    preset: str | None = None
    system_prompt: str | None = None
    user_prompt: str | None = None
    context: str | None = None
    no_lang: bool = False
    format: str | None = None
    dry_run: bool = False
    config: str | None = None
    quiet: bool = False
    verbose: bool = False

    def ignored_prompt_flags(self) -> list[str]:
        flags = {
            "system-prompt": self.system_prompt,
            "user-prompt": self.user_prompt,
            "context": self.context,
            "preset": self.preset,
            "format": self.format,
        }
        return [flag for flag, value in flags.items() if value is not None]


@dataclass(frozen=True)
class _SingleResult:
    text: str
    stripped_fence: bool
    usage: UsageInfo | None
    elapsed_ms: int
    streamed: bool


@dataclass(frozen=True)
class _Invocation:
    """Everything resolved once per run, before any translation call."""

    options: TranslateOptions
    selection: ProviderSelection
    prompts: PromptSet
    source: NormalizedLanguage
    target: NormalizedLanguage
    format_hint: str
    jobs: int
    assume_yes: bool
    stream: bool
    network: NetworkRuntimeConfig
    output_mode: OutputMode
    user_presets: PresetResolver


class TranslationOrchestrator:
    def __init__(
        self,
        terminal: Terminal,
        logger: logging.Logger,
        env: Mapping[str, str],
        cwd: Path,
        home: Path,
        http_client: HttpClient | None = None,
        provider_override: TranslationProvider | None = None,
    ) -> None:
        self._terminal = terminal
        self._logger = logger
        self._env = env
        self._cwd = cwd
        self._home = home
        self._http = http_client or HttpClient(logger=logger)
        self._provider_override = provider_override
        self._renderer = PromptRenderer(cwd, home)

    async def run(self, options: TranslateOptions) -> list[TranslationFileResult]:
        if options.verbose and options.quiet:
            raise AppError.invalid_arguments("--verbose and --quiet cannot be used together.")

        config_path = resolve_config_path(options.config, self._env, self._cwd, self._home)
        config_resolver = ConfigResolver()
        config = config_resolver.resolve(config_path, load_config_table(config_path))
        for warning in config_resolver.collision_warnings(config):
            self._terminal.warn(warning)

        presets = PresetResolver(config.presets)
        preset = presets.resolve(options.preset or config.defaults_preset)

        if options.base_url is not None and options.provider is None:
            provider_name = OPENAI_COMPATIBLE
            self._terminal.info("--base-url provided; provider set to openai-compatible.")
        else:
            provider_name = options.provider or preset.provider or config.defaults_provider

        source = normalize_from(
            options.from_language or preset.from_language or config.defaults_from
        )
        target = normalize_to(options.to_language or preset.to_language or config.defaults_to)

        preset_format = (preset.format or "").lower()
        format_hint = (
            options.format
            or (preset_format if preset_format in FORMAT_HINTS else None)
            or config.defaults_format
        )
        jobs = max(1, options.jobs if options.jobs is not None else config.defaults_jobs)

        input_mode = InputResolver(self._terminal, self._cwd).resolve(
            options.inputs, force_text=options.text
        )
        if options.jobs is not None and not isinstance(input_mode, FilesInput):
            self._terminal.warn("--jobs has no effect for non-file input.")

        plan = OutputPlanner().plan(
            OutputPlanningRequest(
                input_mode=input_mode,
                target_language=target,
                cwd=self._cwd,
                output_path=options.output,
                in_place=options.in_place,
                suffix=options.suffix,
            )
        )
        for warning in plan.warnings:
            self._terminal.warn(warning)

        def resolve_invocation() -> _Invocation:
            return self._invocation(
                options,
                config,
                provider_name,
                preset,
                source,
                target,
                format_hint,
                jobs,
                plan.mode,
                presets,
            )

        if not isinstance(input_mode, FilesInput):
            await self._translate_text(resolve_invocation(), input_mode.text)
            return []
        return await self._run_files(input_mode, resolve_invocation)

    async def _run_files(
        self,
        input_mode: FilesInput,
        resolve_invocation: Callable[[], _Invocation],
    ) -> list[TranslationFileResult]:
        catalog_files = [f for f in input_mode.files if is_catalog_file(f.path.name)]
        inspections = [
            inspect_file(f) for f in input_mode.files if not is_catalog_file(f.path.name)
        ]
        for inspection in inspections:
            if inspection.warning is not None:
                self._terminal.warn(inspection.warning)

        results: list[TranslationFileResult] = []
        for inspection in inspections:
            if inspection.error is not None:
                self._terminal.error(f"Error: {inspection.error}")
                results.append(_failed(inspection.file, inspection.error))
        valid = [inspection for inspection in inspections if inspection.content is not None]
        if not valid and not catalog_files:
            if results:
                raise AppError.runtime(FILES_FAILED_MESSAGE)
            return results

        invocation = resolve_invocation()
        mode = invocation.output_mode
        if isinstance(mode, PerFileOutput) and mode.in_place:
            ConfirmationPrompter(self._terminal, invocation.assume_yes).confirm(
                f"This will overwrite {len(mode.targets)} file(s). Proceed? [y/N]"
            )

        if invocation.options.dry_run:
            self._dry_run_files(invocation, valid, catalog_files)
            return results

        writer = self._writer(invocation)
        destinations = _destination_map(mode, input_mode.files)
        for file in catalog_files:
            results.append(await self._translate_catalog(invocation, file, writer, destinations))
        results.extend(await self._translate_files(invocation, valid, writer, destinations))

        failures = [result for result in results if not result.success]
        succeeded = len(results) - len(failures)
        self._logger.info(
            "translation_invocation_completed",
            extra={
                "event": "translation_invocation_completed",
                "provider_name": invocation.selection.name,
                "files_succeeded": succeeded,
                "files_failed": len(failures),
            },
        )
        if failures:
            self._terminal.write_stderr(
                f"Translation complete: {succeeded} succeeded, {len(failures)} failed."
            )
            self._terminal.write_stderr("Failed files:")
            for failed in failures:
                self._terminal.write_stderr(
                    f"  - {failed.file.name}: {failed.error_message or 'unknown error'}"
                )
            raise AppError.runtime(FILES_FAILED_MESSAGE)
        return results

    def _invocation(
        self,
        options: TranslateOptions,
        config: ResolvedConfig,
        provider_name: str,
        preset: PresetDefinition,
        source: NormalizedLanguage,
        target: NormalizedLanguage,
        format_hint: str,
        jobs: int,
        output_mode: OutputMode,
        presets: PresetResolver,
    ) -> _Invocation:
        selection = ProviderFactory(config, self._env, self._http).make(
            provider_name,
            model_override=options.model or preset.model,
            base_url_override=options.base_url,
            api_key_override=options.api_key,
            explicit_provider=options.provider is not None,
            require_credentials=not options.dry_run,
        )
        if self._provider_override is not None:
            selection = replace(selection, provider=self._provider_override)

        if selection.promptless:
            prompts = PromptSet(system_prompt="", user_prompt="")
            for flag in options.ignored_prompt_flags():
                self._terminal.warn(
                    f"--{flag} is ignored when using {selection.name}. "
                    "This provider does not support custom prompts."
                )
        else:
            prompts, warnings = self._renderer.resolve(
                preset, options.system_prompt, options.user_prompt, options.no_lang
            )
            for warning in warnings:
                self._terminal.warn(warning)

        self._logger.info(
            "translation_invocation_started",
            extra={
                "event": "translation_invocation_started",
                "provider_name": selection.name,
                "model": selection.model,
                "jobs": jobs,
                "output_mode": type(output_mode).__name__,
                "dry_run": options.dry_run,
            },
        )
        return _Invocation(
            options=options,
            selection=selection,
            prompts=prompts,
            source=source,
            target=target,
            format_hint=format_hint,
            jobs=jobs,
            assume_yes=options.yes or config.defaults_yes,
            stream=options.stream or config.defaults_stream,
            network=config.network,
            output_mode=output_mode,
            user_presets=presets,
        )

    def _writer(self, invocation: _Invocation) -> OutputWriter:
        return OutputWriter(
            self._terminal, ConfirmationPrompter(self._terminal, invocation.assume_yes)
        )

    def _request(
        self,
        invocation: _Invocation,
        text: str,
        prompts: PromptSet,
        source: NormalizedLanguage | None = None,
    ) -> ProviderRequest:
        return ProviderRequest(
            source=source or invocation.source,
            target=invocation.target,
            system_prompt=prompts.system_prompt or None,
            user_prompt=prompts.user_prompt or None,
            text=text,
            timeout_seconds=invocation.network.timeout_seconds,
            network=invocation.network,
        )

    def _render(
        self,
        invocation: _Invocation,
        text: str,
        input_file: Path | None,
    ) -> PromptSet:
        return self._renderer.render(
            invocation.prompts,
            PromptContext(
                text=text,
                source=invocation.source,
                target=invocation.target,
                context=invocation.options.context or "",
                filename=input_file.name if input_file is not None else "",
                format=detect_format(invocation.format_hint, input_file),
            ),
        )

    async def _translate_text(self, invocation: _Invocation, text: str) -> None:
        prompts = self._render(invocation, text, None)
        if invocation.options.dry_run:
            self._terminal.write_stdout(self._dry_run_text(invocation, prompts, text))
            return

        result = await self._translate_single(
            invocation, text, prompts, isinstance(invocation.output_mode, StdoutOutput)
        )
        destination: Path | None = None
        if not result.streamed:
            writer = self._writer(invocation)
            if isinstance(invocation.output_mode, SingleFileOutput):
                destination = invocation.output_mode.path
                self._write_file(writer, result.text, destination)
            else:
                writer.write_stdout(result.text)
        self._report(
            invocation, result.stripped_fence, result.usage, result.elapsed_ms, destination
        )

    async def _translate_single(
        self,
        invocation: _Invocation,
        text: str,
        prompts: PromptSet,
        to_stdout: bool,
    ) -> _SingleResult:
        request = self._request(invocation, text, prompts)
        provider = invocation.selection.provider
        started = monotonic()

        stream = provider.stream_translate(request) if to_stdout and invocation.stream else None
        if stream is not None:
            chunks: list[str] = []
            async for chunk in stream:
                self._terminal.write_stdout(chunk, end="")
                chunks.append(chunk)
            aggregated = "".join(chunks)
            if not aggregated.endswith("\n"):
                self._terminal.write_stdout("")
            return _SingleResult(
                text=aggregated,
                stripped_fence=False,
                usage=None,
                elapsed_ms=int((monotonic() - started) * 1000),
                streamed=True,
            )

        response = await provider.translate(request)
        sanitized, stripped = strip_wrapping_code_fence(response.text)
        return _SingleResult(
            text=sanitized,
            stripped_fence=stripped,
            usage=response.usage,
            elapsed_ms=int((monotonic() - started) * 1000),
            streamed=False,
        )

    async def _translate_files(
        self,
        invocation: _Invocation,
        inspections: list[FileInspection],
        writer: OutputWriter,
        destinations: dict[Path, Path],
    ) -> list[TranslationFileResult]:
        if not inspections:
            return []

        if len(inspections) == 1 and isinstance(invocation.output_mode, StdoutOutput):
            return [await self._translate_file_to_stdout(invocation, inspections[0])]

        tasks = []
        for index, inspection in enumerate(inspections):
            text = inspection.content or ""
            prompts = self._render(invocation, text, inspection.file.path)
            tasks.append(
                TranslationTask(
                    index=index,
                    key=str(inspection.file.path),
                    request=self._request(invocation, text, prompts),
                )
            )

        jobs = invocation.jobs if len(tasks) > 1 else 1
        scheduler = TranslationScheduler(invocation.selection.provider, jobs, self._logger)
        outcomes = await scheduler.run(tasks)
        self._logger.info(
            "translation_batch_settled",
            extra={"event": "translation_batch_settled", "metrics": scheduler.snapshot()},
        )

        return [
            self._settle(invocation, inspection, outcome, writer, destinations)
            for inspection, outcome in zip(inspections, outcomes)
        ]

    async def _translate_file_to_stdout(
        self,
        invocation: _Invocation,
        inspection: FileInspection,
    ) -> TranslationFileResult:
        text = inspection.content or ""
        prompts = self._render(invocation, text, inspection.file.path)
        try:
            result = await self._translate_single(invocation, text, prompts, to_stdout=True)
        except ProviderError as exc:
            return _failed(inspection.file, exc.message)

        if not result.streamed:
            self._terminal.write_stdout(result.text)
        self._report(invocation, result.stripped_fence, result.usage, result.elapsed_ms, None)
        return TranslationFileResult(file=inspection.file.path, destination=None, success=True)

    def _settle(
        self,
        invocation: _Invocation,
        inspection: FileInspection,
        outcome: TaskOutcome,
        writer: OutputWriter,
        destinations: dict[Path, Path],
    ) -> TranslationFileResult:
        if not outcome.succeeded or outcome.text is None:
            return _failed(inspection.file, outcome.error)

        mode = invocation.output_mode
        destination: Path | None = None
        try:
            if isinstance(mode, StdoutOutput):
                writer.write_stdout(outcome.text)
            elif isinstance(mode, SingleFileOutput):
                destination = mode.path
                self._write_file(writer, outcome.text, destination)
            else:
                destination = destinations.get(inspection.file.path)
                if destination is None:
                    return _failed(inspection.file, NO_TARGET_MESSAGE)
                writer.write_file(outcome.text, destination, confirm_overwrite=not mode.in_place)
        except AppError as exc:
            return _failed(inspection.file, exc.message)
        except OSError as exc:
            return _failed(inspection.file, f"Failed to write '{destination}': {exc}")

        self._report(
            invocation, outcome.stripped_fence, outcome.usage, outcome.elapsed_ms, destination
        )
        return TranslationFileResult(
            file=inspection.file.path, destination=destination, success=True
        )

    async def _translate_catalog(
        self,
        invocation: _Invocation,
        file: ResolvedInputFile,
        writer: OutputWriter,
        destinations: dict[Path, Path],
    ) -> TranslationFileResult:
        try:
            content = file.path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            return _failed(file, f"Failed to read '{file.path.name}': {exc}")

        catalog_prompts = self._catalog_prompts(invocation)

        def build_request(catalog: StringCatalog, segment: Segment) -> ProviderRequest:
            source = _catalog_source_language(catalog.source_language)
            prompts = self._renderer.render(
                catalog_prompts,
                PromptContext(
                    text=segment.text,
                    source=source,
                    target=invocation.target,
                    context=segment.context,
                    filename=file.path.name,
                    format=TEXT,
                ),
            )
            return self._request(invocation, segment.text, prompts, source=source)

        workflow = CatalogWorkflow(invocation.selection.provider, invocation.jobs, self._logger)
        try:
            translation = await workflow.translate(
                content, file.path.name, invocation.target.provider_code, build_request
            )
        except AppError as exc:
            return _failed(file, exc.message)

        mode = invocation.output_mode
        destination: Path | None = None
        try:
            if isinstance(mode, StdoutOutput):
                writer.write_stdout(translation.text)
            elif isinstance(mode, SingleFileOutput):
                destination = mode.path
                self._write_file(writer, translation.text, destination)
            else:
                destination = destinations.get(file.path)
                if destination is None:
                    return _failed(file, NO_TARGET_MESSAGE)
                writer.write_file(
                    translation.text, destination, confirm_overwrite=not mode.in_place
                )
        except AppError as exc:
            return _failed(file, exc.message)
        except OSError as exc:
            return _failed(file, f"Failed to write '{destination}': {exc}")

        summary = translation.failure_summary
        return TranslationFileResult(
            file=file.path,
            destination=destination,
            success=summary is None,
            error_message=summary,
        )

    def _catalog_prompts(self, invocation: _Invocation) -> PromptSet:
        if invocation.selection.promptless:
            return PromptSet(system_prompt="", user_prompt="")
        preset = invocation.user_presets.resolve(CATALOG_PRESET)
        prompts, _ = self._renderer.resolve(preset, None, None, no_lang=True)
        return prompts

    def _dry_run_files(
        self,
        invocation: _Invocation,
        inspections: list[FileInspection],
        catalog_files: list[ResolvedInputFile],
    ) -> None:
        if inspections:
            first = inspections[0]
            text = first.content or ""
            prompts = self._render(invocation, text, first.file.path)
            self._terminal.write_stdout(self._dry_run_text(invocation, prompts, text))
            return
        if catalog_files:
            self._terminal.write_stdout(
                dry_run_description(
                    provider_name=invocation.selection.name,
                    model=invocation.selection.model,
                    target_display_name=invocation.target.display_name,
                    target_code=invocation.target.provider_code,
                    jobs=invocation.jobs,
                    files=[str(f.path) for f in catalog_files],
                )
            )

    def _dry_run_text(self, invocation: _Invocation, prompts: PromptSet, text: str) -> str:
        return render_dry_run(
            provider=invocation.selection.name,
            model=invocation.selection.model,
            source=invocation.source,
            target=invocation.target,
            prompts=prompts,
            input_text=text,
        )

    def _write_file(self, writer: OutputWriter, text: str, destination: Path) -> None:
        try:
            writer.write_file(text, destination)
        except OSError as exc:
            raise AppError.runtime(f"Error: Failed to write '{destination}': {exc}") from exc

    def _report(
        self,
        invocation: _Invocation,
        stripped_fence: bool,
        usage: UsageInfo | None,
        elapsed_ms: int,
        destination: Path | None,
    ) -> None:
        if not invocation.options.verbose:
            return
        if stripped_fence:
            self._terminal.info(STRIPPED_FENCE_MESSAGE)
        self._terminal.info(f"Provider: {invocation.selection.name}")
        self._terminal.info(f"Model: {invocation.selection.model or '(provider default)'}")
        if usage is not None:
            input_tokens = "n/a" if usage.input_tokens is None else str(usage.input_tokens)
            output_tokens = "n/a" if usage.output_tokens is None else str(usage.output_tokens)
            self._terminal.info(f"Tokens: input={input_tokens}, output={output_tokens}")
        else:
            self._terminal.info("Tokens: unavailable")
        self._terminal.info(f"Elapsed: {elapsed_ms}ms")
        self._terminal.info(f"Output: {destination if destination is not None else 'stdout'}")


def _failed(file: ResolvedInputFile, message: str | None) -> TranslationFileResult:
    return TranslationFileResult(
        file=file.path, destination=None, success=False, error_message=message
    )


def _destination_map(mode: OutputMode, files: tuple[ResolvedInputFile, ...]) -> dict[Path, Path]:
    if isinstance(mode, SingleFileOutput):
        return {files[0].path: mode.path} if files else {}
    if isinstance(mode, PerFileOutput):
        return {target.source.path: target.destination for target in mode.targets}
    return {}


def _catalog_source_language(code: str) -> NormalizedLanguage:
    try:
        return normalize_from(code)
    except AppError:
        return NormalizedLanguage(input=code, display_name=code, provider_code=code)
