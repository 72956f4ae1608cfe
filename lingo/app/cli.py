from __future__ import annotations

import argparse
import asyncio
import logging
import os
import shlex
import subprocess
import sys
from pathlib import Path
from typing import Callable, Mapping, Sequence

from lingo.app.config.resolver import ConfigResolver, ResolvedConfig
from lingo.app.config.store import (
    format_value,
    load_config_table,
    lookup_key,
    parse_scalar,
    resolve_config_path,
    save_config_table,
    set_key,
    unset_key,
)
from lingo.app.errors import AppError, ExitCode
from lingo.app.execution.orchestrator import TranslateOptions, TranslationOrchestrator
from lingo.app.logging_config import configure_logging
from lingo.app.prompts.presets import PresetResolver
from lingo.app.settings import build_settings
from lingo.app.terminal import Terminal
from lingo.app.translation.http.client import HttpClient
from lingo.app.translation.providers.base import ProviderError, TranslationProvider

CONFIG_COMMAND = "config"
PRESETS_COMMAND = "presets"
PRESET_NAME_WIDTH = 14
FALLBACK_EDITOR = "notepad" if os.name == "nt" else "vi"

EditorRunner = Callable[[list[str]], int]


def _service_logger() -> logging.Logger:
    return logging.getLogger("lingo.cli")


def _build_translate_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lingo",
        description="Translate text, files, or piped input with an LLM or translation API. "
        "Subcommands: 'lingo config show|path|get|set|unset|edit', "
        "'lingo presets list|show|which'.",
    )
    parser.add_argument("inputs", nargs="*", metavar="INPUT", help="Text, file paths, or globs.")
    parser.add_argument(
        "--text",
        action="store_true",
        help="Treat the single positional argument as literal text.",
    )
    parser.add_argument("-o", "--output", help="Write output to this file.")
    parser.add_argument(
        "-i",
        "--in-place",
        action="store_true",
        help="Overwrite the input files with their translations.",
    )
    parser.add_argument("--suffix", help="Suffix inserted before the extension of output files.")
    parser.add_argument(
        "--stream",
        action="store_true",
        help="Stream output to stdout as it arrives.",
    )
    parser.add_argument(
        "-y",
        "--yes",
        action="store_true",
        help="Skip confirmation prompts.",
    )
    parser.add_argument("-j", "--jobs", type=int, help="Maximum parallel file translations.")
    parser.add_argument("-f", "--from", dest="from_language", help="Source language (or auto).")
    parser.add_argument("-t", "--to", dest="to_language", help="Target language.")
    parser.add_argument("-p", "--provider", help="Provider name or named endpoint.")
    parser.add_argument("-m", "--model", help="Model override.")
    parser.add_argument("--base-url", help="Base URL for openai-compatible providers.")
    parser.add_argument("--api-key", help="API key override.")
    parser.add_argument("--preset", help="Prompt preset name.")
    parser.add_argument("--system-prompt", help="System prompt template or @file.")
    parser.add_argument("--user-prompt", help="User prompt template or @file.")
    parser.add_argument("-c", "--context", help="Additional context for the translator.")
    parser.add_argument(
        "--no-lang",
        action="store_true",
        help="Suppress the missing {from}/{to} placeholder warning for custom prompts.",
    )
    parser.add_argument(
        "--format",
        choices=("auto", "text", "markdown", "html"),
        help="Input format hint.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the resolved prompts without calling the provider.",
    )
    parser.add_argument("--config", help="Config file path.")
    parser.add_argument("-q", "--quiet", action="store_true", help="Suppress info and warnings.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Report provider metadata.")
    return parser


def _build_command_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="lingo")
    commands = parser.add_subparsers(dest="command", required=True)

    config_parser = commands.add_parser(CONFIG_COMMAND, help="Inspect or edit configuration.")
    config_actions = config_parser.add_subparsers(dest="action", required=True)
    for action, help_text in (
        ("show", "Print the effective configuration."),
        ("path", "Print the config file path."),
        ("get", "Print one stored value by dotted key."),
        ("set", "Store a scalar value under a dotted key."),
        ("unset", "Remove a dotted key."),
        ("edit", "Open the config file in $EDITOR."),
    ):
        action_parser = config_actions.add_parser(action, help=help_text)
        action_parser.add_argument("--config", help="Config file path.")
        if action in {"get", "set", "unset"}:
            action_parser.add_argument("key")
        if action == "set":
            action_parser.add_argument("value")

    presets_parser = commands.add_parser(PRESETS_COMMAND, help="Inspect presets.")
    presets_actions = presets_parser.add_subparsers(dest="action", required=True)
    for action, help_text in (
        ("list", "List built-in and user-defined presets."),
        ("show", "Print a preset's prompt templates."),
        ("which", "Print the active default preset."),
    ):
        action_parser = presets_actions.add_parser(action, help=help_text)
        action_parser.add_argument("--config", help="Config file path.")
        if action == "show":
            action_parser.add_argument("name")
    return parser


def options_from_args(args: argparse.Namespace) -> TranslateOptions:
    return TranslateOptions(
        inputs=list(args.inputs),
        text=args.text,
        output=args.output,
        in_place=args.in_place,
        suffix=args.suffix,
        stream=args.stream,
        yes=args.yes,
        jobs=args.jobs,
        from_language=args.from_language,
        to_language=args.to_language,
        provider=args.provider,
        model=args.model,
        base_url=args.base_url,
        api_key=args.api_key,
        preset=args.preset,
        system_prompt=args.system_prompt,
        user_prompt=args.user_prompt,
        context=args.context,
        no_lang=args.no_lang,
        format=args.format,
        dry_run=args.dry_run,
        config=args.config,
        quiet=args.quiet,
        verbose=args.verbose,
    )


def _run_editor(command: list[str]) -> int:
    return subprocess.run(command, check=False).returncode


class CommandRunner:
    def __init__(
        self,
        terminal: Terminal,
        env: Mapping[str, str],
        cwd: Path,
        home: Path,
        editor_runner: EditorRunner | None = None,
    ) -> None:
        self._terminal = terminal
        self._env = env
        self._cwd = cwd
        self._home = home
        self._editor_runner = editor_runner or _run_editor

    def run(self, args: argparse.Namespace) -> None:
        path = resolve_config_path(args.config, self._env, self._cwd, self._home)
        if args.command == CONFIG_COMMAND:
            self._config(args, path)
        else:
            self._presets(args, self._load(path))

    def _load(self, path: Path) -> ResolvedConfig:
        return ConfigResolver().resolve(path, load_config_table(path))

    def _config(self, args: argparse.Namespace, path: Path) -> None:
        if args.action == "path":
            self._terminal.write_stdout(str(path))
            return
        if args.action == "show":
            resolver = ConfigResolver()
            self._terminal.write_stdout(format_value(resolver.effective_config(self._load(path))))
            return
        if args.action == "set":
            table = load_config_table(path)
            set_key(table, args.key, parse_scalar(args.value))
            save_config_table(table, path)
            return
        if args.action == "unset":
            table = load_config_table(path)
            unset_key(table, args.key)
            save_config_table(table, path)
            return
        if args.action == "edit":
            self._edit(path)
            return

        value = lookup_key(load_config_table(path), args.key)
        if value is None:
            raise AppError.runtime(f"Error: Key '{args.key}' not found.")
        self._terminal.write_stdout(format_value(value))

    def _edit(self, path: Path) -> None:
        if not path.exists():
            save_config_table({}, path)
        editor = self._env.get("EDITOR") or FALLBACK_EDITOR
        command = [*shlex.split(editor), str(path)]
        try:
            status = self._editor_runner(command)
        except OSError as exc:
            raise AppError.runtime(f"Error: Failed to launch editor '{editor}': {exc}") from exc
        if status != 0:
            raise AppError.runtime(f"Error: editor exited with status {status}.")

    def _presets(self, args: argparse.Namespace, config: ResolvedConfig) -> None:
        resolver = PresetResolver(config.presets)
        if args.action == "show":
            preset = resolver.resolve(args.name)
            self._terminal.write_stdout("--- SYSTEM PROMPT ---")
            self._terminal.write_stdout(preset.system_prompt or "")
            self._terminal.write_stdout("")
            self._terminal.write_stdout("--- USER PROMPT ---")
            self._terminal.write_stdout(preset.user_prompt or "")
            return

        active = config.defaults_preset
        if args.action == "which":
            preset = resolver.resolve(active)
            self._terminal.write_stdout(f"{active} ({preset.source})")
            return

        built_in, user_only = resolver.list()
        self._terminal.write_stdout("BUILT-IN PRESETS")
        for preset in built_in:
            marker = "*" if preset.name == active else " "
            name = preset.name.ljust(PRESET_NAME_WIDTH)
            self._terminal.write_stdout(f"  {name}{marker}  {preset.description or ''}")
        self._terminal.write_stdout("")
        self._terminal.write_stdout(f"USER-DEFINED PRESETS (in {config.path})")
        for preset in user_only:
            marker = "*" if preset.name == active else " "
            name = preset.name.ljust(PRESET_NAME_WIDTH)
            self._terminal.write_stdout(
                f"  {name}{marker}  {preset.description or 'Custom preset'}"
            )
        self._terminal.write_stdout("")
        self._terminal.write_stdout("  * = active default")


def execute(
    argv: Sequence[str],
    terminal: Terminal,
    env: Mapping[str, str],
    cwd: Path,
    home: Path,
    logger: logging.Logger,
    http_client: HttpClient | None = None,
    provider_override: TranslationProvider | None = None,
    editor_runner: EditorRunner | None = None,
) -> int:
    try:
        if argv and argv[0] in (CONFIG_COMMAND, PRESETS_COMMAND):
            args = _build_command_parser().parse_args(list(argv))
            CommandRunner(terminal, env, cwd, home, editor_runner).run(args)
            return ExitCode.SUCCESS

        parser = _build_translate_parser()
        options = options_from_args(parser.parse_intermixed_args(list(argv)))
        terminal.quiet = options.quiet
        terminal.verbose = options.verbose
        orchestrator = TranslationOrchestrator(
            terminal=terminal,
            logger=logger,
            env=env,
            cwd=cwd,
            home=home,
            http_client=http_client,
            provider_override=provider_override,
        )
        asyncio.run(orchestrator.run(options))
    except AppError as exc:
        terminal.error(exc.message)
        return exc.exit_code
    except ProviderError as exc:
        logger.warning(
            "translation_failed",
            extra={"event": "translation_failed", "error_kind": exc.kind},
        )
        terminal.error(exc.message)
        return ExitCode.RUNTIME_ERROR
    return ExitCode.SUCCESS


def main(argv: Sequence[str] | None = None) -> int:
    cwd = Path.cwd()
    settings = build_settings(cwd)
    configure_logging(settings.log_level, settings.service_name, settings.service_version)
    logger = _service_logger()
    logger.debug(
        "service_config_loaded",
        extra={"event": "config_loaded", "config": settings.redacted()},
    )

    env = {**settings.config_env(), **settings.env_credentials()}
    return int(
        execute(
            sys.argv[1:] if argv is None else argv,
            terminal=Terminal(),
            env=env,
            cwd=cwd,
            home=Path.home(),
            logger=logger,
        )
    )


if __name__ == "__main__":
    raise SystemExit(main())
