from __future__ import annotations

import os
import stat
import tempfile
import textwrap
import unittest
from pathlib import Path

from lingo.app.config.resolver import ConfigResolver, ProviderConfigEntry
from lingo.app.config.store import (
    expand_path,
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

_CONFIG = textwrap.dedent(
    """
    [defaults]
    provider = "anthropic"
    to = "fr"
    format = "Markdown"
    jobs = 0
    stream = true

    [network]
    timeout_seconds = 0
    retries = -2

    [providers.anthropic]
    api_key = "sk-ant-secret"
    model = "claude-3-5-haiku-latest"

    [providers.openai-compatible]
    base_url = "http://localhost:1234/v1"

    [providers.openai-compatible.lmstudio]
    base_url = "http://localhost:1234/v1"
    model = "qwen2.5"

    [providers.openai-compatible.openai]
    base_url = "http://shadowed"

    [presets.changelog]
    description = "Release notes"
    system_prompt_file = "~/prompts/changelog.txt"
    from = "en"
    """
)


class ConfigStoreTest(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.root = Path(self._tmp.name)

    def test_expand_path(self) -> None:
        home = Path("/home/ada")
        cwd = Path("/work")
        self.assertEqual(expand_path("~", cwd, home), home)
        self.assertEqual(expand_path("~/a/b.toml", cwd, home), Path("/home/ada/a/b.toml"))
        self.assertEqual(expand_path("conf/../c.toml", cwd, home), Path("/work/c.toml"))
        self.assertEqual(expand_path("/etc/c.toml", cwd, home), Path("/etc/c.toml"))

    def test_config_path_precedence(self) -> None:
        cwd, home = Path("/work"), Path("/home/ada")
        env = {"LINGO_CONFIG": "/env/config.toml"}
        self.assertEqual(
            resolve_config_path("cli.toml", env, cwd, home), Path("/work/cli.toml")
        )
        self.assertEqual(resolve_config_path(None, env, cwd, home), Path("/env/config.toml"))
        self.assertEqual(
            resolve_config_path(None, {}, cwd, home), Path("/home/ada/.config/lingo/config.toml")
        )

    def test_missing_file_is_empty_table(self) -> None:
        self.assertEqual(load_config_table(self.root / "absent.toml"), {})

    def test_invalid_toml(self) -> None:
        path = self.root / "config.toml"
        path.write_text("[defaults\nprovider =", encoding="utf-8")
        with self.assertRaises(AppError) as raised:
            load_config_table(path)
        self.assertEqual(raised.exception.exit_code, ExitCode.RUNTIME_ERROR)
        self.assertIn("Failed to parse config file", raised.exception.message)

    def test_invalid_utf8(self) -> None:
        path = self.root / "config.toml"
        path.write_bytes(b"provider = \"\xff\"")
        with self.assertRaises(AppError) as raised:
            load_config_table(path)
        self.assertIn("contains invalid UTF-8", raised.exception.message)

    def test_lookup_key_and_format_value(self) -> None:
        path = self.root / "config.toml"
        path.write_text(_CONFIG, encoding="utf-8")
        table = load_config_table(path)

        self.assertEqual(lookup_key(table, "defaults.provider"), "anthropic")
        self.assertIsNone(lookup_key(table, "defaults.missing"))
        self.assertIsNone(lookup_key(table, "defaults.provider.deeper"))
        self.assertIsNone(lookup_key(table, ""))
        self.assertEqual(format_value(lookup_key(table, "defaults.stream")), "true")
        self.assertEqual(format_value(lookup_key(table, "defaults.jobs")), "0")
        self.assertEqual(
            format_value(lookup_key(table, "providers.openai-compatible.lmstudio")),
            '{\n  "base_url": "http://localhost:1234/v1",\n  "model": "qwen2.5"\n}',
        )


class ConfigEditingTest(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.root = Path(self._tmp.name)

    def test_parse_scalar(self) -> None:
        self.assertIs(parse_scalar("TRUE"), True)
        self.assertIs(parse_scalar(" false "), False)
        self.assertEqual(parse_scalar("8"), 8)
        self.assertEqual(parse_scalar("-3"), -3)
        self.assertEqual(parse_scalar("1.5"), 1.5)
        self.assertEqual(parse_scalar("1e3"), "1e3")
        self.assertEqual(parse_scalar("gpt-4o"), "gpt-4o")
        self.assertEqual(parse_scalar("v1.2.3"), "v1.2.3")

    def test_set_key_creates_nested_tables(self) -> None:
        table = {"defaults": {"to": "fr"}, "network": 5}

        set_key(table, "defaults.jobs", 4)
        set_key(table, "network.retries", 2)
        set_key(table, "providers.openai-compatible.lmstudio.model", "qwen2.5")

        self.assertEqual(table["defaults"], {"to": "fr", "jobs": 4})
        self.assertEqual(table["network"], {"retries": 2})
        self.assertEqual(
            table["providers"], {"openai-compatible": {"lmstudio": {"model": "qwen2.5"}}}
        )

    def test_set_key_rejects_empty_key(self) -> None:
        with self.assertRaises(AppError) as raised:
            set_key({}, " . ", "x")
        self.assertEqual(raised.exception.exit_code, ExitCode.INVALID_ARGUMENTS)

    def test_unset_key_prunes_empty_tables(self) -> None:
        table = {"providers": {"openai": {"api_key": "sk"}}, "defaults": {"to": "fr", "jobs": 2}}

        self.assertTrue(unset_key(table, "providers.openai.api_key"))
        self.assertTrue(unset_key(table, "defaults.jobs"))
        self.assertFalse(unset_key(table, "defaults.missing"))
        self.assertFalse(unset_key(table, "defaults.to.deeper"))

        self.assertEqual(table, {"defaults": {"to": "fr"}})

    def test_save_round_trips_and_creates_private_file(self) -> None:
        path = self.root / "nested" / "config.toml"
        table = {"defaults": {"to": "ja", "stream": True}, "network": {"retries": 1}}

        save_config_table(table, path)

        self.assertEqual(load_config_table(path), table)
        if os.name != "nt":
            self.assertEqual(stat.S_IMODE(path.stat().st_mode), 0o600)


class ConfigResolverTest(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        path = Path(self._tmp.name) / "config.toml"
        path.write_text(_CONFIG, encoding="utf-8")
        self.resolver = ConfigResolver()
        self.config = self.resolver.resolve(path, load_config_table(path))

    def test_defaults_are_normalized(self) -> None:
        self.assertEqual(self.config.defaults_provider, "anthropic")
        self.assertEqual(self.config.defaults_from, "auto")
        self.assertEqual(self.config.defaults_to, "fr")
        self.assertEqual(self.config.defaults_preset, "general")
        self.assertEqual(self.config.defaults_format, "markdown")
        self.assertTrue(self.config.defaults_stream)
        self.assertFalse(self.config.defaults_yes)
        self.assertEqual(self.config.defaults_jobs, 1)

    def test_network_values_are_clamped(self) -> None:
        self.assertEqual(self.config.network.timeout_seconds, 1)
        self.assertEqual(self.config.network.retries, 0)
        self.assertEqual(self.config.network.retry_base_delay_seconds, 1)

    def test_provider_entries_and_named_endpoints(self) -> None:
        self.assertEqual(
            self.config.provider_entry("anthropic"),
            ProviderConfigEntry(model="claude-3-5-haiku-latest", api_key="sk-ant-secret"),
        )
        self.assertEqual(self.config.provider_entry("gemini"), ProviderConfigEntry())
        self.assertEqual(
            self.config.provider_entry("openai-compatible").base_url, "http://localhost:1234/v1"
        )
        self.assertEqual(sorted(self.config.named_endpoints), ["lmstudio", "openai"])
        self.assertEqual(self.config.named_endpoints["lmstudio"].model, "qwen2.5")

    def test_collision_warnings(self) -> None:
        warnings = self.resolver.collision_warnings(self.config)
        self.assertEqual(len(warnings), 1)
        self.assertTrue(warnings[0].startswith("Named endpoint 'openai' in config"))

    def test_user_presets(self) -> None:
        preset = self.config.presets["changelog"]
        self.assertEqual(preset.description, "Release notes")
        self.assertEqual(preset.system_prompt_file, "~/prompts/changelog.txt")
        self.assertEqual(preset.from_language, "en")
        self.assertIsNone(preset.to_language)

    def test_effective_config_redacts_api_keys(self) -> None:
        effective = self.resolver.effective_config(self.config)

        self.assertEqual(effective["defaults"]["jobs"], 1)
        self.assertEqual(effective["network"]["timeout_seconds"], 1)
        self.assertEqual(effective["providers"]["anthropic"]["api_key"], "********")
        self.assertEqual(
            effective["providers"]["anthropic"]["model"], "claude-3-5-haiku-latest"
        )
        self.assertIn("changelog", effective["presets"])

    def test_empty_table_uses_defaults(self) -> None:
        config = self.resolver.resolve(Path("/nowhere.toml"), {})
        self.assertEqual(config.defaults_provider, "openai")
        self.assertEqual(config.defaults_to, "en")
        self.assertEqual(config.network.timeout_seconds, 120)
        self.assertEqual(config.network.retries, 3)
        self.assertEqual(config.named_endpoints, {})
        self.assertNotIn("providers", self.resolver.effective_config(config))


if __name__ == "__main__":
    unittest.main()
