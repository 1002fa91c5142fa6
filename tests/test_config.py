"""Tests for guildkeeper.config -- template rendering, YAML parsing and validation."""

from __future__ import annotations

from pathlib import Path

import pytest

from guildkeeper.config import load_config, parse_config, render_config
from guildkeeper.exceptions import ConfigError
from guildkeeper.exit_codes import EXIT_GENERIC_FAILURE


VALID_CONFIG = """\
bot_token: "abc"
guild_id: "100"
store_location: ./store.json
module_configs:
  - id: schedule
    type: schedule
    attributes:
      discord_channel_id: "500"
      schedule_entries: 3
  - id: cleanup
    type: clearchannel
"""


class TestRenderConfig:
    def test_env_substitution(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("GK_TEST_TOKEN", "from-env")
        assert render_config('bot_token: "{{ env(\'GK_TEST_TOKEN\') }}"') == 'bot_token: "from-env"'

    def test_env_default(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("GK_TEST_UNSET", raising=False)
        assert render_config("x: {{ env('GK_TEST_UNSET', 'fallback') }}") == "x: fallback"

    def test_env_missing_raises(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("GK_TEST_UNSET", raising=False)
        with pytest.raises(ConfigError, match="GK_TEST_UNSET"):
            render_config("x: {{ env('GK_TEST_UNSET') }}")

    def test_undefined_variable_raises(self) -> None:
        with pytest.raises(ConfigError, match="rendering config template"):
            render_config("x: {{ nope }}")

    def test_plain_text_untouched(self) -> None:
        assert render_config("a: 1\n") == "a: 1\n"


class TestParseConfig:
    def test_valid(self) -> None:
        config = parse_config(VALID_CONFIG)
        assert config.bot_token == "abc"
        assert config.guild_id == "100"
        assert [m.id for m in config.module_configs] == ["schedule", "cleanup"]
        assert config.module_configs[0].attributes["schedule_entries"] == 3
        assert config.module_configs[1].attributes == {}

    def test_null_modules_is_empty(self) -> None:
        config = parse_config("store_location: s.json\nmodule_configs:\n")
        assert config.module_configs == []

    def test_missing_store_location(self) -> None:
        with pytest.raises(ConfigError, match="no store location"):
            parse_config("bot_token: abc\n")

    def test_unknown_top_level_key(self) -> None:
        with pytest.raises(ConfigError, match="Invalid config"):
            parse_config("store_location: s.json\nbot_tokn: abc\n")

    def test_module_without_type(self) -> None:
        with pytest.raises(ConfigError):
            parse_config("store_location: s.json\nmodule_configs:\n  - id: x\n")

    def test_invalid_yaml(self) -> None:
        with pytest.raises(ConfigError, match="Invalid YAML"):
            parse_config("store_location: [unclosed\n")

    def test_top_level_list(self) -> None:
        with pytest.raises(ConfigError, match="must be a mapping"):
            parse_config("- a\n- b\n")

    def test_exit_code(self) -> None:
        with pytest.raises(ConfigError) as excinfo:
            parse_config("")
        assert excinfo.value.exit_code == EXIT_GENERIC_FAILURE


class TestLoadConfig:
    def test_load_from_file(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text(VALID_CONFIG, encoding="utf-8")
        config = load_config(path)
        assert config.store_location == "./store.json"

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="Unable to read config"):
            load_config(tmp_path / "nope.yaml")
