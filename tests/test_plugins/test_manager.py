"""Tests for PluginManager -- loading config entries and driving setup."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from guildkeeper.attributes import AttributeKind, AttributeSpec, AttributeStore
from guildkeeper.exceptions import AttributeValueError, PluginError
from guildkeeper.exit_codes import EXIT_INVALID_ATTRIBUTES, EXIT_PLUGIN_ERROR
from guildkeeper.models import BotConfig, ModuleConfig
from guildkeeper.plugins.base import TWITCH_RETRY_CLIENT_ERRORS, Plugin, twitch_client_from_attributes
from guildkeeper.plugins.liveposting.plugin import LivePostingPlugin
from guildkeeper.plugins.liverole.plugin import LiveRolePlugin
from guildkeeper.plugins.manager import PluginManager
from guildkeeper.plugins.registry import PluginRegistry
from guildkeeper.plugins.schedule.plugin import SchedulePlugin


class RecordingPlugin(Plugin):
    KIND = "recording"
    ATTRIBUTES = (AttributeSpec("channel", AttributeKind.STRING, required=True),)
    events: list[str] = []

    def on_init(self) -> None:
        self.events.append(f"init:{self.id}")

    def setup(self) -> None:
        if self.attrs.must_bool("fail_setup", default=False):
            raise AttributeValueError("setup failed on purpose")
        self.events.append(f"setup:{self.id}")


@pytest.fixture(autouse=True)
def _clear_events():
    RecordingPlugin.events = []
    yield


@pytest.fixture
def manager(scheduler, chat, store) -> PluginManager:
    registry = PluginRegistry()
    registry.register(RecordingPlugin.KIND, RecordingPlugin)
    return PluginManager(scheduler, chat, store, registry=registry)


def _config(*modules: ModuleConfig) -> BotConfig:
    return BotConfig(guild_id="100", store_location="s.json", module_configs=list(modules))


def _module(id: str, type: str = "recording", **attributes) -> ModuleConfig:
    attributes.setdefault("channel", "1")
    return ModuleConfig(id=id, type=type, attributes=attributes)


class TestLoad:
    def test_loads_in_config_order(self, manager: PluginManager) -> None:
        loaded = manager.load(_config(_module("b"), _module("a")))
        assert [p.id for p in loaded] == ["b", "a"]
        assert RecordingPlugin.events == ["init:b", "init:a"]
        assert len(manager) == 2

    def test_empty_id_is_skipped(self, manager: PluginManager, caplog) -> None:
        with caplog.at_level("ERROR"):
            manager.load(_config(_module(""), _module("a")))
        assert [p.id for p in manager.plugins] == ["a"]
        assert "has no id" in caplog.text

    def test_duplicate_id_is_skipped(self, manager: PluginManager, caplog) -> None:
        with caplog.at_level("ERROR"):
            manager.load(_config(_module("a"), _module("a", channel="2")))
        assert len(manager) == 1
        assert manager.plugins[0].attr("channel") == "1"
        assert "reuses id 'a'" in caplog.text

    def test_unknown_type_aborts(self, manager: PluginManager) -> None:
        with pytest.raises(PluginError, match="unsupported type 'nope'") as excinfo:
            manager.load(_config(_module("a", type="nope")))
        assert "recording" in str(excinfo.value)
        assert excinfo.value.exit_code == EXIT_PLUGIN_ERROR

    def test_initialize_error_keeps_exit_code(self, manager: PluginManager) -> None:
        module = ModuleConfig(id="a", type="recording", attributes={})
        with pytest.raises(PluginError, match="missing key\\(s\\) channel") as excinfo:
            manager.load(_config(module))
        assert excinfo.value.exit_code == EXIT_INVALID_ATTRIBUTES

    def test_default_registry(self, scheduler, chat, store) -> None:
        manager = PluginManager(scheduler, chat, store)
        with pytest.raises(PluginError, match="schedule"):
            manager.load(_config(_module("a", type="nope")))


class TestSetup:
    def test_setup_runs_in_order(self, manager: PluginManager) -> None:
        manager.load(_config(_module("a"), _module("b")))
        manager.setup_all()
        assert RecordingPlugin.events[-2:] == ["setup:a", "setup:b"]

    def test_setup_error_aborts(self, manager: PluginManager) -> None:
        manager.load(_config(_module("a", fail_setup=True), _module("b")))
        with pytest.raises(PluginError, match="running setup for module 'a'") as excinfo:
            manager.setup_all()
        assert excinfo.value.exit_code == EXIT_INVALID_ATTRIBUTES
        assert "setup:b" not in RecordingPlugin.events


class TestTwitchFactory:
    CREDENTIALS = {"twitch_client_id": "cid", "twitch_client_secret": "secret"}

    def test_retries_client_errors_by_default(self) -> None:
        with patch("guildkeeper.plugins.base.TwitchClient") as client_cls:
            twitch_client_from_attributes(AttributeStore(self.CREDENTIALS))
        client_cls.assert_called_once_with("cid", "secret", retry_client_errors=True)

    def test_client_error_retry_is_configurable(self) -> None:
        attrs = AttributeStore({**self.CREDENTIALS, "twitch_retry_client_errors": "false"})
        with patch("guildkeeper.plugins.base.TwitchClient") as client_cls:
            twitch_client_from_attributes(attrs)
        client_cls.assert_called_once_with("cid", "secret", retry_client_errors=False)

    @pytest.mark.parametrize("plugin_cls", [SchedulePlugin, LivePostingPlugin, LiveRolePlugin])
    def test_twitch_plugins_declare_the_option(self, plugin_cls) -> None:
        assert plugin_cls.spec("twitch_retry_client_errors") is TWITCH_RETRY_CLIENT_ERRORS
