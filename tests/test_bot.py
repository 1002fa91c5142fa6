"""Tests for the bot startup and shutdown sequence."""

from __future__ import annotations

from pathlib import Path

import pytest

from guildkeeper.bot import Bot
from guildkeeper.exceptions import GuildkeeperError, PluginError, StoreCorruptError
from guildkeeper.exit_codes import EXIT_NOT_FOUND
from guildkeeper.models import BotConfig, ModuleConfig
from guildkeeper.reconcile import MESSAGE_ID_KEY


def _config(tmp_path: Path, *modules: ModuleConfig, guild_id: str = "100") -> BotConfig:
    return BotConfig(
        bot_token="token",
        guild_id=guild_id,
        store_location=str(tmp_path / "store.json"),
        module_configs=list(modules),
    )


REACTION_MODULE = ModuleConfig(
    id="roles",
    type="reactionrole",
    attributes={"discord_channel_id": "800", "reaction_roles": ["🎮=11"], "content": "Pick"},
)
CLEANUP_MODULE = ModuleConfig(
    id="cleanup", type="clearchannel", attributes={"discord_channel_id": "700", "retention": "1h"}
)


def _bot(config: BotConfig, chat, scheduler) -> Bot:
    return Bot(config, lambda token: chat, scheduler=scheduler)


class TestStart:
    def test_full_startup(self, tmp_path: Path, chat, scheduler) -> None:
        bot = _bot(_config(tmp_path, REACTION_MODULE, CLEANUP_MODULE), chat, scheduler)

        assert bot.start() is True
        assert chat.opened
        assert scheduler.started
        assert "clearchannel:cleanup" in scheduler.jobs
        assert len(chat.calls_of("send")) == 1
        assert bot.store is not None
        assert bot.store.read_with_lock("roles", lambda a: a.get_string(MESSAGE_ID_KEY))

        bot.stop()
        assert not chat.opened
        assert not scheduler.started

    def test_no_modules(self, tmp_path: Path, chat, scheduler) -> None:
        bot = _bot(_config(tmp_path), chat, scheduler)
        assert bot.start() is False
        assert not chat.opened
        assert not scheduler.started

    def test_unknown_guild(self, tmp_path: Path, chat, scheduler) -> None:
        bot = _bot(_config(tmp_path, CLEANUP_MODULE, guild_id="404"), chat, scheduler)
        with pytest.raises(GuildkeeperError, match="guild '404' not found") as excinfo:
            bot.start()
        assert excinfo.value.exit_code == EXIT_NOT_FOUND
        assert not scheduler.started
        bot.stop()
        assert not chat.opened

    def test_plugin_failure_before_connect(self, tmp_path: Path, chat, scheduler) -> None:
        broken = ModuleConfig(id="x", type="clearchannel", attributes={"discord_channel_id": "700"})
        bot = _bot(_config(tmp_path, broken), chat, scheduler)
        with pytest.raises(PluginError):
            bot.start()
        assert not chat.opened

    def test_corrupt_store(self, tmp_path: Path, chat, scheduler) -> None:
        (tmp_path / "store.json").write_text("{nope")
        bot = _bot(_config(tmp_path, CLEANUP_MODULE), chat, scheduler)
        with pytest.raises(StoreCorruptError):
            bot.start()

    def test_restart_reuses_message(self, tmp_path: Path, chat, scheduler) -> None:
        config = _config(tmp_path, REACTION_MODULE)
        first = _bot(config, chat, scheduler)
        first.start()
        first.stop()

        second = _bot(config, chat, scheduler)
        second.start()
        assert len(chat.calls_of("send")) == 1
        second.stop()


class TestEventSource:
    def test_warns_when_handlers_have_no_source(self, tmp_path: Path, chat, scheduler, caplog) -> None:
        chat.delivers_events = False
        bot = _bot(_config(tmp_path, REACTION_MODULE), chat, scheduler)

        with caplog.at_level("WARNING", logger="guildkeeper.bot"):
            assert bot.start() is True

        assert "reaction_add, reaction_remove events" in caplog.text
        assert "FakeChatPlatform has no event source" in caplog.text
        bot.stop()

    def test_quiet_when_events_are_delivered(self, tmp_path: Path, chat, scheduler, caplog) -> None:
        bot = _bot(_config(tmp_path, REACTION_MODULE), chat, scheduler)
        with caplog.at_level("WARNING", logger="guildkeeper.bot"):
            bot.start()
        assert "no event source" not in caplog.text
        bot.stop()

    def test_quiet_without_event_handlers(self, tmp_path: Path, chat, scheduler, caplog) -> None:
        chat.delivers_events = False
        bot = _bot(_config(tmp_path, CLEANUP_MODULE), chat, scheduler)
        with caplog.at_level("WARNING", logger="guildkeeper.bot"):
            bot.start()
        assert chat.handled_events() == []
        assert "no event source" not in caplog.text
        bot.stop()

