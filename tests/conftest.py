"""Shared test fixtures for guildkeeper.

Provides an in-memory chat platform, a recording scheduler, an isolated
metastore and a helper that initializes plugins against them. These
fixtures are automatically discovered by pytest and available to all test
modules without explicit imports.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Optional
from unittest.mock import MagicMock

import pytest

from guildkeeper.attributes import AttributeStore
from guildkeeper.chat.base import ChatPlatform
from guildkeeper.chat.models import Embed, Emoji, Guild, Member, Message, Reaction, User
from guildkeeper.exceptions import NotFoundError
from guildkeeper.metastore import MetaStore
from guildkeeper.models import BotConfig
from guildkeeper.output import reset_output
from guildkeeper.plugins.base import InitArgs, Plugin
from guildkeeper.scheduler import Scheduler
from guildkeeper.twitch.client import TwitchClient

GUILD_ID = "100"
BOT_USER_ID = "999"


# ---------------------------------------------------------------------------
# Auto-reset global state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager and root log handlers after every test.

    The OutputManager and the Rich log handler cache references to
    sys.stdout/sys.stderr at creation time. When Typer's CliRunner
    redirects those streams and the test finishes, the cached references
    become stale ("I/O operation on closed file").
    """
    yield
    reset_output()
    root = logging.getLogger()
    for handler in list(root.handlers):
        if type(handler).__name__ == "RichHandler":
            root.removeHandler(handler)


# ---------------------------------------------------------------------------
# In-memory chat platform
# ---------------------------------------------------------------------------


def _emoji_from_api(emoji: str) -> Emoji:
    name, _, emoji_id = emoji.partition(":")
    return Emoji(name=name, id=emoji_id or None)


class FakeChatPlatform(ChatPlatform):
    """Chat platform keeping channels, members and roles in dictionaries.

    Every mutating call is appended to :attr:`calls` as a tuple whose first
    element names the operation (``"send"``, ``"edit"``, ``"delete"`` ...).
    Message ids are increasing integers rendered as strings.
    """

    delivers_events = True

    def __init__(self, bot_user_id: str = BOT_USER_ID) -> None:
        super().__init__()
        self._bot_user_id = bot_user_id
        self.opened = False
        self.guilds: dict[str, Guild] = {GUILD_ID: Guild(id=GUILD_ID, name="Test Guild")}
        self.channels: dict[str, dict[str, Message]] = defaultdict(dict)
        self.members: dict[str, Member] = {}
        self.calls: list[tuple[Any, ...]] = []
        self._next_id = 1000

    # -- test helpers -------------------------------------------------------

    def new_id(self) -> str:
        self._next_id += 1
        return str(self._next_id)

    def add_message(
        self,
        channel_id: str,
        content: str = "",
        *,
        embed: Optional[Embed] = None,
        author_id: str = "1",
        age: timedelta = timedelta(0),
        message_id: Optional[str] = None,
    ) -> Message:
        message = Message(
            id=message_id or self.new_id(),
            channel_id=channel_id,
            content=content,
            embeds=[embed] if embed is not None else [],
            timestamp=datetime.now(timezone.utc) - age,
            author=User(id=author_id),
        )
        self.channels[channel_id][message.id] = message
        return message

    def add_member(self, user_id: str, *roles: str) -> Member:
        member = Member(user=User(id=user_id), roles=list(roles))
        self.members[user_id] = member
        return member

    def calls_of(self, operation: str) -> list[tuple[Any, ...]]:
        return [call for call in self.calls if call[0] == operation]

    def _stored(self, channel_id: str, message_id: str) -> Message:
        try:
            return self.channels[channel_id][message_id]
        except KeyError:
            raise NotFoundError(f"message {message_id} not found") from None

    # -- ChatPlatform -------------------------------------------------------

    def open(self) -> None:
        self.opened = True

    def close(self) -> None:
        self.opened = False

    @property
    def bot_user_id(self) -> str:
        return self._bot_user_id

    def guild(self, guild_id: str) -> Guild:
        try:
            return self.guilds[guild_id]
        except KeyError:
            raise NotFoundError(f"guild {guild_id} not found") from None

    def list_recent_messages(
        self, channel_id: str, limit: int, after: Optional[str] = None
    ) -> list[Message]:
        self.calls.append(("list", channel_id, after))
        ordered = sorted(self.channels[channel_id].values(), key=lambda m: int(m.id))
        if after is not None:
            ordered = [m for m in ordered if int(m.id) > int(after)][:limit]
        else:
            ordered = ordered[-limit:]
        return [m.model_copy(deep=True) for m in reversed(ordered)]

    def get_message(self, channel_id: str, message_id: str) -> Message:
        return self._stored(channel_id, message_id).model_copy(deep=True)

    def send_message(self, channel_id: str, content: str, embed: Optional[Embed] = None) -> Message:
        message = self.add_message(
            channel_id,
            content,
            embed=embed.model_copy(deep=True) if embed is not None else None,
            author_id=self._bot_user_id,
        )
        self.calls.append(("send", channel_id, message.id))
        return message.model_copy(deep=True)

    def edit_message(
        self, channel_id: str, message_id: str, content: str, embed: Optional[Embed] = None
    ) -> Message:
        message = self._stored(channel_id, message_id)
        message.content = content
        message.embeds = [embed.model_copy(deep=True)] if embed is not None else []
        self.calls.append(("edit", channel_id, message_id))
        return message.model_copy(deep=True)

    def delete_message(self, channel_id: str, message_id: str) -> None:
        self._stored(channel_id, message_id)
        del self.channels[channel_id][message_id]
        self.calls.append(("delete", channel_id, message_id))

    def crosspost_message(self, channel_id: str, message_id: str) -> Message:
        self.calls.append(("crosspost", channel_id, message_id))
        return self.get_message(channel_id, message_id)

    def add_reaction(self, channel_id: str, message_id: str, emoji: str) -> None:
        message = self._stored(channel_id, message_id)
        message.reactions.append(Reaction(emoji=_emoji_from_api(emoji), count=1, me=True))
        self.calls.append(("react", message_id, emoji))

    def remove_reaction_emoji(self, channel_id: str, message_id: str, emoji: str) -> None:
        message = self._stored(channel_id, message_id)
        message.reactions = [r for r in message.reactions if r.emoji.api_name != emoji]
        self.calls.append(("unreact", message_id, emoji))

    def get_member(self, guild_id: str, user_id: str) -> Member:
        member = self.members.get(user_id) or self.add_member(user_id)
        return member.model_copy(deep=True)

    def add_role(self, guild_id: str, user_id: str, role_id: str) -> None:
        member = self.members.get(user_id) or self.add_member(user_id)
        member.roles.append(role_id)
        self.calls.append(("add_role", user_id, role_id))

    def remove_role(self, guild_id: str, user_id: str, role_id: str) -> None:
        member = self.members.get(user_id) or self.add_member(user_id)
        member.roles = [r for r in member.roles if r != role_id]
        self.calls.append(("remove_role", user_id, role_id))


class FakeScheduler(Scheduler):
    """Scheduler that validates and records jobs but never runs a thread."""

    def __init__(self) -> None:
        super().__init__()
        self.jobs: dict[str, tuple[str, Callable[[], Any]]] = {}
        self.started = False

    def add_cron_job(self, expression: str, fn: Callable[[], Any], name: str) -> str:
        job_id = super().add_cron_job(expression, fn, name)
        self.jobs[name] = (expression, fn)
        return job_id

    def start(self) -> None:
        self.started = True

    def shutdown(self) -> None:
        self.started = False

    def run(self, name: str) -> Any:
        """Call the job body registered as *name* directly."""
        return self.jobs[name][1]()


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def chat() -> FakeChatPlatform:
    return FakeChatPlatform()


@pytest.fixture
def scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture
def store(tmp_path: Path) -> MetaStore:
    """An empty metastore writing to a temporary file."""
    return MetaStore(tmp_path / "store.json")


@pytest.fixture
def bot_config(tmp_path: Path) -> BotConfig:
    return BotConfig(bot_token="token", guild_id=GUILD_ID, store_location=str(tmp_path / "store.json"))


@pytest.fixture
def twitch() -> MagicMock:
    """A stand-in Twitch client handed to plugins by the factory."""
    return MagicMock(spec=TwitchClient)


class PluginEnv:
    """Bundles the fakes a plugin is initialized with."""

    def __init__(self, chat, scheduler, store, config, twitch) -> None:
        self.chat = chat
        self.scheduler = scheduler
        self.store = store
        self.config = config
        self.twitch = twitch

    def init(self, plugin: Plugin, attributes: dict[str, Any], plugin_id: str = "test") -> Plugin:
        plugin.initialize(
            InitArgs(
                id=plugin_id,
                attrs=AttributeStore(attributes),
                scheduler=self.scheduler,
                chat=self.chat,
                config=self.config,
                store=self.store,
                twitch_factory=lambda attrs: self.twitch,
            )
        )
        return plugin


@pytest.fixture
def plugin_env(
    chat: FakeChatPlatform,
    scheduler: FakeScheduler,
    store: MetaStore,
    bot_config: BotConfig,
    twitch: MagicMock,
) -> PluginEnv:
    return PluginEnv(chat, scheduler, store, bot_config, twitch)


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()
