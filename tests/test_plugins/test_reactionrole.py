"""Tests for the reaction role plugin."""

from __future__ import annotations

from typing import Any
from unittest.mock import patch

import pytest

from guildkeeper.chat.base import EVENT_REACTION_ADD, EVENT_REACTION_REMOVE
from guildkeeper.chat.models import Emoji, Reaction, ReactionEvent
from guildkeeper.exceptions import AttributeValueError
from guildkeeper.plugins.reactionrole import ReactionRolePlugin
from guildkeeper.plugins.reactionrole.plugin import ReactionRole, parse_reaction_roles
from guildkeeper.reconcile import MESSAGE_ID_KEY

CHANNEL = "800"


def _attrs(**overrides: Any) -> dict[str, Any]:
    attrs = {
        "discord_channel_id": CHANNEL,
        "reaction_roles": ["🎮=11", ":party:1234=12:set"],
        "content": "Pick your roles",
        "embed_title": "Roles",
        "embed_description": "React below",
    }
    attrs.update(overrides)
    return attrs


def _event(emoji: Emoji, message_id: str, user_id: str = "7", added: bool = True) -> ReactionEvent:
    return ReactionEvent(
        user_id=user_id, channel_id=CHANNEL, message_id=message_id, guild_id="100", emoji=emoji, added=added
    )


class TestParse:
    def test_entries(self) -> None:
        roles = parse_reaction_roles(["🎮=11", ":party:1234=12:set"])
        assert roles == {
            "🎮": ReactionRole(emote="🎮", role_id="11", keep=False),
            ":party:1234": ReactionRole(emote=":party:1234", role_id="12", keep=True),
        }

    def test_api_emoji(self) -> None:
        assert ReactionRole(emote=":party:1234", role_id="1").api_emoji == "party:1234"
        assert ReactionRole(emote="🎮", role_id="1").api_emoji == "🎮"

    @pytest.mark.parametrize("entry", ["🎮", "=11", "🎮="])
    def test_invalid_entries(self, entry: str) -> None:
        with pytest.raises(AttributeValueError, match="reaction_roles"):
            parse_reaction_roles([entry])


@pytest.fixture
def plugin(plugin_env) -> ReactionRolePlugin:
    return plugin_env.init(ReactionRolePlugin(), _attrs(), plugin_id="roles")


def _message_id(plugin_env) -> str:
    return plugin_env.store.read_with_lock("roles", lambda a: a.get_string(MESSAGE_ID_KEY))


class TestSetup:
    def test_posts_message_and_reactions(self, plugin, plugin_env) -> None:
        plugin.setup()

        message_id = _message_id(plugin_env)
        message = plugin_env.chat.get_message(CHANNEL, message_id)
        assert message.content == "Pick your roles"
        assert message.embeds[0].title == "Roles"
        assert message.embeds[0].timestamp is None
        assert plugin_env.chat.calls_of("react") == [
            ("react", message_id, "🎮"),
            ("react", message_id, "party:1234"),
        ]

    def test_second_setup_is_idempotent(self, plugin, plugin_env) -> None:
        plugin.setup()
        plugin.setup()

        assert len(plugin_env.chat.calls_of("send")) == 1
        assert len(plugin_env.chat.calls_of("react")) == 2
        assert plugin_env.chat.calls_of("unreact") == []

    def test_foreign_reactions_removed(self, plugin, plugin_env) -> None:
        plugin.setup()
        message_id = _message_id(plugin_env)
        stored = plugin_env.chat.channels[CHANNEL][message_id]
        stored.reactions.append(Reaction(emoji=Emoji(name="💩"), count=1))
        stored.reactions.append(Reaction(emoji=Emoji(name="other", id="99"), count=1))

        plugin.setup()
        assert plugin_env.chat.calls_of("unreact") == [
            ("unreact", message_id, "💩"),
            ("unreact", message_id, "other:99"),
        ]

    def test_setup_fetches_message_once(self, plugin, plugin_env) -> None:
        plugin.setup()
        chat = plugin_env.chat
        with patch.object(chat, "get_message", wraps=chat.get_message) as get_message:
            plugin.setup()
        assert get_message.call_count == 1

    def test_message_before_initialize(self) -> None:
        with pytest.raises(RuntimeError, match="used before initialize"):
            ReactionRolePlugin().message

    def test_config_change_edits_message(self, plugin_env) -> None:
        plugin_env.init(ReactionRolePlugin(), _attrs(), plugin_id="roles").setup()
        plugin_env.init(ReactionRolePlugin(), _attrs(content="New text"), plugin_id="roles").setup()

        assert len(plugin_env.chat.calls_of("send")) == 1
        assert len(plugin_env.chat.calls_of("edit")) == 1

    def test_without_embed(self, plugin_env) -> None:
        plugin = plugin_env.init(ReactionRolePlugin(), _attrs(embed_title=""), plugin_id="roles")
        plugin.setup()
        assert plugin_env.chat.get_message(CHANNEL, _message_id(plugin_env)).embeds == []

    def test_invalid_entry_fails_setup(self, plugin_env) -> None:
        plugin = plugin_env.init(ReactionRolePlugin(), _attrs(reaction_roles=["broken"]), plugin_id="roles")
        with pytest.raises(AttributeValueError):
            plugin.setup()
        assert plugin_env.chat.calls_of("send") == []


class TestReactions:
    def test_add_assigns_role(self, plugin, plugin_env) -> None:
        plugin.setup()
        plugin_env.chat.dispatch(EVENT_REACTION_ADD, _event(Emoji(name="🎮"), _message_id(plugin_env)))
        assert plugin_env.chat.calls_of("add_role") == [("add_role", "7", "11")]

    def test_custom_emoji(self, plugin, plugin_env) -> None:
        plugin.setup()
        plugin.handle_reaction(_event(Emoji(name="party", id="1234"), _message_id(plugin_env)))
        assert plugin_env.chat.calls_of("add_role") == [("add_role", "7", "12")]

    def test_remove_takes_role(self, plugin, plugin_env) -> None:
        plugin.setup()
        plugin_env.chat.add_member("7", "11")
        plugin_env.chat.dispatch(
            EVENT_REACTION_REMOVE, _event(Emoji(name="🎮"), _message_id(plugin_env), added=False)
        )
        assert plugin_env.chat.calls_of("remove_role") == [("remove_role", "7", "11")]

    def test_keep_role_not_removed(self, plugin, plugin_env) -> None:
        plugin.setup()
        plugin.handle_reaction(_event(Emoji(name="party", id="1234"), _message_id(plugin_env), added=False))
        assert plugin_env.chat.calls_of("remove_role") == []

    def test_bot_reactions_ignored(self, plugin, plugin_env) -> None:
        plugin.setup()
        plugin.handle_reaction(
            _event(Emoji(name="🎮"), _message_id(plugin_env), user_id=plugin_env.chat.bot_user_id)
        )
        assert plugin_env.chat.calls_of("add_role") == []

    def test_other_message_ignored(self, plugin, plugin_env) -> None:
        plugin.setup()
        plugin.handle_reaction(_event(Emoji(name="🎮"), "123456"))
        assert plugin_env.chat.calls_of("add_role") == []

    def test_unmapped_emoji_ignored(self, plugin, plugin_env) -> None:
        plugin.setup()
        plugin.handle_reaction(_event(Emoji(name="💩"), _message_id(plugin_env)))
        assert plugin_env.chat.calls_of("add_role") == []
